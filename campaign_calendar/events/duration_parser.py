"""
Duration notation parser.

Resolves expressions such as "2d6 days", "1 week + 2d4 hours" or
"3 months - 5 days" into minutes, rolling dice through a seeded Mulberry32
so the result is reproducible from the generator state.

Grammar (whitespace-insensitive, case-insensitive):
    duration := chunk (('+' | '-') chunk)*
    chunk    := ['+' | '-'] (NdM | N) unit
    unit     := minute(s) | hour(s) | day(s) | week(s) | month(s) | year(s)
"""

import logging
import math
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from campaign_calendar.config import DurationUnitConfig
from campaign_calendar.data_models import Mulberry32

if TYPE_CHECKING:
    from campaign_calendar.calendar.calendar_driver import CalendarDriver

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(
    r"(?P<dice>\d+d\d+)"
    r"|(?P<number>\d+)"
    r"|(?P<unit>minutes?|hours?|days?|weeks?|months?|years?)"
    r"|(?P<operator>[+\-])"
    r"|(?P<invalid>\S+)",
    re.IGNORECASE,
)


class DurationParseError(ValueError):
    """Raised for malformed duration notation."""


@dataclass(frozen=True)
class DurationToken:
    kind: str  # dice, number, unit, operator
    value: str
    position: int


@dataclass(frozen=True)
class DurationChunk:
    """One signed "value unit" term of a duration."""
    sign: int
    unit: str
    value: int = 0
    dice: Optional[str] = None


def units_from_calendar(driver: "CalendarDriver") -> DurationUnitConfig:
    """
    Derive week, month and year sizes from a calendar.

    Months average over the standard (non-intercalary) months; calendars
    without months keep the defaults.
    """
    definition = driver.definition
    if not definition.months:
        return DurationUnitConfig(days_per_week=len(definition.weekdays) or 7)

    standard = [m for m in definition.months if not m.intercalary] or list(definition.months)
    total = driver.get_total_days_in_year()
    return DurationUnitConfig(
        days_per_week=len(definition.weekdays) or 7,
        days_per_month=total / len(standard),
        days_per_year=total,
    )


def tokenize(notation: str) -> list[DurationToken]:
    tokens = []
    for match in TOKEN_PATTERN.finditer(notation):
        kind = match.lastgroup
        if kind == "invalid":
            raise DurationParseError(
                f"Invalid token at position {match.start()}: '{match.group()}'"
            )
        tokens.append(DurationToken(kind, match.group().lower(), match.start()))
    if not tokens:
        raise DurationParseError("No valid tokens found in duration notation")
    return tokens


def parse_chunks(tokens: list[DurationToken]) -> list[DurationChunk]:
    """Group tokens into signed value/unit chunks."""
    chunks = []
    sign = 1
    i = 0
    while i < len(tokens):
        token = tokens[i]

        if token.kind == "operator":
            sign = -1 if token.value == "-" else 1
            i += 1
            if i >= len(tokens):
                raise DurationParseError(
                    f"Trailing operator '{token.value}' at position {token.position}"
                )
            continue

        if token.kind not in ("number", "dice"):
            raise DurationParseError(
                f"Expected number or dice notation at position {token.position}, got '{token.value}'"
            )
        i += 1
        if i >= len(tokens):
            raise DurationParseError(
                f"Missing unit after '{token.value}' at position {token.position}"
            )
        unit_token = tokens[i]
        if unit_token.kind != "unit":
            raise DurationParseError(
                f"Expected unit at position {unit_token.position}, got '{unit_token.value}'"
            )
        i += 1

        unit = unit_token.value.rstrip("s")
        if token.kind == "dice":
            chunks.append(DurationChunk(sign=sign, unit=unit, dice=token.value))
        else:
            chunks.append(DurationChunk(sign=sign, unit=unit, value=int(token.value)))
        sign = 1

    return chunks


class DurationParser:
    """
    Parses duration notation against a set of unit sizes.

    Dice are rolled on the Mulberry32 passed to each call, advancing it; the
    caller reads the generator state afterwards if it needs to persist it.
    """

    def __init__(self, units: Optional[DurationUnitConfig] = None):
        self.units = units or DurationUnitConfig()

    def parse_minutes(self, notation: str, rng: Mulberry32) -> int:
        """
        Resolve notation to whole minutes.

        Raises:
            DurationParseError: On empty or malformed notation, or a
                negative total
        """
        normalized = " ".join(notation.strip().lower().split())
        if not normalized:
            raise DurationParseError("Duration notation cannot be empty")

        chunks = parse_chunks(tokenize(normalized))

        total = 0.0
        for chunk in chunks:
            value = rng.roll_dice(chunk.dice).total if chunk.dice else chunk.value
            total += chunk.sign * value * self.units.unit_minutes(chunk.unit)

        if total < 0:
            raise DurationParseError(f"Duration '{notation}' resolves to a negative total ({total} minutes)")
        return math.floor(total)

    def parse_days(self, notation: str, rng: Mulberry32) -> int:
        """Resolve notation to whole days, never less than one."""
        minutes = self.parse_minutes(notation, rng)
        return max(1, minutes // self.units.minutes_per_day)

    def validate(self, notation: str) -> tuple[bool, Optional[str]]:
        """Check notation syntax without rolling any dice."""
        normalized = " ".join(notation.strip().lower().split())
        if not normalized:
            return False, "Duration notation cannot be empty"
        try:
            parse_chunks(tokenize(normalized))
        except DurationParseError as e:
            return False, str(e)
        return True, None
