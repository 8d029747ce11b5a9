"""
Core data models for the Campaign Calendar engine.

Shared primitives used across every subsystem:
- Mulberry32: the seeded 32-bit PRNG driving all chain-event randomness
- DiceResult: outcome of a dice expression rolled through Mulberry32
- SunState / LightLevel: solar and illumination enums
- CalendarClock: the caller-owned "now" (absolute day + minute of day)

RNG state is plain data. Anything that needs replayable randomness takes an
integer state in and hands the advanced state back, so nothing depends on a
hidden global generator.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

MINUTES_PER_DAY = 1440
UINT32_MASK = 0xFFFFFFFF


# =============================================================================
# ENUMERATIONS
# =============================================================================


class SunState(str, Enum):
    """Position of the sun relative to sunrise/sunset."""
    NIGHT = "night"
    DAWN = "dawn"
    DAY = "day"
    DUSK = "dusk"


class LightLevel(str, Enum):
    """Ambient illumination. Ordinal: bright > dim > dark."""
    DARK = "dark"
    DIM = "dim"
    BRIGHT = "bright"

    @property
    def ordinal(self) -> int:
        return _LIGHT_ORDINALS[self]

    @classmethod
    def from_ordinal(cls, value: int) -> "LightLevel":
        for level, ordinal in _LIGHT_ORDINALS.items():
            if ordinal == value:
                return level
        raise ValueError(f"No light level with ordinal {value}")


_LIGHT_ORDINALS = {
    LightLevel.DARK: 0,
    LightLevel.DIM: 1,
    LightLevel.BRIGHT: 2,
}


# =============================================================================
# DICE AND RANDOMNESS
# =============================================================================


@dataclass
class DiceResult:
    """Result of a dice roll."""
    num_dice: int
    die_size: int
    modifier: int
    rolls: list[int]
    total: int
    notation: str = ""

    def __str__(self) -> str:
        mod_str = ""
        if self.modifier > 0:
            mod_str = f"+{self.modifier}"
        elif self.modifier < 0:
            mod_str = str(self.modifier)
        return f"{self.num_dice}d{self.die_size}{mod_str}: {self.rolls} = {self.total}"


DICE_PATTERN = re.compile(r"(\d+)d(\d+)([+\-]\d+)?", re.IGNORECASE)


def _imul(a: int, b: int) -> int:
    """32-bit integer multiply, truncated like a C uint32."""
    return (a * b) & UINT32_MASK


class Mulberry32:
    """
    Mulberry32 pseudo-random number generator.

    Small, fast 32-bit PRNG whose entire state is one unsigned integer.
    Identical seeds produce identical sequences on every platform, which is
    what lets chain events be persisted as (state name, end day, rng state)
    and replayed without a log of past rolls.

    Mulberry32(12345).random_float() == 0.9797282677609473
    """

    def __init__(self, seed: int = 0):
        self._state = int(seed) & UINT32_MASK

    def next_uint32(self) -> int:
        """Advance the generator and return a raw 32-bit value."""
        self._state = (self._state + 0x6D2B79F5) & UINT32_MASK
        z = self._state
        z = _imul(z ^ (z >> 15), z | 1)
        z ^= (z + _imul(z ^ (z >> 7), z | 61)) & UINT32_MASK
        return (z ^ (z >> 14)) & UINT32_MASK

    def random_float(self) -> float:
        """Uniform float in [0, 1)."""
        return self.next_uint32() / 0x100000000

    def random_int(self, min_value: int, max_value: int) -> int:
        """Uniform integer in [min_value, max_value] inclusive."""
        span = max_value - min_value + 1
        return int(self.random_float() * span) + min_value

    def roll_dice(self, notation: str) -> DiceResult:
        """
        Roll dice using standard notation (e.g., "2d6", "1d20+5", "3d8-2").

        Raises:
            ValueError: If the notation contains no dice expression
        """
        match = DICE_PATTERN.search(notation)
        if not match:
            raise ValueError(f"Invalid dice notation: {notation}")

        num_dice = int(match.group(1))
        die_size = int(match.group(2))
        modifier = int(match.group(3)) if match.group(3) else 0

        rolls = [self.random_int(1, die_size) for _ in range(num_dice)]
        total = sum(rolls) + modifier

        return DiceResult(
            num_dice=num_dice,
            die_size=die_size,
            modifier=modifier,
            rolls=rolls,
            total=total,
            notation=notation,
        )

    def random_choice(self, items: Sequence[T]) -> T:
        if not items:
            raise ValueError("Cannot choose from an empty sequence")
        return items[self.random_int(0, len(items) - 1)]

    def weighted_choice(self, items: Sequence[T], weights: Sequence[float]) -> T:
        """Pick one item with probability proportional to its weight."""
        if len(items) != len(weights):
            raise ValueError("Items and weights must have the same length")
        if not items:
            raise ValueError("Cannot choose from an empty sequence")

        remaining = self.random_float() * sum(weights)
        for item, weight in zip(items, weights):
            remaining -= weight
            if remaining < 0:
                return item
        # Floating point leftovers land on the last item
        return items[-1]

    def chance(self, percentage: float) -> bool:
        return self.random_int(1, 100) <= percentage

    def get_state(self) -> int:
        """Current internal state, suitable for persistence."""
        return self._state

    def set_state(self, state: int) -> None:
        self._state = int(state) & UINT32_MASK

    def reseed(self, seed: int) -> None:
        """Reset the generator to the start of the sequence for seed."""
        self._state = int(seed) & UINT32_MASK

    @classmethod
    def from_state(cls, state: int) -> "Mulberry32":
        rng = cls()
        rng.set_state(state)
        return rng


# =============================================================================
# CLOCK
# =============================================================================


@dataclass
class CalendarClock:
    """
    The only mutable "now" in the engine.

    current_day is the absolute day counter (day 0 = first day of the
    calendar's starting year); time_of_day is minutes past midnight.
    """
    current_day: int = 0
    time_of_day: int = 0

    def __post_init__(self):
        self.time_of_day = clamp_minute_of_day(self.time_of_day)

    def to_dict(self) -> dict[str, Any]:
        return {
            "currentDay": self.current_day,
            "timeOfDay": self.time_of_day,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CalendarClock":
        return cls(
            current_day=int(data.get("currentDay", 0)),
            time_of_day=data.get("timeOfDay", 0),
        )

    def __str__(self) -> str:
        return f"Day {self.current_day}, {format_minutes(self.time_of_day)}"


def clamp_minute_of_day(minutes: float) -> int:
    """Floor fractional input and clamp into [0, 1439]."""
    return max(0, min(MINUTES_PER_DAY - 1, int(minutes // 1)))


def format_minutes(minutes: int) -> str:
    """Render minutes past midnight as HH:MM."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


@dataclass
class LoadResult:
    """Result of loading a batch of records."""
    success: bool = True
    loaded_count: int = 0
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        self.errors.append(message)
        self.success = False

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)


def optional_int(value: Any) -> Optional[int]:
    """Coerce a possibly-missing numeric field."""
    if value is None:
        return None
    return int(value)
