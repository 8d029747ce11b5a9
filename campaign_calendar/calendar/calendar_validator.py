"""
Load-time validation for calendar definitions.

The driver assumes a well-formed calendar and never re-checks it per call.
validate_calendar is the single pass that reports structural problems with
descriptive messages before a definition reaches the engine.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence

from campaign_calendar.calendar.calendar_driver import CalendarDriver
from campaign_calendar.calendar.calendar_models import CalendarDefinition, LeapRule

logger = logging.getLogger(__name__)

CRASH_TEST_DAYS = (0, 100000)


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass
class ValidationIssue:
    """A single validation finding."""
    severity: Severity
    field: str
    message: str
    suggestion: Optional[str] = None

    def __str__(self) -> str:
        text = f"[{self.severity.value}] {self.field}: {self.message}"
        if self.suggestion:
            text += f" ({self.suggestion})"
        return text


@dataclass
class ValidationResult:
    """All findings for one calendar."""
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)
    info: list[ValidationIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def error(self, field_name: str, message: str, suggestion: Optional[str] = None) -> None:
        self.errors.append(ValidationIssue(Severity.ERROR, field_name, message, suggestion))

    def warning(self, field_name: str, message: str, suggestion: Optional[str] = None) -> None:
        self.warnings.append(ValidationIssue(Severity.WARNING, field_name, message, suggestion))

    def note(self, field_name: str, message: str) -> None:
        self.info.append(ValidationIssue(Severity.INFO, field_name, message))

    def summary(self) -> str:
        lines = [str(issue) for issue in self.errors + self.warnings]
        return "\n".join(lines) if lines else "Calendar is valid"


class CalendarValidationError(Exception):
    """Raised when a calendar definition fails validation."""

    def __init__(self, calendar_id: str, result: ValidationResult):
        self.calendar_id = calendar_id
        self.result = result
        messages = "; ".join(f"{i.field}: {i.message}" for i in result.errors)
        super().__init__(f"Calendar '{calendar_id}' is invalid: {messages}")


def validate_calendar(definition: CalendarDefinition) -> ValidationResult:
    """Run every structural check on a calendar definition."""
    result = ValidationResult()

    _check_basics(definition, result)
    _check_months(definition, result)
    _check_eras(definition, result)
    for index, rule in enumerate(definition.leap_rules):
        _check_leap_rule(rule, f"leapRules[{index}]", len(definition.months), result)
    _check_seasons(definition, result)

    # Only exercise the math when the structure is sound
    if result.is_valid:
        _crash_test(definition, result)

    if result.errors:
        logger.warning(f"Calendar '{definition.id}' failed validation with {len(result.errors)} error(s)")
    return result


def assert_valid_calendar(definition: CalendarDefinition) -> ValidationResult:
    """
    Validate and raise on errors.

    Raises:
        CalendarValidationError: If any error-level issue was found
    """
    result = validate_calendar(definition)
    if not result.is_valid:
        raise CalendarValidationError(definition.id, result)
    return result


# =============================================================================
# INDIVIDUAL CHECKS
# =============================================================================


def _check_basics(definition: CalendarDefinition, result: ValidationResult) -> None:
    if not definition.id:
        result.error("id", "Calendar id is required")
    if not definition.name:
        result.error("name", "Calendar name is required")
    if not definition.weekdays:
        result.warning("weekdays", "No weekdays defined; dates will have no day of week")


def _check_months(definition: CalendarDefinition, result: ValidationResult) -> None:
    months = definition.months
    if not months:
        result.note("months", "No months defined; calendar runs as a simple day counter")
        return

    seen: set[str] = set()
    for index, month in enumerate(months):
        label = f"months[{index}]"
        if not month.name:
            result.error(label, "Month name is required")
        if month.days <= 0:
            result.error(label, f"Month '{month.name}' must have at least one day, got {month.days}")
        if month.name in seen:
            result.warning(label, f"Duplicate month name '{month.name}'", "Give each month a unique name")
        seen.add(month.name)

    if all(m.intercalary for m in months) and definition.weekdays:
        result.error(
            "months",
            "Every month is intercalary, so the weekday cycle never advances",
            "Mark at least one month as standard",
        )


def _check_eras(definition: CalendarDefinition, result: ValidationResult) -> None:
    eras = definition.eras
    if eras is None:
        return
    if not eras:
        result.warning("eras", "Era list is empty; the legacy year suffix will be used")
        return

    for index, era in enumerate(eras):
        label = f"eras[{index}]"
        if not era.name:
            result.error(label, "Era name is required")
        if not era.abbrev:
            result.error(label, f"Era '{era.name}' needs an abbreviation")
        if era.direction not in (1, -1):
            result.error(label, f"Era direction must be 1 or -1, got {era.direction}")
        if (
            era.start_year is not None
            and era.end_year is not None
            and era.end_year <= era.start_year
        ):
            result.error(label, f"Era '{era.name}' ends ({era.end_year}) before it starts ({era.start_year})")

    # Overlaps and gaps, by start year
    def start_key(era):
        return era.start_year if era.start_year is not None else float("-inf")

    ordered = sorted(eras, key=start_key)
    for earlier, later in zip(ordered, ordered[1:]):
        earlier_end = earlier.end_year if earlier.end_year is not None else float("inf")
        later_start = start_key(later)
        if later_start < earlier_end:
            result.error(
                "eras",
                f"Eras '{earlier.name}' and '{later.name}' overlap",
                "Era ranges are [startYear, endYear) and must not share a year",
            )
        elif later_start > earlier_end:
            result.warning(
                "eras",
                f"Years {earlier_end} to {later_start - 1} fall between '{earlier.name}' and '{later.name}'",
                "Years outside every era fall back to the legacy year suffix",
            )


def _check_leap_rule(
    rule: LeapRule,
    label: str,
    month_count: int,
    result: ValidationResult,
) -> None:
    if rule.interval <= 0:
        result.error(label, f"Leap interval must be positive, got {rule.interval}")
    if rule.target_month is not None and not 0 <= rule.target_month < month_count:
        result.error(label, f"Leap target month {rule.target_month} does not exist")
    for index, excluded in enumerate(rule.exclude):
        _check_leap_rule(excluded, f"{label}.exclude[{index}]", month_count, result)


def _check_seasons(definition: CalendarDefinition, result: ValidationResult) -> None:
    months = definition.months
    for index, season in enumerate(definition.seasons):
        label = f"seasons[{index}]"
        for name, value in (("sunrise", season.sunrise), ("sunset", season.sunset)):
            if not 0 <= value <= 1439:
                result.error(label, f"Season '{season.name}' {name} {value} is outside 0-1439")
        if season.sunrise >= season.sunset:
            result.warning(label, f"Season '{season.name}' sunrise is not before sunset")
        if months:
            if not 0 <= season.start_month < len(months):
                result.error(label, f"Season '{season.name}' starts in missing month {season.start_month}")
            elif not 1 <= season.start_day <= months[season.start_month].days:
                result.error(
                    label,
                    f"Season '{season.name}' start day {season.start_day} is outside "
                    f"month '{months[season.start_month].name}'",
                )

    regions = {s.region for s in definition.seasons if s.region}
    if definition.seasons and not any(not s.region for s in definition.seasons):
        result.warning(
            "seasons",
            "No default (region-less) seasons; queries without a region use 06:00-18:00",
        )
    if regions:
        result.note("seasons", f"Regional seasons defined for: {', '.join(sorted(regions))}")


def _crash_test(definition: CalendarDefinition, result: ValidationResult) -> None:
    """Run the driver over a few far-apart days and check the round trip."""
    driver = CalendarDriver(definition)
    for day in CRASH_TEST_DAYS:
        try:
            date = driver.get_date(day)
            if not driver.is_simple_counter:
                back = driver.get_absolute_day(date.year, date.month_index, date.day_of_month)
                if back != day:
                    result.error("calendar", f"Round trip failed for day {day}: got {back}")
        except (ArithmeticError, ValueError, IndexError) as e:
            result.error("calendar", f"Date calculation failed for day {day}: {e}")


def validate_calendars(definitions: Sequence[CalendarDefinition]) -> dict[str, ValidationResult]:
    """Validate several calendars, keyed by id."""
    return {d.id: validate_calendar(d) for d in definitions}
