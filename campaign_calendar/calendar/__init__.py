"""
Calendar subsystem.

Date arithmetic over arbitrary calendar layouts: month tables with
intercalary days, recursive leap rules, eras and seasonal solar times.
"""

from campaign_calendar.calendar.calendar_models import (
    CalendarMonth,
    LeapRule,
    Era,
    Season,
    CalendarHoliday,
    CalendarDefinition,
    CalendarDate,
    FormattedDate,
)
from campaign_calendar.calendar.leap_rules import (
    LeapRuleEvaluator,
    is_leap_year,
    get_leap_day_target_month,
    count_leap_years,
    get_leap_days_before,
    create_gregorian_leap_rules,
    create_simple_leap_rule,
)
from campaign_calendar.calendar.calendar_driver import CalendarDriver, SolarTimes
from campaign_calendar.calendar.calendar_validator import (
    Severity,
    ValidationIssue,
    ValidationResult,
    CalendarValidationError,
    validate_calendar,
    assert_valid_calendar,
)
from campaign_calendar.calendar.date_formatter import (
    DateFormatter,
    format_date,
    format_time_of_day,
    ordinal_suffix,
)

__all__ = [
    "CalendarMonth",
    "LeapRule",
    "Era",
    "Season",
    "CalendarHoliday",
    "CalendarDefinition",
    "CalendarDate",
    "FormattedDate",
    "LeapRuleEvaluator",
    "is_leap_year",
    "get_leap_day_target_month",
    "count_leap_years",
    "get_leap_days_before",
    "create_gregorian_leap_rules",
    "create_simple_leap_rule",
    "CalendarDriver",
    "SolarTimes",
    "Severity",
    "ValidationIssue",
    "ValidationResult",
    "CalendarValidationError",
    "validate_calendar",
    "assert_valid_calendar",
    "DateFormatter",
    "format_date",
    "format_time_of_day",
    "ordinal_suffix",
]
