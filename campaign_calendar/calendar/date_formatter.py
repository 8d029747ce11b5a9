"""
Human-readable date formatting.

Formats:
- full:    "Tarsday, 3rd of Hammer, 1492 DR"
- compact: "3 Hammer 1492"
- simple counter calendars: "Day 42"

Intercalary days have no weekday, so the full form starts at the day number.
"""

from typing import Optional

from campaign_calendar.calendar.calendar_driver import CalendarDriver
from campaign_calendar.calendar.calendar_models import FormattedDate


def ordinal_suffix(n: int) -> str:
    """English ordinal suffix: 1 -> st, 2 -> nd, 11 -> th."""
    if 10 <= n % 100 <= 20:
        return "th"
    return {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")


def format_date(absolute_day: int, driver: CalendarDriver) -> FormattedDate:
    """Format an absolute day using the driver's calendar and eras."""
    if driver.is_simple_counter:
        text = f"Day {absolute_day}"
        return FormattedDate(
            absolute_day=absolute_day,
            day_of_week="",
            day_of_month=0,
            month_name="",
            year=0,
            year_suffix=driver.definition.year_suffix,
            formatted=text,
            compact=text,
        )

    date = driver.get_date(absolute_day)
    era = driver.get_era(date.year)
    display_year = era.display_year(date.year) if era else date.year
    suffix = date.year_suffix

    day_text = f"{date.day_of_month}{ordinal_suffix(date.day_of_month)} of {date.month_name}"
    if date.day_of_week:
        day_text = f"{date.day_of_week}, {day_text}"
    formatted = f"{day_text}, {display_year} {suffix}".strip()

    return FormattedDate(
        absolute_day=absolute_day,
        day_of_week=date.day_of_week,
        day_of_month=date.day_of_month,
        month_name=date.month_name,
        year=display_year,
        year_suffix=suffix,
        formatted=formatted,
        compact=f"{date.day_of_month} {date.month_name} {display_year}",
        era_name=era.name if era else None,
        holidays=tuple(driver.get_holidays(absolute_day)),
    )


def format_time_of_day(minutes: int, use_24h: bool = True) -> str:
    """Render minutes past midnight as "14:05" or "2:05 PM"."""
    hours, mins = divmod(minutes, 60)
    if use_24h:
        return f"{hours:02d}:{mins:02d}"
    period = "AM" if hours < 12 else "PM"
    return f"{hours % 12 or 12}:{mins:02d} {period}"


class DateFormatter:
    """Formatter bound to one driver."""

    def __init__(self, driver: CalendarDriver):
        self.driver = driver

    def format(self, absolute_day: int, time_of_day: Optional[int] = None) -> FormattedDate:
        formatted = format_date(absolute_day, self.driver)
        if time_of_day is None:
            return formatted
        time_text = format_time_of_day(time_of_day)
        return FormattedDate(
            absolute_day=formatted.absolute_day,
            day_of_week=formatted.day_of_week,
            day_of_month=formatted.day_of_month,
            month_name=formatted.month_name,
            year=formatted.year,
            year_suffix=formatted.year_suffix,
            formatted=f"{formatted.formatted}, {time_text}",
            compact=f"{formatted.compact} {time_text}",
            era_name=formatted.era_name,
            holidays=formatted.holidays,
        )
