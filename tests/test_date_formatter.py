"""
Tests for human-readable date formatting.
"""

import pytest

from campaign_calendar.calendar.calendar_driver import CalendarDriver
from campaign_calendar.calendar.date_formatter import (
    DateFormatter,
    format_date,
    format_time_of_day,
    ordinal_suffix,
)


class TestOrdinals:
    @pytest.mark.parametrize("n,suffix", [
        (1, "st"), (2, "nd"), (3, "rd"), (4, "th"),
        (11, "th"), (12, "th"), (13, "th"),
        (21, "st"), (22, "nd"), (23, "rd"),
        (111, "th"), (112, "th"), (101, "st"),
    ])
    def test_suffix(self, n, suffix):
        assert ordinal_suffix(n) == suffix


class TestFormatDate:
    """Full and compact date strings."""

    def test_gregorian(self, gregorian_driver):
        formatted = format_date(0, gregorian_driver)
        assert formatted.formatted == "Monday, 1st of January, 2024 AD"
        assert formatted.compact == "1 January 2024"
        assert formatted.era_name is None
        assert str(formatted) == formatted.formatted

    def test_harptos_with_era(self, harptos_driver):
        formatted = format_date(2, harptos_driver)
        assert formatted.formatted == "Third-day, 3rd of Hammer, 1492 DR"
        assert formatted.compact == "3 Hammer 1492"
        assert formatted.era_name == "Dalereckoning"

    def test_intercalary_day_has_no_weekday(self, harptos_driver):
        formatted = format_date(30, harptos_driver)
        assert formatted.formatted == "1st of Midwinter, 1492 DR"
        assert formatted.holidays == ("Midwinter Feast",)

    def test_backward_era_display_year(self, harptos_driver):
        """Year 0 is the first year before Dalereckoning: 1 BD."""
        day = harptos_driver.get_absolute_day(0, 0, 1)
        formatted = format_date(day, harptos_driver)
        assert formatted.year == 1
        assert formatted.year_suffix == "BD"
        assert formatted.formatted.endswith("1st of Hammer, 1 BD")

    def test_simple_counter(self, counter_calendar):
        formatted = format_date(42, CalendarDriver(counter_calendar))
        assert formatted.formatted == "Day 42"
        assert formatted.compact == "Day 42"


class TestTimeFormatting:
    @pytest.mark.parametrize("minutes,use_24h,expected", [
        (0, True, "00:00"),
        (1439, True, "23:59"),
        (0, False, "12:00 AM"),
        (750, False, "12:30 PM"),
        (780, False, "1:00 PM"),
        (545, False, "9:05 AM"),
    ])
    def test_format_time_of_day(self, minutes, use_24h, expected):
        assert format_time_of_day(minutes, use_24h) == expected

    def test_formatter_appends_time(self, gregorian_driver):
        formatted = DateFormatter(gregorian_driver).format(0, time_of_day=615)
        assert formatted.formatted == "Monday, 1st of January, 2024 AD, 10:15"
        assert formatted.compact == "1 January 2024 10:15"

    def test_formatter_without_time(self, gregorian_driver):
        assert DateFormatter(gregorian_driver).format(0) == format_date(0, gregorian_driver)
