"""
Calendar driver: pure date arithmetic over a CalendarDefinition.

Converts absolute day counters to calendar dates and back, handling:
- Arbitrary month layouts, including intercalary festival days that sit
  outside the weekday cycle
- Recursive leap rules with per-rule target months
- Era lookup for year display
- Seasonal sunrise/sunset, sun state and ambient light

Day 0 is the first day of the first month of the calendar's starting year.
Negative days count back into earlier years.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

from campaign_calendar.calendar.calendar_models import (
    CalendarDate,
    CalendarDefinition,
    Era,
    Season,
)
from campaign_calendar.calendar.leap_rules import LeapRuleEvaluator
from campaign_calendar.config import EngineConfig
from campaign_calendar.data_models import (
    MINUTES_PER_DAY,
    LightLevel,
    SunState,
    clamp_minute_of_day,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SolarTimes:
    """Sunrise and sunset in minutes past midnight."""
    sunrise: int
    sunset: int
    season_name: Optional[str] = None


class CalendarDriver:
    """
    Stateless date calculator for one calendar.

    The only state held is a time-of-day value used by the convenience
    methods (set_time_of_day, advance_time, and the sun/light queries when
    no minute is given). The absolute day itself is owned by the caller.
    """

    def __init__(self, definition: CalendarDefinition, config: Optional[EngineConfig] = None):
        self.definition = definition
        self.config = config or EngineConfig()
        self.leap = LeapRuleEvaluator(definition.leap_rules)
        self._time_of_day = 0

        self._base_lengths = [m.days for m in definition.months]
        self._total_days = sum(self._base_lengths)
        self._week_counting_days = sum(
            m.days for m in definition.months if not m.intercalary
        )
        # year -> days from day 0 to the first day of that year
        self._year_start_cache: dict[int, int] = {}
        self._week_leap_cache: dict[int, int] = {}

    # =========================================================================
    # STRUCTURE QUERIES
    # =========================================================================

    @property
    def is_simple_counter(self) -> bool:
        return not self.definition.months

    def has_intercalary_months(self) -> bool:
        return any(m.intercalary for m in self.definition.months)

    def is_leap_year(self, year: int) -> bool:
        return self.leap.is_leap_year(year)

    def get_total_days_in_year(self, year: Optional[int] = None) -> int:
        """Days in a year; without a year, the common (non-leap) length."""
        if year is None:
            return self._total_days
        return self._total_days + (1 if self.is_leap_year(year) else 0)

    def get_week_counting_days_in_year(self) -> int:
        """Days in a common year that participate in the weekday cycle."""
        return self._week_counting_days

    def get_month_lengths(self, year: int) -> list[int]:
        """Length of every month in the given year, leap day included."""
        lengths = list(self._base_lengths)
        if lengths and self.is_leap_year(year):
            lengths[self._leap_month_index(year)] += 1
        return lengths

    def _leap_month_index(self, year: int) -> int:
        target = self.leap.get_leap_day_target_month(year)
        if target is None or not 0 <= target < len(self._base_lengths):
            return len(self._base_lengths) - 1
        return target

    # =========================================================================
    # DATE CONVERSION
    # =========================================================================

    def _days_to_year(self, year: int) -> int:
        """Absolute day on which the given year begins."""
        cached = self._year_start_cache.get(year)
        if cached is not None:
            return cached
        base = self.definition.base_year
        days = (year - base) * self._total_days
        if self.leap.has_rules:
            days += self.leap.get_leap_days_before(year, base)
        self._year_start_cache[year] = days
        return days

    def _year_for_day(self, day: int) -> int:
        base = self.definition.base_year
        if not self.leap.has_rules:
            return base + day // self._total_days

        # Estimate from the average year length, then correct
        year = base + math.floor(day / (self._total_days + 0.25))
        while self._days_to_year(year) > day:
            year -= 1
        while self._days_to_year(year + 1) <= day:
            year += 1
        return year

    def get_date(self, absolute_day: int) -> CalendarDate:
        """Project an absolute day onto the calendar."""
        if self.is_simple_counter:
            return CalendarDate(
                absolute_day=absolute_day,
                year=0,
                month_index=0,
                month_name="",
                day_of_month=absolute_day + 1,
                day_of_year=absolute_day,
                year_suffix=self.definition.year_suffix,
                is_simple_counter=True,
            )

        year = self._year_for_day(absolute_day)
        day_of_year = absolute_day - self._days_to_year(year)
        lengths = self.get_month_lengths(year)

        remaining = day_of_year
        month_index = len(lengths) - 1
        for index, length in enumerate(lengths):
            if remaining < length:
                month_index = index
                break
            remaining -= length
        day_of_month = remaining + 1

        month = self.definition.months[month_index]
        weekday_name, weekday_index = self._weekday(year, month_index, day_of_month, lengths)

        return CalendarDate(
            absolute_day=absolute_day,
            year=year,
            month_index=month_index,
            month_name=month.name,
            day_of_month=day_of_month,
            day_of_year=day_of_year,
            day_of_week=weekday_name,
            day_of_week_index=weekday_index,
            year_suffix=self.get_year_suffix(year),
            is_intercalary=month.intercalary,
        )

    def get_absolute_day(self, year: int, month_index: int, day_of_month: int) -> int:
        """
        Inverse of get_date.

        Raises:
            ValueError: If the month or day does not exist in that year
        """
        if self.is_simple_counter:
            return day_of_month - 1

        lengths = self.get_month_lengths(year)
        if not 0 <= month_index < len(lengths):
            raise ValueError(f"Month index {month_index} out of range for {self.definition.name}")
        if not 1 <= day_of_month <= lengths[month_index]:
            raise ValueError(
                f"Day {day_of_month} out of range for month "
                f"{self.definition.months[month_index].name} in year {year}"
            )
        return self._days_to_year(year) + sum(lengths[:month_index]) + day_of_month - 1

    def is_intercalary_day(self, absolute_day: int) -> bool:
        return self.get_date(absolute_day).is_intercalary

    # =========================================================================
    # WEEKDAYS
    # =========================================================================

    def _week_leap_days_before(self, year: int) -> int:
        """Signed count of leap days that landed in week-counting months."""
        cached = self._week_leap_cache.get(year)
        if cached is not None:
            return cached

        base = self.definition.base_year
        months = self.definition.months
        start, end, sign = (base, year, 1) if year >= base else (year, base, -1)
        count = 0
        for y in range(start, end):
            if self.is_leap_year(y) and not months[self._leap_month_index(y)].intercalary:
                count += 1
        self._week_leap_cache[year] = sign * count
        return sign * count

    def _weekday(
        self,
        year: int,
        month_index: int,
        day_of_month: int,
        lengths: list[int],
    ) -> tuple[str, int]:
        weekdays = self.definition.weekdays
        months = self.definition.months
        if not weekdays or months[month_index].intercalary:
            return "", -1

        week_day = (year - self.definition.base_year) * self._week_counting_days
        if self.leap.has_rules:
            week_day += self._week_leap_days_before(year)
        week_day += sum(
            lengths[i] for i in range(month_index) if not months[i].intercalary
        )
        week_day += day_of_month - 1

        index = week_day % len(weekdays)
        return weekdays[index], index

    # =========================================================================
    # ERAS
    # =========================================================================

    def get_era(self, year: int) -> Optional[Era]:
        """First era containing the year, or None when eras are not configured."""
        if self.definition.eras is None:
            return None
        for era in self.definition.eras:
            if era.contains(year):
                return era
        return None

    def get_year_suffix(self, year: int) -> str:
        era = self.get_era(year)
        if era is not None and era.abbrev:
            return era.abbrev
        return self.definition.year_suffix or ""

    def get_holidays(self, absolute_day: int) -> list[str]:
        """Names of calendar holidays falling on the day."""
        if not self.definition.holidays:
            return []
        date = self.get_date(absolute_day)
        names = []
        for holiday in self.definition.holidays:
            if holiday.day_of_year is not None:
                if holiday.day_of_year == date.day_of_year:
                    names.append(holiday.name)
            elif holiday.month == date.month_index and holiday.day == date.day_of_month:
                names.append(holiday.name)
        return names

    # =========================================================================
    # SEASONS AND SOLAR TIME
    # =========================================================================

    @staticmethod
    def _season_in(seasons: list[Season], date: CalendarDate) -> Season:
        ordered = sorted(seasons, key=lambda s: (s.start_month, s.start_day))
        current = ordered[-1]  # wraps from the end of the previous year
        for season in ordered:
            if (season.start_month, season.start_day) <= (date.month_index, date.day_of_month):
                current = season
        return current

    def get_season(self, absolute_day: int, region: Optional[str] = None) -> Optional[Season]:
        """
        Season active on a day.

        A season tagged with the requested region wins when that region has
        any seasons; otherwise the untagged default seasons are used.
        """
        seasons = self.definition.seasons
        if not seasons:
            return None
        date = self.get_date(absolute_day)

        if region:
            regional = [s for s in seasons if s.region == region]
            if regional:
                return self._season_in(regional, date)

        defaults = [s for s in seasons if not s.region]
        if defaults:
            return self._season_in(defaults, date)
        return None

    def get_solar_times(self, absolute_day: int, region: Optional[str] = None) -> SolarTimes:
        season = self.get_season(absolute_day, region)
        if season is None:
            return SolarTimes(self.config.default_sunrise, self.config.default_sunset)
        return SolarTimes(season.sunrise, season.sunset, season.name)

    def get_sun_state(
        self,
        absolute_day: int,
        minute_of_day: Optional[int] = None,
        region: Optional[str] = None,
    ) -> SunState:
        """
        Sun state at a minute of the day.

        Dawn is [sunrise - twilight, sunrise + twilight), day runs up to
        sunset - twilight, dusk is [sunset - twilight, sunset + twilight),
        everything else is night.
        """
        minute = self._time_of_day if minute_of_day is None else minute_of_day
        solar = self.get_solar_times(absolute_day, region)
        twilight = self.config.twilight_minutes

        if solar.sunrise - twilight <= minute < solar.sunrise + twilight:
            return SunState.DAWN
        if solar.sunrise + twilight <= minute < solar.sunset - twilight:
            return SunState.DAY
        if solar.sunset - twilight <= minute < solar.sunset + twilight:
            return SunState.DUSK
        return SunState.NIGHT

    def get_light_level(
        self,
        absolute_day: int,
        minute_of_day: Optional[int] = None,
        region: Optional[str] = None,
    ) -> LightLevel:
        state = self.get_sun_state(absolute_day, minute_of_day, region)
        if state == SunState.DAY:
            return LightLevel.BRIGHT
        if state in (SunState.DAWN, SunState.DUSK):
            return LightLevel.DIM
        return LightLevel.DARK

    # =========================================================================
    # TIME OF DAY
    # =========================================================================

    def set_time_of_day(self, minutes: float) -> None:
        """Set minutes past midnight, floored and clamped to [0, 1439]."""
        self._time_of_day = clamp_minute_of_day(minutes)

    def get_time_of_day(self) -> int:
        return self._time_of_day

    def advance_time(self, minutes: float) -> int:
        """
        Advance the time of day.

        Returns:
            Number of day boundaries crossed

        Raises:
            ValueError: If minutes is negative
        """
        if minutes < 0:
            raise ValueError(f"Cannot advance time by a negative amount: {minutes}")
        total = self._time_of_day + int(minutes // 1)
        days_rolled, self._time_of_day = divmod(total, MINUTES_PER_DAY)
        if days_rolled:
            logger.debug(f"Advanced {minutes} minutes, crossed {days_rolled} day boundaries")
        return days_rolled
