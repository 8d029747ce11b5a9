"""
Calendar definition data models.

A CalendarDefinition is immutable once loaded and is shared by reference
between the driver, validator and formatter. All records accept the
camelCase keys of the persisted calendar format in from_dict and emit the
same keys from to_dict.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from campaign_calendar.data_models import optional_int


# =============================================================================
# DEFINITION RECORDS
# =============================================================================


@dataclass(frozen=True)
class CalendarMonth:
    """A month, or an intercalary block of festival days outside the week."""
    name: str
    days: int
    intercalary: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "days": self.days,
            "type": "intercalary" if self.intercalary else "standard",
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CalendarMonth:
        intercalary = data.get("intercalary", data.get("type") == "intercalary")
        return cls(
            name=data.get("name", ""),
            days=int(data.get("days", 0)),
            intercalary=bool(intercalary),
        )


@dataclass(frozen=True)
class LeapRule:
    """
    Recursive leap year rule.

    A year matches when (year - offset) % interval == 0 and none of the
    exclude rules match. Gregorian: every 4, except every 100, except every
    400 -> LeapRule(4, exclude=(LeapRule(100, exclude=(LeapRule(400),)),))
    """
    interval: int
    offset: int = 0
    target_month: Optional[int] = None
    exclude: tuple[LeapRule, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"interval": self.interval, "offset": self.offset}
        if self.target_month is not None:
            data["targetMonth"] = self.target_month
        if self.exclude:
            data["exclude"] = [rule.to_dict() for rule in self.exclude]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LeapRule:
        return cls(
            interval=int(data.get("interval", 0)),
            offset=int(data.get("offset", 0)),
            target_month=optional_int(data.get("targetMonth")),
            exclude=tuple(cls.from_dict(r) for r in data.get("exclude", []) or []),
        )


@dataclass(frozen=True)
class Era:
    """A half-open year range [start_year, end_year) with its own suffix."""
    name: str
    abbrev: str
    start_year: Optional[int] = None  # None = unbounded into the past
    end_year: Optional[int] = None  # None = current, unbounded
    direction: int = 1

    def contains(self, year: int) -> bool:
        if self.start_year is not None and year < self.start_year:
            return False
        if self.end_year is not None and year >= self.end_year:
            return False
        return True

    def display_year(self, year: int) -> int:
        """
        Year number as shown within this era.

        Backward-counting eras count down toward their end year, so the last
        year before end_year displays as 1.
        """
        if self.direction == -1 and self.end_year is not None:
            return self.end_year - year
        return year

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "abbrev": self.abbrev,
            "direction": self.direction,
        }
        if self.start_year is not None:
            data["startYear"] = self.start_year
        if self.end_year is not None:
            data["endYear"] = self.end_year
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Era:
        return cls(
            name=data.get("name", ""),
            abbrev=data.get("abbrev", ""),
            start_year=optional_int(data.get("startYear")),
            end_year=optional_int(data.get("endYear")),
            direction=int(data.get("direction", 1)),
        )


@dataclass(frozen=True)
class Season:
    """A season starting on a month/day, with its sunrise and sunset."""
    name: str
    start_month: int
    start_day: int
    sunrise: int
    sunset: int
    region: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "startMonth": self.start_month,
            "startDay": self.start_day,
            "sunrise": self.sunrise,
            "sunset": self.sunset,
        }
        if self.region:
            data["region"] = self.region
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Season:
        return cls(
            name=data.get("name", ""),
            start_month=int(data.get("startMonth", 0)),
            start_day=int(data.get("startDay", 1)),
            sunrise=int(data.get("sunrise", 360)),
            sunset=int(data.get("sunset", 1080)),
            region=data.get("region"),
        )


@dataclass(frozen=True)
class CalendarHoliday:
    """Named date, given either as day_of_year or as month/day."""
    name: str
    description: str = ""
    day_of_year: Optional[int] = None
    month: Optional[int] = None
    day: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name}
        if self.description:
            data["description"] = self.description
        if self.day_of_year is not None:
            data["dayOfYear"] = self.day_of_year
        if self.month is not None:
            data["month"] = self.month
        if self.day is not None:
            data["day"] = self.day
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CalendarHoliday:
        return cls(
            name=data.get("name", ""),
            description=data.get("description", ""),
            day_of_year=optional_int(data.get("dayOfYear")),
            month=optional_int(data.get("month")),
            day=optional_int(data.get("day")),
        )


@dataclass(frozen=True)
class CalendarDefinition:
    """Complete calendar layout."""
    id: str
    name: str
    months: tuple[CalendarMonth, ...] = ()
    weekdays: tuple[str, ...] = ()
    leap_rules: tuple[LeapRule, ...] = ()
    eras: Optional[tuple[Era, ...]] = None
    seasons: tuple[Season, ...] = ()
    holidays: tuple[CalendarHoliday, ...] = ()
    starting_year: Optional[int] = None
    year_suffix: str = ""
    description: str = ""

    @property
    def base_year(self) -> int:
        return self.starting_year or 0

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "weekdays": list(self.weekdays),
            "months": [m.to_dict() for m in self.months],
            "holidays": [h.to_dict() for h in self.holidays],
        }
        if self.description:
            data["description"] = self.description
        if self.starting_year is not None:
            data["startingYear"] = self.starting_year
        if self.year_suffix:
            data["yearSuffix"] = self.year_suffix
        if self.leap_rules:
            data["leapRules"] = [r.to_dict() for r in self.leap_rules]
        if self.eras is not None:
            data["eras"] = [e.to_dict() for e in self.eras]
        if self.seasons:
            data["seasons"] = [s.to_dict() for s in self.seasons]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CalendarDefinition:
        eras = data.get("eras")
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            description=data.get("description", ""),
            months=tuple(CalendarMonth.from_dict(m) for m in data.get("months", []) or []),
            weekdays=tuple(data.get("weekdays", []) or []),
            leap_rules=tuple(LeapRule.from_dict(r) for r in data.get("leapRules", []) or []),
            eras=tuple(Era.from_dict(e) for e in eras) if eras is not None else None,
            seasons=tuple(Season.from_dict(s) for s in data.get("seasons", []) or []),
            holidays=tuple(CalendarHoliday.from_dict(h) for h in data.get("holidays", []) or []),
            starting_year=optional_int(data.get("startingYear")),
            year_suffix=data.get("yearSuffix", "") or "",
        )


# =============================================================================
# COMPUTED PROJECTIONS
# =============================================================================


@dataclass(frozen=True)
class CalendarDate:
    """
    Pure projection of an absolute day onto a calendar.

    Never persisted; recompute from the absolute day when needed.
    """
    absolute_day: int
    year: int
    month_index: int
    month_name: str
    day_of_month: int  # 1-indexed
    day_of_year: int  # 0-indexed
    day_of_week: str = ""
    day_of_week_index: int = -1
    year_suffix: str = ""
    is_intercalary: bool = False
    is_simple_counter: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "absoluteDay": self.absolute_day,
            "year": self.year,
            "monthIndex": self.month_index,
            "monthName": self.month_name,
            "dayOfMonth": self.day_of_month,
            "dayOfYear": self.day_of_year,
            "dayOfWeek": self.day_of_week,
            "dayOfWeekIndex": self.day_of_week_index,
            "yearSuffix": self.year_suffix,
            "isIntercalary": self.is_intercalary,
            "isSimpleCounter": self.is_simple_counter,
        }


@dataclass(frozen=True)
class FormattedDate:
    """Human-readable rendering of a CalendarDate."""
    absolute_day: int
    day_of_week: str
    day_of_month: int
    month_name: str
    year: int
    year_suffix: str
    formatted: str
    compact: str
    era_name: Optional[str] = None
    holidays: tuple[str, ...] = ()

    def __str__(self) -> str:
        return self.formatted
