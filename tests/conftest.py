"""
Pytest fixtures for the Campaign Calendar test suite.

Provides reusable calendars (Gregorian, Harptos-style with intercalary
festivals and eras, a plain 360-day calendar and a bare day counter) and a
small set of event definitions covering every event type.
"""

import pytest

from campaign_calendar.calendar.calendar_driver import CalendarDriver
from campaign_calendar.calendar.calendar_models import (
    CalendarDefinition,
    CalendarHoliday,
    CalendarMonth,
    Era,
    Season,
)
from campaign_calendar.calendar.leap_rules import (
    create_gregorian_leap_rules,
    create_simple_leap_rule,
)
from campaign_calendar.config import EngineConfig
from campaign_calendar.events.duration_parser import DurationParser
from campaign_calendar.events.event_models import (
    ChainEventState,
    ChainTrigger,
    ConditionalTrigger,
    EventDefinition,
    EventType,
    FixedDateTrigger,
    IntervalTrigger,
)
from campaign_calendar.observability.run_log import RunLog


# =============================================================================
# CALENDAR FIXTURES
# =============================================================================


GREGORIAN_MONTHS = (
    ("January", 31), ("February", 28), ("March", 31), ("April", 30),
    ("May", 31), ("June", 30), ("July", 31), ("August", 31),
    ("September", 30), ("October", 31), ("November", 30), ("December", 31),
)

HARPTOS_MONTHS = (
    ("Hammer", 30, False),
    ("Midwinter", 1, True),
    ("Alturiak", 30, False),
    ("Ches", 30, False),
    ("Tarsakh", 30, False),
    ("Greengrass", 1, True),
    ("Mirtul", 30, False),
    ("Kythorn", 30, False),
    ("Flamerule", 30, False),
    ("Midsummer", 1, True),
    ("Eleasis", 30, False),
    ("Eleint", 30, False),
    ("Highharvestide", 1, True),
    ("Marpenoth", 30, False),
    ("Uktar", 30, False),
    ("Feast of the Moon", 1, True),
    ("Nightal", 30, False),
)

TENDAY = (
    "First-day", "Second-day", "Third-day", "Fourth-day", "Fifth-day",
    "Sixth-day", "Seventh-day", "Eighth-day", "Ninth-day", "Tenth-day",
)


@pytest.fixture
def gregorian_calendar():
    """Gregorian calendar where day 0 is Monday, 1 January 2024."""
    return CalendarDefinition(
        id="gregorian",
        name="Gregorian",
        months=tuple(CalendarMonth(name, days) for name, days in GREGORIAN_MONTHS),
        weekdays=("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"),
        leap_rules=create_gregorian_leap_rules(target_month=1),
        starting_year=2024,
        year_suffix="AD",
    )


@pytest.fixture
def harptos_calendar():
    """
    Harptos-style calendar.

    Twelve 30-day months separated by five single-day festivals that sit
    outside the tenday, Shieldmeet added to Midsummer every fourth year,
    and two eras split at year 1.
    """
    return CalendarDefinition(
        id="harptos",
        name="Calendar of Harptos",
        months=tuple(CalendarMonth(name, days, ic) for name, days, ic in HARPTOS_MONTHS),
        weekdays=TENDAY,
        leap_rules=create_simple_leap_rule(4, target_month=9),
        eras=(
            Era(name="Before Dalereckoning", abbrev="BD", end_year=1, direction=-1),
            Era(name="Dalereckoning", abbrev="DR", start_year=1),
        ),
        seasons=(
            Season("Winter", start_month=0, start_day=1, sunrise=480, sunset=990),
            Season("Spring", start_month=3, start_day=1, sunrise=360, sunset=1110),
            Season("Summer", start_month=7, start_day=1, sunrise=300, sunset=1200),
            Season("Autumn", start_month=11, start_day=1, sunrise=390, sunset=1080),
            Season("Long Night", start_month=0, start_day=1, sunrise=720, sunset=780, region="underdark"),
        ),
        holidays=(
            CalendarHoliday("Midwinter Feast", day_of_year=30),
            CalendarHoliday("Greengrass Fair", month=5, day=1),
        ),
        starting_year=1492,
    )


@pytest.fixture
def thirty_day_calendar():
    """Twelve 30-day months, a seven-day week and no leap years."""
    return CalendarDefinition(
        id="thirty",
        name="Thirty Day Calendar",
        months=tuple(CalendarMonth(f"Month {i + 1}", 30) for i in range(12)),
        weekdays=("Sun", "Moon", "Tide", "Wind", "Fire", "Earth", "Star"),
        starting_year=1,
        year_suffix="AR",
    )


@pytest.fixture
def counter_calendar():
    """A calendar with no months: a plain day counter."""
    return CalendarDefinition(id="counter", name="Day Counter")


@pytest.fixture
def gregorian_driver(gregorian_calendar):
    return CalendarDriver(gregorian_calendar)


@pytest.fixture
def harptos_driver(harptos_calendar):
    return CalendarDriver(harptos_calendar)


@pytest.fixture
def thirty_day_driver(thirty_day_calendar):
    return CalendarDriver(thirty_day_calendar)


@pytest.fixture
def engine_config():
    return EngineConfig()


# =============================================================================
# EVENT FIXTURES
# =============================================================================


@pytest.fixture
def weekly_market():
    """Interval event every 7 days, starting on day 0."""
    return EventDefinition(
        id="weekly-market",
        name="Weekly Market",
        event_type=EventType.INTERVAL,
        trigger=IntervalTrigger(interval=7),
        effects={"price_mult_global": 0.9},
        tags=("market",),
    )


@pytest.fixture
def harvest_festival():
    """Three-day fixed festival on the 5th of the third month."""
    return EventDefinition(
        id="harvest-festival",
        name="Harvest Festival",
        event_type=EventType.FIXED,
        trigger=FixedDateTrigger(month=2, day=5, duration=3),
        priority=5,
        effects={"shop_closed": True, "ui_banner": "Harvest Festival"},
    )


@pytest.fixture
def weather_chain():
    """Chain weather with a zero-weight state that is never drawn."""
    return EventDefinition(
        id="weather",
        name="Weather",
        event_type=EventType.CHAIN,
        trigger=ChainTrigger(
            seed=12345,
            states=(
                ChainEventState("Clear", 3, "1d4 days", {"light_level": "bright"}),
                ChainEventState("Rain", 2, "2 days", {"light_level": "dim"}),
                ChainEventState("Eclipse", 0, "1 day", {"light_level": "dark"}),
            ),
        ),
        effects={"season_set": "wet"},
    )


@pytest.fixture
def market_riot():
    """Tier 1 conditional: fires on market days during rain."""
    return EventDefinition(
        id="market-riot",
        name="Market Riot",
        event_type=EventType.CONDITIONAL,
        trigger=ConditionalTrigger(
            condition="events['weekly-market'].active && events['weather'].state == 'Rain'",
            tier=1,
        ),
        effects={"restock_block": True},
    )


@pytest.fixture
def duration_parser():
    return DurationParser()


@pytest.fixture
def run_log():
    return RunLog()
