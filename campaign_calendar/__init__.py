"""
Campaign Calendar - calendar and world event engine for tabletop campaigns.

Converts between absolute day numbers and dates on arbitrary fantasy or
historical calendars, evaluates fixed, interval, chain and conditional world
events deterministically, and resolves their combined effects.
"""

from campaign_calendar.config import DurationUnitConfig, EngineConfig
from campaign_calendar.data_models import (
    CalendarClock,
    LightLevel,
    LoadResult,
    Mulberry32,
    SunState,
)
from campaign_calendar.calendar import (
    CalendarDefinition,
    CalendarDriver,
    DateFormatter,
    validate_calendar,
)
from campaign_calendar.events import (
    EventContext,
    EventDefinition,
    EventEvaluator,
    GMOverride,
    OverrideType,
    load_event_definitions,
)
from campaign_calendar.effects import EffectResolver, ResolvedEffects
from campaign_calendar.game_state import WorldController, WorldState
from campaign_calendar.observability import RunLog

__version__ = "0.1.0"

__all__ = [
    "DurationUnitConfig",
    "EngineConfig",
    "CalendarClock",
    "LightLevel",
    "LoadResult",
    "Mulberry32",
    "SunState",
    "CalendarDefinition",
    "CalendarDriver",
    "DateFormatter",
    "validate_calendar",
    "EventContext",
    "EventDefinition",
    "EventEvaluator",
    "GMOverride",
    "OverrideType",
    "load_event_definitions",
    "EffectResolver",
    "ResolvedEffects",
    "WorldController",
    "WorldState",
    "RunLog",
]
