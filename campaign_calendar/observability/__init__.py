"""
Observability for the calendar engine: a structured run log of chain
transitions, time steps and GM override changes.
"""

from campaign_calendar.observability.run_log import (
    RunLog,
    LogEvent,
    LogEventType,
    ChainTransitionEvent,
    TimeStepEvent,
    OverrideEvent,
)

__all__ = [
    "RunLog",
    "LogEvent",
    "LogEventType",
    "ChainTransitionEvent",
    "TimeStepEvent",
    "OverrideEvent",
]
