"""
Run log for calendar and world event activity.

Captures the deterministic happenings of a campaign (chain state
transitions, time advancement, GM override changes) as an ordered,
sequence-numbered stream for observability and debugging.

A RunLog is an ordinary object handed to the components that write to it.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional
import json
import logging

logger = logging.getLogger(__name__)


class LogEventType(str, Enum):
    """Types of events that can be logged."""

    TRANSITION = "transition"  # Chain event state change
    TIME_STEP = "time_step"  # Clock advancement
    OVERRIDE = "override"  # GM override added/removed/expired
    CUSTOM = "custom"


@dataclass
class LogEvent:
    """Base class for all logged events."""

    # Subclasses set the correct value in __post_init__
    event_type: LogEventType = LogEventType.CUSTOM
    timestamp: datetime = field(default_factory=datetime.now)
    sequence_number: int = 0
    game_day: Optional[int] = None
    context: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "event_type": self.event_type.value,
            "timestamp": self.timestamp.isoformat(),
            "sequence_number": self.sequence_number,
            "game_day": self.game_day,
            "context": self.context,
        }

    @classmethod
    def _base_kwargs(cls, data: dict[str, Any]) -> dict[str, Any]:
        return {
            "timestamp": datetime.fromisoformat(data["timestamp"]),
            "sequence_number": data.get("sequence_number", 0),
            "game_day": data.get("game_day"),
            "context": data.get("context", {}),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LogEvent":
        """Create from dictionary."""
        return cls(event_type=LogEventType(data["event_type"]), **cls._base_kwargs(data))

    def __str__(self) -> str:
        return f"[{self.sequence_number}] {self.event_type.value.upper()} {self.context}"


@dataclass
class ChainTransitionEvent(LogEvent):
    """A chain event moved to a new state."""

    event_id: str = ""
    from_state: str = ""
    to_state: str = ""
    entered_day: int = 0
    duration_days: int = 0

    def __post_init__(self):
        self.event_type = LogEventType.TRANSITION

    def to_dict(self) -> dict[str, Any]:
        base = super().to_dict()
        base.update(
            {
                "event_id": self.event_id,
                "from_state": self.from_state,
                "to_state": self.to_state,
                "entered_day": self.entered_day,
                "duration_days": self.duration_days,
            }
        )
        return base

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChainTransitionEvent":
        return cls(
            **cls._base_kwargs(data),
            event_id=data.get("event_id", ""),
            from_state=data.get("from_state", ""),
            to_state=data.get("to_state", ""),
            entered_day=data.get("entered_day", 0),
            duration_days=data.get("duration_days", 0),
        )

    def __str__(self) -> str:
        return (
            f"[{self.sequence_number}] TRANSITION {self.event_id}: {self.from_state} -> "
            f"{self.to_state} (day {self.entered_day}, {self.duration_days} days)"
        )


@dataclass
class TimeStepEvent(LogEvent):
    """The campaign clock moved forward."""

    old_day: int = 0
    new_day: int = 0
    old_time: int = 0
    new_time: int = 0
    minutes_advanced: int = 0
    reason: str = ""

    def __post_init__(self):
        self.event_type = LogEventType.TIME_STEP

    @property
    def days_rolled(self) -> int:
        return self.new_day - self.old_day

    def to_dict(self) -> dict[str, Any]:
        base = super().to_dict()
        base.update(
            {
                "old_day": self.old_day,
                "new_day": self.new_day,
                "old_time": self.old_time,
                "new_time": self.new_time,
                "minutes_advanced": self.minutes_advanced,
                "reason": self.reason,
            }
        )
        return base

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TimeStepEvent":
        return cls(
            **cls._base_kwargs(data),
            old_day=data.get("old_day", 0),
            new_day=data.get("new_day", 0),
            old_time=data.get("old_time", 0),
            new_time=data.get("new_time", 0),
            minutes_advanced=data.get("minutes_advanced", 0),
            reason=data.get("reason", ""),
        )

    def __str__(self) -> str:
        return (
            f"[{self.sequence_number}] TIME day {self.old_day} -> {self.new_day} "
            f"(+{self.minutes_advanced} min, {self.reason})"
        )


@dataclass
class OverrideEvent(LogEvent):
    """A GM override was added, removed or expired."""

    action: str = ""  # added, removed, expired
    override_id: str = ""
    event_id: str = ""
    override_type: str = ""

    def __post_init__(self):
        self.event_type = LogEventType.OVERRIDE

    def to_dict(self) -> dict[str, Any]:
        base = super().to_dict()
        base.update(
            {
                "action": self.action,
                "override_id": self.override_id,
                "event_id": self.event_id,
                "override_type": self.override_type,
            }
        )
        return base

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OverrideEvent":
        return cls(
            **cls._base_kwargs(data),
            action=data.get("action", ""),
            override_id=data.get("override_id", ""),
            event_id=data.get("event_id", ""),
            override_type=data.get("override_type", ""),
        )

    def __str__(self) -> str:
        return f"[{self.sequence_number}] OVERRIDE {self.action} {self.override_type} on {self.event_id}"


_EVENT_CLASSES: dict[LogEventType, type[LogEvent]] = {
    LogEventType.TRANSITION: ChainTransitionEvent,
    LogEventType.TIME_STEP: TimeStepEvent,
    LogEventType.OVERRIDE: OverrideEvent,
    LogEventType.CUSTOM: LogEvent,
}


class RunLog:
    """
    Ordered log of engine events.

    Captures chain transitions, time steps and override changes.
    """

    def __init__(self):
        self._events: list[LogEvent] = []
        self._sequence: int = 0
        self._session_start: datetime = datetime.now()
        self._day_provider: Optional[Callable[[], int]] = None
        self._subscribers: list[Callable[[LogEvent], None]] = []
        self._paused: bool = False

    def reset(self) -> None:
        """Clear all events and restart sequencing."""
        self._events = []
        self._sequence = 0
        self._session_start = datetime.now()
        logger.info("RunLog reset")

    def set_day_provider(self, provider: Callable[[], int]) -> None:
        """Set a callback returning the current absolute day."""
        self._day_provider = provider

    def pause(self) -> None:
        self._paused = True

    def resume(self) -> None:
        self._paused = False

    def is_paused(self) -> bool:
        return self._paused

    def subscribe(self, callback: Callable[[LogEvent], None]) -> None:
        """Subscribe to receive events as they are logged."""
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[LogEvent], None]) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def _log_event(self, event: LogEvent) -> None:
        if self._paused:
            return

        self._sequence += 1
        event.sequence_number = self._sequence
        if event.game_day is None and self._day_provider is not None:
            event.game_day = self._day_provider()
        self._events.append(event)

        # Notify subscribers
        for subscriber in self._subscribers:
            try:
                subscriber(event)
            except Exception as e:
                logger.warning(f"Subscriber error: {e}")

    def log_transition(
        self,
        event_id: str,
        from_state: Optional[str],
        to_state: str,
        entered_day: int,
        duration_days: int,
        context: Optional[dict[str, Any]] = None,
    ) -> ChainTransitionEvent:
        """Log a chain state transition."""
        event = ChainTransitionEvent(
            event_id=event_id,
            from_state=from_state or "",
            to_state=to_state,
            entered_day=entered_day,
            duration_days=duration_days,
            game_day=entered_day,
            context=context or {},
        )
        self._log_event(event)
        return event

    def log_time_step(
        self,
        old_day: int,
        new_day: int,
        old_time: int,
        new_time: int,
        minutes_advanced: int,
        reason: str = "",
        context: Optional[dict[str, Any]] = None,
    ) -> TimeStepEvent:
        """Log a clock advancement."""
        event = TimeStepEvent(
            old_day=old_day,
            new_day=new_day,
            old_time=old_time,
            new_time=new_time,
            minutes_advanced=minutes_advanced,
            reason=reason,
            game_day=new_day,
            context=context or {},
        )
        self._log_event(event)
        return event

    def log_override(
        self,
        action: str,
        override_id: str,
        event_id: str,
        override_type: str,
        context: Optional[dict[str, Any]] = None,
    ) -> OverrideEvent:
        """Log a GM override change."""
        event = OverrideEvent(
            action=action,
            override_id=override_id,
            event_id=event_id,
            override_type=override_type,
            context=context or {},
        )
        self._log_event(event)
        return event

    def log_custom(self, event_name: str, details: dict[str, Any]) -> LogEvent:
        event = LogEvent(
            event_type=LogEventType.CUSTOM,
            context={"event_name": event_name, **details},
        )
        self._log_event(event)
        return event

    def get_events(
        self,
        event_type: Optional[LogEventType] = None,
        since_sequence: int = 0,
    ) -> list[LogEvent]:
        """
        Get logged events.

        Args:
            event_type: Filter by event type (None = all)
            since_sequence: Only events after this sequence number
        """
        events = [e for e in self._events if e.sequence_number > since_sequence]
        if event_type:
            events = [e for e in events if e.event_type == event_type]
        return events

    def get_transitions(self, event_id: Optional[str] = None) -> list[ChainTransitionEvent]:
        transitions = [e for e in self._events if isinstance(e, ChainTransitionEvent)]
        if event_id is not None:
            transitions = [e for e in transitions if e.event_id == event_id]
        return transitions

    def get_time_steps(self) -> list[TimeStepEvent]:
        return [e for e in self._events if isinstance(e, TimeStepEvent)]

    def get_overrides(self) -> list[OverrideEvent]:
        return [e for e in self._events if isinstance(e, OverrideEvent)]

    def get_event_count(self) -> int:
        return len(self._events)

    def get_summary(self) -> dict[str, Any]:
        return {
            "session_start": self._session_start.isoformat(),
            "total_events": len(self._events),
            "transitions": len(self.get_transitions()),
            "time_steps": len(self.get_time_steps()),
            "overrides": len(self.get_overrides()),
            "last_sequence": self._sequence,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_start": self._session_start.isoformat(),
            "sequence": self._sequence,
            "events": [e.to_dict() for e in self._events],
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, default=str)

    def save(self, filepath: str) -> None:
        with open(filepath, "w", encoding="utf-8") as f:
            f.write(self.to_json())
        logger.info(f"RunLog saved to {filepath}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RunLog":
        log = cls()
        log._session_start = datetime.fromisoformat(data["session_start"])
        log._sequence = data.get("sequence", 0)
        for event_data in data.get("events", []):
            event_class = _EVENT_CLASSES[LogEventType(event_data["event_type"])]
            log._events.append(event_class.from_dict(event_data))
        return log

    @classmethod
    def load(cls, filepath: str) -> "RunLog":
        with open(filepath, "r", encoding="utf-8") as f:
            log = cls.from_dict(json.load(f))
        logger.info(f"RunLog loaded from {filepath}: {log.get_event_count()} events")
        return log

    def format_log(
        self,
        event_types: Optional[list[LogEventType]] = None,
        max_events: Optional[int] = None,
    ) -> str:
        """Format the log as a human-readable string."""
        lines = [
            "=== Run Log ===",
            f"Session: {self._session_start.isoformat()}",
            f"Total Events: {len(self._events)}",
            "",
        ]

        events = self._events
        if event_types:
            events = [e for e in events if e.event_type in event_types]
        if max_events:
            events = events[-max_events:]

        for event in events:
            lines.append(str(event))

        return "\n".join(lines)
