"""
GM override layer.

Overrides let the GM pre-empt natural event evaluation for a day range
[applied_day, expires_day):
- force_state: show a chain event in a named state for forced_duration days
- disable_event: remove an event from consideration
- extend_duration: push an occurrence's end day out by duration_extension
- trigger_now: activate an event immediately, regardless of its schedule

Overrides change what a query returns, never the stored ChainStateVector.
When an override expires, natural progression continues exactly as if it
had never applied.
"""

import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Collection, Iterable, Mapping, Optional

from campaign_calendar.data_models import optional_int
from campaign_calendar.events.event_models import (
    ActiveEvent,
    EventDefinition,
    EventSource,
    EventType,
)

logger = logging.getLogger(__name__)

# (event_id, day, lookback_days) -> most recent natural occurrence before day
RecentOccurrenceLookup = Callable[[str, int, int], Optional[ActiveEvent]]


class OverrideType(str, Enum):
    FORCE_STATE = "force_state"
    DISABLE_EVENT = "disable_event"
    EXTEND_DURATION = "extend_duration"
    TRIGGER_NOW = "trigger_now"


@dataclass(frozen=True)
class GMOverride:
    """A manual adjustment to one event."""
    event_id: str
    override_type: OverrideType
    applied_day: int
    forced_state_name: Optional[str] = None
    forced_duration: Optional[int] = None
    duration_extension: Optional[int] = None
    trigger_immediately: bool = False
    expires_day: Optional[int] = None
    notes: str = ""
    id: str = field(default_factory=lambda: f"override_{uuid.uuid4().hex[:8]}")
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def __post_init__(self):
        if self.override_type == OverrideType.FORCE_STATE and not self.forced_state_name:
            raise ValueError(f"force_state override for '{self.event_id}' needs forced_state_name")
        if self.override_type == OverrideType.EXTEND_DURATION and not self.duration_extension:
            raise ValueError(f"extend_duration override for '{self.event_id}' needs duration_extension")
        if self.forced_duration is not None and self.forced_duration < 1:
            raise ValueError(f"forced_duration must be >= 1, got {self.forced_duration}")
        if self.expires_day is not None and self.expires_day <= self.applied_day:
            raise ValueError(
                f"Override for '{self.event_id}' expires (day {self.expires_day}) "
                f"before it applies (day {self.applied_day})"
            )

    def is_active_on(self, day: int) -> bool:
        if day < self.applied_day:
            return False
        return self.expires_day is None or day < self.expires_day

    def is_expired(self, day: int) -> bool:
        return self.expires_day is not None and day >= self.expires_day

    def window_end(self, default_duration: int = 1) -> Optional[int]:
        """
        Last day (inclusive) the override's own duration covers.

        None means open-ended, bounded only by expires_day.
        """
        if self.forced_duration is not None:
            end = self.applied_day + self.forced_duration - 1
        elif self.override_type == OverrideType.TRIGGER_NOW:
            end = self.applied_day + default_duration - 1
        else:
            end = None
        if self.expires_day is not None:
            end = self.expires_day - 1 if end is None else min(end, self.expires_day - 1)
        return end

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "eventId": self.event_id,
            "type": self.override_type.value,
            "appliedDay": self.applied_day,
            "triggerImmediately": self.trigger_immediately,
            "createdAt": self.created_at,
        }
        optional = {
            "forcedStateName": self.forced_state_name,
            "forcedDuration": self.forced_duration,
            "durationExtension": self.duration_extension,
            "expiresDay": self.expires_day,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        if self.notes:
            data["notes"] = self.notes
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GMOverride":
        kwargs: dict[str, Any] = {}
        if data.get("id"):
            kwargs["id"] = data["id"]
        if data.get("createdAt"):
            kwargs["created_at"] = data["createdAt"]
        return cls(
            event_id=data["eventId"],
            override_type=OverrideType(data["type"]),
            applied_day=int(data["appliedDay"]),
            forced_state_name=data.get("forcedStateName"),
            forced_duration=optional_int(data.get("forcedDuration")),
            duration_extension=optional_int(data.get("durationExtension")),
            trigger_immediately=bool(data.get("triggerImmediately", False)),
            expires_day=optional_int(data.get("expiresDay")),
            notes=data.get("notes", ""),
            **kwargs,
        )


class OverrideLayer:
    """Applies a set of overrides to naturally evaluated events."""

    def __init__(self, overrides: Iterable[GMOverride] = ()):
        self.overrides = list(overrides)

    def active_on(self, day: int) -> list[GMOverride]:
        return [o for o in self.overrides if o.is_active_on(day)]

    def disabled_event_ids(self, day: int) -> set[str]:
        return {
            o.event_id
            for o in self.active_on(day)
            if o.override_type == OverrideType.DISABLE_EVENT
        }

    def apply(
        self,
        day: int,
        active_events: list[ActiveEvent],
        definitions: Mapping[str, EventDefinition],
        recent_occurrence: Optional[RecentOccurrenceLookup] = None,
        event_ids: Optional[Collection[str]] = None,
    ) -> list[ActiveEvent]:
        """
        Return the events for a day after overrides.

        Order: disable, force_state, trigger_now, extend_duration. When
        event_ids is given, only overrides targeting those events apply;
        the evaluator uses this to override one phase at a time.
        """
        todays = [
            o for o in self.active_on(day)
            if event_ids is None or o.event_id in event_ids
        ]
        if not todays:
            return list(active_events)

        disabled = {o.event_id for o in todays if o.override_type == OverrideType.DISABLE_EVENT}
        events = {e.event_id: e for e in active_events if e.event_id not in disabled}
        order = [e.event_id for e in active_events if e.event_id not in disabled]

        def put(event: ActiveEvent) -> None:
            if event.event_id not in events:
                order.append(event.event_id)
            events[event.event_id] = event

        for override in self._of_type(todays, OverrideType.FORCE_STATE, disabled):
            forced = self._force_state(day, override, definitions)
            if forced is not None:
                put(forced)

        for override in self._of_type(todays, OverrideType.TRIGGER_NOW, disabled):
            if override.event_id in events:
                continue
            triggered = self._trigger_now(day, override, definitions)
            if triggered is not None:
                put(triggered)

        for override in self._of_type(todays, OverrideType.EXTEND_DURATION, disabled):
            current = events.get(override.event_id)
            if current is None and recent_occurrence is not None:
                current = recent_occurrence(override.event_id, day, override.duration_extension)
            if current is None:
                continue
            extended_end = current.end_day + override.duration_extension
            if extended_end < day:
                continue
            put(replace(
                current,
                end_day=extended_end,
                remaining_days=max(0, extended_end - day),
                source=EventSource.OVERRIDE,
            ))
            logger.debug(f"Extended '{override.event_id}' to day {extended_end}")

        return [events[event_id] for event_id in order]

    @staticmethod
    def _of_type(overrides: list[GMOverride], kind: OverrideType, disabled: set[str]) -> list[GMOverride]:
        return [o for o in overrides if o.override_type == kind and o.event_id not in disabled]

    @staticmethod
    def _force_state(
        day: int,
        override: GMOverride,
        definitions: Mapping[str, EventDefinition],
    ) -> Optional[ActiveEvent]:
        definition = definitions.get(override.event_id)
        if definition is None:
            logger.warning(f"force_state override targets unknown event '{override.event_id}'")
            return None

        end = override.window_end()
        if end is not None and day > end:
            return None

        effects = definition.effects
        if definition.event_type == EventType.CHAIN:
            state = definition.trigger.get_state(override.forced_state_name)
            if state is None:
                logger.warning(
                    f"force_state override for '{definition.id}' names unknown state "
                    f"'{override.forced_state_name}'"
                )
                return None
            effects = {**definition.effects, **state.effects}

        return ActiveEvent.create(
            definition,
            day=day,
            start_day=override.applied_day,
            end_day=end if end is not None else day,
            state=override.forced_state_name,
            effects=effects,
            source=EventSource.OVERRIDE,
        )

    @staticmethod
    def _trigger_now(
        day: int,
        override: GMOverride,
        definitions: Mapping[str, EventDefinition],
    ) -> Optional[ActiveEvent]:
        definition = definitions.get(override.event_id)
        if definition is None:
            logger.warning(f"trigger_now override targets unknown event '{override.event_id}'")
            return None

        end = override.window_end(default_duration=definition.duration)
        if end is not None and day > end:
            return None

        state = None
        effects = None
        if definition.event_type == EventType.CHAIN:
            trigger = definition.trigger
            chosen = trigger.get_state(override.forced_state_name or trigger.initial_state or "")
            chosen = chosen or trigger.states[0]
            state, effects = chosen.name, {**definition.effects, **chosen.effects}

        return ActiveEvent.create(
            definition,
            day=day,
            start_day=override.applied_day,
            end_day=end if end is not None else day,
            state=state,
            effects=effects,
            source=EventSource.GM_FORCED,
        )
