"""
World event definitions and runtime projections.

An EventDefinition carries the fields every event shares (id, priority,
effects, context filters) plus a type-specific trigger:

- FixedDateTrigger: a calendar date, annual unless pinned to a year
- IntervalTrigger: a strict (day + offset) % interval cycle
- ChainTrigger: a weighted-random state machine with dice durations
- ConditionalTrigger: a boolean expression over other events, in tier 1 or 2

event_type is the discriminator; the evaluator dispatches on it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional, Union

from campaign_calendar.data_models import LoadResult, optional_int

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    FIXED = "fixed"
    INTERVAL = "interval"
    CHAIN = "chain"
    CONDITIONAL = "conditional"


class EventSource(str, Enum):
    """Where an active event came from."""
    DEFINITION = "definition"
    OVERRIDE = "override"
    GM_FORCED = "gm_forced"


class InvalidEventDefinitionError(ValueError):
    """Raised when an event record cannot be turned into a definition."""


# =============================================================================
# TRIGGERS
# =============================================================================


@dataclass(frozen=True)
class FixedDateTrigger:
    month: int = 0  # 0-indexed
    day: int = 1  # 1-indexed
    year: Optional[int] = None  # set for one-time events
    intercalary_name: Optional[str] = None
    duration: int = 1


@dataclass(frozen=True)
class IntervalTrigger:
    interval: int
    offset: int = 0
    duration: int = 1
    use_minutes: bool = False


@dataclass(frozen=True)
class ChainEventState:
    """One state of a chain event."""
    name: str
    weight: float
    duration: str  # duration notation, e.g. "2d4 days"
    effects: dict[str, Any] = field(default_factory=dict)
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        data = {
            "name": self.name,
            "weight": self.weight,
            "duration": self.duration,
            "effects": dict(self.effects),
        }
        if self.description:
            data["description"] = self.description
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChainEventState:
        return cls(
            name=data.get("name", ""),
            weight=data.get("weight", 1),
            duration=data.get("duration", "1 day"),
            effects=dict(data.get("effects", {}) or {}),
            description=data.get("description", ""),
        )


@dataclass(frozen=True)
class ChainTrigger:
    seed: int
    states: tuple[ChainEventState, ...]
    initial_state: Optional[str] = None

    def get_state(self, name: str) -> Optional[ChainEventState]:
        for state in self.states:
            if state.name == name:
                return state
        return None


@dataclass(frozen=True)
class ConditionalTrigger:
    condition: str
    tier: int = 1
    duration: int = 1


Trigger = Union[FixedDateTrigger, IntervalTrigger, ChainTrigger, ConditionalTrigger]


# =============================================================================
# DEFINITIONS
# =============================================================================


@dataclass(frozen=True)
class EventDefinition:
    """A world event as authored by the GM."""
    id: str
    name: str
    event_type: EventType
    trigger: Trigger
    priority: int = 0
    effects: dict[str, Any] = field(default_factory=dict)
    description: str = ""
    locations: tuple[str, ...] = ()
    factions: tuple[str, ...] = ()
    seasons: tuple[str, ...] = ()
    regions: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()

    @property
    def duration(self) -> int:
        """Natural duration in days; chain events roll theirs per state."""
        return getattr(self.trigger, "duration", 1)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "type": self.event_type.value,
            "priority": self.priority,
            "effects": dict(self.effects),
        }
        if self.description:
            data["description"] = self.description
        for key in ("locations", "factions", "seasons", "regions", "tags"):
            values = getattr(self, key)
            if values:
                data[key] = list(values)

        trigger = self.trigger
        if isinstance(trigger, FixedDateTrigger):
            date: dict[str, Any] = {"month": trigger.month, "day": trigger.day}
            if trigger.year is not None:
                date["year"] = trigger.year
            if trigger.intercalary_name:
                date["intercalaryName"] = trigger.intercalary_name
            data["date"] = date
            data["duration"] = trigger.duration
        elif isinstance(trigger, IntervalTrigger):
            data.update({
                "interval": trigger.interval,
                "offset": trigger.offset,
                "duration": trigger.duration,
                "useMinutes": trigger.use_minutes,
            })
        elif isinstance(trigger, ChainTrigger):
            data["seed"] = trigger.seed
            data["states"] = [s.to_dict() for s in trigger.states]
            if trigger.initial_state:
                data["initialState"] = trigger.initial_state
        elif isinstance(trigger, ConditionalTrigger):
            data.update({
                "condition": trigger.condition,
                "tier": trigger.tier,
                "duration": trigger.duration,
            })
        return data


def _positive_int(data: dict[str, Any], key: str, event_id: str, default: int = 1) -> int:
    value = data.get(key, default)
    if value is None:
        return default
    value = int(value)
    if value < 1:
        raise InvalidEventDefinitionError(f"Event '{event_id}': {key} must be at least 1, got {value}")
    return value


def _parse_fixed(data: dict[str, Any], event_id: str) -> FixedDateTrigger:
    date = data.get("date")
    if not isinstance(date, dict):
        raise InvalidEventDefinitionError(f"Fixed event '{event_id}' needs a date")
    return FixedDateTrigger(
        month=int(date.get("month", 0)),
        day=int(date.get("day", 1)),
        year=optional_int(date.get("year")),
        intercalary_name=date.get("intercalaryName"),
        duration=_positive_int(data, "duration", event_id),
    )


def _parse_interval(data: dict[str, Any], event_id: str) -> IntervalTrigger:
    if "interval" not in data:
        raise InvalidEventDefinitionError(f"Interval event '{event_id}' needs an interval")
    return IntervalTrigger(
        interval=_positive_int(data, "interval", event_id),
        offset=int(data.get("offset", 0) or 0),
        duration=_positive_int(data, "duration", event_id),
        use_minutes=bool(data.get("useMinutes", False)),
    )


def _parse_chain(data: dict[str, Any], event_id: str) -> ChainTrigger:
    states = tuple(ChainEventState.from_dict(s) for s in data.get("states", []) or [])
    if not states:
        raise InvalidEventDefinitionError(f"Chain event '{event_id}' needs at least one state")
    if any(s.weight < 0 for s in states):
        raise InvalidEventDefinitionError(f"Chain event '{event_id}' has a negative state weight")
    return ChainTrigger(
        seed=int(data.get("seed", 0)),
        states=states,
        initial_state=data.get("initialState"),
    )


def _parse_conditional(data: dict[str, Any], event_id: str) -> ConditionalTrigger:
    condition = data.get("condition")
    if not condition:
        raise InvalidEventDefinitionError(f"Conditional event '{event_id}' needs a condition")
    tier = int(data.get("tier", 1))
    if tier not in (1, 2):
        raise InvalidEventDefinitionError(f"Conditional event '{event_id}' tier must be 1 or 2, got {tier}")
    return ConditionalTrigger(
        condition=condition,
        tier=tier,
        duration=_positive_int(data, "duration", event_id),
    )


_TRIGGER_PARSERS = {
    EventType.FIXED: _parse_fixed,
    EventType.INTERVAL: _parse_interval,
    EventType.CHAIN: _parse_chain,
    EventType.CONDITIONAL: _parse_conditional,
}


def event_from_dict(data: dict[str, Any]) -> EventDefinition:
    """
    Build an EventDefinition from a persisted record.

    Raises:
        InvalidEventDefinitionError: On a missing id, unknown type or a
            malformed trigger
    """
    event_id = data.get("id")
    if not event_id:
        raise InvalidEventDefinitionError("Event definition is missing an id")
    try:
        event_type = EventType(data.get("type"))
    except ValueError:
        raise InvalidEventDefinitionError(f"Event '{event_id}' has unknown type '{data.get('type')}'") from None

    trigger = _TRIGGER_PARSERS[event_type](data, event_id)
    return EventDefinition(
        id=event_id,
        name=data.get("name", event_id),
        event_type=event_type,
        trigger=trigger,
        priority=int(data.get("priority", 0) or 0),
        effects=dict(data.get("effects", {}) or {}),
        description=data.get("description", ""),
        locations=tuple(data.get("locations", []) or []),
        factions=tuple(data.get("factions", []) or []),
        seasons=tuple(data.get("seasons", []) or []),
        regions=tuple(data.get("regions", []) or []),
        tags=tuple(data.get("tags", []) or []),
    )


def load_event_definitions(records: Iterable[dict[str, Any]]) -> tuple[list[EventDefinition], LoadResult]:
    """Parse a batch of records, skipping (and reporting) bad ones."""
    result = LoadResult()
    events: list[EventDefinition] = []
    seen: set[str] = set()

    for index, record in enumerate(records):
        try:
            event = event_from_dict(record)
        except (InvalidEventDefinitionError, TypeError, ValueError) as e:
            result.add_error(f"Record {index}: {e}")
            continue
        if event.id in seen:
            result.add_error(f"Duplicate event id '{event.id}'")
            continue
        seen.add(event.id)
        events.append(event)

    result.loaded_count = len(events)
    if result.errors:
        logger.warning(f"Loaded {len(events)} events with {len(result.errors)} error(s)")
    return events, result


# =============================================================================
# QUERY CONTEXT AND RUNTIME PROJECTION
# =============================================================================


@dataclass(frozen=True)
class EventContext:
    """Filter parameters for event queries."""
    location: Optional[str] = None
    faction: Optional[str] = None
    season: Optional[str] = None
    region: Optional[str] = None
    tags: tuple[str, ...] = ()

    def matches(self, definition: EventDefinition) -> bool:
        """
        Check a definition's filters against this context.

        Dimensions are ANDed. A dimension the definition leaves empty, or the
        context leaves unset, always matches.
        """
        pairs = (
            (self.location, definition.locations),
            (self.faction, definition.factions),
            (self.season, definition.seasons),
            (self.region, definition.regions),
        )
        for wanted, allowed in pairs:
            if wanted and allowed and wanted not in allowed:
                return False
        if self.tags and definition.tags and not set(self.tags) & set(definition.tags):
            return False
        return True

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for key in ("location", "faction", "season", "region"):
            value = getattr(self, key)
            if value:
                data[key] = value
        if self.tags:
            data["tags"] = list(self.tags)
        return data

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> EventContext:
        data = data or {}
        return cls(
            location=data.get("location"),
            faction=data.get("faction"),
            season=data.get("season"),
            region=data.get("region"),
            tags=tuple(data.get("tags", []) or []),
        )


@dataclass(frozen=True)
class ActiveEvent:
    """
    An event happening on a queried day.

    Ephemeral: recomputed per query and never the system of record.
    """
    event_id: str
    name: str
    event_type: EventType
    state: str
    priority: int
    effects: dict[str, Any]
    start_day: int
    end_day: int
    remaining_days: int
    source: EventSource
    definition: EventDefinition

    @classmethod
    def create(
        cls,
        definition: EventDefinition,
        day: int,
        start_day: int,
        end_day: int,
        state: Optional[str] = None,
        effects: Optional[dict[str, Any]] = None,
        source: EventSource = EventSource.DEFINITION,
    ) -> ActiveEvent:
        end_day = max(start_day, end_day)
        return cls(
            event_id=definition.id,
            name=definition.name,
            event_type=definition.event_type,
            state=state if state is not None else definition.name,
            priority=definition.priority,
            effects=dict(definition.effects if effects is None else effects),
            start_day=start_day,
            end_day=end_day,
            remaining_days=max(0, end_day - day),
            source=source,
            definition=definition,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "eventId": self.event_id,
            "name": self.name,
            "type": self.event_type.value,
            "state": self.state,
            "priority": self.priority,
            "effects": dict(self.effects),
            "startDay": self.start_day,
            "endDay": self.end_day,
            "remainingDays": self.remaining_days,
            "source": self.source.value,
        }
