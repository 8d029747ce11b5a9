"""
Chain event state machine.

A chain event is a perpetual weighted-random state machine: each state lasts
a dice-rolled number of days, after which the next state is drawn by weight.
Everything needed to continue the sequence lives in a ChainStateVector,
including the Mulberry32 state, so progression is replayable from the
vector alone.

All functions here are pure: vectors are frozen and every transition returns
a new vector.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from campaign_calendar.data_models import Mulberry32
from campaign_calendar.events.duration_parser import DurationParseError, DurationParser
from campaign_calendar.events.event_models import ChainEventState, EventDefinition, EventType

logger = logging.getLogger(__name__)


class ChainCheckpointError(Exception):
    """
    A chain event was queried for a day before its persisted checkpoint.

    Progression only runs forward. Re-derive from the seed with
    ChainStateMachine.replay to look further back.
    """

    def __init__(self, event_id: str, requested_day: int, checkpoint_day: int):
        self.event_id = event_id
        self.requested_day = requested_day
        self.checkpoint_day = checkpoint_day
        super().__init__(
            f"Chain event '{event_id}' cannot be evaluated for day {requested_day}: "
            f"its state checkpoint starts at day {checkpoint_day}"
        )


@dataclass(frozen=True)
class ChainStateVector:
    """Durable state of one chain event."""
    current_state_name: str
    state_entered_day: int
    state_duration_days: int
    state_end_day: int
    rng_state: int

    def __post_init__(self):
        if self.state_duration_days < 1:
            raise ValueError(f"state_duration_days must be >= 1, got {self.state_duration_days}")
        if self.state_end_day != self.state_entered_day + self.state_duration_days - 1:
            raise ValueError(
                f"Inconsistent chain vector: end day {self.state_end_day} != "
                f"{self.state_entered_day} + {self.state_duration_days} - 1"
            )

    def covers(self, day: int) -> bool:
        return self.state_entered_day <= day <= self.state_end_day

    def to_dict(self) -> dict[str, Any]:
        return {
            "currentStateName": self.current_state_name,
            "stateEnteredDay": self.state_entered_day,
            "stateDurationDays": self.state_duration_days,
            "stateEndDay": self.state_end_day,
            "rngState": self.rng_state,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChainStateVector":
        return cls(
            current_state_name=data["currentStateName"],
            state_entered_day=int(data["stateEnteredDay"]),
            state_duration_days=int(data["stateDurationDays"]),
            state_end_day=int(data["stateEndDay"]),
            rng_state=int(data["rngState"]),
        )


@dataclass(frozen=True)
class ChainTransition:
    """Record of one state change, for logging."""
    event_id: str
    from_state: Optional[str]
    to_state: str
    entered_day: int
    duration_days: int


class ChainStateMachine:
    """Pure transition functions for chain events."""

    def __init__(self, duration_parser: Optional[DurationParser] = None):
        self.duration_parser = duration_parser or DurationParser()

    @staticmethod
    def _states(definition: EventDefinition) -> Sequence[ChainEventState]:
        if definition.event_type != EventType.CHAIN:
            raise TypeError(f"Event '{definition.id}' is not a chain event")
        return definition.trigger.states

    def select_weighted_state(
        self,
        states: Sequence[ChainEventState],
        rng_state: int,
    ) -> tuple[ChainEventState, int]:
        """
        Draw a state by cumulative weight.

        Weight 0 states are never drawn. If every weight is 0 the first state
        is returned without consuming a roll.

        Returns:
            (selected state, advanced rng state)
        """
        if not states:
            raise ValueError("Cannot select from an empty state list")
        total = sum(s.weight for s in states)
        if total <= 0:
            return states[0], rng_state

        rng = Mulberry32.from_state(rng_state)
        roll = rng.random_float() * total
        cumulative = 0.0
        selected = None
        for state in states:
            if state.weight <= 0:
                continue
            cumulative += state.weight
            selected = state
            if roll < cumulative:
                break
        return selected, rng.get_state()

    def roll_duration(self, event_id: str, state: ChainEventState, rng_state: int) -> tuple[int, int]:
        """
        Roll a state's duration in whole days (minimum 1).

        Returns:
            (days, advanced rng state)
        """
        rng = Mulberry32.from_state(rng_state)
        try:
            days = self.duration_parser.parse_days(state.duration, rng)
        except DurationParseError as e:
            logger.warning(f"Chain event '{event_id}' state '{state.name}' has bad duration: {e}; using 1 day")
            days = 1
        return days, rng.get_state()

    def initial_vector(self, definition: EventDefinition) -> ChainStateVector:
        """Starting vector on day 0, seeded from the definition."""
        trigger = definition.trigger
        states = self._states(definition)
        rng_state = Mulberry32(trigger.seed).get_state()

        state = trigger.get_state(trigger.initial_state) if trigger.initial_state else None
        if trigger.initial_state and state is None:
            logger.warning(
                f"Chain event '{definition.id}' initial state '{trigger.initial_state}' "
                f"not found; drawing by weight"
            )
        if state is None:
            state, rng_state = self.select_weighted_state(states, rng_state)

        days, rng_state = self.roll_duration(definition.id, state, rng_state)
        return ChainStateVector(
            current_state_name=state.name,
            state_entered_day=0,
            state_duration_days=days,
            state_end_day=days - 1,
            rng_state=rng_state,
        )

    def transition(
        self,
        definition: EventDefinition,
        vector: ChainStateVector,
    ) -> tuple[ChainStateVector, ChainTransition]:
        """Move to the next state, entered the day after the current one ends."""
        state, rng_state = self.select_weighted_state(self._states(definition), vector.rng_state)
        days, rng_state = self.roll_duration(definition.id, state, rng_state)
        entered = vector.state_end_day + 1

        new_vector = ChainStateVector(
            current_state_name=state.name,
            state_entered_day=entered,
            state_duration_days=days,
            state_end_day=entered + days - 1,
            rng_state=rng_state,
        )
        record = ChainTransition(
            event_id=definition.id,
            from_state=vector.current_state_name,
            to_state=state.name,
            entered_day=entered,
            duration_days=days,
        )
        return new_vector, record

    def advance_to(
        self,
        definition: EventDefinition,
        vector: ChainStateVector,
        day: int,
    ) -> tuple[ChainStateVector, list[ChainTransition]]:
        """
        Advance until the vector covers the day.

        Raises:
            ChainCheckpointError: If day precedes the vector's entered day
        """
        if day < vector.state_entered_day:
            raise ChainCheckpointError(definition.id, day, vector.state_entered_day)

        transitions = []
        while day > vector.state_end_day:
            vector, record = self.transition(definition, vector)
            transitions.append(record)
        if transitions:
            logger.debug(f"Chain '{definition.id}' made {len(transitions)} transition(s) to reach day {day}")
        return vector, transitions

    def state_for_day(
        self,
        definition: EventDefinition,
        vector: ChainStateVector,
        day: int,
    ) -> ChainStateVector:
        return self.advance_to(definition, vector, day)[0]

    def replay(self, definition: EventDefinition, day: int) -> ChainStateVector:
        """Derive the vector for a day from the seed, ignoring any checkpoint."""
        return self.state_for_day(definition, self.initial_vector(definition), day)

    def get_state_definition(
        self,
        definition: EventDefinition,
        vector: ChainStateVector,
    ) -> Optional[ChainEventState]:
        return definition.trigger.get_state(vector.current_state_name)

