"""
World event evaluation.

For a query (day, time of day, context) every definition is evaluated in a
fixed phase order:

1. Fixed-date and interval events
2. Chain events (advanced from the supplied state vectors)
3. Conditional events, tier 1 (see phases 1-2)
4. Conditional events, tier 2 (see phases 1-3)

GM overrides are applied to each phase before the next one runs, so a forced
chain state or a triggered event is what later conditions see. The context
filter then decides what the caller sees. Conditions always see the
unfiltered events.

Evaluation is pure with respect to its inputs: chain vectors passed in are
never modified; the advanced vectors come back on the EvaluationResult for
the caller to persist.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Iterable, Optional, Union

from campaign_calendar.calendar.calendar_driver import CalendarDriver
from campaign_calendar.config import EngineConfig
from campaign_calendar.data_models import MINUTES_PER_DAY
from campaign_calendar.events.chain_state_machine import (
    ChainCheckpointError,
    ChainStateMachine,
    ChainStateVector,
    ChainTransition,
)
from campaign_calendar.events.condition_parser import EventSnapshot, evaluate_condition
from campaign_calendar.events.duration_parser import DurationParser, units_from_calendar
from campaign_calendar.events.event_models import (
    ActiveEvent,
    EventContext,
    EventDefinition,
    EventType,
)
from campaign_calendar.events.overrides import GMOverride, OverrideLayer

logger = logging.getLogger(__name__)


def build_registry(events: Iterable[ActiveEvent]) -> dict[str, EventSnapshot]:
    """Condition registry from active events; later entries win."""
    return {
        e.event_id: EventSnapshot(active=True, state=e.state, effects=e.effects)
        for e in events
    }


@dataclass
class EvaluationResult:
    """Everything one evaluation produced."""
    day: int
    time_of_day: int
    context: EventContext
    active_events: list[ActiveEvent]
    chain_states: dict[str, ChainStateVector] = field(default_factory=dict)
    chain_transitions: list[ChainTransition] = field(default_factory=list)
    missing_event_ids: list[str] = field(default_factory=list)
    skipped_chain_ids: list[str] = field(default_factory=list)

    def get(self, event_id: str) -> Optional[ActiveEvent]:
        for event in self.active_events:
            if event.event_id == event_id:
                return event
        return None

    def is_active(self, event_id: str) -> bool:
        return self.get(event_id) is not None

    @property
    def event_ids(self) -> list[str]:
        return [e.event_id for e in self.active_events]


class _EvaluationPass:
    """
    Memoised evaluation for a single query.

    Multi-day fixed, interval and conditional events look back over earlier
    days; this caches per-day results so each day is computed once. Natural
    results are kept apart from the overridden ones so extend_duration can
    look up the unextended occurrence.
    """

    def __init__(
        self,
        evaluator: "EventEvaluator",
        query_day: int,
        time_of_day: int,
        vectors: dict[str, ChainStateVector],
        overrides: OverrideLayer,
    ):
        self.ev = evaluator
        self.query_day = query_day
        self.time_of_day = time_of_day
        self.vectors = vectors
        self.overrides = overrides

        self.advanced: dict[str, ChainStateVector] = {}
        self.transitions: list[ChainTransition] = []
        self.skipped: list[str] = []
        self.missing: list[str] = []

        self._natural_base: dict[int, list[ActiveEvent]] = {}
        self._base: dict[int, list[ActiveEvent]] = {}
        self._natural_tiers: dict[tuple[int, int], list[ActiveEvent]] = {}
        self._tiers: dict[tuple[int, int], list[ActiveEvent]] = {}
        self._replayed: dict[str, ChainStateVector] = {}
        self._truth: dict[tuple[str, int], bool] = {}
        self._disabled: dict[int, set[str]] = {}

    def _allowed(self, definition: EventDefinition, day: int) -> bool:
        if not self.ev.module_allows(definition):
            return False
        if day not in self._disabled:
            self._disabled[day] = self.overrides.disabled_event_ids(day)
        return definition.id not in self._disabled[day]

    # Phase 1 --------------------------------------------------------------

    def _fixed(self, day: int) -> list[ActiveEvent]:
        found: dict[str, ActiveEvent] = {}
        for k in range(self.ev.max_fixed_duration):
            start = day - k
            date = self.ev.driver.get_date(start)
            keys = [f"{date.month_index}-{date.day_of_month}"]
            if date.is_intercalary:
                keys.append(f"intercalary:{date.month_name}")
            for key in keys:
                for event_id in self.ev.fixed_index.get(key, ()):
                    definition = self.ev.definitions[event_id]
                    trigger = definition.trigger
                    if event_id in found or trigger.duration <= k:
                        continue
                    if trigger.year is not None and trigger.year != date.year:
                        continue
                    if not self._allowed(definition, day):
                        continue
                    found[event_id] = ActiveEvent.create(
                        definition, day, start, start + trigger.duration - 1
                    )
        # Keep declaration order
        return [found[d.id] for d in self.ev.fixed_events if d.id in found]

    def _interval(self, day: int) -> list[ActiveEvent]:
        events = []
        for definition in self.ev.interval_events:
            if not self._allowed(definition, day):
                continue
            trigger = definition.trigger
            if trigger.use_minutes:
                total_minutes = day * MINUTES_PER_DAY + self.time_of_day
                if (total_minutes + trigger.offset) % trigger.interval == 0:
                    events.append(ActiveEvent.create(definition, day, day, day + trigger.duration - 1))
                continue
            for k in range(trigger.duration):
                start = day - k
                if (start + trigger.offset) % trigger.interval == 0:
                    events.append(ActiveEvent.create(definition, day, start, start + trigger.duration - 1))
                    break
        return events

    # Phase 2 --------------------------------------------------------------

    def _chain(self, day: int) -> list[ActiveEvent]:
        events = []
        is_query_day = day == self.query_day
        for definition in self.ev.chain_events:
            if not self._allowed(definition, day):
                continue
            vector = self.vectors.get(definition.id) or self.ev.initial_vector(definition)
            try:
                vector, transitions = self.ev.chain_machine.advance_to(definition, vector, day)
            except ChainCheckpointError:
                if not is_query_day:
                    vector = self._replay(definition, day)
                    if vector is None:
                        continue
                    transitions = []
                elif self.ev.config.strict_checkpoints:
                    raise
                else:
                    logger.warning(
                        f"Chain event '{definition.id}' skipped: day {day} is before its checkpoint"
                    )
                    self.skipped.append(definition.id)
                    continue

            if is_query_day:
                self.advanced[definition.id] = vector
                self.transitions.extend(transitions)

            state = definition.trigger.get_state(vector.current_state_name)
            if state is None:
                logger.warning(
                    f"Chain event '{definition.id}' is in unknown state '{vector.current_state_name}'"
                )
                continue
            events.append(ActiveEvent.create(
                definition,
                day,
                vector.state_entered_day,
                vector.state_end_day,
                state=state.name,
                effects={**definition.effects, **state.effects},
            ))
        return events

    def _replay(self, definition: EventDefinition, day: int) -> Optional[ChainStateVector]:
        """
        Re-derive a chain from its seed for a lookback day before the checkpoint.

        Progression is deterministic, so this matches the history the
        checkpoint was advanced through. None before the chain's first day.
        """
        cached = self._replayed.get(definition.id)
        if cached is not None and cached.state_entered_day <= day:
            vector, _ = self.ev.chain_machine.advance_to(definition, cached, day)
            return vector

        initial = self.ev.initial_vector(definition)
        if day < initial.state_entered_day:
            return None
        vector, _ = self.ev.chain_machine.advance_to(definition, initial, day)
        # Keep the earliest replayed vector; later lookback days advance from it
        self._replayed[definition.id] = vector
        return vector

    def natural_base(self, day: int) -> list[ActiveEvent]:
        if day not in self._natural_base:
            self._natural_base[day] = self._fixed(day) + self._interval(day) + self._chain(day)
        return self._natural_base[day]

    def base_events(self, day: int) -> list[ActiveEvent]:
        """Phases 1 and 2 for a day, with their overrides applied."""
        if day not in self._base:
            self._base[day] = self.overrides.apply(
                day,
                self.natural_base(day),
                self.ev.definitions,
                self.recent_occurrence,
                event_ids=self.ev.base_event_ids,
            )
        return self._base[day]

    # Phases 3 and 4 -------------------------------------------------------

    def _registry(self, tier: int, day: int) -> dict[str, EventSnapshot]:
        visible = list(self.base_events(day))
        if tier == 2:
            visible += self.tier_events(1, day)
        return build_registry(visible)

    def _condition_true(self, definition: EventDefinition, day: int) -> bool:
        key = (definition.id, day)
        if key not in self._truth:
            result = evaluate_condition(
                definition.trigger.condition,
                self._registry(definition.trigger.tier, day),
            )
            if day == self.query_day:
                for event_id in result.missing_event_ids:
                    if event_id not in self.missing:
                        self.missing.append(event_id)
            self._truth[key] = result.value
        return self._truth[key]

    def tier_events(self, tier: int, day: int) -> list[ActiveEvent]:
        """Conditional events of one tier for a day, with their overrides applied."""
        key = (tier, day)
        if key not in self._tiers:
            self._tiers[key] = self.overrides.apply(
                day,
                self.natural_tier(tier, day),
                self.ev.definitions,
                self.recent_occurrence,
                event_ids={d.id for d in self.ev.conditional_events(tier)},
            )
        return self._tiers[key]

    def natural_tier(self, tier: int, day: int) -> list[ActiveEvent]:
        key = (tier, day)
        if key in self._natural_tiers:
            return self._natural_tiers[key]

        events = []
        for definition in self.ev.conditional_events(tier):
            if not self._allowed(definition, day):
                continue
            duration = definition.trigger.duration
            true_days = [
                s for s in range(day - duration + 1, day + 1)
                if self._condition_true(definition, s)
            ]
            if true_days:
                events.append(ActiveEvent.create(
                    definition, day, true_days[0], true_days[-1] + duration - 1
                ))
        self._natural_tiers[key] = events
        return events

    def events_for(self, day: int) -> list[ActiveEvent]:
        return self.base_events(day) + self.tier_events(1, day) + self.tier_events(2, day)

    def natural_events_for(self, day: int) -> list[ActiveEvent]:
        return self.natural_base(day) + self.natural_tier(1, day) + self.natural_tier(2, day)

    def _natural_phase(self, event_id: str, day: int) -> list[ActiveEvent]:
        definition = self.ev.definitions.get(event_id)
        if definition is None:
            return []
        if definition.event_type == EventType.CONDITIONAL:
            return self.natural_tier(definition.trigger.tier, day)
        return self.natural_base(day)

    def recent_occurrence(self, event_id: str, day: int, lookback: int) -> Optional[ActiveEvent]:
        """Latest natural occurrence of an event within lookback days before day."""
        for k in range(1, lookback + 1):
            for event in self._natural_phase(event_id, day - k):
                if event.event_id == event_id:
                    return replace(event, remaining_days=max(0, event.end_day - day))
        return None


class EventEvaluator:
    """
    Decides which events are active on a day.

    Holds the event definitions, indexed by type, and the module toggles.
    Chain vectors and overrides are passed per call.
    """

    def __init__(
        self,
        driver: CalendarDriver,
        definitions: Iterable[EventDefinition],
        chain_machine: Optional[ChainStateMachine] = None,
        config: Optional[EngineConfig] = None,
        module_toggles: Optional[dict[str, bool]] = None,
    ):
        self.driver = driver
        self.config = config or driver.config
        if chain_machine is None:
            units = self.config.duration_units or units_from_calendar(driver)
            chain_machine = ChainStateMachine(DurationParser(units))
        self.chain_machine = chain_machine
        self.module_toggles: dict[str, bool] = dict(module_toggles or {})

        self.definitions: dict[str, EventDefinition] = {}
        self.fixed_events: list[EventDefinition] = []
        self.interval_events: list[EventDefinition] = []
        self.chain_events: list[EventDefinition] = []
        self._conditional: dict[int, list[EventDefinition]] = {1: [], 2: []}
        self.fixed_index: dict[str, list[str]] = {}
        self.max_fixed_duration = 1
        self._initial_vectors: dict[str, ChainStateVector] = {}

        for definition in definitions:
            self.add_definition(definition)

    # =========================================================================
    # DEFINITIONS AND MODULES
    # =========================================================================

    def add_definition(self, definition: EventDefinition) -> None:
        if definition.id in self.definitions:
            raise ValueError(f"Duplicate event id '{definition.id}'")
        self.definitions[definition.id] = definition

        trigger = definition.trigger
        if definition.event_type == EventType.FIXED:
            self.fixed_events.append(definition)
            if trigger.intercalary_name:
                key = f"intercalary:{trigger.intercalary_name}"
            else:
                key = f"{trigger.month}-{trigger.day}"
            self.fixed_index.setdefault(key, []).append(definition.id)
            self.max_fixed_duration = max(self.max_fixed_duration, trigger.duration)
        elif definition.event_type == EventType.INTERVAL:
            self.interval_events.append(definition)
        elif definition.event_type == EventType.CHAIN:
            self.chain_events.append(definition)
        elif definition.event_type == EventType.CONDITIONAL:
            self._conditional[trigger.tier].append(definition)

    def get_event(self, event_id: str) -> Optional[EventDefinition]:
        return self.definitions.get(event_id)

    def definitions_by_type(self, event_type: EventType) -> list[EventDefinition]:
        return [d for d in self.definitions.values() if d.event_type == event_type]

    def conditional_events(self, tier: int) -> list[EventDefinition]:
        return self._conditional.get(tier, [])

    @property
    def base_event_ids(self) -> set[str]:
        """Ids evaluated before any condition: fixed, interval and chain events."""
        return {d.id for d in self.fixed_events + self.interval_events + self.chain_events}

    def set_module_enabled(self, module: str, enabled: bool) -> None:
        self.module_toggles[module] = enabled
        logger.info(f"Module '{module}' {'enabled' if enabled else 'disabled'}")

    def is_module_enabled(self, module: str) -> bool:
        return self.module_toggles.get(module, True)

    def module_allows(self, definition: EventDefinition) -> bool:
        """False if any of the event's tags names a disabled module."""
        return all(self.is_module_enabled(tag) for tag in definition.tags)

    # =========================================================================
    # CHAIN STATE
    # =========================================================================

    def initial_vector(self, definition: EventDefinition) -> ChainStateVector:
        """Seed-derived day-0 vector; cached since it depends only on the definition."""
        if definition.id not in self._initial_vectors:
            self._initial_vectors[definition.id] = self.chain_machine.initial_vector(definition)
        return self._initial_vectors[definition.id]

    def initial_chain_states(self) -> dict[str, ChainStateVector]:
        return {d.id: self.initial_vector(d) for d in self.chain_events}

    # =========================================================================
    # EVALUATION
    # =========================================================================

    def evaluate(
        self,
        day: int,
        time_of_day: Optional[int] = None,
        context: Optional[EventContext] = None,
        chain_states: Optional[dict[str, ChainStateVector]] = None,
        overrides: Union[OverrideLayer, Iterable[GMOverride], None] = None,
    ) -> EvaluationResult:
        """
        Evaluate every event for a day.

        Raises:
            ChainCheckpointError: If a chain vector starts after day and
                strict checkpoints are configured
        """
        context = context or EventContext()
        tod = self.driver.get_time_of_day() if time_of_day is None else time_of_day
        layer = overrides if isinstance(overrides, OverrideLayer) else OverrideLayer(overrides or ())
        vectors = dict(chain_states or {})

        run = _EvaluationPass(self, day, tod, vectors, layer)
        natural = run.natural_events_for(day)
        final = run.events_for(day)
        visible = [e for e in final if context.matches(e.definition)]

        updated = dict(vectors)
        updated.update(run.advanced)

        logger.debug(f"Day {day}: {len(visible)} active event(s) ({len(natural)} before overrides/filters)")
        return EvaluationResult(
            day=day,
            time_of_day=tod,
            context=context,
            active_events=visible,
            chain_states=updated,
            chain_transitions=run.transitions,
            missing_event_ids=run.missing,
            skipped_chain_ids=run.skipped,
        )

    def get_active_events(
        self,
        day: int,
        time_of_day: Optional[int] = None,
        context: Optional[EventContext] = None,
        chain_states: Optional[dict[str, ChainStateVector]] = None,
        overrides: Union[OverrideLayer, Iterable[GMOverride], None] = None,
    ) -> list[ActiveEvent]:
        return self.evaluate(day, time_of_day, context, chain_states, overrides).active_events

    def evaluate_range(
        self,
        start_day: int,
        end_day: int,
        context: Optional[EventContext] = None,
        chain_states: Optional[dict[str, ChainStateVector]] = None,
        overrides: Union[OverrideLayer, Iterable[GMOverride], None] = None,
    ) -> list[EvaluationResult]:
        """Evaluate [start_day, end_day] in order, carrying chain vectors forward."""
        layer = overrides if isinstance(overrides, OverrideLayer) else OverrideLayer(overrides or ())
        results = []
        vectors = chain_states
        for day in range(start_day, end_day + 1):
            result = self.evaluate(day, context=context, chain_states=vectors, overrides=layer)
            vectors = result.chain_states
            results.append(result)
        return results
