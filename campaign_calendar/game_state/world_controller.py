"""
World Controller for the calendar and event engine.

Owns the campaign clock and the persisted chain vectors and coordinates the
calendar driver, event evaluator and effect resolver around them. This is
the only component that mutates world state; everything it delegates to is
pure with respect to its inputs.
"""

import logging
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

from campaign_calendar.calendar.calendar_driver import CalendarDriver
from campaign_calendar.calendar.calendar_models import CalendarDate, CalendarDefinition, FormattedDate
from campaign_calendar.calendar.calendar_validator import assert_valid_calendar
from campaign_calendar.calendar.date_formatter import DateFormatter
from campaign_calendar.config import EngineConfig
from campaign_calendar.data_models import MINUTES_PER_DAY, CalendarClock
from campaign_calendar.effects.effect_resolver import EffectResolver, ResolvedEffects
from campaign_calendar.events.chain_state_machine import ChainStateVector
from campaign_calendar.events.event_evaluator import EvaluationResult, EventEvaluator
from campaign_calendar.events.event_models import ActiveEvent, EventContext, EventDefinition
from campaign_calendar.events.overrides import GMOverride, OverrideLayer
from campaign_calendar.game_state.world_state import WorldState, load_world_state, save_world_state
from campaign_calendar.observability.run_log import RunLog

logger = logging.getLogger(__name__)


class WorldController:
    """
    Facade over one campaign's calendar and events.

    Chain vectors are checkpointed to the current day whenever the clock
    crosses midnight, so evaluation never replays more than the days since
    the last advance.
    """

    def __init__(
        self,
        calendar: CalendarDefinition,
        events: Iterable[EventDefinition] = (),
        config: Optional[EngineConfig] = None,
        state: Optional[WorldState] = None,
        run_log: Optional[RunLog] = None,
    ):
        self.config = config or EngineConfig()
        self.calendar = calendar
        self.validation = assert_valid_calendar(calendar)

        self.state = state or WorldState(active_calendar_id=calendar.id)
        if not self.state.active_calendar_id:
            self.state.active_calendar_id = calendar.id
        elif self.state.active_calendar_id != calendar.id:
            raise ValueError(
                f"World state belongs to calendar '{self.state.active_calendar_id}', "
                f"not '{calendar.id}'"
            )

        self.driver = CalendarDriver(calendar, self.config)
        self.driver.set_time_of_day(self.state.clock.time_of_day)
        self.formatter = DateFormatter(self.driver)
        self.evaluator = EventEvaluator(
            self.driver,
            events,
            config=self.config,
            module_toggles=self.state.module_toggles,
        )
        self.resolver = EffectResolver(self.driver)

        self.run_log = run_log or RunLog()
        self.run_log.set_day_provider(lambda: self.current_day)

        self._day_callbacks: list[Callable[[int], None]] = []

        self._init_chain_states()
        logger.info(
            f"World controller ready: calendar '{calendar.id}', "
            f"{len(self.evaluator.definitions)} event(s), day {self.current_day}"
        )

    # =========================================================================
    # CLOCK
    # =========================================================================

    @property
    def current_day(self) -> int:
        return self.state.clock.current_day

    @property
    def time_of_day(self) -> int:
        return self.state.clock.time_of_day

    def current_date(self) -> CalendarDate:
        return self.driver.get_date(self.current_day)

    def formatted_date(self, include_time: bool = False) -> FormattedDate:
        return self.formatter.format(
            self.current_day,
            self.time_of_day if include_time else None,
        )

    def register_day_callback(self, callback: Callable[[int], None]) -> None:
        """Call back with the new current day after each day rollover."""
        self._day_callbacks.append(callback)

    def set_time_of_day(self, minutes: float) -> None:
        """Set the clock within the current day; never rolls the day."""
        old_time = self.time_of_day
        self.driver.set_time_of_day(minutes)
        self.state.clock.time_of_day = self.driver.get_time_of_day()
        self.run_log.log_time_step(
            old_day=self.current_day,
            new_day=self.current_day,
            old_time=old_time,
            new_time=self.time_of_day,
            minutes_advanced=0,
            reason="set_time_of_day",
        )

    def advance_time(self, minutes: float, reason: str = "") -> int:
        """
        Advance the clock, rolling over days as needed.

        On rollover the chain vectors are checkpointed to the new day and
        overrides that have expired are dropped.

        Returns:
            Number of days rolled

        Raises:
            ValueError: If minutes is negative
        """
        old_day, old_time = self.current_day, self.time_of_day
        days_rolled = self.driver.advance_time(minutes)
        self.state.clock.time_of_day = self.driver.get_time_of_day()

        if days_rolled:
            self.state.clock.current_day = old_day + days_rolled
            self._checkpoint_chains()
            self._prune_overrides()

        self.run_log.log_time_step(
            old_day=old_day,
            new_day=self.current_day,
            old_time=old_time,
            new_time=self.time_of_day,
            minutes_advanced=int(minutes // 1),
            reason=reason,
        )

        if days_rolled:
            for callback in self._day_callbacks:
                callback(self.current_day)
        return days_rolled

    def advance_days(self, days: int, reason: str = "") -> int:
        """Advance whole days, keeping the time of day."""
        if days < 0:
            raise ValueError(f"Cannot advance by a negative number of days: {days}")
        return self.advance_time(days * MINUTES_PER_DAY, reason=reason)

    # =========================================================================
    # CHAIN CHECKPOINTS
    # =========================================================================

    def _init_chain_states(self) -> None:
        vectors = self.state.chain_states
        for event_id in vectors:
            if self.evaluator.get_event(event_id) is None:
                logger.warning(f"Persisted chain state for unknown event '{event_id}' kept unchanged")
        for definition in self.evaluator.chain_events:
            if definition.id not in vectors:
                vectors[definition.id] = self.evaluator.initial_vector(definition)
        self._checkpoint_chains()

    def _checkpoint_chains(self) -> None:
        """Advance every chain vector to cover the current day."""
        machine = self.evaluator.chain_machine
        day = self.current_day
        for definition in self.evaluator.chain_events:
            vector = self.state.chain_states[definition.id]
            if day < vector.state_entered_day:
                # Saved ahead of the clock; leave it for evaluation to report
                continue
            vector, transitions = machine.advance_to(definition, vector, day)
            self.state.chain_states[definition.id] = vector
            for record in transitions:
                self.run_log.log_transition(
                    event_id=record.event_id,
                    from_state=record.from_state,
                    to_state=record.to_state,
                    entered_day=record.entered_day,
                    duration_days=record.duration_days,
                )

    def get_chain_state(self, event_id: str) -> Optional[ChainStateVector]:
        return self.state.chain_states.get(event_id)

    # =========================================================================
    # OVERRIDES AND MODULES
    # =========================================================================

    def add_override(self, override: GMOverride) -> GMOverride:
        if self.evaluator.get_event(override.event_id) is None:
            raise KeyError(f"Unknown event '{override.event_id}'")
        self.state.overrides.append(override)
        self.run_log.log_override("added", override.id, override.event_id, override.override_type.value)
        logger.info(f"Added {override.override_type.value} override {override.id} for '{override.event_id}'")
        return override

    def remove_override(self, override_id: str) -> bool:
        for override in self.state.overrides:
            if override.id == override_id:
                self.state.overrides.remove(override)
                self.run_log.log_override(
                    "removed", override.id, override.event_id, override.override_type.value
                )
                return True
        return False

    def active_overrides(self, day: Optional[int] = None) -> list[GMOverride]:
        day = self.current_day if day is None else day
        return OverrideLayer(self.state.overrides).active_on(day)

    def _prune_overrides(self) -> None:
        day = self.current_day
        expired = [o for o in self.state.overrides if o.is_expired(day)]
        for override in expired:
            self.state.overrides.remove(override)
            self.run_log.log_override(
                "expired", override.id, override.event_id, override.override_type.value
            )
        if expired:
            logger.info(f"Pruned {len(expired)} expired override(s) on day {day}")

    def set_module_enabled(self, module: str, enabled: bool) -> None:
        self.evaluator.set_module_enabled(module, enabled)
        self.state.module_toggles[module] = enabled

    # =========================================================================
    # QUERIES
    # =========================================================================

    def evaluate(
        self,
        day: Optional[int] = None,
        context: Optional[EventContext] = None,
        time_of_day: Optional[int] = None,
    ) -> EvaluationResult:
        """
        Evaluate events without touching the persisted state.

        Raises:
            ChainCheckpointError: If day precedes a chain checkpoint and
                strict checkpoints are configured
        """
        day = self.current_day if day is None else day
        if time_of_day is None:
            time_of_day = self.time_of_day
        return self.evaluator.evaluate(
            day,
            time_of_day,
            context,
            chain_states=self.state.chain_states,
            overrides=self.state.overrides,
        )

    def get_active_events(
        self,
        day: Optional[int] = None,
        context: Optional[EventContext] = None,
    ) -> list[ActiveEvent]:
        return self.evaluate(day, context).active_events

    def get_resolved_effects(
        self,
        day: Optional[int] = None,
        context: Optional[EventContext] = None,
        include_solar_baseline: bool = False,
    ) -> ResolvedEffects:
        result = self.evaluate(day, context)
        return self.resolver.resolve(
            result.day,
            result.active_events,
            context=result.context,
            time_of_day=result.time_of_day,
            include_solar_baseline=include_solar_baseline,
        )

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def snapshot(self) -> WorldState:
        """A detached copy of the current world state."""
        return WorldState.from_dict(self.state.to_dict())

    def save(self, filepath: Union[Path, str]) -> Path:
        return save_world_state(self.state, filepath)

    @classmethod
    def load(
        cls,
        filepath: Union[Path, str],
        calendar: CalendarDefinition,
        events: Iterable[EventDefinition] = (),
        config: Optional[EngineConfig] = None,
        run_log: Optional[RunLog] = None,
    ) -> "WorldController":
        return cls(calendar, events, config=config, state=load_world_state(filepath), run_log=run_log)

    @property
    def clock(self) -> CalendarClock:
        return self.state.clock
