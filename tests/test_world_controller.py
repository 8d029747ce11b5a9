"""
Tests for the WorldController facade.

Covers the clock, chain checkpointing on rollover, override bookkeeping,
module toggles, effect queries and save/load.
"""

import pytest

from campaign_calendar.config import EngineConfig
from campaign_calendar.data_models import MINUTES_PER_DAY
from campaign_calendar.events.chain_state_machine import ChainCheckpointError
from campaign_calendar.events.event_evaluator import EventEvaluator
from campaign_calendar.events.event_models import (
    ChainEventState,
    ChainTrigger,
    ConditionalTrigger,
    EventDefinition,
    EventType,
    IntervalTrigger,
)
from campaign_calendar.events.overrides import GMOverride, OverrideType
from campaign_calendar.game_state.world_controller import WorldController
from campaign_calendar.game_state.world_state import WorldState


@pytest.fixture
def events(weekly_market, harvest_festival, weather_chain, market_riot):
    return [weekly_market, harvest_festival, weather_chain, market_riot]


@pytest.fixture
def controller(thirty_day_calendar, events, run_log):
    return WorldController(thirty_day_calendar, events, run_log=run_log)


class TestConstruction:
    """Setting up a controller from a calendar and optional saved state."""

    def test_fresh_state(self, controller):
        assert controller.current_day == 0
        assert controller.time_of_day == 0
        assert controller.state.active_calendar_id == "thirty"
        assert controller.get_chain_state("weather").covers(0)

    def test_calendar_mismatch(self, thirty_day_calendar, events):
        with pytest.raises(ValueError):
            WorldController(thirty_day_calendar, events, state=WorldState(active_calendar_id="harptos"))

    def test_unknown_persisted_chain_kept(self, thirty_day_calendar, events):
        state = WorldState(active_calendar_id="thirty")
        controller = WorldController(thirty_day_calendar, events, state=state)
        stale = controller.get_chain_state("weather")
        state.chain_states["retired-event"] = stale

        reloaded = WorldController(thirty_day_calendar, events, state=state)
        assert reloaded.get_chain_state("retired-event") == stale

    def test_current_date(self, controller):
        date = controller.current_date()
        assert (date.year, date.month_index, date.day_of_month) == (1, 0, 1)


class TestClock:
    """Advancing time and rolling over days."""

    def test_advance_within_day(self, controller, run_log):
        assert controller.advance_time(90, reason="travel") == 0
        assert controller.time_of_day == 90
        step = run_log.get_time_steps()[-1]
        assert (step.old_time, step.new_time, step.minutes_advanced, step.reason) == (0, 90, 90, "travel")

    def test_rollover(self, controller):
        days = controller.advance_time(3 * MINUTES_PER_DAY + 30)
        assert days == 3
        assert controller.current_day == 3
        assert controller.time_of_day == 30
        assert controller.clock.current_day == 3

    def test_fractional_minutes_floor(self, controller):
        controller.advance_time(10.9)
        assert controller.time_of_day == 10

    def test_negative_time_rejected(self, controller):
        with pytest.raises(ValueError):
            controller.advance_time(-1)
        assert controller.current_day == 0
        assert controller.time_of_day == 0

    def test_advance_days_keeps_time(self, controller):
        controller.set_time_of_day(600)
        assert controller.advance_days(5) == 5
        assert controller.current_day == 5
        assert controller.time_of_day == 600

    def test_negative_days_rejected(self, controller):
        with pytest.raises(ValueError):
            controller.advance_days(-1)

    def test_set_time_of_day_clamps(self, controller, run_log):
        controller.set_time_of_day(5000)
        assert controller.time_of_day == 1439
        assert controller.current_day == 0
        assert run_log.get_time_steps()[-1].reason == "set_time_of_day"

    def test_day_callbacks(self, controller):
        seen = []
        controller.register_day_callback(seen.append)
        controller.advance_time(60)
        controller.advance_days(2)
        controller.advance_days(1)
        assert seen == [2, 3]


class TestChainCheckpoints:
    """Chain vectors follow the clock."""

    def test_checkpoint_on_rollover(self, controller):
        controller.advance_days(100)
        vector = controller.get_chain_state("weather")
        assert vector.covers(100)

    def test_checkpoint_matches_replay(self, controller, weather_chain):
        """Stepping the clock lands on the same vector as replaying from the seed."""
        for _ in range(20):
            controller.advance_days(5)
        expected = controller.evaluator.chain_machine.replay(weather_chain, 100)
        assert controller.get_chain_state("weather") == expected

    def test_transitions_logged(self, controller, run_log):
        controller.advance_days(60)
        transitions = run_log.get_transitions("weather")
        assert transitions
        assert all(t.entered_day <= 60 for t in transitions)
        assert transitions[-1].to_state == controller.get_chain_state("weather").current_state_name

    def test_evaluation_does_not_persist(self, controller):
        before = controller.get_chain_state("weather")
        controller.evaluate(200)
        assert controller.get_chain_state("weather") == before

    def test_strict_query_before_checkpoint(self, controller):
        controller.advance_days(100)
        with pytest.raises(ChainCheckpointError):
            controller.evaluate(0)

    def test_lenient_query_before_checkpoint(self, thirty_day_calendar, events):
        controller = WorldController(thirty_day_calendar, events, config=EngineConfig(strict_checkpoints=False))
        controller.advance_days(100)
        result = controller.evaluate(0)
        assert result.skipped_chain_ids == ["weather"]
        assert not result.is_active("weather")
        assert result.is_active("weekly-market")


class TestLookbackAcrossCheckpoints:
    """A day evaluates the same whether or not the clock has moved past it."""

    @pytest.fixture
    def flood_events(self):
        drizzle = EventDefinition(
            id="drizzle",
            name="Drizzle",
            event_type=EventType.CHAIN,
            trigger=ChainTrigger(seed=4, states=(ChainEventState("Rain", 1, "1 day"),)),
        )
        tide = EventDefinition(
            id="tide",
            name="High Tide",
            event_type=EventType.INTERVAL,
            trigger=IntervalTrigger(interval=10),
        )
        flood = EventDefinition(
            id="flood",
            name="Flood",
            event_type=EventType.CONDITIONAL,
            trigger=ConditionalTrigger(
                condition="events['drizzle'].active && events['tide'].active",
                duration=3,
            ),
        )
        return [drizzle, tide, flood]

    def test_conditional_window_reaches_before_checkpoint(self, thirty_day_calendar, flood_events):
        """Each window reads chain days the daily checkpoint has already moved past."""
        controller = WorldController(thirty_day_calendar, flood_events)
        active_days = []
        for day in range(1, 16):
            controller.advance_days(1)
            if controller.evaluate().is_active("flood"):
                active_days.append(day)
        assert active_days == [1, 2, 10, 11, 12]
        assert controller.get_chain_state("drizzle").state_entered_day == 15

    def test_matches_fresh_evaluation(self, thirty_day_calendar, thirty_day_driver, weather_chain):
        washout = EventDefinition(
            id="washout",
            name="Washout",
            event_type=EventType.CONDITIONAL,
            trigger=ConditionalTrigger(condition="events['weather'].state == 'Rain'", duration=3),
        )
        events = [weather_chain, washout]
        fresh = EventEvaluator(thirty_day_driver, events)
        controller = WorldController(thirty_day_calendar, events)

        def summary(result):
            return [(e.event_id, e.state, e.start_day, e.end_day) for e in result.active_events]

        for day in range(1, 41):
            controller.advance_days(1)
            assert summary(controller.evaluate()) == summary(fresh.evaluate(day)), f"day {day}"

    def test_extension_reaches_before_checkpoint(self, thirty_day_calendar, flood_events):
        """The flood ending on day 12 is found again from day 14 and extended."""
        controller = WorldController(thirty_day_calendar, flood_events)
        controller.add_override(
            GMOverride("flood", OverrideType.EXTEND_DURATION, applied_day=0, duration_extension=2)
        )
        controller.advance_days(14)
        assert controller.evaluate().is_active("flood")
        assert not controller.evaluate(15).is_active("flood")


class TestOverrides:
    def test_unknown_event(self, controller):
        with pytest.raises(KeyError):
            controller.add_override(GMOverride("dragon", OverrideType.DISABLE_EVENT, applied_day=0))

    def test_disable_then_expire(self, controller, run_log):
        override = controller.add_override(
            GMOverride("weekly-market", OverrideType.DISABLE_EVENT, applied_day=0, expires_day=3)
        )
        assert not controller.evaluate().is_active("weekly-market")
        assert controller.active_overrides() == [override]

        controller.advance_days(3)
        assert controller.state.overrides == []
        assert [e.action for e in run_log.get_overrides()] == ["added", "expired"]

    def test_remove(self, controller, run_log):
        override = controller.add_override(
            GMOverride("weekly-market", OverrideType.DISABLE_EVENT, applied_day=0)
        )
        assert controller.remove_override(override.id)
        assert not controller.remove_override(override.id)
        assert controller.evaluate().is_active("weekly-market")
        assert run_log.get_overrides()[-1].action == "removed"

    def test_force_state_leaves_vector_alone(self, controller):
        before = controller.get_chain_state("weather")
        controller.add_override(
            GMOverride("weather", OverrideType.FORCE_STATE, applied_day=0, forced_state_name="Eclipse")
        )
        assert controller.evaluate().get("weather").state == "Eclipse"
        assert controller.get_chain_state("weather") == before


class TestModules:
    def test_toggle_persists_in_state(self, controller):
        controller.set_module_enabled("market", False)
        assert controller.state.module_toggles == {"market": False}
        assert not controller.evaluate().is_active("weekly-market")

        controller.set_module_enabled("market", True)
        assert controller.evaluate().is_active("weekly-market")


class TestEffects:
    """Resolved effects for the current or a given day."""

    def test_market_day(self, controller):
        resolved = controller.get_resolved_effects()
        assert resolved.price_mult_global == pytest.approx(0.9)
        assert resolved.season_set == "wet"

    def test_festival(self, controller):
        resolved = controller.get_resolved_effects(64)
        assert resolved.shop_closed is True
        assert resolved.ui_banner == "Harvest Festival"

    def test_get_active_events(self, controller):
        ids = [e.event_id for e in controller.get_active_events(64)]
        assert "harvest-festival" in ids
        assert "weather" in ids


class TestPersistence:
    """Snapshots and save/load."""

    def test_snapshot_is_detached(self, controller):
        snapshot = controller.snapshot()
        controller.advance_days(10)
        assert snapshot.clock.current_day == 0
        assert controller.current_day == 10

    def test_save_and_load(self, tmp_path, controller, thirty_day_calendar, events):
        controller.advance_days(10)
        controller.advance_time(125)
        controller.set_module_enabled("market", False)
        controller.add_override(
            GMOverride("weather", OverrideType.FORCE_STATE, applied_day=10, forced_state_name="Rain")
        )
        path = controller.save(tmp_path / "campaign.json")

        loaded = WorldController.load(path, thirty_day_calendar, events)
        assert loaded.current_day == 10
        assert loaded.time_of_day == 125
        assert loaded.get_chain_state("weather") == controller.get_chain_state("weather")
        assert loaded.evaluator.is_module_enabled("market") is False
        assert loaded.evaluate().get("weather").state == "Rain"
        assert loaded.driver.get_time_of_day() == 125
