"""
Tests for the chain event state machine.
"""

import pytest

from campaign_calendar.data_models import Mulberry32
from campaign_calendar.events.chain_state_machine import (
    ChainCheckpointError,
    ChainStateMachine,
    ChainStateVector,
)
from campaign_calendar.events.event_models import (
    ChainEventState,
    ChainTrigger,
    EventDefinition,
    EventType,
    IntervalTrigger,
)


@pytest.fixture
def machine():
    return ChainStateMachine()


def chain_event(states, seed=1, initial_state=None, event_id="chain"):
    return EventDefinition(
        id=event_id,
        name=event_id.title(),
        event_type=EventType.CHAIN,
        trigger=ChainTrigger(seed=seed, states=tuple(states), initial_state=initial_state),
    )


class TestVector:
    """ChainStateVector invariants and persistence."""

    def test_end_day_must_match_duration(self):
        with pytest.raises(ValueError):
            ChainStateVector("Clear", state_entered_day=5, state_duration_days=3, state_end_day=8, rng_state=1)

    def test_duration_must_be_positive(self):
        with pytest.raises(ValueError):
            ChainStateVector("Clear", state_entered_day=5, state_duration_days=0, state_end_day=4, rng_state=1)

    def test_covers(self):
        vector = ChainStateVector("Clear", 5, 3, 7, 1)
        assert vector.covers(5) and vector.covers(7)
        assert not vector.covers(4) and not vector.covers(8)

    def test_dict_round_trip(self):
        vector = ChainStateVector("Rain", 10, 2, 11, 123456)
        data = vector.to_dict()
        assert data == {
            "currentStateName": "Rain",
            "stateEnteredDay": 10,
            "stateDurationDays": 2,
            "stateEndDay": 11,
            "rngState": 123456,
        }
        assert ChainStateVector.from_dict(data) == vector


class TestSelection:
    """Weighted state selection."""

    def test_zero_weight_never_selected(self, machine, weather_chain):
        states = weather_chain.trigger.states
        rng_state = 77
        for _ in range(300):
            state, rng_state = machine.select_weighted_state(states, rng_state)
            assert state.name != "Eclipse"

    def test_all_zero_weights_pick_first_without_rolling(self, machine):
        states = (ChainEventState("A", 0, "1 day"), ChainEventState("B", 0, "1 day"))
        state, rng_state = machine.select_weighted_state(states, 42)
        assert state.name == "A"
        assert rng_state == 42

    def test_selection_advances_rng(self, machine, weather_chain):
        _, rng_state = machine.select_weighted_state(weather_chain.trigger.states, 42)
        assert rng_state == Mulberry32(42).get_state() + 0x6D2B79F5

    def test_empty_states_raise(self, machine):
        with pytest.raises(ValueError):
            machine.select_weighted_state((), 1)

    def test_bad_duration_falls_back_to_one_day(self, machine):
        state = ChainEventState("Odd", 1, "a while")
        days, rng_state = machine.roll_duration("chain", state, 5)
        assert days == 1
        assert rng_state == 5


class TestProgression:
    """Initial vectors, transitions and replay."""

    def test_initial_vector_starts_on_day_zero(self, machine, weather_chain):
        vector = machine.initial_vector(weather_chain)
        assert vector.state_entered_day == 0
        assert vector.state_end_day == vector.state_duration_days - 1
        assert vector.current_state_name in ("Clear", "Rain")

    def test_initial_state_is_honoured(self, machine):
        definition = chain_event(
            [ChainEventState("Calm", 1, "3 days"), ChainEventState("Gale", 1, "1 day")],
            initial_state="Gale",
        )
        vector = machine.initial_vector(definition)
        assert vector.current_state_name == "Gale"
        assert vector.state_duration_days == 1

    def test_unknown_initial_state_draws_by_weight(self, machine):
        definition = chain_event([ChainEventState("Only", 1, "2 days")], initial_state="Missing")
        assert machine.initial_vector(definition).current_state_name == "Only"

    def test_transitions_are_contiguous(self, machine, weather_chain):
        """Each state is entered the day after the previous one ends."""
        vector = machine.initial_vector(weather_chain)
        final, transitions = machine.advance_to(weather_chain, vector, 200)
        assert transitions
        expected_entry = vector.state_end_day + 1
        for record in transitions:
            assert record.entered_day == expected_entry
            assert record.duration_days >= 1
            expected_entry = record.entered_day + record.duration_days
        assert final.covers(200)

    def test_durations_follow_notation(self, machine, weather_chain):
        vector = machine.initial_vector(weather_chain)
        _, transitions = machine.advance_to(weather_chain, vector, 300)
        for record in transitions:
            if record.to_state == "Rain":
                assert record.duration_days == 2
            else:
                assert 1 <= record.duration_days <= 4

    def test_replay_is_deterministic(self, weather_chain):
        first = ChainStateMachine().replay(weather_chain, 365)
        second = ChainStateMachine().replay(weather_chain, 365)
        assert first == second

    def test_checkpoint_matches_replay(self, machine, weather_chain):
        """Advancing in steps lands on the same vector as replaying from the seed."""
        vector = machine.initial_vector(weather_chain)
        for day in (10, 45, 46, 120):
            vector = machine.state_for_day(weather_chain, vector, day)
        assert vector == machine.replay(weather_chain, 120)

    def test_vector_is_not_mutated(self, machine, weather_chain):
        vector = machine.initial_vector(weather_chain)
        snapshot = vector.to_dict()
        machine.advance_to(weather_chain, vector, 50)
        assert vector.to_dict() == snapshot

    def test_different_seeds_diverge(self, machine):
        states = [ChainEventState("A", 1, "1d6 days"), ChainEventState("B", 1, "1d6 days")]
        runs = set()
        for seed in (1, 2, 3):
            definition = chain_event(states, seed=seed)
            _, transitions = machine.advance_to(definition, machine.initial_vector(definition), 100)
            runs.add(tuple(r.to_state for r in transitions))
        assert len(runs) > 1


class TestCheckpoints:
    """Progression only runs forward from a checkpoint."""

    def test_query_before_checkpoint_raises(self, machine, weather_chain):
        vector = machine.replay(weather_chain, 50)
        assert vector.state_entered_day > 0
        with pytest.raises(ChainCheckpointError) as exc_info:
            machine.advance_to(weather_chain, vector, vector.state_entered_day - 1)
        assert exc_info.value.event_id == "weather"
        assert exc_info.value.checkpoint_day == vector.state_entered_day

    def test_query_within_current_state_is_unchanged(self, machine, weather_chain):
        vector = machine.replay(weather_chain, 50)
        same, transitions = machine.advance_to(weather_chain, vector, vector.state_entered_day)
        assert same == vector
        assert transitions == []

    def test_non_chain_definition_rejected(self, machine):
        definition = EventDefinition(
            id="tick", name="Tick", event_type=EventType.INTERVAL, trigger=IntervalTrigger(interval=2)
        )
        with pytest.raises(TypeError):
            machine.initial_vector(definition)
