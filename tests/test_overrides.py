"""
Tests for GM overrides and the override layer.
"""

import pytest

from campaign_calendar.events.event_evaluator import EventEvaluator
from campaign_calendar.events.event_models import ActiveEvent, EventSource
from campaign_calendar.events.overrides import GMOverride, OverrideLayer, OverrideType


@pytest.fixture
def definitions(weekly_market, harvest_festival, weather_chain):
    return {d.id: d for d in (weekly_market, harvest_festival, weather_chain)}


class TestGMOverride:
    """Override records and their validation."""

    def test_force_state_needs_state_name(self):
        with pytest.raises(ValueError):
            GMOverride("weather", OverrideType.FORCE_STATE, applied_day=1)

    def test_extend_needs_extension(self):
        with pytest.raises(ValueError):
            GMOverride("weather", OverrideType.EXTEND_DURATION, applied_day=1)

    def test_expiry_must_follow_application(self):
        with pytest.raises(ValueError):
            GMOverride("weather", OverrideType.DISABLE_EVENT, applied_day=5, expires_day=5)

    def test_forced_duration_positive(self):
        with pytest.raises(ValueError):
            GMOverride("weather", OverrideType.TRIGGER_NOW, applied_day=5, forced_duration=0)

    def test_active_window_is_half_open(self):
        override = GMOverride("weather", OverrideType.DISABLE_EVENT, applied_day=5, expires_day=8)
        assert [d for d in range(3, 10) if override.is_active_on(d)] == [5, 6, 7]
        assert override.is_expired(8)
        assert not override.is_expired(7)

    def test_open_ended(self):
        override = GMOverride("weather", OverrideType.DISABLE_EVENT, applied_day=5)
        assert override.is_active_on(10000)
        assert not override.is_expired(10000)

    def test_generated_id(self):
        override = GMOverride("weather", OverrideType.DISABLE_EVENT, applied_day=0)
        assert override.id.startswith("override_")

    def test_dict_round_trip(self):
        override = GMOverride(
            "weather", OverrideType.FORCE_STATE, applied_day=3,
            forced_state_name="Rain", forced_duration=4, expires_day=10, notes="storm gods",
        )
        data = override.to_dict()
        assert data["type"] == "force_state"
        assert data["eventId"] == "weather"
        assert data["forcedDuration"] == 4
        assert "durationExtension" not in data
        assert GMOverride.from_dict(data) == override


class TestOverrideLayer:
    """Applying overrides to naturally active events."""

    def test_no_overrides_is_identity(self, definitions, weekly_market):
        natural = [ActiveEvent.create(weekly_market, 7, 7, 7)]
        assert OverrideLayer().apply(7, natural, definitions) == natural

    def test_disable(self, definitions, weekly_market):
        layer = OverrideLayer([GMOverride("weekly-market", OverrideType.DISABLE_EVENT, applied_day=0)])
        natural = [ActiveEvent.create(weekly_market, 7, 7, 7)]
        assert layer.apply(7, natural, definitions) == []
        assert layer.disabled_event_ids(7) == {"weekly-market"}

    def test_trigger_now(self, definitions):
        layer = OverrideLayer([GMOverride("weekly-market", OverrideType.TRIGGER_NOW, applied_day=3)])
        events = layer.apply(3, [], definitions)
        assert len(events) == 1
        assert events[0].source == EventSource.GM_FORCED
        assert (events[0].start_day, events[0].end_day) == (3, 3)
        assert layer.apply(4, [], definitions) == []

    def test_trigger_now_with_duration(self, definitions):
        layer = OverrideLayer([
            GMOverride("harvest-festival", OverrideType.TRIGGER_NOW, applied_day=10, forced_duration=2),
        ])
        assert [d for d in range(9, 14) if layer.apply(d, [], definitions)] == [10, 11]

    def test_trigger_now_defaults_to_event_duration(self, definitions):
        """Without forced_duration the event's own duration applies."""
        layer = OverrideLayer([GMOverride("harvest-festival", OverrideType.TRIGGER_NOW, applied_day=10)])
        assert [d for d in range(9, 15) if layer.apply(d, [], definitions)] == [10, 11, 12]

    def test_trigger_now_keeps_natural_occurrence(self, definitions, weekly_market):
        natural = [ActiveEvent.create(weekly_market, 7, 7, 7)]
        layer = OverrideLayer([GMOverride("weekly-market", OverrideType.TRIGGER_NOW, applied_day=7)])
        assert layer.apply(7, natural, definitions)[0].source == EventSource.DEFINITION

    def test_trigger_chain_uses_forced_state(self, definitions):
        layer = OverrideLayer([
            GMOverride("weather", OverrideType.TRIGGER_NOW, applied_day=0, forced_state_name="Eclipse"),
        ])
        event = layer.apply(0, [], definitions)[0]
        assert event.state == "Eclipse"
        assert event.effects == {"season_set": "wet", "light_level": "dark"}

    def test_force_state_replaces_natural(self, definitions, weather_chain):
        natural = [ActiveEvent.create(weather_chain, 5, 4, 6, state="Clear")]
        layer = OverrideLayer([
            GMOverride("weather", OverrideType.FORCE_STATE, applied_day=5, forced_state_name="Rain"),
        ])
        events = layer.apply(5, natural, definitions)
        assert [(e.event_id, e.state, e.source) for e in events] == [("weather", "Rain", EventSource.OVERRIDE)]

    def test_force_unknown_state_keeps_natural(self, definitions, weather_chain):
        natural = [ActiveEvent.create(weather_chain, 5, 4, 6, state="Clear")]
        layer = OverrideLayer([
            GMOverride("weather", OverrideType.FORCE_STATE, applied_day=5, forced_state_name="Hail"),
        ])
        assert layer.apply(5, natural, definitions) == natural

    def test_disable_beats_other_overrides(self, definitions):
        layer = OverrideLayer([
            GMOverride("weekly-market", OverrideType.TRIGGER_NOW, applied_day=3),
            GMOverride("weekly-market", OverrideType.DISABLE_EVENT, applied_day=3),
        ])
        assert layer.apply(3, [], definitions) == []

    def test_extend_active_occurrence(self, definitions, harvest_festival):
        natural = [ActiveEvent.create(harvest_festival, 65, 64, 66)]
        layer = OverrideLayer([
            GMOverride("harvest-festival", OverrideType.EXTEND_DURATION, applied_day=64, duration_extension=2),
        ])
        event = layer.apply(65, natural, definitions)[0]
        assert event.end_day == 68
        assert event.remaining_days == 3
        assert event.source == EventSource.OVERRIDE


class TestExtendThroughEvaluator:
    """Extensions keep an event alive past its natural end."""

    def test_extension_window(self, thirty_day_driver, harvest_festival):
        evaluator = EventEvaluator(thirty_day_driver, [harvest_festival])
        extend = GMOverride(
            "harvest-festival", OverrideType.EXTEND_DURATION, applied_day=64, duration_extension=2,
        )
        active_days = [
            d for d in range(63, 71)
            if evaluator.evaluate(d, overrides=[extend]).is_active("harvest-festival")
        ]
        assert active_days == [64, 65, 66, 67, 68]
        assert evaluator.evaluate(68, overrides=[extend]).get("harvest-festival").source == EventSource.OVERRIDE
