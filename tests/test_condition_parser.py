"""
Tests for the conditional event expression language.
"""

import pytest

from campaign_calendar.events.condition_parser import (
    EventSnapshot,
    evaluate_condition,
    extract_event_references,
    validate_condition,
)


@pytest.fixture
def registry():
    return {
        "full-moon": EventSnapshot(active=True, state="Full Moon"),
        "weather": EventSnapshot(active=True, state="Storm", effects={"light_level": "dim"}),
        "market": EventSnapshot(active=True, state="Market", effects={"price_mult_global": 1.5}),
    }


class TestEvaluation:
    """Expressions evaluated against a registry."""

    @pytest.mark.parametrize("expression,expected", [
        ("events['full-moon'].active", True),
        ("!events['full-moon'].active", False),
        ("events['weather'].state == 'Storm'", True),
        ('events["weather"].state != "Storm"', False),
        ("events['weather'].state in ['Storm', 'Blizzard']", True),
        ("events['weather'].state in ['Clear']", False),
        ("events['market'].effects['price_mult_global'] > 1", True),
        ("events['market'].effects['price_mult_global'] <= 1.5", True),
        ("events['full-moon'].active && events['weather'].state == 'Storm'", True),
        ("events['full-moon'].active && events['weather'].state == 'Clear'", False),
        ("events['weather'].state == 'Clear' || events['market'].active", True),
        ("!(events['full-moon'].active && events['market'].active)", False),
        ("true", True),
        ("false || true", True),
        ("!false && !false", True),
    ])
    def test_expressions(self, registry, expression, expected):
        result = evaluate_condition(expression, registry)
        assert result.success
        assert result.value is expected

    def test_and_binds_tighter_than_or(self, registry):
        """true || (false && false) is true."""
        assert evaluate_condition("true || false && false", registry).value is True

    def test_missing_event_reads_inactive(self, registry):
        result = evaluate_condition("events['dragon'].active", registry)
        assert result.success
        assert result.value is False
        assert result.missing_event_ids == ["dragon"]

    def test_missing_event_state_is_empty(self, registry):
        result = evaluate_condition("events['dragon'].state == ''", registry)
        assert result.value is True

    def test_missing_effect_orders_false(self, registry):
        assert evaluate_condition("events['weather'].effects['price_mult_global'] > 1", registry).value is False

    def test_escaped_quote_in_string(self):
        registry = {"inn": EventSnapshot(active=True, state="Dragon's Rest")}
        assert evaluate_condition(r"events['inn'].state == 'Dragon\'s Rest'", registry).value is True


class TestErrors:
    """Malformed expressions never raise."""

    @pytest.mark.parametrize("expression", [
        "",
        "events['x'].active &&",
        "events['x'].colour",
        "events[x].active",
        "import os",
        "events['x'].active; true",
        "(true",
        "events['x'].state in 'abc'",
        "events['market'].active > 1",
    ])
    def test_malformed(self, registry, expression):
        result = evaluate_condition(expression, registry)
        assert not result.success
        assert result.value is False
        assert result.error

    def test_validate_condition(self):
        assert validate_condition("events['a'].active || events['b'].active") == (True, None)
        ok, error = validate_condition("events['a'].active ||")
        assert not ok
        assert error


class TestReferences:
    def test_extract_in_order_without_duplicates(self):
        expression = "events['b'].active && (events['a'].state == 'x' || events['b'].active)"
        assert extract_event_references(expression) == ["b", "a"]

    def test_extract_from_invalid_expression(self):
        assert extract_event_references("events['a'] $$") == []
