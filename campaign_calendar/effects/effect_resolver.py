"""
Effect resolution.

Merges the effect maps of all active events into one ResolvedEffects using a
fixed strategy per effect key:

    price_mult_global, price_mult_tag.*   multiply      product of all values
    shop_closed, restock_block            any_true      true if any is true
    light_level                           darkest_wins  min of bright > dim > dark
    ui_banner, ui_theme, season_set       last_wins     highest priority, then id
    (anything else)                       last_wins

Every key that received a contribution is recorded in competing_effects and
resolution_strategies, even with a single contributor. Keys nobody set are
absent, not defaulted.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional

from campaign_calendar.calendar.calendar_driver import CalendarDriver
from campaign_calendar.data_models import LightLevel
from campaign_calendar.events.event_models import ActiveEvent, EventContext

logger = logging.getLogger(__name__)

PRICE_MULT_GLOBAL = "price_mult_global"
PRICE_MULT_TAG = "price_mult_tag"
SHOP_CLOSED = "shop_closed"
RESTOCK_BLOCK = "restock_block"
LIGHT_LEVEL = "light_level"
UI_BANNER = "ui_banner"
UI_THEME = "ui_theme"
SEASON_SET = "season_set"

SOLAR_SOURCE_ID = "solar"


class EffectStrategy(str, Enum):
    MULTIPLY = "multiply"
    ANY_TRUE = "any_true"
    DARKEST_WINS = "darkest_wins"
    LAST_WINS = "last_wins"


_KEY_STRATEGIES = {
    PRICE_MULT_GLOBAL: EffectStrategy.MULTIPLY,
    SHOP_CLOSED: EffectStrategy.ANY_TRUE,
    RESTOCK_BLOCK: EffectStrategy.ANY_TRUE,
    LIGHT_LEVEL: EffectStrategy.DARKEST_WINS,
    UI_BANNER: EffectStrategy.LAST_WINS,
    UI_THEME: EffectStrategy.LAST_WINS,
    SEASON_SET: EffectStrategy.LAST_WINS,
}


def strategy_for_key(key: str) -> EffectStrategy:
    if key == PRICE_MULT_TAG or key.startswith(PRICE_MULT_TAG + "."):
        return EffectStrategy.MULTIPLY
    return _KEY_STRATEGIES.get(key, EffectStrategy.LAST_WINS)


@dataclass
class EffectSource:
    """One event's contribution to one effect key."""
    effect_key: str
    event_id: str
    event_name: str
    priority: int
    value: Any
    applied: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "effectKey": self.effect_key,
            "eventId": self.event_id,
            "eventName": self.event_name,
            "priority": self.priority,
            "value": self.value,
            "applied": self.applied,
        }


@dataclass
class ResolvedEffects:
    """Authoritative effect state for one day and context."""
    resolved_day: int
    resolved_time_of_day: Optional[int] = None
    resolved_context: EventContext = field(default_factory=EventContext)
    values: dict[str, Any] = field(default_factory=dict)
    competing_effects: dict[str, list[str]] = field(default_factory=dict)
    resolution_strategies: dict[str, str] = field(default_factory=dict)
    sources: list[EffectSource] = field(default_factory=list)

    def __contains__(self, key: str) -> bool:
        return key in self.values

    def get(self, key: str, default: Any = None) -> Any:
        return self.values.get(key, default)

    @property
    def price_mult_global(self) -> Optional[float]:
        return self.values.get(PRICE_MULT_GLOBAL)

    @property
    def price_mult_tag(self) -> dict[str, float]:
        return dict(self.values.get(PRICE_MULT_TAG, {}))

    @property
    def shop_closed(self) -> Optional[bool]:
        return self.values.get(SHOP_CLOSED)

    @property
    def restock_block(self) -> Optional[bool]:
        return self.values.get(RESTOCK_BLOCK)

    @property
    def light_level(self) -> Optional[LightLevel]:
        return self.values.get(LIGHT_LEVEL)

    @property
    def ui_banner(self) -> Optional[str]:
        return self.values.get(UI_BANNER)

    @property
    def ui_theme(self) -> Optional[str]:
        return self.values.get(UI_THEME)

    @property
    def season_set(self) -> Optional[str]:
        return self.values.get(SEASON_SET)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for key, value in self.values.items():
            data[key] = value.value if isinstance(value, LightLevel) else value
        data["resolvedDay"] = self.resolved_day
        if self.resolved_time_of_day is not None:
            data["resolvedTimeOfDay"] = self.resolved_time_of_day
        data["resolvedContext"] = self.resolved_context.to_dict()
        data["competingEffects"] = {k: list(v) for k, v in self.competing_effects.items()}
        data["resolutionStrategies"] = dict(self.resolution_strategies)
        return data


def _parse_light(value: Any) -> Optional[LightLevel]:
    try:
        return LightLevel(value)
    except ValueError:
        return None


class EffectResolver:
    """
    Reduces active events to ResolvedEffects.

    A driver is only needed for the optional solar light baseline.
    """

    def __init__(self, driver: Optional[CalendarDriver] = None):
        self.driver = driver

    def _collect(self, events: Iterable[ActiveEvent]) -> dict[str, list[EffectSource]]:
        """Group contributions by key, in evaluation order."""
        by_key: dict[str, list[EffectSource]] = {}

        def add(key: str, event: ActiveEvent, value: Any) -> None:
            by_key.setdefault(key, []).append(EffectSource(
                effect_key=key,
                event_id=event.event_id,
                event_name=event.name,
                priority=event.priority,
                value=value,
            ))

        for event in events:
            for key, value in event.effects.items():
                if key == PRICE_MULT_TAG:
                    if not isinstance(value, dict):
                        logger.warning(f"Event '{event.event_id}' has non-mapping {PRICE_MULT_TAG}: {value!r}")
                        continue
                    for tag, multiplier in value.items():
                        add(f"{PRICE_MULT_TAG}.{tag}", event, multiplier)
                else:
                    add(key, event, value)
        return by_key

    def resolve(
        self,
        day: int,
        active_events: Iterable[ActiveEvent],
        context: Optional[EventContext] = None,
        time_of_day: Optional[int] = None,
        include_solar_baseline: bool = False,
    ) -> ResolvedEffects:
        context = context or EventContext()
        resolved = ResolvedEffects(
            resolved_day=day,
            resolved_time_of_day=time_of_day,
            resolved_context=context,
        )
        by_key = self._collect(active_events)

        if include_solar_baseline:
            if self.driver is None:
                raise ValueError("A calendar driver is required for the solar light baseline")
            solar = self.driver.get_light_level(day, time_of_day, context.region)
            by_key.setdefault(LIGHT_LEVEL, []).insert(0, EffectSource(
                effect_key=LIGHT_LEVEL,
                event_id=SOLAR_SOURCE_ID,
                event_name="Solar baseline",
                priority=0,
                value=solar.value,
            ))

        handlers = {
            EffectStrategy.MULTIPLY: self._multiply,
            EffectStrategy.ANY_TRUE: self._any_true,
            EffectStrategy.DARKEST_WINS: self._darkest_wins,
            EffectStrategy.LAST_WINS: self._last_wins,
        }
        tag_multipliers: dict[str, float] = {}

        for key, sources in by_key.items():
            strategy = strategy_for_key(key)
            value = handlers[strategy](key, sources)
            if value is None:
                continue

            resolved.competing_effects[key] = [s.event_id for s in sources]
            resolved.resolution_strategies[key] = strategy.value
            resolved.sources.extend(sources)

            if key.startswith(PRICE_MULT_TAG + "."):
                tag_multipliers[key[len(PRICE_MULT_TAG) + 1:]] = value
                ids = resolved.competing_effects.setdefault(PRICE_MULT_TAG, [])
                ids.extend(s.event_id for s in sources if s.event_id not in ids)
                resolved.resolution_strategies[PRICE_MULT_TAG] = strategy.value
            else:
                resolved.values[key] = value

        if tag_multipliers:
            resolved.values[PRICE_MULT_TAG] = tag_multipliers

        logger.debug(f"Resolved {len(resolved.values)} effect key(s) for day {day}")
        return resolved

    # =========================================================================
    # STRATEGIES
    # =========================================================================

    @staticmethod
    def _multiply(key: str, sources: list[EffectSource]) -> Optional[float]:
        numeric = []
        for source in sources:
            if isinstance(source.value, bool) or not isinstance(source.value, (int, float)):
                logger.warning(f"Ignoring non-numeric {key} from '{source.event_id}': {source.value!r}")
                source.applied = False
                continue
            numeric.append(source.value)
        if not numeric:
            return None
        product = 1.0
        for value in numeric:
            product *= value
        return product

    @staticmethod
    def _any_true(key: str, sources: list[EffectSource]) -> bool:
        result = any(bool(s.value) for s in sources)
        for source in sources:
            source.applied = bool(source.value) == result
        return result

    @staticmethod
    def _darkest_wins(key: str, sources: list[EffectSource]) -> Optional[LightLevel]:
        darkest: Optional[LightLevel] = None
        for source in sources:
            level = _parse_light(source.value)
            if level is None:
                logger.warning(f"Ignoring unknown light level from '{source.event_id}': {source.value!r}")
                source.applied = False
                continue
            if darkest is None or level.ordinal < darkest.ordinal:
                darkest = level
        for source in sources:
            if source.applied:
                source.applied = _parse_light(source.value) == darkest
        return darkest

    @staticmethod
    def _last_wins(key: str, sources: list[EffectSource]) -> Any:
        winner = sorted(sources, key=lambda s: (-s.priority, s.event_id))[0]
        for source in sources:
            source.applied = source is winner
        return winner.value


# =============================================================================
# CONSUMER HELPERS
# =============================================================================


def is_shop_closed(resolved: ResolvedEffects) -> bool:
    return bool(resolved.get(SHOP_CLOSED, False))


def is_restock_blocked(resolved: ResolvedEffects) -> bool:
    return bool(resolved.get(RESTOCK_BLOCK, False))


def get_applied_sources(resolved: ResolvedEffects) -> list[EffectSource]:
    return [s for s in resolved.sources if s.applied]


def get_overridden_sources(resolved: ResolvedEffects) -> list[EffectSource]:
    return [s for s in resolved.sources if not s.applied]


def effective_price_multiplier(resolved: ResolvedEffects, item_tags: Iterable[str] = ()) -> float:
    """Global multiplier times the multiplier of every tag the item carries."""
    multiplier = resolved.get(PRICE_MULT_GLOBAL, 1.0)
    tag_multipliers = resolved.price_mult_tag
    for tag in set(item_tags):
        multiplier *= tag_multipliers.get(tag, 1.0)
    return multiplier
