"""
Effect resolution: combines active events' effects into one authoritative
ResolvedEffects with per-key provenance.
"""

from campaign_calendar.effects.effect_resolver import (
    EffectStrategy,
    EffectSource,
    ResolvedEffects,
    EffectResolver,
    strategy_for_key,
    is_shop_closed,
    is_restock_blocked,
    get_applied_sources,
    get_overridden_sources,
    effective_price_multiplier,
)

__all__ = [
    "EffectStrategy",
    "EffectSource",
    "ResolvedEffects",
    "EffectResolver",
    "strategy_for_key",
    "is_shop_closed",
    "is_restock_blocked",
    "get_applied_sources",
    "get_overridden_sources",
    "effective_price_multiplier",
]
