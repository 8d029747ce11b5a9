"""
Game state: the persisted world record and the controller that owns it.
"""

from campaign_calendar.game_state.world_state import (
    WorldState,
    WorldStateVersionError,
    migrate_world_state,
    save_world_state,
    load_world_state,
)
from campaign_calendar.game_state.world_controller import WorldController

__all__ = [
    "WorldState",
    "WorldStateVersionError",
    "migrate_world_state",
    "save_world_state",
    "load_world_state",
    "WorldController",
]
