"""
Persisted world state.

WorldState is the durable on-disk contract of the engine:

    {
      "clock": {"currentDay": ..., "timeOfDay": ...},
      "chainStates": {eventId: ChainStateVector},
      "overrides": [GMOverride],
      "moduleToggles": {module: bool},
      "version": 1,
      "activeCalendarId": "..."
    }

version gates every schema migration. Older versions are migrated forward
on load; versions newer than this code understands are rejected.
"""

import copy
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional, Union

from campaign_calendar.config import CURRENT_SCHEMA_VERSION
from campaign_calendar.data_models import CalendarClock
from campaign_calendar.events.chain_state_machine import ChainStateVector
from campaign_calendar.events.overrides import GMOverride

logger = logging.getLogger(__name__)


class WorldStateVersionError(Exception):
    """Persisted world state has a schema version this code cannot read."""

    def __init__(self, version: Any, supported: int = CURRENT_SCHEMA_VERSION):
        self.version = version
        self.supported = supported
        super().__init__(
            f"Unsupported world state version {version!r} (this engine reads up to {supported})"
        )


def _migrate_v0_to_v1(data: dict[str, Any]) -> dict[str, Any]:
    """
    Version 0 is the flat calendar-state record:
    {currentDay, timeOfDay?, activeCalendarId}.
    """
    return {
        "clock": {
            "currentDay": data.get("currentDay", 0),
            "timeOfDay": data.get("timeOfDay", 0),
        },
        "chainStates": data.get("chainStates", {}),
        "overrides": data.get("overrides", []),
        "moduleToggles": data.get("moduleToggles", {}),
        "version": 1,
        "activeCalendarId": data.get("activeCalendarId", ""),
    }


# from_version -> migration producing from_version + 1
MIGRATIONS: dict[int, Callable[[dict[str, Any]], dict[str, Any]]] = {
    0: _migrate_v0_to_v1,
}


def migrate_world_state(data: dict[str, Any]) -> dict[str, Any]:
    """
    Bring a raw world state record up to the current schema version.

    Records without a version are treated as version 0.

    Raises:
        WorldStateVersionError: If the version is unknown or newer than
            CURRENT_SCHEMA_VERSION
    """
    version = data.get("version", 0)
    if not isinstance(version, int) or isinstance(version, bool) or version < 0:
        raise WorldStateVersionError(version)
    if version > CURRENT_SCHEMA_VERSION:
        raise WorldStateVersionError(version)

    migrated = copy.deepcopy(data)
    while version < CURRENT_SCHEMA_VERSION:
        migration = MIGRATIONS.get(version)
        if migration is None:
            raise WorldStateVersionError(version)
        migrated = migration(migrated)
        logger.info(f"Migrated world state from version {version} to {migrated['version']}")
        version = migrated["version"]
    return migrated


@dataclass
class WorldState:
    """Everything the engine needs to resume a campaign."""
    clock: CalendarClock = field(default_factory=CalendarClock)
    chain_states: dict[str, ChainStateVector] = field(default_factory=dict)
    overrides: list[GMOverride] = field(default_factory=list)
    module_toggles: dict[str, bool] = field(default_factory=dict)
    version: int = CURRENT_SCHEMA_VERSION
    active_calendar_id: str = ""
    last_saved: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "clock": self.clock.to_dict(),
            "chainStates": {k: v.to_dict() for k, v in self.chain_states.items()},
            "overrides": [o.to_dict() for o in self.overrides],
            "moduleToggles": dict(self.module_toggles),
            "version": self.version,
            "activeCalendarId": self.active_calendar_id,
        }
        if self.last_saved:
            data["lastSaved"] = self.last_saved
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WorldState":
        data = migrate_world_state(data)
        return cls(
            clock=CalendarClock.from_dict(data.get("clock", {})),
            chain_states={
                event_id: ChainStateVector.from_dict(vector)
                for event_id, vector in data.get("chainStates", {}).items()
            },
            overrides=[GMOverride.from_dict(o) for o in data.get("overrides", [])],
            module_toggles={k: bool(v) for k, v in data.get("moduleToggles", {}).items()},
            version=data["version"],
            active_calendar_id=data.get("activeCalendarId", ""),
            last_saved=data.get("lastSaved"),
        )


def save_world_state(state: WorldState, filepath: Union[Path, str]) -> Path:
    """Write a world state to a JSON file, stamping last_saved."""
    filepath = Path(filepath)
    state.last_saved = datetime.now().isoformat()
    filepath.parent.mkdir(parents=True, exist_ok=True)
    with open(filepath, "w", encoding="utf-8") as f:
        json.dump(state.to_dict(), f, indent=2, ensure_ascii=False)
    logger.info(f"Saved world state to: {filepath}")
    return filepath


def load_world_state(filepath: Union[Path, str]) -> WorldState:
    """
    Read a world state from a JSON file.

    Raises:
        FileNotFoundError: If the file does not exist
        WorldStateVersionError: If the schema version is unsupported
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"World state file not found: {filepath}")
    with open(filepath, "r", encoding="utf-8") as f:
        data = json.load(f)
    state = WorldState.from_dict(data)
    logger.info(f"Loaded world state for calendar '{state.active_calendar_id}' at day {state.clock.current_day}")
    return state
