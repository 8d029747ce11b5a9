"""
Engine configuration.

EngineConfig is built once by the caller and passed to the components that
need it. There is no module-level cached instance; two engines with different
configurations can coexist in one process.
"""

from dataclasses import dataclass
from typing import Any, Optional

CURRENT_SCHEMA_VERSION = 1


@dataclass(frozen=True)
class DurationUnitConfig:
    """Unit sizes used when converting duration notation to minutes."""
    minutes_per_hour: int = 60
    hours_per_day: int = 24
    days_per_week: int = 7
    days_per_month: float = 30
    days_per_year: int = 365

    @property
    def minutes_per_day(self) -> int:
        return self.minutes_per_hour * self.hours_per_day

    def unit_minutes(self, unit: str) -> float:
        """
        Minutes in one of the given unit.

        Accepts singular or plural unit names ("day", "days").
        """
        base = unit.lower().rstrip("s")
        per_day = self.minutes_per_day
        sizes = {
            "minute": 1,
            "hour": self.minutes_per_hour,
            "day": per_day,
            "week": per_day * self.days_per_week,
            "month": per_day * self.days_per_month,
            "year": per_day * self.days_per_year,
        }
        if base not in sizes:
            raise KeyError(unit)
        return sizes[base]

    def to_dict(self) -> dict[str, Any]:
        return {
            "minutes_per_hour": self.minutes_per_hour,
            "hours_per_day": self.hours_per_day,
            "days_per_week": self.days_per_week,
            "days_per_month": self.days_per_month,
            "days_per_year": self.days_per_year,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DurationUnitConfig":
        return cls(
            minutes_per_hour=data.get("minutes_per_hour", 60),
            hours_per_day=data.get("hours_per_day", 24),
            days_per_week=data.get("days_per_week", 7),
            days_per_month=data.get("days_per_month", 30),
            days_per_year=data.get("days_per_year", 365),
        )


@dataclass
class EngineConfig:
    """Tunables for the calendar and event engine."""

    # Solar model
    twilight_minutes: int = 30
    default_sunrise: int = 360  # 06:00
    default_sunset: int = 1080  # 18:00

    # Duration notation unit sizes used by chain events; None derives them
    # from the calendar (week length, average month, year length)
    duration_units: Optional[DurationUnitConfig] = None

    # Persistence
    schema_version: int = CURRENT_SCHEMA_VERSION

    # When True, querying a chain event before its persisted checkpoint raises
    # ChainCheckpointError; when False the chain is left out of the result.
    strict_checkpoints: bool = True

    def __post_init__(self):
        if self.twilight_minutes < 0:
            raise ValueError(f"twilight_minutes must be >= 0, got {self.twilight_minutes}")
        for label, value in (("default_sunrise", self.default_sunrise),
                             ("default_sunset", self.default_sunset)):
            if not 0 <= value <= 1439:
                raise ValueError(f"{label} must be within 0-1439, got {value}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "twilight_minutes": self.twilight_minutes,
            "default_sunrise": self.default_sunrise,
            "default_sunset": self.default_sunset,
            "duration_units": self.duration_units.to_dict() if self.duration_units else None,
            "schema_version": self.schema_version,
            "strict_checkpoints": self.strict_checkpoints,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EngineConfig":
        return cls(
            twilight_minutes=data.get("twilight_minutes", 30),
            default_sunrise=data.get("default_sunrise", 360),
            default_sunset=data.get("default_sunset", 1080),
            duration_units=(
                DurationUnitConfig.from_dict(data["duration_units"])
                if data.get("duration_units") else None
            ),
            schema_version=data.get("schema_version", CURRENT_SCHEMA_VERSION),
            strict_checkpoints=data.get("strict_checkpoints", True),
        )
