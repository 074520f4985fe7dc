"""Persisted simulation settings blob.

The dashboard keeps a small settings document (speed, donor count, enabled
activity categories, realism, auto-save) between sessions.  This module
validates it, converts it to the shape the simulation backend expects, and
loads/saves it atomically.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

SPEED_PRESETS: dict[str, int] = {"slow": 1, "normal": 5, "fast": 10}
REALISM_PRESETS: dict[str, float] = {"low": 0.3, "medium": 0.5, "high": 0.8}

# Lower-case category names accepted from older settings blobs.
_CATEGORY_NAMES: dict[str, str] = {
    "donations": "DONATION",
    "communications": "COMMUNICATION",
    "profile_updates": "PROFILE_UPDATE",
    "meetings": "MEETING",
    "tasks": "TASK",
}

ActivityCategory = Literal["DONATION", "COMMUNICATION", "PROFILE_UPDATE", "MEETING", "TASK"]


class ActivityToggle(BaseModel):
    """One donor-event category and whether the simulation should emit it."""

    type: ActivityCategory
    enabled: bool = True


def _default_activity_types() -> list[ActivityToggle]:
    return [
        ActivityToggle(type="DONATION", enabled=True),
        ActivityToggle(type="COMMUNICATION", enabled=True),
        ActivityToggle(type="MEETING", enabled=True),
        ActivityToggle(type="TASK", enabled=False),
    ]


class SimulationSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    speed: Union[int, Literal["slow", "normal", "fast"]] = 5
    donor_count: int = Field(default=20, ge=1, le=1000, alias="donorCount")
    activity_types: list[ActivityToggle] = Field(
        default_factory=_default_activity_types, alias="activityTypes"
    )
    realism: Union[float, Literal["low", "medium", "high"]] = 0.7
    auto_generate: bool = Field(default=True, alias="autoGenerate")
    auto_save: bool = Field(default=False, alias="autoSave")

    @field_validator("speed")
    @classmethod
    def _check_speed(cls, v: int | str) -> int | str:
        if isinstance(v, int) and not 1 <= v <= 10:
            raise ValueError(f"speed must be 1-10, got {v}")
        return v

    @field_validator("realism")
    @classmethod
    def _check_realism(cls, v: float | str) -> float | str:
        if isinstance(v, float) and not 0.0 <= v <= 1.0:
            raise ValueError(f"realism must be 0-1, got {v}")
        return v

    @field_validator("activity_types", mode="before")
    @classmethod
    def _accept_plain_names(cls, v: Any) -> Any:
        if isinstance(v, list) and v and all(isinstance(item, str) for item in v):
            chosen = {_CATEGORY_NAMES.get(name.lower(), name.upper()) for name in v}
            labels = ["DONATION", "COMMUNICATION", "MEETING", "TASK"]
            if "PROFILE_UPDATE" in chosen:
                labels.insert(2, "PROFILE_UPDATE")
            return [{"type": label, "enabled": label in chosen} for label in labels]
        return v

    # -- backend conversion ---------------------------------------------------

    @property
    def speed_value(self) -> int:
        if isinstance(self.speed, str):
            return SPEED_PRESETS[self.speed]
        return self.speed

    @property
    def realism_value(self) -> float:
        if isinstance(self.realism, str):
            return REALISM_PRESETS[self.realism]
        return float(self.realism)

    @property
    def enabled_categories(self) -> list[str]:
        return [t.type for t in self.activity_types if t.enabled]

    def to_backend(self, org_id: str | None = None) -> dict[str, Any]:
        """Return the parameter dict passed to ``startSimulation``."""
        return {
            "donorLimit": self.donor_count,
            "speed": self.speed_value,
            "activityTypes": [t.model_dump() for t in self.activity_types],
            "realism": self.realism_value,
            "organizationId": org_id,
        }

    def to_blob(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def load_simulation_settings(path: str | Path) -> SimulationSettings:
    """Restore the settings blob, falling back to defaults when unusable."""
    path = Path(path)
    if not path.exists():
        return SimulationSettings()
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        return SimulationSettings.model_validate(raw)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as exc:
        logger.error("Failed to parse saved simulation settings at %s: %s", path, exc)
        return SimulationSettings()


def save_simulation_settings(sim_settings: SimulationSettings, path: str | Path) -> None:
    """Atomically write the settings blob (temp file, then rename)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    tmp.write_text(json.dumps(sim_settings.to_blob(), indent=2) + "\n", encoding="utf-8")
    tmp.replace(path)
    logger.info("Saved simulation settings to %s", path)
