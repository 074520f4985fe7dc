"""DonorConnect configuration -- process settings and the simulation settings blob."""

from .settings import Settings, settings
from .simulation_settings import (
    REALISM_PRESETS,
    SPEED_PRESETS,
    ActivityToggle,
    SimulationSettings,
    load_simulation_settings,
    save_simulation_settings,
)

__all__ = [
    "REALISM_PRESETS",
    "SPEED_PRESETS",
    "ActivityToggle",
    "Settings",
    "SimulationSettings",
    "load_simulation_settings",
    "save_simulation_settings",
    "settings",
]
