"""Config, parameter and scenario file loading."""

from .loader import (
    load_simulation_config,
    load_simulation,
    save_simulation_config,
    load_parameter_file,
    load_scenario_file,
)

__all__ = [
    "load_simulation_config",
    "load_simulation",
    "save_simulation_config",
    "load_parameter_file",
    "load_scenario_file",
]
