"""
JSON/YAML loaders for simulation configs, parameter files and scenario files.

Configs are returned raw; `validate_config` decides whether they are
well-formed. Parameter and scenario values are stringified so the
parameter schema owns every type coercion, whatever the file format.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Union

import yaml

from ..errors import ValidationError
from ..model import Simulation
from ..schema.validator import validate_config
from ..types import Scenario

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

JSON_SUFFIXES = ('.json',)


def _read_document(path: PathLike) -> Any:
    """Parse a JSON file by suffix; anything else is read as YAML."""
    path = Path(path)
    with open(path, 'r') as f:
        if path.suffix.lower() in JSON_SUFFIXES:
            try:
                return json.load(f)
            except json.JSONDecodeError as exc:
                raise ValidationError([f"{path}: {exc}"], "Could not parse JSON") from exc
        try:
            return yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ValidationError([f"{path}: {exc}"], "Could not parse YAML") from exc


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)


def _flat_string_map(data: Any, where: str) -> Dict[str, str]:
    if not isinstance(data, dict):
        raise ValidationError([f"{where} must be a mapping of parameter values"])
    errors = [
        f"{where}: value for '{key}' must be a scalar"
        for key, value in data.items()
        if value is None or isinstance(value, (dict, list))
    ]
    if errors:
        raise ValidationError(errors)
    return {str(key): _stringify(value) for key, value in data.items()}


# =============================================================================
# Simulation Configs
# =============================================================================

def load_simulation_config(path: PathLike) -> Any:
    """Load a simulation config as an untyped object."""
    config = _read_document(path)
    logger.debug("Loaded simulation config from %s", path)
    return config


def save_simulation_config(config: Dict[str, Any], path: PathLike) -> None:
    """
    Write a config as JSON (by suffix) or YAML.

    Raises:
        ValidationError: If the config is not valid; nothing is written
    """
    validate_config(config).raise_if_invalid()
    path = Path(path)
    with open(path, 'w') as f:
        if path.suffix.lower() in JSON_SUFFIXES:
            json.dump(config, f, indent=2)
        else:
            yaml.safe_dump(config, f, sort_keys=False, allow_unicode=True)
    logger.info("Saved simulation config to %s", path)


def load_simulation(path: PathLike) -> Simulation:
    """Load, validate and build a simulation from a config file."""
    return Simulation.from_config(load_simulation_config(path))


# =============================================================================
# Override Files
# =============================================================================

def load_parameter_file(path: PathLike) -> Dict[str, str]:
    """
    Load a flat parameter file.

    Expected format (JSON or YAML):
        {"initialInvestment": 250000, "riskFactor": 0.3}

    Returns:
        key -> value as a string
    """
    return _flat_string_map(_read_document(path), f"parameter file {path}")


def load_scenario_file(path: PathLike) -> List[Scenario]:
    """
    Load named scenario layers.

    Expected format (JSON or YAML):
        scenarios:
          conservative:
            riskFactor: 0.4
          aggressive:
            description: Fast rollout
            parameters:
              riskFactor: 0.1
            simulation: aggressive.yaml

    A scenario is either a flat parameter map or a mapping with
    `parameters` and optional `description` and `simulation`. A
    `simulation` entry (inline config, or a path relative to the scenario
    file) replaces the base simulation for that scenario.

    Raises:
        ValidationError: If the file or any scenario entry is malformed
    """
    path = Path(path)
    data = _read_document(path)
    if not isinstance(data, dict) or not isinstance(data.get('scenarios'), dict):
        raise ValidationError([f"{path}: expected a top-level 'scenarios' mapping"])

    scenarios = []
    for name, entry in data['scenarios'].items():
        where = f"scenario '{name}'"
        if isinstance(entry, dict) and isinstance(entry.get('parameters'), dict):
            variant = entry.get('simulation')
            if isinstance(variant, str):
                variant = load_simulation(path.parent / variant)
            elif variant is not None:
                variant = Simulation.from_config(variant)
            scenarios.append(Scenario(
                name=str(name),
                overrides=_flat_string_map(entry['parameters'], where),
                description=entry.get('description'),
                simulation=variant,
            ))
        else:
            scenarios.append(Scenario(
                name=str(name),
                overrides=_flat_string_map(entry or {}, where),
            ))
    logger.debug("Loaded %d scenarios from %s", len(scenarios), path)
    return scenarios
