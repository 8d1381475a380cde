"""
Override layering.

Final bindings are built from four layers, lowest precedence first:
schema defaults, scenario overrides, parameter-file overrides, explicit
single-parameter overrides. Each layer is coerced and checked on its own
before the merge; a key set in several layers takes the highest layer's
value.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..errors import OverrideError
from ..schema.parameters import ParameterSchema
from ..types import Scenario


def resolve_bindings(
    schema: ParameterSchema,
    scenario: Optional[Scenario] = None,
    parameter_file: Optional[Mapping[str, Any]] = None,
    explicit: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Merge override layers over the schema defaults.

    Args:
        schema: Parameter schema of the simulation being run
        scenario: Named scenario layer
        parameter_file: Flat map from an external parameter file
        explicit: Single-parameter overrides (e.g. `--set k=v`)

    Returns:
        Value for every schema key

    Raises:
        OverrideError: With the problems of every layer, labelled by layer
    """
    layers = []
    if scenario is not None:
        layers.append((f"scenario '{scenario.name}'", scenario.overrides))
    if parameter_file:
        layers.append(("parameter file", parameter_file))
    if explicit:
        layers.append(("override", explicit))

    errors: List[str] = []
    merged: Dict[str, Any] = {}
    for label, overrides in layers:
        try:
            merged.update(schema.normalize_overrides(overrides))
        except OverrideError as exc:
            errors.extend(f"{label}: {message}" for message in exc.errors)
    if errors:
        raise OverrideError(errors)
    return schema.merge_defaults(merged)


def parse_override_assignments(assignments: Iterable[str]) -> Dict[str, str]:
    """
    Parse `key=value` strings into a flat override map.

    Later assignments to the same key win.

    Raises:
        OverrideError: With every malformed assignment
    """
    overrides: Dict[str, str] = {}
    errors: List[str] = []
    for assignment in assignments:
        key, sep, value = assignment.partition('=')
        key = key.strip()
        if not sep or not key:
            errors.append(f"expected key=value, got '{assignment}'")
            continue
        overrides[key] = value.strip()
    if errors:
        raise OverrideError(errors)
    return overrides
