"""
Declarative simulation config validation.

The config loader hands over an untyped object (parsed JSON/YAML); this
module is the sole authority on whether it is well-formed. Every check
runs and every violation is reported, not just the first.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Set

from ..errors import ValidationError
from ..types import PARAMETER_TYPES
from ..evaluation.business import (
    ARR_KEY, BUDGET_PERCENT_KEY, BUSINESS_CONSTANTS, BUSINESS_FUNCTIONS,
)
from ..evaluation.sandbox import compile_logic

VERSION_PATTERN = re.compile(r'^\d+\.\d+\.\d+$')
ID_PATTERN = re.compile(r'^[a-z0-9]+(?:-[a-z0-9]+)*$')

NAME_MAX_LENGTH = 100
DESCRIPTION_MIN_LENGTH = 10
DESCRIPTION_MAX_LENGTH = 500
LOGIC_MIN_LENGTH = 10
MAX_TAGS = 10
MAX_PARAMETERS = 20
MAX_OUTPUTS = 10

TOP_LEVEL_FIELDS = {
    'id', 'name', 'category', 'description', 'version', 'tags',
    'businessContext', 'parameters', 'groups', 'outputs', 'simulation',
}
REQUIRED_FIELDS = (
    'name', 'category', 'description', 'version', 'tags',
    'parameters', 'outputs', 'simulation',
)
PARAMETER_FIELDS = {'key', 'label', 'type', 'default', 'min', 'max', 'step', 'options', 'description'}
GROUP_FIELDS = {'name', 'description', 'parameters'}
OUTPUT_FIELDS = {'key', 'label', 'description'}


@dataclass
class ValidationResult:
    """Outcome of validate_config: `valid` plus every violation found."""
    valid: bool
    errors: List[str] = field(default_factory=list)

    def raise_if_invalid(self, context: str = "Invalid simulation config") -> None:
        if not self.valid:
            raise ValidationError(self.errors, context)


def validate_config(raw: Any) -> ValidationResult:
    """
    Validate a parsed simulation config.

    Checks field presence and types, numeric bound invariants on
    parameter defaults, select options, description length, version
    format, tag/parameter/output counts, duplicate keys, group
    references, and that the logic compiles in the sandbox.

    Args:
        raw: Parsed, untyped config object

    Returns:
        ValidationResult with all violations
    """
    if not isinstance(raw, dict):
        return ValidationResult(False, [f"config must be a mapping, got {type(raw).__name__}"])

    errors: List[str] = []

    unknown = sorted(set(raw) - TOP_LEVEL_FIELDS)
    if unknown:
        errors.append(f"unknown fields: {', '.join(unknown)}")
    for name in REQUIRED_FIELDS:
        if name not in raw:
            errors.append(f"missing required field '{name}'")

    _check_metadata(raw, errors)
    param_keys = _check_parameters(raw.get('parameters'), errors)
    _check_groups(raw.get('groups'), param_keys, errors)
    output_keys = _check_outputs(raw.get('outputs'), errors)
    _check_logic(raw, param_keys, output_keys, errors)

    return ValidationResult(valid=not errors, errors=errors)


# =============================================================================
# Field checks
# =============================================================================

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_text(raw: Dict[str, Any], name: str, errors: List[str],
                min_length: int = 1, max_length: int = None) -> None:
    if name not in raw:
        return
    value = raw[name]
    if not isinstance(value, str):
        errors.append(f"'{name}' must be a string")
        return
    if len(value) < min_length:
        errors.append(f"'{name}' must be at least {min_length} characters")
    if max_length is not None and len(value) > max_length:
        errors.append(f"'{name}' must be at most {max_length} characters")


def _check_metadata(raw: Dict[str, Any], errors: List[str]) -> None:
    _check_text(raw, 'name', errors, max_length=NAME_MAX_LENGTH)
    _check_text(raw, 'category', errors)
    _check_text(raw, 'description', errors, DESCRIPTION_MIN_LENGTH, DESCRIPTION_MAX_LENGTH)

    if 'id' in raw and (not isinstance(raw['id'], str) or not ID_PATTERN.match(raw['id'])):
        errors.append("'id' must be lowercase words separated by hyphens")

    version = raw.get('version')
    if 'version' in raw and (not isinstance(version, str) or not VERSION_PATTERN.match(version)):
        errors.append(f"'version' must have the form x.y.z, got {version!r}")

    if 'businessContext' in raw and not isinstance(raw['businessContext'], bool):
        errors.append("'businessContext' must be a boolean")

    if 'tags' in raw:
        tags = raw['tags']
        if not isinstance(tags, list):
            errors.append("'tags' must be a list")
        else:
            if not 1 <= len(tags) <= MAX_TAGS:
                errors.append(f"'tags' must contain between 1 and {MAX_TAGS} entries")
            if any(not isinstance(tag, str) or not tag for tag in tags):
                errors.append("'tags' entries must be non-empty strings")


def _check_parameters(parameters: Any, errors: List[str]) -> Set[str]:
    keys: Set[str] = set()
    if parameters is None:
        return keys
    if not isinstance(parameters, list):
        errors.append("'parameters' must be a list")
        return keys
    if not 1 <= len(parameters) <= MAX_PARAMETERS:
        errors.append(f"'parameters' must contain between 1 and {MAX_PARAMETERS} entries")

    duplicates = []
    for index, param in enumerate(parameters):
        where = f"parameters[{index}]"
        if not isinstance(param, dict):
            errors.append(f"{where} must be a mapping")
            continue
        key = param.get('key')
        if isinstance(key, str) and key:
            where = f"parameter '{key}'"
            if key in keys:
                duplicates.append(key)
            keys.add(key)
        else:
            errors.append(f"{where}: 'key' must be a non-empty string")
        _check_parameter(param, where, errors)

    if duplicates:
        errors.append(f"Duplicate parameter keys: {', '.join(duplicates)}")
    return keys


def _check_parameter(param: Dict[str, Any], where: str, errors: List[str]) -> None:
    extra = sorted(set(param) - PARAMETER_FIELDS)
    if extra:
        errors.append(f"{where}: unknown fields: {', '.join(extra)}")
    if not isinstance(param.get('label'), str) or not param.get('label'):
        errors.append(f"{where}: 'label' must be a non-empty string")
    if 'description' in param and not isinstance(param['description'], str):
        errors.append(f"{where}: 'description' must be a string")
    for bound in ('min', 'max', 'step'):
        if param.get(bound) is not None and not _is_number(param[bound]):
            errors.append(f"{where}: '{bound}' must be a number")

    ptype = param.get('type')
    if ptype not in PARAMETER_TYPES:
        errors.append(f"{where}: 'type' must be one of {', '.join(PARAMETER_TYPES)}")
        return
    if 'default' not in param:
        errors.append(f"{where}: missing 'default'")
        return
    default = param['default']

    if ptype == 'number':
        if not _is_number(default):
            errors.append(f"{where}: default must be a number")
            return
        lo, hi, step = param.get('min'), param.get('max'), param.get('step')
        if _is_number(lo) and _is_number(hi) and lo > hi:
            errors.append(f"{where}: min ({lo}) is greater than max ({hi})")
        if _is_number(lo) and default < lo:
            errors.append(f"{where}: default {default} is below minimum {lo}")
        if _is_number(hi) and default > hi:
            errors.append(f"{where}: default {default} is above maximum {hi}")
        if _is_number(step) and step <= 0:
            errors.append(f"{where}: step must be positive")
    elif ptype == 'boolean':
        if not isinstance(default, bool):
            errors.append(f"{where}: default must be a boolean")
    elif ptype == 'string':
        if not isinstance(default, str):
            errors.append(f"{where}: default must be a string")
    elif ptype == 'select':
        options = param.get('options')
        if not isinstance(options, list) or not options:
            errors.append(f"{where}: select parameters must have options")
        elif any(not isinstance(option, str) for option in options):
            errors.append(f"{where}: options must be strings")
        elif str(default) not in options:
            errors.append(f"{where}: default must be one of the options")


def _check_groups(groups: Any, param_keys: Set[str], errors: List[str]) -> None:
    if groups is None:
        return
    if not isinstance(groups, list):
        errors.append("'groups' must be a list")
        return
    for index, group in enumerate(groups):
        if not isinstance(group, dict):
            errors.append(f"groups[{index}] must be a mapping")
            continue
        name = group.get('name')
        if not isinstance(name, str) or not name:
            errors.append(f"groups[{index}]: 'name' must be a non-empty string")
            name = f"#{index}"
        extra = sorted(set(group) - GROUP_FIELDS)
        if extra:
            errors.append(f"group '{name}': unknown fields: {', '.join(extra)}")
        members = group.get('parameters')
        if not isinstance(members, list) or not members:
            errors.append(f"group '{name}': 'parameters' must be a non-empty list")
            continue
        for member in members:
            if member not in param_keys:
                errors.append(f"Group '{name}' references non-existent parameter '{member}'")


def _check_outputs(outputs: Any, errors: List[str]) -> List[str]:
    keys: List[str] = []
    if outputs is None:
        return keys
    if not isinstance(outputs, list):
        errors.append("'outputs' must be a list")
        return keys
    if not 1 <= len(outputs) <= MAX_OUTPUTS:
        errors.append(f"'outputs' must contain between 1 and {MAX_OUTPUTS} entries")
    for index, output in enumerate(outputs):
        if not isinstance(output, dict):
            errors.append(f"outputs[{index}] must be a mapping")
            continue
        key = output.get('key')
        if not isinstance(key, str) or not key:
            errors.append(f"outputs[{index}]: 'key' must be a non-empty string")
            continue
        if key in keys:
            errors.append(f"Duplicate output keys: {key}")
        keys.append(key)
        if not isinstance(output.get('label'), str) or not output.get('label'):
            errors.append(f"output '{key}': 'label' must be a non-empty string")
        extra = sorted(set(output) - OUTPUT_FIELDS)
        if extra:
            errors.append(f"output '{key}': unknown fields: {', '.join(extra)}")
    return keys


def _check_logic(raw: Dict[str, Any], param_keys: Set[str],
                 output_keys: List[str], errors: List[str]) -> None:
    simulation = raw.get('simulation')
    if simulation is None:
        return
    if not isinstance(simulation, dict) or set(simulation) != {'logic'}:
        errors.append("'simulation' must be a mapping with a single 'logic' field")
        return
    logic = simulation['logic']
    if not isinstance(logic, str) or len(logic.strip()) < LOGIC_MIN_LENGTH:
        errors.append(f"simulation logic must be at least {LOGIC_MIN_LENGTH} characters")
        return
    if output_keys and not any(key in logic for key in output_keys):
        errors.append("Simulation logic should return at least one of the defined outputs")

    names = set(param_keys)
    extra_functions = ()
    if raw.get('businessContext') is True:
        names.update((ARR_KEY, BUDGET_PERCENT_KEY))
        names.update(BUSINESS_CONSTANTS)
        extra_functions = BUSINESS_FUNCTIONS.keys()
    try:
        compile_logic(logic, names=names, extra_functions=extra_functions)
    except ValidationError as exc:
        errors.extend(exc.errors)
