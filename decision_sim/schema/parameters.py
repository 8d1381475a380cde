"""
Parameter schema: definitions, groups, coercion and override checks.

Override sources (CLI flags, parameter files, scenario files) hand the
schema flat string maps; the schema owns every type coercion. Numeric
values outside [min, max] are rejected, never clamped.
"""

import math
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..errors import OverrideError, ValidationError
from ..types import ParameterDefinition, ParameterGroup

# Absolute tolerance for the step grid check
STEP_TOLERANCE = 1e-4

_TRUE_STRINGS = ('true',)
_FALSE_STRINGS = ('false',)


class ParameterSchema:
    """
    A simulation's parameter definitions and groups.

    Args:
        definitions: Parameter definitions; keys must be unique
        groups: Optional groups; every referenced key must exist

    Raises:
        ValidationError: On duplicate keys or groups referencing unknown keys
    """

    def __init__(
        self,
        definitions: Iterable[ParameterDefinition],
        groups: Iterable[ParameterGroup] = (),
    ):
        self._definitions: Dict[str, ParameterDefinition] = {}
        duplicates = []
        for definition in definitions:
            if definition.key in self._definitions:
                duplicates.append(definition.key)
            self._definitions[definition.key] = definition
        if duplicates:
            raise ValidationError([f"Duplicate parameter keys: {', '.join(duplicates)}"])

        self._groups: List[ParameterGroup] = []
        for group in groups:
            self.add_group(group)

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def keys(self) -> List[str]:
        return list(self._definitions.keys())

    @property
    def definitions(self) -> List[ParameterDefinition]:
        return list(self._definitions.values())

    @property
    def groups(self) -> List[ParameterGroup]:
        return list(self._groups)

    def get(self, key: str) -> Optional[ParameterDefinition]:
        return self._definitions.get(key)

    def __contains__(self, key: str) -> bool:
        return key in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)

    def add_group(self, group: ParameterGroup) -> None:
        """
        Raises:
            ValidationError: If the group references keys outside the schema
        """
        missing = [key for key in group.parameters if key not in self._definitions]
        if missing:
            raise ValidationError([
                f"Parameter '{key}' in group '{group.name}' does not exist"
                for key in missing
            ])
        self._groups.append(group)

    # -------------------------------------------------------------------------
    # Validation of typed values
    # -------------------------------------------------------------------------

    def validate_parameter(self, key: str, value: Any) -> List[str]:
        """
        Check one typed value against its definition.

        Returns:
            List of error messages (empty when valid)
        """
        definition = self._definitions.get(key)
        if definition is None:
            return [f"Unknown parameter: {key}"]
        if value is None:
            return [f"Parameter '{definition.label}' is required"]

        errors: List[str] = []
        if definition.type == 'number':
            if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
                errors.append(f"Parameter '{definition.label}' must be a number")
            else:
                errors.extend(_bound_errors(definition, value))
        elif definition.type == 'boolean':
            if not isinstance(value, bool):
                errors.append(f"Parameter '{definition.label}' must be a boolean")
        elif definition.type == 'select':
            if not definition.options:
                errors.append(f"Parameter '{definition.label}' has no options defined")
            elif str(value) not in definition.options:
                errors.append(
                    f"Parameter '{definition.label}' must be one of: "
                    f"{', '.join(definition.options)}"
                )
        elif definition.type == 'string':
            if not isinstance(value, str):
                errors.append(f"Parameter '{definition.label}' must be a string")
        else:
            errors.append(f"Unknown parameter type: {definition.type}")
        return errors

    def validate_parameters(self, values: Mapping[str, Any]) -> List[str]:
        """Check a full binding: every value valid, no parameter missing."""
        errors: List[str] = []
        for key, value in values.items():
            errors.extend(self.validate_parameter(key, value))
        for definition in self._definitions.values():
            if definition.key not in values:
                errors.append(f"Missing required parameter: {definition.label}")
        return errors

    # -------------------------------------------------------------------------
    # Overrides
    # -------------------------------------------------------------------------

    def coerce(self, key: str, raw: Any) -> Any:
        """
        Coerce one raw override value to the declared type.

        Raises:
            ValueError: If the text cannot be read as the declared type
        """
        definition = self._definitions[key]
        text = str(raw).strip()
        if definition.type == 'number':
            return _parse_number(text)
        if definition.type == 'boolean':
            lowered = text.lower()
            if lowered in _TRUE_STRINGS:
                return True
            if lowered in _FALSE_STRINGS:
                return False
            raise ValueError(f"expected 'true' or 'false', got '{text}'")
        if definition.type == 'select':
            return text
        return str(raw)

    def normalize_overrides(self, overrides: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Coerce and check a flat override map.

        Args:
            overrides: key -> raw value (normally strings)

        Returns:
            key -> typed value, only for keys present in `overrides`

        Raises:
            OverrideError: With every unknown key, unparseable value,
                out-of-range number or invalid select option
        """
        errors: List[str] = []
        normalized: Dict[str, Any] = {}
        for key, raw in overrides.items():
            if key not in self._definitions:
                errors.append(f"unknown key '{key}'")
                continue
            try:
                value = self.coerce(key, raw)
            except ValueError as exc:
                errors.append(f"'{key}': {exc}")
                continue
            problems = self.validate_parameter(key, value)
            if problems:
                errors.extend(f"'{key}' = {raw!r}: {problem}" for problem in problems)
                continue
            normalized[key] = value
        if errors:
            raise OverrideError(errors)
        return normalized

    def defaults(self) -> Dict[str, Any]:
        return {key: d.default for key, d in self._definitions.items()}

    def merge_defaults(self, overrides: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Defaults for every parameter, replaced by already-normalized overrides.

        The result has exactly the schema's keys.

        Raises:
            OverrideError: If `overrides` names a key outside the schema
        """
        unknown = [key for key in overrides if key not in self._definitions]
        if unknown:
            raise OverrideError([f"unknown key '{key}'" for key in unknown])
        merged = self.defaults()
        merged.update(overrides)
        return merged

    # -------------------------------------------------------------------------
    # Presentation
    # -------------------------------------------------------------------------

    def ui_schema(self) -> Dict[str, List[Dict[str, Any]]]:
        """Grouped and ungrouped field descriptions for listings and forms."""
        grouped_keys = set()
        groups = []
        for group in self._groups:
            grouped_keys.update(group.parameters)
            groups.append({
                'name': group.name,
                'description': group.description,
                'fields': [_field(self._definitions[key]) for key in group.parameters],
            })
        ungrouped = [
            _field(d) for key, d in self._definitions.items() if key not in grouped_keys
        ]
        return {'groups': groups, 'ungrouped': ungrouped}


def _parse_number(text: str) -> Any:
    try:
        return int(text)
    except ValueError:
        pass
    try:
        value = float(text)
    except ValueError:
        raise ValueError(f"expected a number, got '{text}'") from None
    if not math.isfinite(value):
        raise ValueError(f"expected a finite number, got '{text}'")
    return value


def _bound_errors(definition: ParameterDefinition, value: float) -> List[str]:
    errors = []
    if definition.min is not None and value < definition.min:
        errors.append(f"Parameter '{definition.label}' must be >= {definition.min}")
    if definition.max is not None and value > definition.max:
        errors.append(f"Parameter '{definition.label}' must be <= {definition.max}")
    if definition.step and definition.min is not None:
        steps = round((value - definition.min) / definition.step)
        expected = definition.min + steps * definition.step
        if abs(value - expected) > STEP_TOLERANCE:
            errors.append(f"Parameter '{definition.label}' must be in steps of {definition.step}")
    return errors


def _field(definition: ParameterDefinition) -> Dict[str, Any]:
    constraints = {
        name: getattr(definition, name)
        for name in ('min', 'max', 'step')
        if getattr(definition, name) is not None
    }
    return {
        'key': definition.key,
        'label': definition.label,
        'type': definition.type,
        'default': definition.default,
        'constraints': constraints or None,
        'options': list(definition.options) if definition.options is not None else None,
        'description': definition.description,
    }
