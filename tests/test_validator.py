"""Tests for declarative config validation."""

import pytest

from decision_sim.config import generate_config_template
from decision_sim.errors import ValidationError
from decision_sim.schema import validate_config


def _errors(config):
    result = validate_config(config)
    assert not result.valid
    return "\n".join(result.errors)


class TestValidConfigs:
    """Tests for configs that should pass."""

    def test_single_parameter_config(self, single_parameter_config):
        """The minimal fixture config is valid."""
        result = validate_config(single_parameter_config)
        assert result.valid, result.errors
        assert result.errors == []

    def test_template_is_valid(self):
        """The starter template validates."""
        assert validate_config(generate_config_template()).valid

    def test_business_context_names_are_known(self, single_parameter_config):
        """Logic may read ARR constants when business context is on."""
        single_parameter_config['businessContext'] = True
        single_parameter_config['simulation']['logic'] = (
            "return {y: x + monthly_budget * 0 + calculate_roi(100, 150)}"
        )
        assert validate_config(single_parameter_config).valid


class TestInvalidConfigs:
    """Tests for rejected configs."""

    def test_not_a_mapping(self):
        """A list is rejected outright."""
        result = validate_config([1, 2])
        assert not result.valid

    def test_default_out_of_bounds(self, single_parameter_config):
        """min <= default <= max is enforced."""
        single_parameter_config['parameters'][0]['default'] = 2000
        assert "above maximum 1000" in _errors(single_parameter_config)

    def test_default_below_minimum(self, single_parameter_config):
        """A default below min is rejected."""
        single_parameter_config['parameters'][0]['default'] = -1
        assert "below minimum 0" in _errors(single_parameter_config)

    def test_errors_accumulate(self, single_parameter_config):
        """Every violation is reported, not just the first."""
        single_parameter_config['version'] = '1.0'
        single_parameter_config['description'] = 'short'
        single_parameter_config['tags'] = []
        result = validate_config(single_parameter_config)
        assert not result.valid
        assert len(result.errors) >= 3

    def test_missing_fields(self):
        """Each missing required field is named."""
        text = _errors({'name': 'Only a name'})
        for field in ('category', 'description', 'version', 'tags', 'parameters', 'outputs'):
            assert f"'{field}'" in text

    def test_unknown_top_level_field(self, single_parameter_config):
        """Unknown fields are rejected."""
        single_parameter_config['extra'] = 1
        assert "unknown fields: extra" in _errors(single_parameter_config)

    def test_select_default_not_in_options(self, single_parameter_config):
        """A select default must be one of its options."""
        single_parameter_config['parameters'].append({
            'key': 'tier', 'label': 'Tier', 'type': 'select',
            'default': 'gold', 'options': ['basic', 'pro'],
        })
        assert "default must be one of the options" in _errors(single_parameter_config)

    def test_select_without_options(self, single_parameter_config):
        """A select parameter needs options."""
        single_parameter_config['parameters'].append({
            'key': 'tier', 'label': 'Tier', 'type': 'select', 'default': 'gold',
        })
        assert "must have options" in _errors(single_parameter_config)

    def test_duplicate_parameter_keys(self, single_parameter_config):
        """Parameter keys must be unique."""
        single_parameter_config['parameters'].append(
            dict(single_parameter_config['parameters'][0])
        )
        assert "Duplicate parameter keys: x" in _errors(single_parameter_config)

    def test_group_references_unknown_parameter(self, single_parameter_config):
        """Groups may only list defined parameters."""
        single_parameter_config['groups'] = [{'name': 'G', 'parameters': ['x', 'missing']}]
        assert "non-existent parameter 'missing'" in _errors(single_parameter_config)

    def test_logic_too_short(self, single_parameter_config):
        """Logic shorter than 10 characters is rejected."""
        single_parameter_config['simulation']['logic'] = "return 1"
        assert "at least 10 characters" in _errors(single_parameter_config)

    def test_logic_without_return(self, single_parameter_config):
        """Logic must return its outputs."""
        single_parameter_config['simulation']['logic'] = "y = x * random()"
        assert "return statement" in _errors(single_parameter_config)

    def test_return_only_in_comment(self, single_parameter_config):
        """A commented-out return does not count."""
        single_parameter_config['simulation']['logic'] = "y = x * random()  # return {y: y}"
        assert "return statement" in _errors(single_parameter_config)

    def test_deeply_nested_logic_reported(self, single_parameter_config):
        """Logic too deep to parse is an error in the result, not an exception."""
        single_parameter_config['simulation']['logic'] = (
            "return {y: " + "+".join(["x"] * 3000) + "}"
        )
        assert "nested too deeply" in _errors(single_parameter_config)

    def test_logic_not_referencing_outputs(self, single_parameter_config):
        """Logic must mention a declared output key."""
        single_parameter_config['simulation']['logic'] = "return {z: x * random()}"
        assert "at least one of the defined outputs" in _errors(single_parameter_config)

    def test_logic_compile_errors_reported(self, single_parameter_config):
        """Forbidden constructs in logic surface as validation errors."""
        single_parameter_config['simulation']['logic'] = "import os\nreturn {y: x}"
        assert "line 1" in _errors(single_parameter_config)

    def test_logic_unknown_name(self, single_parameter_config):
        """Reading an undefined name is rejected."""
        single_parameter_config['simulation']['logic'] = "return {y: x * missing}"
        assert "unknown name 'missing'" in _errors(single_parameter_config)

    def test_too_many_tags(self, single_parameter_config):
        """At most 10 tags."""
        single_parameter_config['tags'] = [f"t{i}" for i in range(11)]
        assert "between 1 and 10" in _errors(single_parameter_config)


class TestValidationResult:
    """Tests for ValidationResult.raise_if_invalid."""

    def test_raises_with_all_errors(self, single_parameter_config):
        """The raised error carries the full error list."""
        single_parameter_config['version'] = 'v1'
        single_parameter_config['tags'] = []
        result = validate_config(single_parameter_config)
        with pytest.raises(ValidationError) as info:
            result.raise_if_invalid()
        assert info.value.errors == result.errors

    def test_valid_does_not_raise(self, single_parameter_config):
        """A valid result is silent."""
        validate_config(single_parameter_config).raise_if_invalid()
