"""Tests for ParameterSchema coercion, validation and merging."""

import pytest

from decision_sim.errors import OverrideError, ValidationError
from decision_sim.schema import ParameterSchema
from decision_sim.types import ParameterDefinition, ParameterGroup


class TestSchemaConstruction:
    """Tests for building a schema."""

    def test_duplicate_keys_rejected(self):
        """Two definitions with the same key raise."""
        definition = ParameterDefinition(key='a', label='A', type='number', default=1)
        with pytest.raises(ValidationError, match="Duplicate parameter keys: a"):
            ParameterSchema([definition, definition])

    def test_group_with_unknown_key_rejected(self, schema):
        """add_group refuses keys outside the schema."""
        with pytest.raises(ValidationError, match="'missing' in group 'Bad'"):
            schema.add_group(ParameterGroup(name='Bad', parameters=('budget', 'missing')))

    def test_accessors(self, schema):
        """Keys keep declaration order."""
        assert schema.keys == ['budget', 'rate', 'enabled', 'tier', 'note']
        assert 'rate' in schema
        assert len(schema) == 5
        assert schema.get('nope') is None


class TestNormalizeOverrides:
    """Tests for coercing flat string overrides."""

    def test_number_coercion(self, schema):
        """'123' becomes int, '0.25' becomes float."""
        assert schema.normalize_overrides({'budget': '1500', 'rate': '0.25'}) == {
            'budget': 1500, 'rate': 0.25,
        }

    def test_boolean_coercion(self, schema):
        """'true'/'false' become booleans."""
        assert schema.normalize_overrides({'enabled': 'false'}) == {'enabled': False}
        assert schema.normalize_overrides({'enabled': 'TRUE'}) == {'enabled': True}

    def test_boolean_rejects_other_text(self, schema):
        """Only true/false are booleans."""
        with pytest.raises(OverrideError, match="expected 'true' or 'false'"):
            schema.normalize_overrides({'enabled': 'yes'})

    def test_select_checked_against_options(self, schema):
        """A select value must be an option."""
        assert schema.normalize_overrides({'tier': 'pro'}) == {'tier': 'pro'}
        with pytest.raises(OverrideError, match="must be one of: basic, pro"):
            schema.normalize_overrides({'tier': 'gold'})

    def test_string_kept_verbatim(self, schema):
        """String parameters keep the raw text."""
        assert schema.normalize_overrides({'note': ' hello '}) == {'note': ' hello '}

    def test_out_of_range_rejected_not_clamped(self, schema):
        """Values beyond max raise instead of clamping."""
        with pytest.raises(OverrideError, match="must be <= 5000"):
            schema.normalize_overrides({'budget': '6000'})

    def test_step_grid(self, schema):
        """Numbers must sit on the step grid relative to min."""
        with pytest.raises(OverrideError, match="steps of 50"):
            schema.normalize_overrides({'budget': '1025'})

    def test_unknown_key(self, schema):
        """Unknown keys raise OverrideError."""
        with pytest.raises(OverrideError, match="unknown key 'nope'"):
            schema.normalize_overrides({'nope': '1'})

    def test_not_a_number(self, schema):
        """Unparseable numbers are reported with the key."""
        with pytest.raises(OverrideError, match="'rate': expected a number"):
            schema.normalize_overrides({'rate': 'abc'})

    def test_all_errors_collected(self, schema):
        """Every bad key is reported in one error."""
        with pytest.raises(OverrideError) as info:
            schema.normalize_overrides({'nope': '1', 'budget': '-50', 'rate': 'x'})
        assert len(info.value.errors) == 3

    def test_nan_rejected(self, schema):
        """Non-finite text is not a number."""
        with pytest.raises(OverrideError):
            schema.normalize_overrides({'rate': 'nan'})


class TestMergeDefaults:
    """Tests for merging overrides over defaults."""

    def test_result_has_exactly_schema_keys(self, schema):
        """Merged keys equal the schema's keys."""
        merged = schema.merge_defaults({'rate': 0.5})
        assert set(merged) == set(schema.keys)
        assert merged['rate'] == 0.5
        assert merged['budget'] == 1000

    def test_unknown_key_rejected(self, schema):
        """Unknown override keys raise."""
        with pytest.raises(OverrideError):
            schema.merge_defaults({'nope': 1})


class TestValidateParameters:
    """Tests for typed value validation."""

    def test_valid_defaults(self, schema):
        """The defaults form a valid binding."""
        assert schema.validate_parameters(schema.defaults()) == []

    def test_missing_parameter_reported(self, schema):
        """Absent parameters are reported by label."""
        values = schema.defaults()
        del values['rate']
        assert schema.validate_parameters(values) == ["Missing required parameter: Rate"]

    def test_type_mismatch(self, schema):
        """Booleans are not numbers and vice versa."""
        assert schema.validate_parameter('budget', True)
        assert schema.validate_parameter('enabled', 1)

    def test_unknown(self, schema):
        """Unknown keys are named."""
        assert schema.validate_parameter('nope', 1) == ["Unknown parameter: nope"]


class TestUiSchema:
    """Tests for the grouped field listing."""

    def test_grouped_and_ungrouped(self, schema):
        """Grouped keys do not repeat in the ungrouped list."""
        ui = schema.ui_schema()
        assert [f['key'] for f in ui['groups'][0]['fields']] == ['budget', 'rate']
        assert [f['key'] for f in ui['ungrouped']] == ['enabled', 'tier', 'note']
        assert ui['groups'][0]['fields'][0]['constraints'] == {'min': 0, 'max': 5000, 'step': 50}
