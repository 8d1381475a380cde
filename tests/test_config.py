"""Tests for engine settings, the config template and config round trips."""

import pytest

from decision_sim.config import DEFAULT_SETTINGS, EngineSettings, generate_config_template
from decision_sim.model import Simulation, to_id
from decision_sim.registry import get_registry


class TestEngineSettings:
    """Tests for EngineSettings validation."""

    def test_defaults(self):
        """Defaults match the documented engine defaults."""
        assert DEFAULT_SETTINGS.iterations == 1000
        assert DEFAULT_SETTINGS.failure_ceiling == 0.10
        assert DEFAULT_SETTINGS.iteration_timeout == 0.25
        assert DEFAULT_SETTINGS.percentiles == (10, 25, 50, 75, 90)

    @pytest.mark.parametrize("changes", [
        {'iterations': 0},
        {'failure_ceiling': 1.5},
        {'iteration_timeout': 0},
        {'workers': 0},
        {'percentiles': (50, 101)},
    ])
    def test_invalid_values(self, changes):
        """Out-of-range knobs are rejected."""
        with pytest.raises(ValueError):
            EngineSettings(**changes)

    def test_frozen(self):
        """Settings are immutable."""
        with pytest.raises(AttributeError):
            DEFAULT_SETTINGS.iterations = 5


class TestTemplate:
    """Tests for the starter template."""

    def test_template_runs(self):
        """The template builds and runs."""
        simulation = Simulation.from_config(generate_config_template())
        assert simulation.id == 'my-simulation'
        assert simulation.validate_configuration().valid
        assert simulation.run(iterations=50, seed=0).successful == 50

    def test_template_is_fresh(self):
        """Each call returns a new dict."""
        assert generate_config_template() is not generate_config_template()

    @pytest.mark.parametrize("name, expected", [
        ('AI Investment ROI', 'ai-investment-roi'),
        ('  Spaced   Out  ', 'spaced-out'),
        ('Cost/Benefit (v2)', 'costbenefit-v2'),
    ])
    def test_to_id(self, name, expected):
        """Names become kebab-case ids."""
        assert to_id(name) == expected


class TestConfigRoundTrip:
    """Tests for Simulation.to_config."""

    def test_rebuilds_same_simulation(self, simulation):
        """A simulation rebuilt from its config has the same shape."""
        rebuilt = Simulation.from_config(simulation.to_config())
        assert rebuilt.id == simulation.id
        assert rebuilt.output_keys == simulation.output_keys
        assert rebuilt.schema.keys == simulation.schema.keys

    def test_business_parameters_included(self):
        """Injected business-context parameters are part of the config."""
        simulation = get_registry().get('marketing-campaign-roi')
        config = simulation.to_config()
        keys = [p['key'] for p in config['parameters']]
        assert keys[0] == 'annualRecurringRevenue'
        assert keys.count('annualRecurringRevenue') == 1
        assert Simulation.from_config(config).schema.keys == simulation.schema.keys

    def test_returns_copy(self, simulation):
        """Editing the returned config does not touch the simulation."""
        config = simulation.to_config()
        config['name'] = 'Changed'
        assert simulation.to_config()['name'] != 'Changed'
