"""Pytest fixtures for decision simulation tests."""

from copy import deepcopy

import pytest

from decision_sim.model import Simulation
from decision_sim.registry import SimulationRegistry, register_builtin_simulations
from decision_sim.schema import ParameterSchema
from decision_sim.types import ParameterDefinition, ParameterGroup, Scenario


SINGLE_PARAMETER_CONFIG = {
    'name': 'Scaled Draw',
    'category': 'Testing',
    'description': 'One parameter scaled by a uniform draw',
    'version': '1.0.0',
    'tags': ['test'],
    'parameters': [
        {'key': 'x', 'label': 'X', 'type': 'number', 'default': 100, 'min': 0, 'max': 1000},
    ],
    'outputs': [
        {'key': 'y', 'label': 'Y'},
    ],
    'simulation': {'logic': "return {y: x * (0.8 + random() * 0.4)}"},
}


@pytest.fixture
def single_parameter_config():
    """Config with one parameter x in [0, 1000] and output y."""
    return deepcopy(SINGLE_PARAMETER_CONFIG)


@pytest.fixture
def simulation(single_parameter_config):
    """Simulation built from the single-parameter config."""
    return Simulation.from_config(single_parameter_config)


@pytest.fixture
def schema():
    """Schema covering every parameter type."""
    return ParameterSchema(
        [
            ParameterDefinition(key='budget', label='Budget', type='number',
                                default=1000, min=0, max=5000, step=50),
            ParameterDefinition(key='rate', label='Rate', type='number',
                                default=0.1, min=0, max=1),
            ParameterDefinition(key='enabled', label='Enabled', type='boolean', default=True),
            ParameterDefinition(key='tier', label='Tier', type='select',
                                default='basic', options=('basic', 'pro')),
            ParameterDefinition(key='note', label='Note', type='string', default=''),
        ],
        [ParameterGroup(name='Money', parameters=('budget', 'rate'))],
    )


@pytest.fixture
def scenarios():
    """Conservative and aggressive layers over the single-parameter config."""
    return [
        Scenario(name='conservative', overrides={'x': '50'}),
        Scenario(name='aggressive', overrides={'x': '500'}),
    ]


@pytest.fixture
def registry():
    """Fresh registry with the built-in simulations."""
    registry = SimulationRegistry()
    register_builtin_simulations(registry)
    return registry
