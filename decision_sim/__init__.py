"""
Decision Simulation Engine.

Runs parameterized, randomized business-decision models many times and
reports aggregate statistics (mean, variance, percentiles, histograms)
to support ROI-style decisions under uncertainty.
"""

__version__ = "1.0.0"

from .config import EngineSettings, DEFAULT_SETTINGS, generate_config_template
from .errors import (
    SimulationError,
    ValidationError,
    OverrideError,
    EvaluationError,
    EvaluationTimeout,
    RunError,
    NotFoundError,
    ComparisonMismatchError,
)
from .types import (
    ParameterDefinition,
    ParameterGroup,
    OutputDefinition,
    SimulationMetadata,
    Scenario,
    IterationOutcome,
    HistogramBin,
    OutputStatistics,
    AggregatedStatistics,
)
from .schema import ParameterSchema, ValidationResult, validate_config
from .evaluation import ScenarioEvaluator, BusinessContext, enhance_config
from .simulation import run_iterations
from .model import Simulation, to_id
from .scenarios import ScenarioComparison, resolve_bindings
from .registry import SimulationRegistry, get_registry

__all__ = [
    "EngineSettings",
    "DEFAULT_SETTINGS",
    "generate_config_template",
    "SimulationError",
    "ValidationError",
    "OverrideError",
    "EvaluationError",
    "EvaluationTimeout",
    "RunError",
    "NotFoundError",
    "ComparisonMismatchError",
    "ParameterDefinition",
    "ParameterGroup",
    "OutputDefinition",
    "SimulationMetadata",
    "Scenario",
    "IterationOutcome",
    "HistogramBin",
    "OutputStatistics",
    "AggregatedStatistics",
    "ParameterSchema",
    "ValidationResult",
    "validate_config",
    "ScenarioEvaluator",
    "BusinessContext",
    "enhance_config",
    "run_iterations",
    "Simulation",
    "to_id",
    "ScenarioComparison",
    "resolve_bindings",
    "SimulationRegistry",
    "get_registry",
]
