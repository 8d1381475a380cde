"""
Simulation instance: metadata, parameter schema, outputs and evaluator.

A Simulation is built once from a declarative config (or by a registry
factory) and is immutable afterwards; every run gets its own bindings
and random streams.
"""

import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence

import numpy as np

from .config import DEFAULT_SETTINGS, EngineSettings
from .errors import EvaluationError
from .evaluation.business import enhance_config
from .evaluation.evaluator import ScenarioEvaluator
from .schema.parameters import ParameterSchema
from .schema.validator import ValidationResult, validate_config
from .scenarios.overrides import resolve_bindings
from .simulation.runner import run_iterations
from .types import (
    AggregatedStatistics,
    OutputDefinition,
    ParameterDefinition,
    ParameterGroup,
    SimulationMetadata,
)

logger = logging.getLogger(__name__)


def to_id(name: str) -> str:
    """'AI Investment ROI' -> 'ai-investment-roi'."""
    cleaned = re.sub(r'[^a-z0-9\s]', '', name.lower())
    return re.sub(r'\s+', '-', cleaned.strip()).strip('-')


class Simulation:
    """
    A runnable simulation.

    Args:
        metadata: Identity shown in listings
        schema: Parameter definitions and groups
        outputs: Output definitions, in report order
        evaluator: Compiled logic over the schema's keys
        tags: Search tags
        business_context: Whether the business helpers are enabled
        settings: Default run knobs
        config: The enhanced declarative config this was built from, if any
    """

    def __init__(
        self,
        metadata: SimulationMetadata,
        schema: ParameterSchema,
        outputs: Sequence[OutputDefinition],
        evaluator: ScenarioEvaluator,
        tags: Sequence[str] = (),
        business_context: bool = False,
        settings: EngineSettings = DEFAULT_SETTINGS,
        config: Optional[Dict[str, Any]] = None,
    ):
        self.metadata = metadata
        self.schema = schema
        self.outputs = list(outputs)
        self.evaluator = evaluator
        self.tags = list(tags)
        self.business_context = business_context
        self.settings = settings
        self._config = config

    @classmethod
    def from_config(
        cls,
        raw: Any,
        settings: EngineSettings = DEFAULT_SETTINGS,
    ) -> 'Simulation':
        """
        Validate, enhance and build a simulation from a parsed config.

        Raises:
            ValidationError: With every violation in the config
        """
        validate_config(raw).raise_if_invalid()
        config = enhance_config(raw)
        business_context = bool(config.get('businessContext', False))

        schema = ParameterSchema(
            [ParameterDefinition.from_dict(p) for p in config['parameters']],
            [ParameterGroup.from_dict(g) for g in config.get('groups', [])],
        )
        outputs = [OutputDefinition.from_dict(o) for o in config['outputs']]
        evaluator = ScenarioEvaluator(
            config['simulation']['logic'],
            [o.key for o in outputs],
            parameter_keys=schema.keys,
            business_context=business_context,
            timeout=settings.iteration_timeout,
        )
        metadata = SimulationMetadata(
            id=config.get('id') or to_id(config['name']),
            name=config['name'],
            description=config['description'],
            category=config['category'],
            version=config['version'],
        )
        logger.debug("Built simulation '%s' (%d parameters)", metadata.id, len(schema))
        return cls(
            metadata, schema, outputs, evaluator,
            tags=config['tags'],
            business_context=business_context,
            settings=settings,
            config=config,
        )

    @property
    def id(self) -> str:
        return self.metadata.id

    @property
    def output_keys(self) -> List[str]:
        return [o.key for o in self.outputs]

    def __repr__(self) -> str:
        return f"Simulation(id={self.id!r}, version={self.metadata.version!r})"

    # -------------------------------------------------------------------------
    # Running
    # -------------------------------------------------------------------------

    def run(
        self,
        overrides: Optional[Mapping[str, Any]] = None,
        iterations: Optional[int] = None,
        seed: Optional[int] = None,
        workers: Optional[int] = None,
    ) -> AggregatedStatistics:
        """
        Run with defaults replaced by `overrides`.

        Args:
            overrides: Flat key -> raw value map (strings are coerced)
            iterations: Iteration count (settings default when None)
            seed: Root seed (settings default when None)
            workers: Worker processes (settings default when None)

        Raises:
            OverrideError: Before any iteration, for any bad override
            RunError: If the failure ceiling is exceeded
        """
        bindings = resolve_bindings(self.schema, explicit=overrides)
        return self.run_bindings(bindings, iterations, seed, workers)

    def run_bindings(
        self,
        bindings: Mapping[str, Any],
        iterations: Optional[int] = None,
        seed: Optional[int] = None,
        workers: Optional[int] = None,
    ) -> AggregatedStatistics:
        """Run against already-resolved bindings."""
        return run_iterations(
            self.evaluator,
            bindings,
            iterations if iterations is not None else self.settings.iterations,
            seed=seed if seed is not None else self.settings.seed,
            failure_ceiling=self.settings.failure_ceiling,
            workers=workers if workers is not None else self.settings.workers,
            percentiles=self.settings.percentiles,
            simulation_id=self.id,
        )

    def validate_configuration(self) -> ValidationResult:
        """Evaluate once with default parameters and report any fault."""
        try:
            self.evaluator.evaluate(self.schema.defaults(), np.random.default_rng(0).random)
        except EvaluationError as exc:
            return ValidationResult(False, [f"Simulation execution failed: {exc}"])
        return ValidationResult(True, [])

    def to_config(self) -> Dict[str, Any]:
        """Declarative form of this simulation."""
        if self._config is not None:
            return dict(self._config)
        config: Dict[str, Any] = {
            'id': self.metadata.id,
            'name': self.metadata.name,
            'category': self.metadata.category,
            'description': self.metadata.description,
            'version': self.metadata.version,
            'tags': list(self.tags),
            'parameters': [d.to_dict() for d in self.schema.definitions],
            'outputs': [o.to_dict() for o in self.outputs],
            'simulation': {'logic': self.evaluator.logic},
        }
        if self.schema.groups:
            config['groups'] = [g.to_dict() for g in self.schema.groups]
        if self.business_context:
            config['businessContext'] = True
        return config
