"""
Core data structures for the decision simulation engine.

Declarative configuration types are built once at load time and are
immutable for the duration of a run. Statistics types are produced once
per run and handed to a reporter.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Literal


ParameterType = Literal["number", "boolean", "string", "select"]
PARAMETER_TYPES: Tuple[str, ...] = ("number", "boolean", "string", "select")


@dataclass(frozen=True)
class ParameterDefinition:
    """
    A single tunable simulation input.

    Attributes:
        key: Binding name visible to the logic (unique within a simulation)
        label: Human-readable label
        type: One of number, boolean, string, select
        default: Default value, typed per `type`
        min: Optional inclusive lower bound (number only)
        max: Optional inclusive upper bound (number only)
        step: Optional grid step relative to `min` (number only)
        options: Allowed values (select only)
        description: Optional help text
    """
    key: str
    label: str
    type: ParameterType
    default: Any
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None
    options: Optional[Tuple[str, ...]] = None
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ParameterDefinition':
        """Build from an already-validated config entry."""
        options = data.get('options')
        return cls(
            key=data['key'],
            label=data['label'],
            type=data['type'],
            default=data['default'],
            min=data.get('min'),
            max=data.get('max'),
            step=data.get('step'),
            options=tuple(options) if options is not None else None,
            description=data.get('description'),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'key': self.key,
            'label': self.label,
            'type': self.type,
            'default': self.default,
        }
        for name in ('min', 'max', 'step', 'description'):
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        if self.options is not None:
            data['options'] = list(self.options)
        return data


@dataclass(frozen=True)
class ParameterGroup:
    """An ordered, named subset of a schema's parameter keys."""
    name: str
    parameters: Tuple[str, ...]
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ParameterGroup':
        return cls(
            name=data['name'],
            parameters=tuple(data['parameters']),
            description=data.get('description'),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'name': self.name, 'parameters': list(self.parameters)}
        if self.description is not None:
            data['description'] = self.description
        return data


@dataclass(frozen=True)
class OutputDefinition:
    """A numeric value the logic must produce every iteration."""
    key: str
    label: str
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'OutputDefinition':
        return cls(key=data['key'], label=data['label'], description=data.get('description'))

    def to_dict(self) -> Dict[str, Any]:
        data = {'key': self.key, 'label': self.label}
        if self.description is not None:
            data['description'] = self.description
        return data


@dataclass(frozen=True)
class SimulationMetadata:
    """Identity of a simulation as shown in listings."""
    id: str
    name: str
    description: str
    category: str
    version: str

    def to_dict(self) -> Dict[str, str]:
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'category': self.category,
            'version': self.version,
        }


@dataclass
class Scenario:
    """
    A named parameter-override layer.

    Attributes:
        name: Scenario name (e.g. "conservative")
        overrides: Flat key -> raw string map, coerced by the schema
        description: Optional help text
        simulation: Optional variant simulation; when None the scenario
            shares the simulation it is compared against
    """
    name: str
    overrides: Dict[str, str] = field(default_factory=dict)
    description: Optional[str] = None
    simulation: Optional[Any] = None


@dataclass
class IterationOutcome:
    """
    Result of one evaluation: either values or a failure cause.

    Ephemeral; consumed immediately by the accumulator.
    """
    index: int
    values: Optional[Dict[str, float]] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.values is not None


@dataclass(frozen=True)
class HistogramBin:
    """Equal-width histogram bin; `end` is inclusive only for the last bin."""
    label: str
    start: float
    end: float
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return {'label': self.label, 'start': self.start, 'end': self.end, 'count': self.count}


@dataclass
class OutputStatistics:
    """
    Summary of one output key over all successful iterations.

    Attributes:
        key: Output key
        count: Number of successful samples
        mean: Sample mean
        stddev: Population standard deviation
        variance: Population variance
        min: Smallest sample
        max: Largest sample
        percentiles: 'p10' -> value, for the configured percentile set
        histogram: Equal-width bins whose counts sum to `count`
        risk: Downside metrics (probability of loss, VaR, expected shortfall)
    """
    key: str
    count: int
    mean: float
    stddev: float
    variance: float
    min: float
    max: float
    percentiles: Dict[str, float]
    histogram: List[HistogramBin]
    risk: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'key': self.key,
            'count': self.count,
            'mean': self.mean,
            'stddev': self.stddev,
            'variance': self.variance,
            'min': self.min,
            'max': self.max,
            'percentiles': dict(self.percentiles),
            'histogram': [b.to_dict() for b in self.histogram],
            'risk': dict(self.risk),
        }


@dataclass
class AggregatedStatistics:
    """
    Per-output statistics for one run.

    Attributes:
        simulation_id: Id of the simulation that produced the run (may be None)
        iterations: Requested iteration count
        successful: Iterations that produced usable outputs
        failed: Iterations absorbed as failures
        seed: Entropy of the root seed sequence; replaying with it
            reproduces the run
        outputs: Output key -> OutputStatistics, in declared order
        failure_causes: Most frequent failure messages with counts
    """
    simulation_id: Optional[str]
    iterations: int
    successful: int
    failed: int
    seed: int
    outputs: Dict[str, OutputStatistics]
    failure_causes: List[Tuple[str, int]] = field(default_factory=list)

    @property
    def failure_rate(self) -> float:
        return self.failed / self.iterations if self.iterations > 0 else 0.0

    @property
    def output_keys(self) -> List[str]:
        return list(self.outputs.keys())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        return {
            'simulation_id': self.simulation_id,
            'iterations': self.iterations,
            'successful': self.successful,
            'failed': self.failed,
            'failure_rate': self.failure_rate,
            'seed': self.seed,
            'outputs': {key: stats.to_dict() for key, stats in self.outputs.items()},
            'failure_causes': [
                {'message': message, 'count': count}
                for message, count in self.failure_causes
            ],
        }
