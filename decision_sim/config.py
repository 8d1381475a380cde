"""
Configuration management for the decision simulation engine.

Engine defaults, run settings, and the starter simulation template.
File loading lives in `decision_sim.data.loader`.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple


# =============================================================================
# Engine Defaults
# =============================================================================

DEFAULT_ITERATIONS = 1000

# Fraction of iterations allowed to fail before the run is rejected
DEFAULT_FAILURE_CEILING = 0.10

# Wall-clock budget per evaluation, in seconds
DEFAULT_ITERATION_TIMEOUT = 0.25

DEFAULT_PERCENTILES: Tuple[int, ...] = (10, 25, 50, 75, 90)

HISTOGRAM_MIN_BINS = 5
HISTOGRAM_MAX_BINS = 20

# Longest sequence a single `for` loop or range() may produce inside logic
MAX_LOOP_ITERATIONS = 10_000

# round() digits are clamped to this magnitude inside logic
MAX_ROUND_DIGITS = 15

# Distinct failure messages kept per run, and how many RunError quotes
MAX_TRACKED_FAILURE_CAUSES = 50
MAX_FAILURE_SAMPLES = 5

# Iterations below which a parallel run falls back to a single worker
MIN_ITERATIONS_PER_WORKER = 250


# =============================================================================
# Run Settings
# =============================================================================

@dataclass(frozen=True)
class EngineSettings:
    """
    Knobs applied to every run of a simulation.

    Attributes:
        iterations: Default iteration count
        seed: Default seed (None = process entropy)
        failure_ceiling: Max failed fraction before RunError (0-1)
        iteration_timeout: Per-evaluation wall-clock budget in seconds
        workers: Worker processes for a run (1 = sequential)
        percentiles: Percentile set reported per output
    """
    iterations: int = DEFAULT_ITERATIONS
    seed: Optional[int] = None
    failure_ceiling: float = DEFAULT_FAILURE_CEILING
    iteration_timeout: float = DEFAULT_ITERATION_TIMEOUT
    workers: int = 1
    percentiles: Tuple[int, ...] = DEFAULT_PERCENTILES

    def __post_init__(self) -> None:
        if self.iterations <= 0:
            raise ValueError("EngineSettings.iterations must be a positive integer.")
        if not 0.0 <= self.failure_ceiling <= 1.0:
            raise ValueError("EngineSettings.failure_ceiling must be within [0, 1].")
        if self.iteration_timeout <= 0:
            raise ValueError("EngineSettings.iteration_timeout must be positive.")
        if self.workers <= 0:
            raise ValueError("EngineSettings.workers must be a positive integer.")
        if any(p < 0 or p > 100 for p in self.percentiles):
            raise ValueError("EngineSettings.percentiles must lie within [0, 100].")


DEFAULT_SETTINGS = EngineSettings()


# =============================================================================
# Templates
# =============================================================================

def generate_config_template() -> Dict[str, Any]:
    """Return a minimal, valid simulation config to start from."""
    return {
        'name': 'My Simulation',
        'category': 'Finance',
        'description': 'Description of what this simulation models',
        'version': '1.0.0',
        'tags': ['example', 'template'],
        'parameters': [
            {
                'key': 'sampleParameter',
                'label': 'Sample Parameter',
                'type': 'number',
                'default': 100,
                'min': 0,
                'max': 1000,
                'description': 'A sample numeric parameter',
            }
        ],
        'outputs': [
            {
                'key': 'result',
                'label': 'Result',
                'description': 'The simulation result',
            }
        ],
        'simulation': {
            'logic': (
                "result = sampleParameter * (0.8 + random() * 0.4)\n"
                "return {'result': result}\n"
            ),
        },
    }
