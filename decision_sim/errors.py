"""
Error taxonomy for the simulation engine.

Structural errors (ValidationError, OverrideError, NotFoundError,
ComparisonMismatchError) are raised before any iteration work begins and
carry every detected violation. Per-iteration errors (EvaluationError,
EvaluationTimeout) are absorbed by the runner and only escalate to
RunError once the failure-rate ceiling is crossed.
"""

from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence


class SimulationError(Exception):
    """Base class for all engine errors."""


class ValidationError(SimulationError):
    """Malformed configuration, schema or logic."""

    def __init__(self, errors: Iterable[str], context: str = "Validation failed"):
        self.errors: List[str] = list(errors)
        self.context = context
        super().__init__(self._render())

    def _render(self) -> str:
        if not self.errors:
            return self.context
        return f"{self.context}:\n  - " + "\n  - ".join(self.errors)


class OverrideError(ValidationError):
    """Unknown key, type mismatch or out-of-range value in an override map."""

    def __init__(self, errors: Iterable[str], context: str = "Invalid parameter overrides"):
        super().__init__(errors, context)


class EvaluationError(SimulationError):
    """One iteration's logic faulted or produced an unusable output."""

    def __init__(self, message: str, output_key: Optional[str] = None):
        self.output_key = output_key
        super().__init__(message)


class EvaluationTimeout(EvaluationError):
    """Logic exceeded its per-call execution budget."""

    def __init__(self, budget: float):
        self.budget = budget
        super().__init__(f"logic exceeded its execution budget of {budget:.3f}s")


class RunError(SimulationError):
    """Too many iterations failed for the run to be trusted."""

    def __init__(
        self,
        n_failed: int,
        n: int,
        ceiling: float,
        sample_causes: Sequence[str] = (),
    ):
        self.n_failed = n_failed
        self.n = n
        self.ceiling = ceiling
        self.failure_rate = n_failed / n if n > 0 else 1.0
        self.sample_causes = list(sample_causes)
        message = (
            f"{n_failed} of {n} iterations failed "
            f"({self.failure_rate:.1%}, ceiling {ceiling:.0%})"
        )
        if self.sample_causes:
            message += "; sample causes: " + "; ".join(self.sample_causes)
        super().__init__(message)


class NotFoundError(SimulationError, KeyError):
    """Unknown registry id or scenario name."""

    def __init__(self, kind: str, name: str, available: Sequence[str] = ()):
        self.kind = kind
        self.name = name
        self.available = list(available)
        message = f"Unknown {kind} '{name}'"
        if self.available:
            message += f". Available: {', '.join(self.available)}"
        super().__init__(message)

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return self.args[0]


class ComparisonMismatchError(SimulationError):
    """
    Scenarios under comparison disagree on their output key set.

    Override errors found in the same pre-run check are carried in
    `override_errors` and listed in the message.
    """

    def __init__(
        self,
        output_keys: Dict[str, FrozenSet[str]],
        override_errors: Optional[List[str]] = None,
    ):
        self.output_keys = dict(output_keys)
        self.override_errors = list(override_errors or [])
        details = ", ".join(
            f"{name}={{{', '.join(sorted(keys))}}}"
            for name, keys in self.output_keys.items()
        )
        message = f"Scenarios do not share the same output keys: {details}"
        if self.override_errors:
            message += "\n  Override errors:\n" + "\n".join(
                f"    - {error}" for error in self.override_errors
            )
        super().__init__(message)
