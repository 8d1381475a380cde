"""Override layering and scenario comparison."""

from .overrides import resolve_bindings, parse_override_assignments
from .comparison import ScenarioComparison

__all__ = [
    "resolve_bindings",
    "parse_override_assignments",
    "ScenarioComparison",
]
