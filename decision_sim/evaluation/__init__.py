"""Sandboxed per-iteration logic evaluation."""

from .evaluator import ScenarioEvaluator
from .business import BusinessContext, enhance_config
from .sandbox import compile_logic, CompiledLogic

__all__ = [
    "ScenarioEvaluator",
    "BusinessContext",
    "enhance_config",
    "compile_logic",
    "CompiledLogic",
]
