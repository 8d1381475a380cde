"""Simulation config and parameter schema."""

from .parameters import ParameterSchema
from .validator import ValidationResult, validate_config

__all__ = [
    "ParameterSchema",
    "ValidationResult",
    "validate_config",
]
