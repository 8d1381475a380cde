"""Catalog of ready-made simulations."""

from .registry import RegistryEntry, SimulationRegistry, get_registry
from .builtin import register_builtin_simulations

__all__ = [
    "RegistryEntry",
    "SimulationRegistry",
    "get_registry",
    "register_builtin_simulations",
]
