"""
Simulation registry.

A catalog of simulation factories keyed by id. Factories are stateless
and build a fresh Simulation on every `get`, so callers never share an
instance. The process-wide catalog is created on first access by
`get_registry()` and is read-only afterwards.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional

from ..errors import NotFoundError, ValidationError
from ..model import Simulation
from ..types import SimulationMetadata
from .builtin import register_builtin_simulations

logger = logging.getLogger(__name__)

SimulationFactory = Callable[[], Simulation]

# Search rank by where the query matched; lower ranks first
_RANK_ID = 0
_RANK_NAME = 1
_RANK_TAG = 2
_RANK_DESCRIPTION = 3


@dataclass(frozen=True)
class RegistryEntry:
    """A registered factory with the metadata and tags of what it builds."""
    id: str
    factory: SimulationFactory
    metadata: SimulationMetadata
    tags: FrozenSet[str]


class SimulationRegistry:
    """Catalog of simulation factories."""

    def __init__(self):
        self._entries: Dict[str, RegistryEntry] = {}

    def register(
        self,
        factory: SimulationFactory,
        tags: Optional[Iterable[str]] = None,
    ) -> RegistryEntry:
        """
        Register a factory.

        The factory is called once to read the simulation's metadata.

        Args:
            factory: Zero-argument callable returning a Simulation
            tags: Search tags; the simulation's own tags when None

        Raises:
            ValidationError: If the id is already registered
        """
        simulation = factory()
        metadata = simulation.metadata
        if metadata.id in self._entries:
            raise ValidationError(
                [f"Simulation with id '{metadata.id}' is already registered"],
                "Registration failed",
            )
        entry = RegistryEntry(
            id=metadata.id,
            factory=factory,
            metadata=metadata,
            tags=frozenset(tags if tags is not None else simulation.tags),
        )
        self._entries[metadata.id] = entry
        logger.debug("Registered simulation '%s'", metadata.id)
        return entry

    def get(self, simulation_id: str) -> Simulation:
        """
        Build a fresh instance of a registered simulation.

        Raises:
            NotFoundError: If the id is not registered
        """
        entry = self._entries.get(simulation_id)
        if entry is None:
            raise NotFoundError('simulation', simulation_id, sorted(self._entries))
        return entry.factory()

    def entry(self, simulation_id: str) -> RegistryEntry:
        entry = self._entries.get(simulation_id)
        if entry is None:
            raise NotFoundError('simulation', simulation_id, sorted(self._entries))
        return entry

    def is_registered(self, simulation_id: str) -> bool:
        return simulation_id in self._entries

    def __contains__(self, simulation_id: str) -> bool:
        return self.is_registered(simulation_id)

    def __len__(self) -> int:
        return len(self._entries)

    def list(self) -> List[SimulationMetadata]:
        """Metadata of every registered simulation, sorted by name."""
        return [e.metadata for e in sorted(self._entries.values(), key=_by_name)]

    def categories(self) -> List[str]:
        return sorted({e.metadata.category for e in self._entries.values()})

    def tags(self) -> List[str]:
        return sorted({tag for e in self._entries.values() for tag in e.tags})

    def search(
        self,
        query: Optional[str] = None,
        category: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> List[SimulationMetadata]:
        """
        Find simulations.

        Ranking: exact id match, then name match, then tag match, then
        description match; ties are ordered by name.

        Args:
            query: Case-insensitive text matched against id, name, tags
                and description
            category: Exact category filter
            tags: Keep entries carrying at least one of these tags

        Returns:
            Matching metadata, best match first
        """
        wanted_tags = set(tags) if tags else None
        ranked = []
        for entry in self._entries.values():
            if category is not None and entry.metadata.category != category:
                continue
            if wanted_tags is not None and not wanted_tags & entry.tags:
                continue
            rank = _rank(entry, query.lower()) if query else _RANK_ID
            if rank is None:
                continue
            ranked.append((rank, entry.metadata.name.lower(), entry.metadata))
        ranked.sort(key=lambda item: (item[0], item[1]))
        return [metadata for _, _, metadata in ranked]


def _by_name(entry: RegistryEntry) -> str:
    return entry.metadata.name.lower()


def _rank(entry: RegistryEntry, query: str) -> Optional[int]:
    if entry.id == query:
        return _RANK_ID
    if query in entry.metadata.name.lower():
        return _RANK_NAME
    if any(query in tag.lower() for tag in entry.tags):
        return _RANK_TAG
    if query in entry.metadata.description.lower():
        return _RANK_DESCRIPTION
    return None


# =============================================================================
# Process-wide Catalog
# =============================================================================

_registry: Optional[SimulationRegistry] = None
_registry_lock = threading.Lock()


def get_registry() -> SimulationRegistry:
    """The process-wide registry, created with the built-ins on first access."""
    global _registry
    if _registry is None:
        with _registry_lock:
            if _registry is None:
                registry = SimulationRegistry()
                register_builtin_simulations(registry)
                _registry = registry
    return _registry
