"""Plain in-memory records passed between pipeline stages.

- EntityRecord: a store row detached from the ORM session.
- ScoredEntity: one retrieved entity with its cosine similarity.
- ResolvedWaypoint: an entity with both coordinates, ready for routing.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

EmbeddingVector = Tuple[float, ...]


@dataclass
class EntityRecord:
    """A stored entity: identifier, descriptive fields, optional coordinates and embedding."""
    id: str
    fields: Dict[str, Any] = field(default_factory=dict)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    embedding: Optional[EmbeddingVector] = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclass(frozen=True)
class ScoredEntity:
    entity: EntityRecord
    score: float


RetrievedContext = List[ScoredEntity]


@dataclass(frozen=True)
class ResolvedWaypoint:
    """A route stop. Only entities with both coordinates become waypoints."""
    id: str
    address: str
    latitude: float
    longitude: float
    label: Optional[str] = None
