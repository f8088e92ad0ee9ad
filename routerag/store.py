"""SQLAlchemy-backed storage boundary for the query pipeline.

SqlEntityStore wraps a Session and a DomainProfile and exposes exactly what the
pipeline needs:
- rank_by_similarity: pgvector cosine ranking (similarity = 1 - distance), top-k
- list_embedded: every entity with a stored embedding (application-side ranking)
- get_many: entities by id, for resolving generation output
- missing_coordinates: entities lacking latitude or longitude
- update_coordinates: write back geocoded coordinates

Reads let SQLAlchemyError propagate; the retrieval layer maps it to RetrievalError.
Writes raise PersistenceError so the resolver can record the entity as failed.
"""
import logging
from typing import Dict, Iterable, List, Sequence, Tuple

from sqlalchemy import or_, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from routerag.domains import DomainProfile
from routerag.entities import EntityRecord
from routerag.errors import PersistenceError

logger = logging.getLogger(__name__)


def _vector_literal(vec: Sequence[float]) -> str:
    return "[" + ",".join(f"{x:.6f}" for x in vec) + "]"


class SqlEntityStore:
    def __init__(self, db: Session, profile: DomainProfile):
        self.db = db
        self.profile = profile
        self.model = profile.model

    def _columns(self) -> List[str]:
        cols = ["id", *self.profile.descriptive_fields]
        if self.profile.routable:
            cols += ["latitude", "longitude"]
        return cols

    def rank_by_similarity(self, query_vector: Sequence[float], top_k: int) -> List[Tuple[EntityRecord, float]]:
        """Top-k rows by pgvector cosine distance, most similar first."""
        cols = ", ".join(self._columns())
        sql = text(
            f"""
            SELECT {cols},
                (embedding <=> CAST(:qvec AS vector)) AS distance
            FROM {self.profile.table}
            WHERE embedding IS NOT NULL
            ORDER BY embedding <=> CAST(:qvec AS vector), id
            LIMIT :limit
            """
        )
        rows = self.db.execute(sql, {"qvec": _vector_literal(query_vector), "limit": top_k}).mappings().all()
        return [(self.profile.to_record(r), 1.0 - float(r["distance"])) for r in rows]

    def list_embedded(self) -> List[EntityRecord]:
        rows = (
            self.db.query(self.model)
            .filter(self.model.embedding.isnot(None))
            .order_by(self.model.id)
            .all()
        )
        return [self.profile.to_record(r) for r in rows]

    def get_many(self, ids: Iterable[str]) -> Dict[str, EntityRecord]:
        ids = list(ids)
        if not ids:
            return {}
        rows = self.db.query(self.model).filter(self.model.id.in_(ids)).all()
        return {str(r.id): self.profile.to_record(r) for r in rows}

    def missing_coordinates(self) -> List[EntityRecord]:
        if not self.profile.routable:
            return []
        rows = (
            self.db.query(self.model)
            .filter(or_(self.model.latitude.is_(None), self.model.longitude.is_(None)))
            .order_by(self.model.id)
            .all()
        )
        return [self.profile.to_record(r) for r in rows]

    def update_coordinates(self, entity_id: str, latitude: float, longitude: float) -> None:
        """Persist coordinates for one entity (last writer wins)."""
        try:
            self.db.query(self.model).filter(self.model.id == entity_id).update(
                {"latitude": latitude, "longitude": longitude}, synchronize_session=False
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"failed to store coordinates for {entity_id}: {e}") from e
        logger.debug("Stored coordinates for %s: %.6f, %.6f", entity_id, latitude, longitude)
