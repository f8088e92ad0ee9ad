"""Engine, session helpers and schema bootstrap for the entity store.

- init_db: enables pgvector, creates the entity tables and one IVFFLAT cosine
  index per embedding column.
- session_scope: transactional scope for the ingestion CLI.
- get_db: per-request session for FastAPI.

Configuration is read from routerag.config.settings.DATABASE_URL.
"""
import logging
from contextlib import contextmanager
from typing import Generator, Iterator, List

from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from routerag.config import settings

logger = logging.getLogger(__name__)

engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True, future=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()

IVFFLAT_LISTS = 100


def _embedded_tables() -> List[str]:
    return sorted(name for name, table in Base.metadata.tables.items() if "embedding" in table.columns)


def init_db() -> None:
    """Create the extension, tables and vector indexes. Idempotent."""
    with engine.begin() as conn:
        conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))

    from routerag import models  # noqa: F401  registers the tables on Base

    Base.metadata.create_all(bind=engine)

    with engine.begin() as conn:
        for table in _embedded_tables():
            conn.execute(text(
                f"CREATE INDEX IF NOT EXISTS idx_{table}_embedding_ivfflat "
                f"ON {table} USING ivfflat (embedding vector_cosine_ops) WITH (lists = {IVFFLAT_LISTS})"
            ))
    logger.info("Database ready: %s", ", ".join(_embedded_tables()))


@contextmanager
def session_scope() -> Iterator[Session]:
    """Commit on success, roll back and re-raise on error, always close."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
