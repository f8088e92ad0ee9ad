"""Record ingestor for client and invoice tables.

Loads records from a local JSON/CSV file or a JSON URL, embeds a ``field: value``
rendering of each record with the EmbeddingEncoder, and upserts rows into the
domain's table. Optionally geocodes client rows that lack coordinates afterwards.

Input:
- JSON: an array of objects, or an object with a "records" array
- CSV: a header row; column names may be CamelCase (``PostalCode``) or snake_case
- Records without an id get a stable hash of their embedding text

Usage:
  python -m routerag.ingestion.ingest_records --source data/clients.csv --domain clients --geocode

Configuration:
- Database: routerag.config.settings.DATABASE_URL
- Embeddings: settings.OPENAI_EMBEDDING_MODEL truncated to settings.EMBEDDING_DIM
- Geocoding: settings.GEOCODER_* (one request per GEOCODER_MIN_DELAY_SECONDS)
"""
from __future__ import annotations

import argparse
import csv
import json
import logging
from pathlib import Path
from typing import Any, Dict, List

import requests
from openai import OpenAI
from sqlalchemy.orm import Session

from routerag.config import settings
from routerag.db import init_db, session_scope
from routerag.domains import DOMAINS, DomainProfile, get_domain
from routerag.embedding import EmbeddingEncoder
from routerag.pipeline import build_resolver
from routerag.schemas import ResolutionReport
from routerag.store import SqlEntityStore
from routerag.utils import clean_value, parse_date, parse_float, snake_case, stable_entity_id

logger = logging.getLogger(__name__)

HEADERS = {
    "User-Agent": "RouteRAG-Ingestor/1.0 (+https://example.com; contact=dev@example.com)",
    "Accept": "application/json",
}

_FLOAT_FIELDS = {"latitude", "longitude"}
_DATE_FIELDS = {"issue_date", "due_date"}


def fetch_json(url: str, timeout: int = 30) -> Any:
    """Fetch JSON from a URL with basic headers and timeout."""
    logger.info("Fetching JSON: %s", url)
    resp = requests.get(url, headers=HEADERS, timeout=timeout)
    logger.info("HTTP %d from %s (bytes=%d)", resp.status_code, url, len(resp.content or b""))
    resp.raise_for_status()
    return resp.json()


def load_records(source: str) -> List[Dict[str, Any]]:
    """Load raw records from a URL, a .csv file, or a .json file."""
    if source.startswith(("http://", "https://")):
        data = fetch_json(source)
    elif source.lower().endswith(".csv"):
        with Path(source).open("r", encoding="utf-8", newline="") as f:
            return list(csv.DictReader(f))
    else:
        with Path(source).open("r", encoding="utf-8") as f:
            data = json.load(f)
    if isinstance(data, dict):
        data = data.get("records", [])
    if not isinstance(data, list):
        raise ValueError(f"expected a list of records in {source}")
    return [r for r in data if isinstance(r, dict)]


def prepare_record(profile: DomainProfile, raw: Dict[str, Any]) -> Dict[str, Any]:
    """Map a raw record onto the profile's columns.

    Unknown keys are dropped. Coordinates are parsed as floats and dates as ISO
    dates. The id falls back to a stable hash of the record's embedding text.
    """
    src = {snake_case(str(k)): clean_value(v) for k, v in raw.items()}
    columns = set(profile.model.__table__.columns.keys()) - {"embedding", "created_at"}
    row: Dict[str, Any] = {}
    for name in columns:
        if name not in src:
            continue
        value = src[name]
        if name in _FLOAT_FIELDS:
            value = parse_float(value)
        elif name in _DATE_FIELDS:
            value = parse_date(value)
        row[name] = value
    if not row.get("id"):
        row["id"] = stable_entity_id(profile.embedding_text(row))
    row["id"] = str(row["id"])
    return row


def _upsert(db: Session, profile: DomainProfile, rows: List[Dict[str, Any]], encoder: EmbeddingEncoder) -> int:
    texts = [profile.embedding_text(r) for r in rows]
    vectors = encoder.encode_batch(texts)
    for row, vec in zip(rows, vectors):
        db.merge(profile.model(**row, embedding=list(vec)))
    return len(rows)


def ingest_records(
    source: str,
    profile: DomainProfile,
    encoder: EmbeddingEncoder,
    batch_size: int = 64,
    geocode: bool = False,
) -> int:
    """Top-level function: load, embed, upsert, and optionally geocode."""
    raw = load_records(source)
    rows = [prepare_record(profile, r) for r in raw]
    logger.info("Loaded %d %s records from %s", len(rows), profile.name, source)

    total = 0
    with session_scope() as db:
        for start in range(0, len(rows), batch_size):
            batch = rows[start:start + batch_size]
            total += _upsert(db, profile, batch, encoder)
            logger.debug("Upserted batch %d-%d", start, start + len(batch))
        db.flush()

        if geocode and profile.routable:
            store = SqlEntityStore(db, profile)
            report: ResolutionReport = build_resolver(profile, store, requests.Session()).resolve(
                store.missing_coordinates()
            )
            logger.info("Geocoded: updated=%d failed=%d", len(report.updated), len(report.failed))
    return total


def main():
    parser = argparse.ArgumentParser(description="Ingest client or invoice records and embed them.")
    parser.add_argument("--source", required=True, help="Path to .json/.csv file or a JSON URL")
    parser.add_argument("--domain", default="clients", choices=sorted(DOMAINS), help="Target domain")
    parser.add_argument("--batch-size", type=int, default=64, help="Records per embedding request")
    parser.add_argument("--geocode", action="store_true", help="Geocode rows missing coordinates afterwards")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging verbosity (default: INFO)",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    profile = get_domain(args.domain)
    encoder = EmbeddingEncoder(
        OpenAI(api_key=settings.OPENAI_API_KEY), settings.OPENAI_EMBEDDING_MODEL, settings.EMBEDDING_DIM
    )

    init_db()
    try:
        total = ingest_records(args.source, profile, encoder, batch_size=args.batch_size, geocode=args.geocode)
        logger.info("Completed ingestion: records=%d, domain=%s", total, profile.name)
        print(f"[INGEST] {args.source} -> {total} {profile.name}")
    except Exception:
        logger.exception("Ingestion failed for %s", args.source)
        raise


if __name__ == "__main__":
    main()
