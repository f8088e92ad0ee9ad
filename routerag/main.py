"""FastAPI application entrypoint and routes.

Exposes health, /query and /coordinates/populate endpoints, configures CORS and
logging, and initializes the database schema at startup. /query runs the domain's
QueryPipeline; pipeline errors map to HTTP statuses through a single exception
handler.
"""
import logging
from functools import lru_cache
from typing import Callable

import requests
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from openai import OpenAI
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from routerag.config import settings
from routerag.db import get_db, init_db
from routerag.domains import DomainProfile, get_domain
from routerag.errors import RagError, RetrievalError
from routerag.pipeline import QueryPipeline, build_pipeline, build_resolver
from routerag.schemas import PopulateResponse, QueryRequest, QueryResponse
from routerag.store import SqlEntityStore

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="RouteRAG API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # keep simple for demo; tighten for prod
    allow_methods=["*"],
    allow_credentials=True,
    allow_headers=["*"],
)


@lru_cache(maxsize=1)
def get_openai() -> OpenAI:
    """Process-wide OpenAI client built from the configured key."""
    return OpenAI(api_key=settings.OPENAI_API_KEY)


@lru_cache(maxsize=1)
def get_http() -> requests.Session:
    """Shared HTTP session for the geocoder and the routing engine."""
    return requests.Session()


def get_pipeline_factory(db: Session = Depends(get_db)) -> Callable[[DomainProfile], QueryPipeline]:
    """FastAPI dependency returning a per-request pipeline builder."""
    return lambda profile: build_pipeline(profile, db, get_openai(), get_http())


def get_resolver_factory(db: Session = Depends(get_db)) -> Callable[[DomainProfile], tuple]:
    """FastAPI dependency returning (store, resolver) for a profile."""
    def factory(profile: DomainProfile):
        store = SqlEntityStore(db, profile)
        return store, build_resolver(profile, store, get_http())
    return factory


def _profile(name: str) -> DomainProfile:
    try:
        return get_domain(name)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"unknown domain: {name}")


@app.exception_handler(RagError)
def rag_error_handler(request: Request, exc: RagError) -> JSONResponse:
    logger.warning("%s on %s: %s", exc.kind, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.kind, "detail": exc.message})


@app.on_event("startup")
def on_startup() -> None:
    """Initialize database schema and indexes at application startup."""
    init_db()


@app.get("/health")
def health():
    """Liveness probe endpoint.

    Returns:
        dict: {"status": "ok"} when the service is running.
    """
    return {"status": "ok"}


@app.post("/query", response_model=QueryResponse)
def query(
    req: QueryRequest,
    pipeline_factory: Callable[[DomainProfile], QueryPipeline] = Depends(get_pipeline_factory),
) -> QueryResponse:
    """Answer a query with retrieval-augmented, schema-validated generation.

    Workflow:
    - Embed the query and rank stored entities of the requested domain
    - Generate a structured answer grounded in the retrieved records
    - Geocode referenced entities that lack coordinates (routable domains)
    - Build route geometry and a map deep link

    Returns:
        QueryResponse: Answer, relevant items, waypoints, geometry and fallback URL.
    """
    profile = _profile(req.domain)
    return pipeline_factory(profile).run(req.query)


@app.post("/coordinates/populate", response_model=PopulateResponse)
def populate_coordinates(
    domain: str = "clients",
    resolver_factory=Depends(get_resolver_factory),
) -> PopulateResponse:
    """Geocode every entity of a routable domain that is missing coordinates.

    Failed entities are reported, not retried; call again to retry them.
    """
    profile = _profile(domain)
    if not profile.routable:
        raise HTTPException(status_code=400, detail=f"domain {domain} has no addresses to geocode")
    store, resolver = resolver_factory(profile)
    try:
        pending = store.missing_coordinates()
    except SQLAlchemyError as e:
        raise RetrievalError(f"could not list {profile.table} without coordinates: {e}") from e
    if not pending:
        return PopulateResponse(message="All entities already have coordinates or no entities found.")
    report = resolver.resolve(pending)
    return PopulateResponse(message=f"Processed {len(pending)} entities.", **report.model_dump())
