"""Query pipeline: retrieve -> generate -> resolve -> route -> assemble.

QueryPipeline is one generic flow parameterized by a DomainProfile. Each run walks
the stages below and ends in DONE, or in ERRORED when a terminal error is raised:

    VALIDATING -> RETRIEVING -> GENERATING -> RESOLVING -> ROUTE_BUILDING -> ASSEMBLING -> DONE

- VALIDATING rejects a blank query with InputError before any external call.
- RETRIEVING raises RetrievalError on embedding or search failure. An empty context
  skips generation and yields the profile's refusal answer.
- GENERATING raises GenerationError when the output is irreparable.
- RESOLVING and ROUTE_BUILDING never abort; failures become unresolved ids and a
  null geometry. Non-routable profiles skip both.

build_pipeline / build_resolver wire the concrete clients from settings.
"""
import logging
from enum import Enum
from typing import List, Optional, Tuple

import requests
from openai import OpenAI
from sqlalchemy.orm import Session

from routerag.config import settings
from routerag.domains import DomainProfile
from routerag.embedding import EmbeddingEncoder
from routerag.entities import ResolvedWaypoint
from routerag.errors import InputError, RagError
from routerag.generation import StructuredGenerator
from routerag.geocoding import AddressResolver, NominatimGeocoder
from routerag.obs import QueryTrace, span
from routerag.prompting import PromptAssembler
from routerag.retrieval import build_index
from routerag.routing import OsrmRoutingClient, RouteBuilder, build_fallback_url
from routerag.schemas import GenerationResult, QueryResponse, Waypoint
from routerag.store import SqlEntityStore

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    VALIDATING = "validating"
    RETRIEVING = "retrieving"
    GENERATING = "generating"
    RESOLVING = "resolving"
    ROUTE_BUILDING = "route_building"
    ASSEMBLING = "assembling"
    DONE = "done"
    ERRORED = "errored"


def _unique(ids: List[str]) -> List[str]:
    seen = set()
    out: List[str] = []
    for i in ids:
        if i not in seen:
            seen.add(i)
            out.append(i)
    return out


class QueryPipeline:
    """Answer one query end to end for a single domain.

    Args:
        profile: Domain profile (entity schema, template, schema descriptions).
        encoder: EmbeddingEncoder for the query text.
        index: Ranking strategy with ``search(vector) -> RetrievedContext``.
        generator: StructuredGenerator.
        resolver: AddressResolver; required for routable profiles.
        route_builder: RouteBuilder; required for routable profiles.
        travel_mode: Travel mode written into the fallback deep link.
    """

    def __init__(
        self,
        profile: DomainProfile,
        encoder,
        index,
        generator,
        resolver: Optional[AddressResolver] = None,
        route_builder: Optional[RouteBuilder] = None,
        travel_mode: str = "driving",
    ):
        self.profile = profile
        self.encoder = encoder
        self.index = index
        self.assembler = PromptAssembler(profile)
        self.generator = generator
        self.resolver = resolver
        self.route_builder = route_builder
        self.travel_mode = travel_mode
        self.stage = Stage.VALIDATING

    def _enter(self, stage: Stage) -> None:
        logger.debug("[%s] %s -> %s", self.profile.name, self.stage.value, stage.value)
        self.stage = stage

    def run(self, query: Optional[str]) -> QueryResponse:
        """Run every stage for one query.

        Raises:
            InputError: Blank query.
            RetrievalError: Embedding or similarity search failed.
            GenerationError: Model output irreparably invalid.
        """
        self.stage = Stage.VALIDATING
        q = (query or "").strip()
        if not q:
            self._enter(Stage.ERRORED)
            raise InputError("query is required")

        trace = QueryTrace(self.profile.name, q)
        try:
            response = self._run(q, trace)
        except RagError as e:
            self._enter(Stage.ERRORED)
            trace.event("error", {"kind": e.kind, "detail": e.message})
            trace.finish(error=e.kind)
            raise
        except Exception as e:
            logger.exception("[%s] Unexpected failure in stage %s", self.profile.name, self.stage.value)
            self._enter(Stage.ERRORED)
            trace.finish(error=type(e).__name__)
            raise
        trace.finish(output={"items": len(response.relevant_items), "waypoints": len(response.waypoints)})
        return response

    def _run(self, q: str, trace: QueryTrace) -> QueryResponse:
        self._enter(Stage.RETRIEVING)
        with span("retrieve", {"domain": self.profile.name}):
            qvec = self.encoder.encode(q)
            context = self.index.search(qvec)
        trace.event("retrieval_result", {
            "num_candidates": len(context),
            "top_score": context[0].score if context else 0.0,
        })

        if not context:
            logger.info("No embedded %s matched; returning refusal", self.profile.table)
            self._enter(Stage.ASSEMBLING)
            response = QueryResponse(answer=self.profile.refusal_message, confidence=0.0)
            self._enter(Stage.DONE)
            return response

        self._enter(Stage.GENERATING)
        with span("generate", {"domain": self.profile.name}):
            request = self.assembler.assemble(q, context)
            result = self.generator.generate(request)
        trace.generation(request.system, result.answer, self.generator.model,
                         metadata={"items": len(result.relevant_items)})

        waypoints: List[ResolvedWaypoint] = []
        unresolved: List[str] = []
        geometry = None
        fallback_url = ""
        if self.profile.routable:
            waypoints, unresolved = self._resolve(result, trace)

            self._enter(Stage.ROUTE_BUILDING)
            with span("route", {"waypoints": len(waypoints)}):
                geometry = self.route_builder.build(waypoints)
                fallback_url = build_fallback_url(waypoints, self.travel_mode)
            trace.event("route", {"has_geometry": geometry is not None})

        self._enter(Stage.ASSEMBLING)
        response = QueryResponse(
            answer=result.answer,
            confidence=result.confidence,
            relevant_items=result.relevant_items,
            waypoints=[
                Waypoint(id=w.id, address=w.address, label=w.label, coordinates=[w.latitude, w.longitude])
                for w in waypoints
            ],
            route_geometry=geometry,
            fallback_url=fallback_url,
            unresolved=unresolved,
        )
        self._enter(Stage.DONE)
        return response

    def _resolve(self, result: GenerationResult, trace: QueryTrace) -> Tuple[List[ResolvedWaypoint], List[str]]:
        self._enter(Stage.RESOLVING)
        ids = _unique([item.id for item in result.relevant_items])
        with span("resolve", {"items": len(ids)}):
            entities, report = self.resolver.resolve_ids(ids)
        trace.event("resolution", {
            "updated": len(report.updated),
            "failed": len(report.failed),
            "skipped": len(report.skipped),
        })
        waypoints = [
            ResolvedWaypoint(
                id=e.id,
                address=self.profile.display_address(e),
                latitude=e.latitude,
                longitude=e.longitude,
                label=self.profile.label(e),
            )
            for e in entities
            if e.has_coordinates
        ]
        resolved = {w.id for w in waypoints}
        unresolved = [i for i in ids if i not in resolved]
        if unresolved:
            logger.warning("Unresolved %s: %s", self.profile.table, ", ".join(unresolved))
        return waypoints, unresolved


def build_resolver(profile: DomainProfile, store, http: requests.Session) -> AddressResolver:
    geocoder = NominatimGeocoder(
        settings.GEOCODER_URL,
        settings.GEOCODER_USER_AGENT,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
        session=http,
    )
    return AddressResolver(geocoder, store, profile, min_delay=settings.GEOCODER_MIN_DELAY_SECONDS)


def build_pipeline(profile: DomainProfile, db: Session, openai_client: OpenAI, http: requests.Session) -> QueryPipeline:
    """Wire a QueryPipeline for one request from settings and shared clients."""
    store = SqlEntityStore(db, profile)
    encoder = EmbeddingEncoder(openai_client, settings.OPENAI_EMBEDDING_MODEL, settings.EMBEDDING_DIM)
    generator = StructuredGenerator(
        openai_client,
        settings.OPENAI_MODEL,
        temperature=settings.GENERATION_TEMPERATURE,
        max_tokens=settings.MAX_OUTPUT_TOKENS,
    )
    router = OsrmRoutingClient(
        settings.ROUTING_URL, settings.ROUTING_PROFILE, timeout=settings.HTTP_TIMEOUT_SECONDS, session=http
    )
    return QueryPipeline(
        profile,
        encoder,
        build_index(settings.RANKING_STRATEGY, store, settings.TOP_K),
        generator,
        resolver=build_resolver(profile, store, http),
        route_builder=RouteBuilder(router),
        travel_mode=settings.FALLBACK_TRAVEL_MODE,
    )
