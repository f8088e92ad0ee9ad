"""Pydantic schemas for model output and the API contracts.

Defines:
- RelevantItem / GenerationResult: the fixed output schema the generative model must
  satisfy. Extra or missing fields, non-numeric scores and scores outside [0, 1]
  invalidate a result.
- QueryRequest / QueryResponse / Waypoint: the /query endpoint contract.
- UpdatedEntity / FailedEntity / ResolutionReport / PopulateResponse: outcome of a
  geocoding batch and the /coordinates/populate endpoint contract.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr


class RelevantItem(BaseModel):
    """One entity the model used, referenced by id."""
    model_config = ConfigDict(extra="forbid")

    id: StrictStr
    relevance: float = Field(..., ge=0.0, le=1.0, strict=True)


class GenerationResult(BaseModel):
    """Validated structured answer.

    Attributes:
        answer: Free-text answer (rationale first).
        confidence: Model confidence in [0, 1].
        relevant_items: Ordered list of used entities (JSON key ``relevantItems``).
    """
    model_config = ConfigDict(extra="forbid")

    answer: StrictStr
    confidence: float = Field(..., ge=0.0, le=1.0, strict=True)
    relevant_items: List[RelevantItem] = Field(..., alias="relevantItems")


class QueryRequest(BaseModel):
    """Request body for the /query endpoint.

    Attributes:
        query: Natural-language question. Blank queries are rejected by the pipeline.
        domain: Name of the domain profile to run ("clients" or "invoices").
    """
    query: Optional[str] = Field(default="", description="User query")
    domain: str = Field(default="clients", description="Domain profile name")


class Waypoint(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    address: str
    label: Optional[str] = None
    coordinates: Optional[List[float]] = None  # [lat, lon]


class QueryResponse(BaseModel):
    """Response body for the /query endpoint.

    Attributes:
        answer: Generated answer text.
        confidence: Model confidence in [0, 1].
        relevant_items: Entities the model used, in order.
        waypoints: Resolved route stops (only entities with coordinates).
        route_geometry: GeoJSON geometry from the routing engine, or null.
        fallback_url: Map deep link; empty when no waypoint could be resolved.
        unresolved: Ids of relevant items that could not be turned into waypoints.
    """
    model_config = ConfigDict(populate_by_name=True)

    answer: str
    confidence: float
    relevant_items: List[RelevantItem] = Field(default_factory=list, alias="relevantItems")
    waypoints: List[Waypoint] = Field(default_factory=list)
    route_geometry: Optional[Dict[str, Any]] = Field(default=None, alias="routeGeometry")
    fallback_url: str = Field(default="", alias="fallbackUrl")
    unresolved: List[str] = Field(default_factory=list)


class UpdatedEntity(BaseModel):
    id: str
    address: str
    lat: float
    lon: float


class FailedEntity(BaseModel):
    id: str
    address: str = ""
    reason: str


class ResolutionReport(BaseModel):
    """Partition of a geocoding batch; a batch where every item failed is still a normal result."""
    updated: List[UpdatedEntity] = Field(default_factory=list)
    failed: List[FailedEntity] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)


class PopulateResponse(ResolutionReport):
    message: str
