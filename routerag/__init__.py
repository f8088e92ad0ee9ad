"""Application package containing the API, configuration, data access, and the
retrieval -> generation -> resolution pipeline.

Submodules overview:
- main: FastAPI application bootstrap and routes.
- config: Application settings and environment variable loading.
- db: Database engine/session management helpers.
- models: ORM models (clients, invoices).
- store: SQLAlchemy storage boundary used by the pipeline.
- domains: Domain profiles that parameterize the generic pipeline.
- entities: In-memory records passed between stages.
- schemas: Pydantic output schema and API contracts.
- embedding: Query/record embedding with truncation and L2 normalization.
- retrieval: Delegated (pgvector) and application-side similarity ranking.
- prompting: Context rendering and prompt assembly.
- generation: Schema-validated generation with one repair attempt.
- geocoding: Nominatim geocoder and the rate-limited address resolver.
- routing: OSRM route geometry and the map deep-link fallback.
- pipeline: Stage orchestration and error mapping.
- errors: Error taxonomy.
- ingestion: Offline record ingestion CLI.
- obs: Observability utilities (tracing/spans).
- utils: General-purpose helper functions.
"""
