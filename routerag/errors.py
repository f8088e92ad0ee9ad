"""Error taxonomy for the query pipeline.

Terminal errors (abort the request, mapped to an HTTP status by the API):
- InputError: missing/empty query, raised before any external call.
- RetrievalError: embedding or similarity-search failure.
- GenerationError: model output still invalid after the single repair attempt.

Absorbed errors (raised by external clients, turned into data by the pipeline):
- GeocodingError: transport failure talking to the geocoder.
- PersistenceError: a coordinate write-back failed.
- RoutingError: transport failure talking to the routing engine.
"""


class RagError(Exception):
    """Base class for errors that abort a pipeline run."""

    kind = "internal_error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InputError(RagError):
    kind = "input_error"
    status_code = 400


class RetrievalError(RagError):
    kind = "retrieval_error"
    status_code = 502


class GenerationError(RagError):
    kind = "generation_error"
    status_code = 502


class GeocodingError(Exception):
    pass


class PersistenceError(Exception):
    pass


class RoutingError(Exception):
    pass
