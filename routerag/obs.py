"""Optional tracing for pipeline runs: Langfuse traces and OpenTelemetry spans.

- QueryTrace: one Langfuse trace per query, tagged with the domain. Stage events,
  the model generation and the final outcome (ok or the error kind) are attached.
  Every method is a no-op when Langfuse is not installed or not configured.
- span: an OpenTelemetry span around one pipeline stage. Exceptions escaping the
  block are recorded on the span and re-raised. No-op without OpenTelemetry.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from routerag.config import settings

logger = logging.getLogger(__name__)

# Optional Langfuse (v2 client API)
try:
    from langfuse import Langfuse
except ImportError:  # pragma: no cover
    Langfuse = None

# Optional OpenTelemetry
try:
    from opentelemetry import trace
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
    from opentelemetry.trace import Status, StatusCode
except ImportError:  # pragma: no cover
    trace = None  # type: ignore


_langfuse_client = None
_tracer = None


def _langfuse():
    global _langfuse_client
    if _langfuse_client is None and Langfuse is not None and settings.langfuse_enabled:
        _langfuse_client = Langfuse(
            host=settings.LANGFUSE_HOST,
            public_key=settings.LANGFUSE_PUBLIC_KEY,
            secret_key=settings.LANGFUSE_SECRET_KEY,
        )
    return _langfuse_client


def _get_tracer():
    """Install a console-exporting tracer provider on first use."""
    global _tracer
    if _tracer is None and trace is not None:
        provider = TracerProvider()
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
        trace.set_tracer_provider(provider)
        _tracer = trace.get_tracer("routerag.pipeline")
    return _tracer


@contextmanager
def span(stage: str, attributes: Optional[Dict[str, Any]] = None) -> Iterator[None]:
    tracer = _get_tracer()
    if tracer is None:
        yield
        return
    with tracer.start_as_current_span(f"routerag.{stage}", record_exception=False) as s:
        for k, v in (attributes or {}).items():
            s.set_attribute(f"routerag.{k}", v)
        try:
            yield
        except Exception as e:
            s.record_exception(e)
            s.set_status(Status(StatusCode.ERROR, str(e)))
            raise


class QueryTrace:
    """Langfuse trace for one pipeline run.

    Args:
        domain: Domain profile name, stored as a trace tag.
        query: The stripped user query.
    """

    def __init__(self, domain: str, query: str):
        self.domain = domain
        self._trace = None
        client = _langfuse()
        if client is None:
            return
        try:
            self._trace = client.trace(name=f"query:{domain}", input={"query": query}, tags=[domain])
        except Exception as e:
            logger.warning("Langfuse trace creation failed for %s: %s", domain, e)

    @property
    def enabled(self) -> bool:
        return self._trace is not None

    def event(self, stage: str, data: Optional[Dict[str, Any]] = None) -> None:
        if not self.enabled:
            return
        try:
            self._trace.event(name=stage, input=data or {})
        except Exception as e:
            logger.debug("Langfuse event %s dropped: %s", stage, e)

    def generation(self, prompt: str, output: str, model: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        """Record the model call that produced the validated answer."""
        if not self.enabled:
            return
        try:
            self._trace.generation(name="answer", input=prompt, output=output, model=model, metadata=metadata or {})
        except Exception as e:
            logger.debug("Langfuse generation dropped: %s", e)

    def finish(self, output: Optional[Dict[str, Any]] = None, error: Optional[str] = None) -> None:
        """Close out the trace with the response summary or the error kind."""
        if not self.enabled:
            return
        try:
            if error is None:
                self._trace.update(output=output or {})
            else:
                self._trace.update(output={"error": error}, metadata={"level": "ERROR"})
        except Exception as e:
            logger.debug("Langfuse trace update dropped: %s", e)
