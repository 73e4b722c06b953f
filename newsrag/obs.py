"""Observability utilities: Langfuse traces and OpenTelemetry spans.

This module centralizes lightweight observability features:
- Langfuse integration via a minimal Trace wrapper that is a no-op unless the
  LANGFUSE_* settings are configured.
- An OpenTelemetry span context manager. A console exporter is attached only
  when OTEL_CONSOLE_EXPORT is enabled, so users can plug in a different
  exporter externally.

Tracing failures are logged at debug level and never affect the request.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from langfuse import Langfuse
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

from newsrag.config import settings

logger = logging.getLogger(__name__)

_langfuse_client: Optional[Langfuse] = None
_otel_inited: bool = False


def _init_langfuse() -> Optional[Langfuse]:
    """Return the process-wide Langfuse client, or None when LANGFUSE_* is incomplete."""
    global _langfuse_client
    if _langfuse_client is not None:
        return _langfuse_client
    if settings.LANGFUSE_HOST and settings.LANGFUSE_PUBLIC_KEY and settings.LANGFUSE_SECRET_KEY:
        _langfuse_client = Langfuse(
            host=settings.LANGFUSE_HOST,
            public_key=settings.LANGFUSE_PUBLIC_KEY,
            secret_key=settings.LANGFUSE_SECRET_KEY,
        )
        return _langfuse_client
    return None


def _init_otel() -> None:
    """Set a global tracer provider once (console export only when enabled)."""
    global _otel_inited
    if _otel_inited:
        return
    tp = TracerProvider()
    if settings.OTEL_CONSOLE_EXPORT:
        tp.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(tp)
    _otel_inited = True


@contextmanager
def span(name: str, attributes: Optional[Dict[str, Any]] = None) -> Iterator[None]:
    """
    Lightweight context manager for an OpenTelemetry span.
    Exceptions raised by the wrapped block are recorded and re-raised.
    """
    _init_otel()
    tracer = trace.get_tracer(__name__)
    with tracer.start_as_current_span(name) as otel_span:
        for k, v in (attributes or {}).items():
            otel_span.set_attribute(k, v)
        yield


class Trace:
    """One Langfuse trace per chat turn; every method is a no-op when disabled.

    Args:
        name: Trace name shown in Langfuse.
        input: Request payload recorded on the trace.
    """

    def __init__(self, name: str, input: Optional[Dict[str, Any]] = None):
        self.name = name
        self.enabled = False
        self._trace = None
        client = _init_langfuse()
        if client is not None:
            try:
                self._trace = client.trace(name=name, input=input or {})
                self.enabled = True
            except Exception as e:
                logger.debug("Langfuse trace creation failed: %s", e)

    def event(self, name: str, data: Optional[Dict[str, Any]] = None) -> None:
        """Attach a named event with a small payload."""
        if not self.enabled:
            return
        try:
            self._trace.event(name=name, input=data or {})
        except Exception as e:
            logger.debug("Langfuse event %s failed: %s", name, e)

    def generation(
        self,
        name: str,
        prompt: str,
        output: str,
        model: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Attach the prompt, reply and model of a completed generation."""
        if not self.enabled:
            return
        try:
            self._trace.generation(name=name, input=prompt, output=output, metadata=metadata or {}, model=model)
        except Exception as e:
            logger.debug("Langfuse generation %s failed: %s", name, e)

    def end(self, output: Optional[Dict[str, Any]] = None) -> None:
        """Record the final output of the turn."""
        if not self.enabled:
            return
        try:
            self._trace.update(output=output or {})
        except Exception as e:
            logger.debug("Langfuse trace end failed: %s", e)
