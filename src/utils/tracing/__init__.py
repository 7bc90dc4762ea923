"""
Distributed tracing using OpenTelemetry.

Instruments cloud sync runs, the poll loop passes and inventory HTTP calls.
"""

from .context import add_span_attributes, add_span_event, trace_operation
from .tracer import (
    get_tracer,
    initialize_tracing,
    instrument_requests,
    shutdown_tracing,
)

__all__ = [
    "initialize_tracing",
    "get_tracer",
    "shutdown_tracing",
    "instrument_requests",
    "trace_operation",
    "add_span_attributes",
    "add_span_event",
]
