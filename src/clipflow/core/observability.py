"""Tracing helpers built on the OpenTelemetry API.

Without a configured SDK the API hands out no-op tracers, so spans cost
nothing in development and tests. Deployments that want traces install an
SDK and exporter and configure them before the app starts.

Never put clipboard content in span attributes. Lengths, ids and outcome
kinds are fine.
"""

from opentelemetry import trace
from opentelemetry.trace import Tracer


def get_tracer(name: str) -> Tracer:
    """Get an OpenTelemetry tracer, typically for ``__name__`` of the caller.

    Example:
        tracer = get_tracer(__name__)

        with tracer.start_as_current_span("transformation_flow") as span:
            span.set_attribute("flow.input_chars", len(text))
    """
    return trace.get_tracer(name)
