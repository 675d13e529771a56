"""Optional OpenTelemetry instrumentation for tessera.

Call ``tessera.instrument()`` once at startup to enable tracing.
Requires ``opentelemetry-api`` to be installed; streaming works
identically without it.
"""

import importlib.util
import logging
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)

_tracer = None


def instrument(*, tracer_name: str = "tessera") -> None:
    """Enable OpenTelemetry tracing for streamed chat turns.

    Call once at startup, after configuring your TracerProvider.
    Requires ``opentelemetry-api``: ``pip install tessera[otel]``

    Example::

        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry import trace

        trace.set_tracer_provider(TracerProvider())

        import tessera
        tessera.instrument()

    Args:
        tracer_name: Name passed to ``trace.get_tracer()``.

    Raises:
        ImportError: If ``opentelemetry-api`` is not installed.
    """
    global _tracer
    if importlib.util.find_spec("opentelemetry.trace") is None:
        raise ImportError(
            "opentelemetry-api is required for instrumentation. "
            "Install it with: pip install tessera[otel]"
        )
    from opentelemetry import trace
    _tracer = trace.get_tracer(tracer_name)
    if isinstance(_tracer, trace.NoOpTracer):
        logger.info(
            "No TracerProvider configured; spans will be "
            "discarded. Set up a TracerProvider to export "
            "traces."
        )
    else:
        logger.info("Tessera instrumentation enabled")


def uninstrument() -> None:
    """Disable OpenTelemetry tracing."""
    global _tracer
    _tracer = None


@asynccontextmanager
async def turn_span(model: str, session_id: str):
    """Wrap one streamed chat turn in a ``chat`` span."""
    if _tracer is None:
        yield None
        return
    from opentelemetry.trace import SpanKind

    with _tracer.start_as_current_span(
        f"chat {model}",
        kind=SpanKind.CLIENT,
        attributes={
            "gen_ai.operation.name": "chat",
            "gen_ai.request.model": model,
            "gen_ai.conversation.id": session_id,
        },
    ) as span:
        yield span


def record_usage(
    span, usage, response_model: str | None = None
):
    """Set token-usage and response-model attributes on a span."""
    if span is None:
        return
    if usage is not None:
        if getattr(usage, "prompt_tokens", None) is not None:
            span.set_attribute(
                "gen_ai.usage.input_tokens",
                usage.prompt_tokens,
            )
        if getattr(usage, "completion_tokens", None) is not None:
            span.set_attribute(
                "gen_ai.usage.output_tokens",
                usage.completion_tokens,
            )
    if response_model:
        span.set_attribute(
            "gen_ai.response.model", response_model
        )


def record_finish(span, finish_reason: str | None, parts: int) -> None:
    if span is None:
        return
    if finish_reason:
        span.set_attribute(
            "gen_ai.response.finish_reasons", [finish_reason]
        )
    span.set_attribute("tessera.message.parts", parts)


def record_error(span, exception: BaseException) -> None:
    """Record an exception and set ERROR status on a span.

    No-ops when *span* is ``None`` (tracing disabled).
    """
    if span is None:
        return
    from opentelemetry.trace import StatusCode

    span.set_status(StatusCode.ERROR, str(exception))
    span.record_exception(exception)
    span.set_attribute(
        "error.type", type(exception).__qualname__
    )
