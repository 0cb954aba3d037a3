"""
Arize Phoenix tracing integration.

Sets up OpenTelemetry tracing for the retrieval-and-answer pipeline.
Traces are sent to a Phoenix collector for visualization.

Usage:
    from docqa.tracing import setup_tracing
    setup_tracing()  # Call once at application startup
"""

import functools
import inspect
import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional, TypeVar

from opentelemetry import trace

from docqa.config import Settings, get_settings

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

PROJECT_NAME = "docqa"


def setup_tracing(settings: Optional[Settings] = None) -> bool:
    """
    Register a Phoenix tracer provider when tracing is enabled.

    Requires the ``tracing`` extra and a Phoenix collector at
    ``settings.phoenix_endpoint``.

    Returns:
        True if a tracer provider was registered
    """
    settings = settings or get_settings()
    if not settings.enable_tracing:
        return False

    try:
        from phoenix.otel import register
    except ImportError:
        logger.warning(
            "Phoenix tracing dependencies not installed. "
            "Install with: pip install docqa[tracing]"
        )
        return False

    try:
        register(
            project_name=PROJECT_NAME,
            endpoint=f"{settings.phoenix_endpoint}/v1/traces",
        )
    except Exception as e:
        logger.warning(f"Failed to setup tracing: {e}")
        return False

    logger.info(f"Tracing enabled, exporting to {settings.phoenix_endpoint}")
    return True


def traced(name: Optional[str] = None) -> Callable[[F], F]:
    """
    Decorator to add a tracing span to a function or coroutine function.

    Spans are only created while ``enable_tracing`` is set; otherwise the
    function runs untouched.

    Example:
        @traced("chat.answer")
        async def answer(...):
            ...
    """
    def decorator(func: F) -> F:
        span_name = name or func.__qualname__

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                if not get_settings().enable_tracing:
                    return await func(*args, **kwargs)
                with _start_span(span_name, func) as span:
                    result = await func(*args, **kwargs)
                    span.set_attribute("result.type", type(result).__name__)
                    return result

            return async_wrapper  # type: ignore

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            if not get_settings().enable_tracing:
                return func(*args, **kwargs)
            with _start_span(span_name, func) as span:
                result = func(*args, **kwargs)
                span.set_attribute("result.type", type(result).__name__)
                return result

        return wrapper  # type: ignore

    return decorator


@contextmanager
def _start_span(span_name: str, func: Callable[..., Any]) -> Iterator[trace.Span]:
    tracer = trace.get_tracer(__name__)
    with tracer.start_as_current_span(span_name) as span:
        span.set_attribute("function.name", func.__name__)
        span.set_attribute("function.module", func.__module__)
        yield span


def add_span_attributes(**attributes: Any) -> None:
    """
    Add attributes to the current span.

    Example:
        add_span_attributes(question_length=42, chunks_retrieved=5)
    """
    if not get_settings().enable_tracing:
        return

    span = trace.get_current_span()
    for key, value in attributes.items():
        if isinstance(value, (str, int, float, bool)):
            span.set_attribute(key, value)
        else:
            span.set_attribute(key, str(value))
