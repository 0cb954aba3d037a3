"""
Unit tests for Phoenix tracing integration.

Tests cover:
    - setup_tracing() initialization
    - @traced decorator on functions and coroutines
    - add_span_attributes() helper
    - Graceful degradation when dependencies are missing
"""

import logging
import sys
from unittest.mock import MagicMock, patch

import pytest

from docqa.config import Settings
from docqa.tracing import phoenix as phoenix_module
from docqa.tracing import add_span_attributes, setup_tracing, traced

# =============================================================================
# Fixtures
# =============================================================================


def make_settings(enable_tracing: bool) -> Settings:
    return Settings(
        _env_file=None,
        enable_tracing=enable_tracing,
        phoenix_endpoint="http://localhost:6006",
    )


@pytest.fixture
def mock_register():
    """Install a fake ``phoenix.otel`` module and yield its register function."""
    mock_otel = MagicMock()
    with patch.dict(sys.modules, {"phoenix": MagicMock(otel=mock_otel), "phoenix.otel": mock_otel}):
        yield mock_otel.register


@pytest.fixture
def tracing_enabled():
    """Enable tracing and replace the OpenTelemetry tracer with a mock."""
    mock_trace = MagicMock()
    span = MagicMock()
    mock_trace.get_tracer.return_value.start_as_current_span.return_value.__enter__.return_value = span
    mock_trace.get_current_span.return_value = span
    with patch.object(phoenix_module, "get_settings", return_value=make_settings(True)), \
            patch.object(phoenix_module, "trace", mock_trace):
        yield mock_trace, span


# =============================================================================
# setup_tracing() Tests
# =============================================================================


@pytest.mark.unit
def test_setup_tracing_disabled(mock_register):
    """Test that setup_tracing does nothing when tracing is disabled."""
    assert setup_tracing(make_settings(False)) is False
    mock_register.assert_not_called()


@pytest.mark.unit
def test_setup_tracing_success(mock_register):
    """Test successful tracing setup with Phoenix."""
    assert setup_tracing(make_settings(True)) is True

    mock_register.assert_called_once_with(
        project_name="docqa",
        endpoint="http://localhost:6006/v1/traces",
    )


@pytest.mark.unit
def test_setup_tracing_missing_dependencies(caplog):
    """Test graceful handling when Phoenix is not installed."""
    with patch.dict(sys.modules, {"phoenix": None, "phoenix.otel": None}):
        with caplog.at_level(logging.WARNING, logger="docqa.tracing.phoenix"):
            assert setup_tracing(make_settings(True)) is False

    assert "Phoenix tracing dependencies not installed" in caplog.text


@pytest.mark.unit
def test_setup_tracing_initialization_error(mock_register, caplog):
    """Test graceful handling of initialization errors."""
    mock_register.side_effect = RuntimeError("Connection failed")

    with caplog.at_level(logging.WARNING, logger="docqa.tracing.phoenix"):
        assert setup_tracing(make_settings(True)) is False

    assert "Failed to setup tracing: Connection failed" in caplog.text


# =============================================================================
# @traced Decorator Tests
# =============================================================================


@pytest.mark.unit
def test_traced_decorator_disabled():
    """Test that @traced has no effect when tracing is disabled."""
    mock_trace = MagicMock()
    with patch.object(phoenix_module, "get_settings", return_value=make_settings(False)), \
            patch.object(phoenix_module, "trace", mock_trace):

        @traced("test_span")
        def add(a, b):
            return a + b

        assert add(2, 3) == 5

    mock_trace.get_tracer.assert_not_called()


@pytest.mark.unit
def test_traced_decorator_enabled(tracing_enabled):
    """Test that @traced creates a span with function attributes."""
    mock_trace, span = tracing_enabled

    @traced("test_span")
    def add(a, b):
        return a + b

    assert add(2, 3) == 5

    mock_trace.get_tracer.return_value.start_as_current_span.assert_called_once_with("test_span")
    span.set_attribute.assert_any_call("function.name", "add")
    span.set_attribute.assert_any_call("result.type", "int")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_traced_decorator_coroutine(tracing_enabled):
    """Test that @traced keeps coroutine functions awaitable and spans the await."""
    mock_trace, span = tracing_enabled

    @traced()
    async def fetch():
        return ["a", "b"]

    assert await fetch() == ["a", "b"]

    mock_trace.get_tracer.return_value.start_as_current_span.assert_called_once_with(
        fetch.__wrapped__.__qualname__
    )
    span.set_attribute.assert_any_call("result.type", "list")


@pytest.mark.unit
def test_traced_preserves_metadata():
    """Test that @traced preserves function name and docstring."""

    @traced()
    def documented():
        """Docstring."""

    assert documented.__name__ == "documented"
    assert documented.__doc__ == "Docstring."


# =============================================================================
# add_span_attributes() Tests
# =============================================================================


@pytest.mark.unit
def test_add_span_attributes(tracing_enabled):
    """Test that primitive values are set as-is and others stringified."""
    _, span = tracing_enabled

    add_span_attributes(question_length=42, limit=5, documents=["a", "b"])

    span.set_attribute.assert_any_call("question_length", 42)
    span.set_attribute.assert_any_call("limit", 5)
    span.set_attribute.assert_any_call("documents", "['a', 'b']")


@pytest.mark.unit
def test_add_span_attributes_disabled():
    """Test that add_span_attributes is a no-op when tracing is disabled."""
    mock_trace = MagicMock()
    with patch.object(phoenix_module, "get_settings", return_value=make_settings(False)), \
            patch.object(phoenix_module, "trace", mock_trace):
        add_span_attributes(key="value")

    mock_trace.get_current_span.assert_not_called()
