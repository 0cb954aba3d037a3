"""
Observability and tracing with Arize Phoenix.

Provides OpenTelemetry spans around the answer, summary and ingestion
operations, exported to Phoenix when tracing is enabled.
"""

from docqa.tracing.phoenix import add_span_attributes, setup_tracing, traced

__all__ = ["setup_tracing", "traced", "add_span_attributes"]
