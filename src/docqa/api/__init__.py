"""
FastAPI REST API for docqa.

Endpoints:
    GET    /health                         - Health check
    POST   /documents                      - Ingest a document
    GET    /documents                      - List documents
    DELETE /documents/{id}                 - Delete a document
    POST   /ask                            - Answer a question
    POST   /documents/{id}/summary         - Summarize a document
    POST   /documents/{id}/analysis        - Structured document analysis
"""

from docqa.api.main import app, create_app

__all__ = ["app", "create_app"]
