"""
Command-line interface for docqa.

Commands:
    serve     - Start the FastAPI server
    ingest    - Ingest a text or markdown file
    ask       - Ask a question about the stored documents
    summarize - Summarize one document
    documents - List stored documents
    delete    - Delete a document
    version   - Show version information
"""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from docqa.exceptions import DocQAError

app = typer.Typer(
    name="docqa",
    help="Question answering over your documents",
    add_completion=False,
)
console = Console()

SUPPORTED_SUFFIXES = {".txt", ".md", ".markdown"}
DEFAULT_OWNER = "local"


def _service():
    from docqa.config import get_settings
    from docqa.logging_setup import configure_logging
    from docqa.service import build_service

    settings = get_settings()
    configure_logging(settings.log_level)
    return build_service(settings)


def _fail(error: DocQAError) -> None:
    console.print(f"[red]{type(error).__name__}: {error}[/red]")
    for detail in getattr(error, "errors", []):
        console.print(f"  [dim]{detail}[/dim]")
    raise typer.Exit(1)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Host to bind (default from settings)"),
    port: Optional[int] = typer.Option(None, help="Port to bind (default from settings)"),
    reload: bool = typer.Option(False, help="Enable auto-reload"),
) -> None:
    """Start the FastAPI server."""
    import uvicorn

    from docqa.config import get_settings

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    console.print(f"[green]Starting docqa server on {host}:{port}[/green]")

    uvicorn.run(
        "docqa.api.main:app",
        host=host,
        port=port,
        reload=reload,
        workers=1,  # the FAISS store is in-process
    )


@app.command()
def ingest(
    path: Path = typer.Argument(..., help="Text or markdown file to ingest"),
    title: Optional[str] = typer.Option(None, help="Document title (default: file name)"),
    owner: str = typer.Option(DEFAULT_OWNER, help="Owner id"),
    keep_content: bool = typer.Option(False, "--keep-content", help="Store the raw text too"),
) -> None:
    """Chunk, embed and store a document."""
    if not path.exists():
        console.print(f"[red]File not found: {path}[/red]")
        raise typer.Exit(1)
    if path.suffix.lower() not in SUPPORTED_SUFFIXES:
        console.print(f"[red]Unsupported file type: {path.suffix} (use .txt or .md)[/red]")
        raise typer.Exit(1)

    text = path.read_text(encoding="utf-8")
    service = _service()

    try:
        with console.status(f"[bold green]Ingesting {path.name}..."):
            result = asyncio.run(
                service.ingest(
                    title=title or path.name,
                    owner_id=owner,
                    content=text,
                    keep_content=keep_content,
                )
            )
    except DocQAError as e:
        _fail(e)

    console.print(f"[green]✓ Ingested {result.title}[/green]")
    console.print(f"  Document id: {result.document_id}")
    console.print(f"  Chunks: {result.chunk_count}")


@app.command()
def ask(
    question: str = typer.Argument(..., help="Question to ask"),
    limit: Optional[int] = typer.Option(None, "--limit", "-k", help="Maximum chunks to use"),
    threshold: Optional[float] = typer.Option(None, "--threshold", "-t", help="Minimum similarity"),
    document: Optional[list[str]] = typer.Option(
        None, "--document", "-d", help="Restrict to a document id (repeatable)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show sources"),
) -> None:
    """Answer a question from the stored documents."""
    service = _service()
    console.print(f"[blue]Question:[/blue] {question}\n")

    try:
        with console.status("[bold green]Processing..."):
            answer = asyncio.run(
                service.ask(question, limit=limit, threshold=threshold, document_ids=document)
            )
    except DocQAError as e:
        _fail(e)

    console.print("[green]Answer:[/green]")
    console.print(answer.answer)
    console.print()

    if answer.sources:
        table = Table(title="Sources")
        table.add_column("Document", style="cyan")
        table.add_column("Chunks", style="green")
        table.add_column("Top similarity", style="green")
        for source in answer.sources:
            table.add_row(source.document_title, str(source.chunks_used), f"{source.top_similarity:.2f}")
        console.print(table)

    if verbose:
        console.print(f"[dim]Chunks used: {answer.chunks_used}[/dim]")


@app.command()
def summarize(
    document_id: str = typer.Argument(..., help="Document id"),
    max_chunks: Optional[int] = typer.Option(None, help="Leading chunks to use"),
    analysis: bool = typer.Option(
        False, "--analysis", "-a", help="Structured overview, key findings and keywords"
    ),
) -> None:
    """Summarize one document."""
    service = _service()

    try:
        with console.status("[bold green]Summarizing..."):
            if analysis:
                result = asyncio.run(service.analyze_document(document_id, max_chunks=max_chunks))
            else:
                result = asyncio.run(service.summarize(document_id, max_chunks=max_chunks))
    except DocQAError as e:
        _fail(e)

    if not analysis:
        console.print(result.answer)
        return

    console.print("[green]Overview:[/green]")
    console.print(result.overview)
    if result.key_findings:
        console.print("\n[green]Key findings:[/green]")
        for finding in result.key_findings:
            console.print(f"  • {finding}")
    if result.keywords:
        console.print(f"\n[blue]Keywords:[/blue] {', '.join(result.keywords)}")
    console.print(
        f"\n[dim]{result.word_count:,} words, ~{result.reading_time_minutes} min read[/dim]"
    )


@app.command()
def documents(
    owner: Optional[str] = typer.Option(None, help="Only this owner's documents"),
) -> None:
    """List stored documents."""
    service = _service()
    docs = asyncio.run(service.list_documents(owner))

    if not docs:
        console.print("[yellow]No documents stored.[/yellow]")
        return

    table = Table(title="Documents")
    table.add_column("Id", style="cyan")
    table.add_column("Title", style="green")
    table.add_column("Owner")
    table.add_column("Created")
    for doc in docs:
        table.add_row(doc.id, doc.title, doc.owner_id, doc.created_at.strftime("%Y-%m-%d %H:%M"))
    console.print(table)


@app.command()
def delete(
    document_id: str = typer.Argument(..., help="Document id"),
    owner: str = typer.Option(DEFAULT_OWNER, help="Owner id"),
) -> None:
    """Delete a document and its chunks."""
    service = _service()

    try:
        asyncio.run(service.delete_document(document_id, owner))
    except DocQAError as e:
        _fail(e)

    console.print(f"[green]✓ Deleted {document_id}[/green]")


@app.command()
def version() -> None:
    """Show version information."""
    from docqa import __version__

    console.print(f"docqa v{__version__}")


if __name__ == "__main__":
    app()
