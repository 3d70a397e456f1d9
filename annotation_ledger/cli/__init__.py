"""
Command Line Interface for annotation-ledger.
"""

import json
from pathlib import Path
from typing import Iterator, Optional

import typer
import uvicorn
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config import get_settings
from ..corpus.ingestion import CorpusIngestion
from ..db.base import init_database, session_scope
from ..errors import AnnotationError
from ..log_config import configure_logging
from ..stats.aggregator import StatsAggregator
from ..users.services import UserService

app = typer.Typer(help="Annotation Ledger - revision-tracked text annotation backend")
console = Console()


def _read_records(path: Path) -> Iterator[dict]:
    """Yield token records from a JSON-lines file, one per line."""
    with path.open(encoding="utf-8") as handle:
        for line in handle:
            line = line.strip()
            if line:
                yield json.loads(line)


@app.command()
def serve(
    port: int = typer.Option(None, help="Port to run the API server on"),
    host: str = typer.Option(None, help="Host to bind the server to"),
    dev: bool = typer.Option(False, help="Run in development mode"),
):
    """Start the API server."""
    settings = get_settings()
    rprint(Panel.fit("Starting Annotation Ledger", style="bold blue"))
    uvicorn.run(
        "annotation_ledger.main:app",
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=dev,
    )


@app.command("init-db")
def init_db():
    """Create all tables."""
    configure_logging(get_settings())
    init_database()
    console.print("✅ Database initialized")


@app.command()
def ingest(
    text_id: int = typer.Argument(..., help="Text to load the tokens into"),
    source: Path = typer.Argument(..., exists=True, help="JSON-lines token file"),
    lang: str = typer.Option(..., help="Language key for token deduplication"),
    user_id: int = typer.Option(..., help="Acting user id"),
    replace: bool = typer.Option(True, help="Remove the text's strings first"),
):
    """Ingest a tokenized document."""
    settings = get_settings()
    configure_logging(settings)

    with session_scope() as db:
        actor = UserService(db).get_actor(user_id)
        if actor is None:
            console.print(f"❌ User {user_id} is unknown or inactive")
            raise typer.Exit(code=1)
        try:
            seconds = CorpusIngestion(db, settings).ingest(
                actor, text_id, _read_records(source), lang, replace=replace
            )
        except AnnotationError as exc:
            console.print(f"❌ {exc.message}")
            raise typer.Exit(code=1)

    console.print(f"✅ Text {text_id} ingested in {seconds}s")


@app.command()
def stats(text_id: int = typer.Argument(..., help="Text to report on")):
    """Show progress statistics for a text."""
    with session_scope() as db:
        data = StatsAggregator(db).stats(text_id)

    counts = data.completion_counts
    table = Table(title=f"Text {text_id}", show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Comments", str(counts["total"]))
    table.add_row("Published", str(counts["ready"]))
    table.add_row("Drafts", str(counts["draft"]))
    table.add_row(
        "Estimated completion",
        data.estimated_completion.isoformat() if data.estimated_completion else "n/a",
    )
    for row in data.per_user_activity:
        table.add_row(f"Changes by user {row['user_id']}", str(row["count"]))
    console.print(table)


@app.command()
def version():
    """Show version information."""
    from .. import __version__

    rprint(Panel.fit(f"Annotation Ledger v{__version__}", style="bold green"))


def main(argv: Optional[list] = None):
    """Main CLI entry point."""
    app(args=argv)


if __name__ == "__main__":
    main()
