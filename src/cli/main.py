"""Text2SQL CLI.

Runs the HTTP server, or drives the generation pipeline in-process.

Usage:
    text2sql serve                                  Start the HTTP API
    text2sql generate "top customers" -s schema.json -d mysql
    text2sql validate "SELECT 1" -d postgresql      Run the validator only
    text2sql config show                            Print resolved config
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax

from src.cli.config import Text2SQLConfig, load_config
from src.errors import Text2SQLError
from src.services.runtime import build_runtime
from src.text2sql.models import (
    DatabaseDescriptor,
    DatabaseType,
    GenerateRequest,
    Schema,
    normalize_database_type,
)
from src.text2sql.nl_engine.sql_validator import SQLValidator, StatementValidationError
from src.utils.logging_config import configure_logging
from src.utils.redaction import redact_for_logging

_log = logging.getLogger(__name__)

app = typer.Typer(
    name="text2sql",
    help="Natural language to read-only SQL and Redis commands",
    no_args_is_help=True,
)
config_app = typer.Typer(help="Configuration management")
app.add_typer(config_app, name="config")

console = Console()

# --- Global state ---
_config_path: str | None = None


@app.callback()
def main(
    config: Optional[str] = typer.Option(
        None, "--config", help="Path to text2sql.yaml config file"
    ),
):
    """Text2SQL CLI."""
    global _config_path
    _config_path = config


def _load_config_or_exit() -> Text2SQLConfig:
    try:
        return load_config(config_path=_config_path)
    except FileNotFoundError as e:
        console.print(f"[red]Config file not found:[/red] {e}")
        raise typer.Exit(1)
    except (ValidationError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Config validation failed:[/red] {e}")
        raise typer.Exit(1)


def _parse_database_type(value: str) -> DatabaseType:
    try:
        return DatabaseType(normalize_database_type(value))
    except ValueError:
        supported = ", ".join(t.value for t in DatabaseType)
        console.print(f"[red]Unsupported database type:[/red] {value} (supported: {supported})")
        raise typer.Exit(2)


def _load_schema(path: Path) -> Schema:
    """Read a schema from a JSON or YAML file.

    Accepts either ``{"tables": [...]}`` or a bare list of tables.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        console.print(f"[red]Cannot read schema file:[/red] {e}")
        raise typer.Exit(1)

    data = json.loads(text) if path.suffix.lower() == ".json" else yaml.safe_load(text)
    if isinstance(data, list):
        data = {"tables": data}
    try:
        return Schema.model_validate(data)
    except ValidationError as e:
        console.print(f"[red]Invalid schema file:[/red] {e}")
        raise typer.Exit(1)


# --- Version ---


@app.command()
def version():
    """Show Text2SQL version."""
    from importlib.metadata import PackageNotFoundError
    from importlib.metadata import version as pkg_version

    try:
        v = pkg_version("text2sql")
    except PackageNotFoundError:
        v = "unknown"
    console.print(f"[bold]Text2SQL[/bold] v{v}")


# --- Config commands ---


@config_app.command("show")
def config_show():
    """Display resolved configuration (secrets masked)."""
    cfg = _load_config_or_exit()
    redacted = redact_for_logging(cfg.model_dump(mode="json"))
    console.print(
        Syntax(yaml.safe_dump(redacted, sort_keys=False), "yaml", background_color="default")
    )


@config_app.command("validate")
def config_validate():
    """Validate configuration without starting the server."""
    cfg = _load_config_or_exit()
    console.print("[green]Config is valid.[/green]")
    console.print(f"  LLM provider: {cfg.llm.provider}")
    console.print(f"  Context store: {cfg.context_store.backend}")
    console.print(f"  API auth: {'enabled' if cfg.effective_api_keys else 'disabled'}")


# --- Server ---


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port"),
):
    """Start the HTTP API (FastAPI + uvicorn)."""
    import uvicorn

    from src.api.main import create_app

    cfg = _load_config_or_exit()
    final_host = host or cfg.server.host
    final_port = port or cfg.server.port
    configure_logging(cfg.server.log_level, cfg.server.log_format, cfg.server.log_file)

    console.print(f"[bold]Starting Text2SQL API on {final_host}:{final_port}[/bold]")
    uvicorn.run(
        create_app(cfg),
        host=final_host,
        port=final_port,
        log_level=cfg.server.log_level.lower(),
        log_config=None,
        lifespan="on",
    )


# --- Generation ---


@app.command()
def generate(
    query: str = typer.Argument(..., help="Natural-language question"),
    schema_file: Optional[Path] = typer.Option(
        None, "--schema", "-s", help="Schema file (JSON or YAML)"
    ),
    database: Optional[str] = typer.Option(
        None, "--database", "-d", help="mysql, postgresql, sqlite or redis"
    ),
    db_version: str = typer.Option("", "--version", "-v", help="Database version"),
    conversation_id: Optional[str] = typer.Option(
        None, "--conversation-id", "-c", help="Continue a conversation"
    ),
    previous_statement: Optional[str] = typer.Option(
        None, "--previous-statement", "-p", help="Statement to amend"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the response as JSON"),
):
    """Generate a read-only statement in-process.

    Conversations only persist across invocations with a durable
    context_store backend.
    """
    cfg = _load_config_or_exit()
    configure_logging("WARNING", "text")

    request = GenerateRequest(
        query=query,
        db_schema=_load_schema(schema_file) if schema_file else None,
        database=(
            DatabaseDescriptor(type=_parse_database_type(database), version=db_version)
            if database
            else None
        ),
        conversation_id=conversation_id,
        previous_statement=previous_statement,
    )

    async def _run():
        async with build_runtime(cfg) as runtime:
            return await runtime.service.generate(request, timeout=runtime.request_timeout)

    try:
        response = asyncio.run(_run())
    except Text2SQLError as e:
        console.print(f"[red]{e.code}:[/red] {e.message}")
        raise typer.Exit(1)

    if as_json:
        console.print_json(response.model_dump_json())
        return

    is_redis = request.database is not None and request.database.type == DatabaseType.redis
    lexer = "text" if is_redis else "sql"
    body = Syntax(response.statement, lexer, background_color="default", word_wrap=True)
    console.print(Panel(body, title="Statement", subtitle=response.conversation_id))
    if response.explanation:
        console.print(f"[dim]{response.explanation}[/dim]")


@app.command()
def validate(
    statement: str = typer.Argument(..., help="Statement or newline-separated commands"),
    database: str = typer.Option(..., "--database", "-d", help="mysql, postgresql, sqlite or redis"),
    db_version: str = typer.Option("", "--version", "-v", help="Database version"),
):
    """Check a statement with the read-only validator."""
    db_type = _parse_database_type(database)
    try:
        SQLValidator().validate(statement, db_type, db_version)
    except StatementValidationError as e:
        console.print(f"[red]Rejected:[/red] {e.message}")
        raise typer.Exit(1)
    console.print("[green]Read-only: accepted.[/green]")


if __name__ == "__main__":
    app()
