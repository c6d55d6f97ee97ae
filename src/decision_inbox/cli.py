"""Command-line interface for the decision inbox.

Provides commands for configuration validation, one-off classification,
batch backfill, and the API server.

Usage:
    python -m decision_inbox validate-config
    python -m decision_inbox classify --subject "Please approve" --sender boss@acme.com
    python -m decision_inbox precheck --subject "Quick question?"
    python -m decision_inbox backfill --user-id 1 --mode rules
    python -m decision_inbox serve
"""

from __future__ import annotations

import asyncio
import sys
from datetime import UTC, datetime
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from decision_inbox.config import validate_config_file
from decision_inbox.core.logging import configure_logging

console = Console()

_LEVEL_STYLES = {0: "dim", 1: "yellow", 2: "bold red"}


@click.group()
@click.option("--debug/--no-debug", default=False, help="Enable debug logging")
def cli(debug: bool) -> None:
    """Decision Inbox - find the emails that need a decision."""
    log_level = "DEBUG" if debug else "INFO"
    # Use human-readable output for CLI, JSON for server
    configure_logging(log_level=log_level, json_output=False)


@cli.command("validate-config")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False, path_type=Path),
    default=None,
    help="Path to config file (default: config/config.yaml)",
)
def validate_config(config_path: Path | None) -> None:
    """Validate the configuration file.

    Checks that config.yaml exists and passes Pydantic schema validation.
    Reports specific errors for invalid fields.
    """
    console.print(f"Validating config: [cyan]{config_path or 'config/config.yaml'}[/cyan]")

    is_valid, message = validate_config_file(config_path)

    if is_valid:
        console.print(f"\n[green]✓[/green] {message}")
        sys.exit(0)
    else:
        console.print(f"\n[red]✗[/red] {message}")
        sys.exit(1)


@cli.command("classify")
@click.option("--subject", "-s", default="", help="Email subject")
@click.option("--body", "-b", default="", help="Email body text")
@click.option("--body-file", type=click.File("r"), default=None, help="Read the body from a file")
@click.option("--sender", default=None, help="Sender address")
@click.option("--sender-name", default=None, help="Sender display name")
def classify(
    subject: str,
    body: str,
    body_file,
    sender: str | None,
    sender_name: str | None,
) -> None:
    """Classify one email with the rule engine and print the result."""
    from decision_inbox.classifier.engine import DecisionClassifier
    from decision_inbox.classifier.models import Email
    from decision_inbox.config import get_config_or_defaults
    from decision_inbox.core.errors import ConfigValidationError

    try:
        config = get_config_or_defaults()
    except ConfigValidationError as e:
        console.print(f"[red]Config error:[/red] {e}")
        sys.exit(1)

    if body_file is not None:
        body = body_file.read()

    email = Email(
        id="cli",
        subject=subject,
        body_text=body,
        from_address=sender,
        from_display_name=sender_name,
        received_at=datetime.now(UTC),
    )
    result = asyncio.run(DecisionClassifier(config=config).classify(email))

    table = Table(title="Classification", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    style = _LEVEL_STYLES[result.decision_level]
    table.add_row("Level", f"[{style}]{result.decision_level}[/{style}]")
    table.add_row("Type", result.decision_type)
    table.add_row("Confidence", f"{result.confidence:.2f}")
    table.add_row("Urgency", result.urgency_label)
    table.add_row("Deadline", result.deadline or "-")
    table.add_row("Method", result.method)
    table.add_row("Reason", result.reason)
    console.print(table)

    for bullet in result.explanation:
        console.print(f"  • {bullet}")


@cli.command("precheck")
@click.option("--subject", "-s", default="", help="Email subject")
@click.option("--body", "-b", default="", help="Email body text")
def precheck(subject: str, body: str) -> None:
    """Show whether the AI pre-check gate would call the model."""
    from decision_inbox.classifier.precheck import should_escalate_to_ai
    from decision_inbox.config import get_config_or_defaults

    config = get_config_or_defaults()
    escalate = asyncio.run(should_escalate_to_ai(subject, body, settings=config.precheck))

    if escalate:
        console.print("[green]Escalate:[/green] the model would be called")
    else:
        console.print("[yellow]Skip:[/yellow] no action indicators found")


@cli.command("backfill")
@click.option("--user-id", required=True, help="Mailbox owner to classify")
@click.option(
    "--mode",
    type=click.Choice(["rules", "model"]),
    default="rules",
    help="Rule engine, or pre-check gate + remote model",
)
@click.option("--batch-size", default=None, type=int, help="Emails per batch")
@click.option("--delay", default=None, type=float, help="Seconds between batches")
@click.option("--limit", default=None, type=int, help="Maximum emails to process")
@click.option("--reclassify", is_flag=True, help="Overwrite existing decision records")
def backfill(
    user_id: str,
    mode: str,
    batch_size: int | None,
    delay: float | None,
    limit: int | None,
    reclassify: bool,
) -> None:
    """Classify a user's stored emails in batches.

    Emails that already have a decision record are skipped unless
    --reclassify is given.
    """
    try:
        asyncio.run(_run_backfill(user_id, mode, batch_size, delay, limit, reclassify))
    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled.[/yellow]")
        sys.exit(130)
    except SystemExit:
        raise
    except Exception as e:
        console.print(f"\n[red]Error:[/red] {e}")
        sys.exit(1)


async def _run_backfill(
    user_id: str,
    mode: str,
    batch_size: int | None,
    delay: float | None,
    limit: int | None,
    reclassify: bool,
) -> None:
    """Async implementation of backfill command."""
    import anthropic

    from decision_inbox.classifier.ai_fallback import AnthropicCompletion
    from decision_inbox.config import get_config_or_defaults
    from decision_inbox.db.store import DatabaseStore
    from decision_inbox.engine.backfill import BackfillEngine

    config = get_config_or_defaults()

    store = DatabaseStore(config.database_path)
    await store.initialize()

    completion = None
    if mode == "model":
        try:
            completion = AnthropicCompletion.from_config(config)
        except anthropic.AnthropicError as e:
            console.print(
                f"[red]Model unavailable:[/red] {e}\n\n"
                "Check your ANTHROPIC_API_KEY environment variable."
            )
            sys.exit(1)

    engine = BackfillEngine(store=store, config=config, completion=completion)
    result = await engine.run(
        user_id,
        mode=mode,
        batch_size=batch_size,
        delay_seconds=delay,
        limit=limit,
        reclassify=reclassify,
    )

    # Print summary
    table = Table(title="Backfill Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Run ID", result.run_id)
    table.add_row("Processed", str(result.processed))
    table.add_row("Decisions", str(result.decisions))
    table.add_row("Level 2 (hard)", str(result.level_counts[2]))
    table.add_row("Level 1 (soft)", str(result.level_counts[1]))
    table.add_row("Level 0 (none)", str(result.level_counts[0]))
    if mode == "model":
        table.add_row("Model skipped", str(result.skipped_ai))
    table.add_row("Errors", str(result.errors))
    table.add_row("Batches", str(result.batches))
    table.add_row("Logs pruned", str(result.logs_pruned))
    table.add_row("Duration", f"{result.duration_ms / 1000:.1f}s")
    console.print(table)


@cli.command("serve")
@click.option(
    "--host",
    default="127.0.0.1",
    help="Host to bind to (default: localhost only for security)",
)
@click.option(
    "--port",
    default=8000,
    type=int,
    help="Port to bind to",
)
def serve(host: str, port: int) -> None:
    """Start the decision inbox API server."""
    import uvicorn

    from decision_inbox.web.app import create_app

    if host == "0.0.0.0":  # noqa: S104
        console.print(
            "[yellow]Warning:[/yellow] Binding to 0.0.0.0 exposes the server to the network.\n"
            "This app has no authentication. Use 127.0.0.1 for local-only access."
        )

    configure_logging(log_level="INFO", json_output=True)
    app = create_app()

    console.print(f"Starting server on [cyan]http://{host}:{port}[/cyan]")
    uvicorn.run(app, host=host, port=port, log_level="info")


def main() -> None:
    """Entry point for the CLI; loads .env before any command runs."""
    load_dotenv()
    cli()


if __name__ == "__main__":
    main()
