"""
Reel CLI entry point.

Commands:
    reel serve       — Run the webhook server
    reel send-test   — Post a sample webhook to a running server
    reel subscribers — List recipients from the database
    reel logs        — Show recent logs
    reel version     — Show version
"""

from __future__ import annotations

import asyncio
import json
import uuid
from datetime import datetime
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

app = typer.Typer(
    name="reel",
    help="Reel — new-content notifications from Jellyfin to Telegram.",
    add_completion=False,
)

console = Console()


def _load_config():
    from reel.core.config import ReelConfig
    from reel.core.errors import ConfigError

    try:
        return ReelConfig.load()
    except ConfigError as e:
        console.print(f"[red]Configuration error:[/red] {e.message}")
        raise typer.Exit(1)


@app.command()
def serve(
    host: str = typer.Option(None, "--host", help="Bind address (default from config)"),
    port: int = typer.Option(None, "--port", "-p", help="Port (default from config)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug output"),
) -> None:
    """Run the webhook server."""
    import logging

    import uvicorn

    from reel.core.errors import ConfigError
    from reel.middleware.logging import parse_level, setup_logging
    from reel.server.app import create_app

    config = _load_config()
    try:
        config.validate_runtime()
    except ConfigError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(1)

    level = logging.DEBUG if verbose else parse_level(config.logging.level)
    setup_logging(config.logging.log_dir, console_level=level)

    bind_host = host or config.webhook.host
    bind_port = port or config.webhook.port
    console.print(f"[bold cyan]Reel[/bold cyan] listening on http://{bind_host}:{bind_port}/webhook")

    uvicorn.run(create_app(config), host=bind_host, port=bind_port, log_level="warning")


def build_sample_webhook(content_type: str, content_id: str | None = None) -> dict:
    """A synthetic ItemAdded payload. The "test-" id routes it to testers when beta is on."""
    item_id = content_id or f"test-{uuid.uuid4().hex[:12]}"
    if content_type.lower() == "episode":
        return {
            "NotificationType": "ItemAdded",
            "ItemType": "Episode",
            "ItemId": item_id,
            "ItemName": "Pilot",
            "Overview": "A sample episode sent by reel send-test.",
            "Year": datetime.now().year,
            "SeriesName": "Reel Test Series",
            "SeasonNumber": 1,
            "EpisodeNumber": 1,
        }
    return {
        "NotificationType": "ItemAdded",
        "ItemType": "Movie",
        "ItemId": item_id,
        "ItemName": "Reel Test Movie",
        "Overview": "A sample movie sent by reel send-test.",
        "Year": datetime.now().year,
    }


@app.command("send-test")
def send_test(
    url: str = typer.Option("http://localhost:8080/webhook", "--url", "-u", help="Webhook URL"),
    content_type: str = typer.Option("Movie", "--type", "-t", help="Movie or Episode"),
    secret: str = typer.Option(None, "--secret", "-s", help="Webhook secret (default from config)"),
) -> None:
    """Post a sample webhook to a running server."""
    import httpx

    from reel.ingest.webhook import SECRET_HEADER

    if content_type.lower() not in ("movie", "episode"):
        console.print("[red]--type must be Movie or Episode[/red]")
        raise typer.Exit(2)

    if secret is None:
        secret = _load_config().webhook.secret

    payload = build_sample_webhook(content_type)
    headers = {SECRET_HEADER: secret} if secret else {}

    try:
        resp = httpx.post(url, json=payload, headers=headers, timeout=10.0)
    except httpx.HTTPError as e:
        console.print(f"[red]Request failed:[/red] {e}")
        raise typer.Exit(1)

    colour = "green" if resp.status_code == 200 else "red"
    console.print(f"[{colour}]{resp.status_code}[/{colour}] {resp.text}")
    console.print(f"[dim]ItemId: {payload['ItemId']}[/dim]")
    if resp.status_code != 200:
        raise typer.Exit(1)


@app.command()
def subscribers(
    all_: bool = typer.Option(False, "--all", "-a", help="Include inactive recipients"),
) -> None:
    """List recipients from the database."""
    config = _load_config()
    db_path = config.get_database_path()
    if not db_path.exists():
        console.print(f"[dim]No database at {db_path}[/dim]")
        raise typer.Exit(0)

    recipients = asyncio.run(_list_recipients(db_path))
    if not all_:
        recipients = [r for r in recipients if r.is_active]

    if not recipients:
        console.print("[dim]No subscribers.[/dim]")
        return

    table = Table(title=f"Subscribers ({len(recipients)})")
    table.add_column("Chat ID", style="cyan")
    table.add_column("Username")
    table.add_column("Name")
    table.add_column("Language")
    table.add_column("Active")
    for r in recipients:
        table.add_row(
            str(r.recipient_id),
            f"@{r.username}" if r.username else "",
            r.display_name,
            r.language_code or "-",
            "[green]yes[/green]" if r.is_active else "[red]no[/red]",
        )
    console.print(table)


async def _list_recipients(db_path: Path):
    from reel.store.sqlite import SQLiteStore

    store = SQLiteStore(db_path)
    await store.initialize()
    try:
        return await store.list_recipients()
    finally:
        await store.close()


@app.command()
def logs(
    lines: int = typer.Option(50, "--lines", "-n", help="Number of lines to show"),
    events: bool = typer.Option(False, "--events", "-e", help="Show events log instead"),
) -> None:
    """Show recent logs."""
    log_dir = Path(_load_config().logging.log_dir).expanduser()
    date_str = datetime.now().strftime("%Y%m%d")
    log_file = log_dir / (f"events_{date_str}.jsonl" if events else f"reel_{date_str}.log")

    if not log_file.exists():
        console.print(f"[dim]No log file for today: {log_file}[/dim]")
        raise typer.Exit(0)

    with open(log_file, "r", encoding="utf-8") as f:
        all_lines = f.readlines()

    for line in all_lines[-lines:]:
        if events:
            try:
                record = json.loads(line)
                console.print(
                    f"[dim]{record['timestamp']}[/dim] [bold]{record['type']}[/bold] {escape(str(record['data']))}",
                    highlight=False,
                )
                continue
            except (ValueError, KeyError):
                pass
        console.print(line.rstrip(), markup=False)


@app.command()
def version() -> None:
    """Show Reel version."""
    from reel import __version__
    console.print(f"Reel v{__version__}")


if __name__ == "__main__":
    app()
