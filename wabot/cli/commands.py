"""CLI commands for WaBot."""

import random
import sys
from pathlib import Path

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from wabot import __version__, __logo__

app = typer.Typer(
    name="wabot",
    help=f"{__logo__} WaBot - WhatsApp auto-reply engine",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} WaBot v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """WaBot - WhatsApp auto-reply engine."""
    pass


def _load(config_path: Path | None):
    from wabot.config.loader import load_config

    return load_config(config_path)


# ============================================================================
# Server
# ============================================================================


@app.command()
def serve(
    host: str = typer.Option(None, "--host", help="Bind address (default from config)"),
    port: int = typer.Option(None, "--port", "-p", help="Port (default from config)"),
    config_path: Path = typer.Option(None, "--config", "-c", help="Config file"),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
):
    """Start the WaBot HTTP server."""
    import uvicorn

    from wabot.server.main import create_app

    if verbose:
        logger.remove()
        logger.add(sys.stderr, level="DEBUG")

    config = _load(config_path)
    host = host or config.server.host
    port = port or config.server.port

    if config.llm.enabled:
        console.print(f"[green]✓[/green] LLM replies: {config.llm.backend} / {config.llm.model}")
    else:
        console.print("[dim]LLM replies disabled, using rules only[/dim]")

    console.print(f"{__logo__} Starting WaBot on {host}:{port}...")
    uvicorn.run(create_app(config), host=host, port=port, log_level="debug" if verbose else "info")


# ============================================================================
# Rules
# ============================================================================


@app.command()
def classify(
    text: str = typer.Argument(..., help="Message text to classify"),
    seed: int = typer.Option(None, "--seed", help="Random seed for a repeatable choice"),
    config_path: Path = typer.Option(None, "--config", "-c", help="Config file"),
):
    """Show which rule answers a message and the reply it picks."""
    from wabot.auto_reply.rules import ReplyClassifier, load_rules

    config = _load(config_path)
    classifier = ReplyClassifier(
        rules=load_rules(config.auto_reply.rule_entries()),
        rng=random.Random(seed),
        fallback_max_chars=config.auto_reply.fallback_max_chars,
    )
    result = classifier.explain(text)

    if result.is_fallback:
        console.print("Rule: [yellow]fallback[/yellow]")
    else:
        console.print(f"Rule: [cyan]{result.rule}[/cyan] (matched \"{result.matched}\")")
    console.print(f"Reply: {result.reply}")


@app.command()
def rules(
    config_path: Path = typer.Option(None, "--config", "-c", help="Config file"),
):
    """List reply rules in precedence order."""
    config = _load(config_path)

    table = Table(title="Reply Rules")
    table.add_column("#", justify="right")
    table.add_column("Name", style="cyan")
    table.add_column("Pattern")
    table.add_column("Replies", justify="right")

    for index, rule in enumerate(config.auto_reply.rules, 1):
        table.add_row(str(index), rule.name, rule.pattern, str(len(rule.replies)))

    console.print(table)


# ============================================================================
# Status
# ============================================================================


@app.command()
def status(
    config_path: Path = typer.Option(None, "--config", "-c", help="Config file"),
):
    """Show WaBot configuration status."""
    from wabot.config.loader import get_config_path

    path = config_path or get_config_path()
    config = _load(config_path)

    console.print(f"{__logo__} WaBot Status\n")
    console.print(f"Config: {path} {'[green]✓[/green]' if path.exists() else '[dim]defaults[/dim]'}")
    console.print(f"Platform: {config.platform.base_url}")
    console.print(
        f"Platform key: {'[green]✓[/green]' if config.platform.api_key else '[dim]not set (webhook disabled)[/dim]'}"
    )

    ar = config.auto_reply
    console.print(f"\n[bold]Auto-reply:[/bold] {'[green]enabled[/green]' if ar.enabled else '[dim]disabled[/dim]'}")
    console.print(f"  Rules: {len(ar.rules)}")
    console.print(f"  Lookback: {ar.lookback} messages")
    console.print(f"  Ledger: {ar.ledger_capacity} keys (evicts {ar.ledger_evict_count})")
    console.print(f"  Poll interval: {ar.poll_interval_seconds}s")

    llm = config.llm
    console.print(f"\n[bold]LLM:[/bold] {'[green]enabled[/green]' if llm.enabled else '[dim]disabled[/dim]'}")
    if llm.enabled:
        console.print(f"  Backend: {llm.backend}")
        console.print(f"  Model: {llm.model}")
        console.print(f"  Timeout: {llm.timeout_seconds}s")


if __name__ == "__main__":
    app()
