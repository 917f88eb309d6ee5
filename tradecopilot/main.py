"""
TradeCopilot CLI Application.

Command-line interface for the trading coach: run the API server, analyze a
setup from the terminal, and inspect memories and the trade journal.
"""

import asyncio
import json
import logging
from typing import Optional

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from tradecopilot.config import (
    CONFIG_FILE,
    get_database_url,
    get_default_config,
    get_llm_api_key,
    get_llm_base_url,
    get_local_user_id,
    load_copilot_config,
    save_config,
)
from tradecopilot.logging_utils import install_log_safety

# Initialize CLI app
app = typer.Typer(
    name="tradecopilot",
    help="TradeCopilot - AI trading coach for chart analysis and journaling",
    add_completion=False,
)

# Sub-command groups
config_app = typer.Typer(help="Configuration commands")
memories_app = typer.Typer(help="Coaching memory commands")
trades_app = typer.Typer(help="Trade journal commands")

app.add_typer(config_app, name="config")
app.add_typer(memories_app, name="memories")
app.add_typer(trades_app, name="trades")

console = Console()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
install_log_safety()


def _store():
    from tradecopilot.journal.store import get_store

    return get_store()


# ==================== ANALYZE ====================


@app.command("analyze")
def analyze(
    text: Optional[str] = typer.Option(None, "--text", "-t", help="Question or trade context"),
    image: Optional[list[str]] = typer.Option(None, "--image", "-i", help="Chart image URL (repeatable)"),
    conversation_id: Optional[str] = typer.Option(None, "--conversation", "-c", help="Conversation id"),
    detailed: bool = typer.Option(False, "--detailed", "-d", help="Request the full structured analysis"),
    memory: bool = typer.Option(True, "--memory/--no-memory", help="Use saved settings and memories"),
    raw: bool = typer.Option(False, "--json", help="Print the raw response body"),
):
    """Analyze a chart screenshot and/or a trading question."""
    from tradecopilot.coach.orchestrator import AnalyzeRequest, build_orchestrator

    store = _store() if conversation_id else None
    orchestrator = build_orchestrator(store=store)
    request = AnalyzeRequest(
        image_urls=image or None,
        context_text=text,
        conversation_id=conversation_id,
        request_analysis=detailed,
        use_memory=memory,
    )

    with console.status("[bold green]Analyzing..."):
        # Personalization follows the conversation owner
        outcome = asyncio.run(orchestrator.analyze(request))

    if raw:
        console.print_json(json.dumps(outcome.body))
        raise typer.Exit(0 if outcome.ok else 1)

    if not outcome.ok:
        console.print(f"[red]Analysis failed ({outcome.status_code}): {outcome.body.get('error')}[/red]")
        raise typer.Exit(1)

    feedback = outcome.body["feedback"]
    console.print(Panel(Markdown(feedback["narrative"]), title="Coach", border_style="green"))

    for label, key in (("Confluences", "confluences"), ("Risks", "risks"), ("Checklist", "checklist")):
        items = feedback.get(key)
        if items:
            console.print(f"\n[bold cyan]{label}:[/bold cyan]")
            for item in items:
                console.print(f"  • {item}")

    scenarios = feedback.get("scenarios")
    if scenarios:
        console.print("\n[bold cyan]Scenarios:[/bold cyan]")
        console.print(f"  [green]Bull:[/green] {scenarios.get('bull', '')}")
        console.print(f"  [red]Bear:[/red] {scenarios.get('bear', '')}")
        console.print(f"  [yellow]Invalidation:[/yellow] {scenarios.get('invalidation', '')}")

    if feedback.get("memory_hint"):
        console.print(f"\n[dim]Memory hint: {feedback['memory_hint']}[/dim]")
    console.print(f"\n[dim]{outcome.model} · {outcome.body.get('latency_ms')}ms[/dim]")


# ==================== MEMORY COMMANDS ====================


@memories_app.command("list")
def memories_list(
    user_id: Optional[str] = typer.Option(None, "--user", "-u", help="User id (defaults to the local user)"),
):
    """List saved coaching memories, newest first."""
    memories = _store().list_memories(user_id or get_local_user_id())

    if not memories:
        console.print("[yellow]No memories saved yet[/yellow]")
        return

    table = Table(title="Coaching Memories")
    table.add_column("Created", style="dim")
    table.add_column("Kind", style="cyan")
    table.add_column("Content")
    for m in memories:
        table.add_row(str(m.get("created_at", ""))[:19], m.get("kind", ""), m.get("content", ""))
    console.print(table)


# ==================== TRADE COMMANDS ====================


@trades_app.command("list")
def trades_list(
    outcome: Optional[str] = typer.Option(None, "--outcome", "-o", help="Filter: unknown, win, loss"),
    user_id: Optional[str] = typer.Option(None, "--user", "-u", help="User id (defaults to the local user)"),
):
    """List journaled trades."""
    trades = _store().list_trades(user_id or get_local_user_id(), outcome)

    if not trades:
        console.print("[yellow]No trades found[/yellow]")
        return

    table = Table(title="Trade Journal")
    table.add_column("Created", style="dim")
    table.add_column("Instrument", style="cyan")
    table.add_column("Dir")
    table.add_column("Outcome")
    table.add_column("R:R", justify="right")
    table.add_column("Notes")
    for t in trades:
        result = t.get("outcome", "unknown")
        color = {"win": "green", "loss": "red"}.get(result, "yellow")
        rr = t.get("rr_numeric")
        table.add_row(
            str(t.get("created_at", ""))[:10],
            t.get("instrument", ""),
            t.get("direction", ""),
            f"[{color}]{result}[/{color}]",
            f"{rr:.2f}" if rr is not None else "-",
            t.get("notes") or "",
        )
    console.print(table)


@trades_app.command("stats")
def trades_stats(
    user_id: Optional[str] = typer.Option(None, "--user", "-u", help="User id (defaults to the local user)"),
):
    """Show win rate and average R:R."""
    from tradecopilot.journal.trades import compute_trade_stats

    stats = compute_trade_stats(_store().list_trades(user_id or get_local_user_id()))

    console.print(Panel("[bold]Journal Statistics[/bold]", border_style="blue"))
    console.print(f"  Total trades: {stats.total}")
    console.print(f"  Wins:         [green]{stats.wins}[/green]")
    console.print(f"  Losses:       [red]{stats.losses}[/red]")
    console.print(f"  Open/unknown: {stats.unknown}")
    console.print(f"  Win rate:     {stats.win_rate:.1f}%")
    console.print(f"  Avg R:R:      {stats.avg_rr:.2f}")


# ==================== CONFIG COMMANDS ====================


@config_app.command("show")
def config_show():
    """Show current configuration and file locations."""
    from tradecopilot.db.supabase_client import is_supabase_configured

    config = load_copilot_config()

    console.print(Panel("[bold]Configuration & File Locations[/bold]", border_style="blue"))

    console.print("\n[bold cyan]📁 Key File Locations:[/bold cyan]")
    console.print(f"  Config:      [green]{CONFIG_FILE}[/green]")
    console.print("  Env vars:    .env")

    console.print("\n[bold cyan]🤖 LLM:[/bold cyan]")
    llm_status = "[green]✓ Available[/green]" if get_llm_api_key() else "[red]✗ Set LLM_API_KEY[/red]"
    console.print(f"  API key:       {llm_status}")
    console.print(f"  Base URL:      {get_llm_base_url()}")
    console.print(f"  Vision model:  {config.vision_model}")
    console.print(f"  Text model:    {config.text_model}")
    console.print(f"  Max tokens:    {config.max_tokens_analysis} (analysis) / {config.max_tokens_chat} (chat)")
    console.print(f"  Retries:       {config.max_retries} on {list(config.retry_statuses)}")

    console.print("\n[bold cyan]🧠 Coaching:[/bold cyan]")
    console.print(f"  Memories per prompt: {config.memory_limit}")
    console.print(f"  History replayed:    {config.history_limit}")
    console.print(f"  Disclaimer:          {config.disclaimer_policy}")

    console.print("\n[bold cyan]💾 Storage:[/bold cyan]")
    if is_supabase_configured():
        console.print("  Backend:  [green]Supabase[/green]")
    else:
        console.print(f"  Backend:  local ({get_database_url()})")
        console.print(f"  User id:  {get_local_user_id()}")


@config_app.command("init")
def config_init(
    force: bool = typer.Option(False, "--force", help="Overwrite an existing config.yaml"),
):
    """Write a config.yaml with the default settings."""
    if CONFIG_FILE.exists() and not force:
        console.print(f"[yellow]{CONFIG_FILE} already exists (use --force to overwrite)[/yellow]")
        raise typer.Exit(1)

    save_config(get_default_config())
    console.print(f"[green]✅ Wrote {CONFIG_FILE}[/green]")


# ==================== SERVER ====================


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", "--host", "-h", help="Host to bind to"),
    port: int = typer.Option(8000, "--port", "-p", help="Port to bind to"),
):
    """Start the API server."""
    console.print(
        Panel(
            f"[bold]🚀 TradeCopilot API[/bold]\n\n"
            f"Listening on: [cyan]http://{host}:{port}[/cyan]\n\n"
            f"Press Ctrl+C to stop the server",
            title="API Server",
            border_style="green",
        )
    )

    from tradecopilot.web.server import run_server

    run_server(host=host, port=port)


# ==================== MAIN ====================


@app.callback()
def main():
    """
    TradeCopilot

    AI trading coach: chart analysis, conversational coaching and a
    trade journal.

    ⚠️  Educational content only. It does NOT place trades.
    """
    pass


if __name__ == "__main__":
    app()
