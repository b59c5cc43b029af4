"""
CLI interface for tiered answers.

Provides command-line access to the snapshot job, the answer pipeline and
budget reporting.
"""

import logging
import sys
from dataclasses import replace
from datetime import date
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from tiered_answers.config.loader import (
    AssistantConfig,
    StorageConfig,
    default_config,
    load_assistant_config,
)
from tiered_answers.core.budget import TokenBudgetTracker
from tiered_answers.core.errors import ProviderError
from tiered_answers.core.log_config import configure_logging
from tiered_answers.core.pipeline import build_pipeline
from tiered_answers.core.raw_context import JsonFileContextProvider
from tiered_answers.core.response_cache import ResponseCache
from tiered_answers.core.snapshot import MetricSnapshot, SnapshotService
from tiered_answers.core.tiers import ModelTier
from tiered_answers.sdk.openai_client import OpenAIModelProvider
from tiered_answers.storage.repository import UsageRepository, initialize_schema

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

DEFAULT_CONTEXT_FILE = "context.json"

ConfigOption = typer.Option(None, "--config", "-c", help="Path to YAML configuration")
DbOption = typer.Option(None, "--db", help="Override the SQLite database path")


def _load_config(config_path: Optional[str], db_path: Optional[str]) -> AssistantConfig:
    """Configuration from YAML if given, else defaults; ``--db`` wins over both."""
    if config_path is None:
        return default_config(db_path)
    config = load_assistant_config(config_path)
    if db_path:
        config = replace(config, storage=StorageConfig(db_path=db_path))
    return config


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs")
):
    """Tiered Answers CLI."""
    configure_logging(logging.DEBUG if verbose else logging.WARNING, stream=sys.stderr)
    if ctx.invoked_subcommand is None:
        console.print("Tiered Answers - Use --help to see available commands")


@app.command()
def init(config_path: Optional[str] = ConfigOption, db_path: Optional[str] = DbOption):
    """Initialize the usage, snapshot and cache tables."""
    try:
        config = _load_config(config_path, db_path)
        initialize_schema(config.storage.db_path)
        console.print("[green]✓[/] Database initialized successfully")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command("build-snapshot")
def build_snapshot_command(
    context_file: str = typer.Option(DEFAULT_CONTEXT_FILE, "--context-file", "-f", help="Raw context JSON export"),
    config_path: Optional[str] = ConfigOption,
    db_path: Optional[str] = DbOption
):
    """
    Build and store today's snapshot, then sweep expired cache entries.

    Safe to run on a schedule and safe to run more than once a day.
    """
    try:
        config = _load_config(config_path, db_path)
        clock = config.budget.local_now
        service = SnapshotService(JsonFileContextProvider(context_file), config.storage.db_path, clock=clock)
        snapshot = service.prewarm()
        removed = ResponseCache(config.storage.db_path, config.tiers, clock=clock).cleanup_expired()
        console.print(f"[green]✓[/] Snapshot stored for {snapshot.timestamp.date().isoformat()}")
        console.print(f"Removed {removed} expired cache entries")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error building snapshot:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def snapshot(
    context_file: str = typer.Option(DEFAULT_CONTEXT_FILE, "--context-file", "-f", help="Raw context JSON export"),
    config_path: Optional[str] = ConfigOption,
    db_path: Optional[str] = DbOption
):
    """Show today's snapshot, building it if the batch job has not run."""
    try:
        config = _load_config(config_path, db_path)
        service = SnapshotService(
            JsonFileContextProvider(context_file),
            config.storage.db_path,
            clock=config.budget.local_now,
        )
        _display_snapshot(service.get_or_build())
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def ask(
    question: str = typer.Argument(..., help="Question to answer"),
    page: str = typer.Option("/", "--page", "-p", help="Page the question is asked from"),
    tier: Optional[str] = typer.Option(None, "--tier", "-t", help="Request a tier: cheap, mid or premium"),
    context_file: str = typer.Option(DEFAULT_CONTEXT_FILE, "--context-file", "-f", help="Raw context JSON export"),
    config_path: Optional[str] = ConfigOption,
    db_path: Optional[str] = DbOption
):
    """Answer a question at the lowest cost the budget allows."""
    try:
        config = _load_config(config_path, db_path)
        requested = ModelTier.parse(tier) if tier else None
        pipeline = build_pipeline(
            config,
            raw_provider=JsonFileContextProvider(context_file),
            provider=OpenAIModelProvider(config.tiers, config.provider),
        )
        answer = pipeline.answer(question, current_page=page, requested_tier=requested)
    except ProviderError as e:
        console.print(f"[red]{e.user_message}[/] ({str(e)})")
        sys.exit(EXIT_CODE_FAIL)
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    console.print(f"[bold]{answer.tier_label}[/] [dim]({answer.served_by})[/]")
    if answer.budget_warning:
        console.print(f"[yellow]{answer.budget_warning}[/]")
    console.print(answer.text)
    if answer.suggestions:
        console.print("\n[bold]Follow-ups:[/]")
        for suggestion in answer.suggestions:
            console.print(f"- {suggestion}")
    for action in answer.actions:
        console.print(f"[cyan]{action.get('label', 'Open')}[/] -> {action.get('route', '')}")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def budget(config_path: Optional[str] = ConfigOption, db_path: Optional[str] = DbOption):
    """Show today's weighted token spend and the permitted tier ceiling."""
    try:
        config = _load_config(config_path, db_path)
        tracker = TokenBudgetTracker(UsageRepository(config.storage.db_path), config.budget, config.tiers)
        status = tracker.status()
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    console.print("\n[bold]AI Budget Status[/bold]")
    console.print("-" * 40)
    console.print(f"Used today: {status.used_today:,} / {status.daily_limit:,.0f} weighted tokens ({status.pct}%)")
    console.print(f"Tier ceiling: {status.tier_cap.value} ({status.tier_cap.label})")
    if status.warning:
        console.print(f"[yellow]{status.warning}[/]")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def usage(
    days: int = typer.Option(7, "--days", "-d", help="Calendar days before today to include"),
    config_path: Optional[str] = ConfigOption,
    db_path: Optional[str] = DbOption
):
    """Show per-day, per-tier token totals and request counts."""
    try:
        config = _load_config(config_path, db_path)
        tracker = TokenBudgetTracker(UsageRepository(config.storage.db_path), config.budget, config.tiers)
        summary = tracker.usage_summary(days)
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    if not summary.daily:
        console.print("\n[bold yellow]No AI usage recorded in this window[/]\n")
        sys.exit(EXIT_CODE_PASS)

    table = Table(title=f"AI Usage (last {days} days)")
    table.add_column("Day")
    for tier in ModelTier:
        table.add_column(tier.label, justify="right")
    table.add_column("Cached", justify="right")
    table.add_column("Local", justify="right")
    table.add_column("Requests", justify="right")

    for daily in summary.daily:
        table.add_row(
            _format_day(daily.day),
            *[f"{daily.tokens_by_tier[tier]:,}" for tier in ModelTier],
            str(daily.cached_count),
            str(daily.local_count),
            str(daily.total_requests),
        )
    console.print(table)
    console.print(
        f"Total: {summary.total_tokens:,} tokens over {summary.total_requests} requests "
        f"({summary.cached_pct}% cached, {summary.local_pct}% local)"
    )
    sys.exit(EXIT_CODE_PASS)


@app.command("cleanup-cache")
def cleanup_cache(config_path: Optional[str] = ConfigOption, db_path: Optional[str] = DbOption):
    """Delete expired cached responses."""
    try:
        config = _load_config(config_path, db_path)
        removed = ResponseCache(config.storage.db_path, config.tiers, clock=config.budget.local_now).cleanup_expired()
        console.print(f"[green]✓[/] Removed {removed} expired cache entries")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


def _format_day(day: date) -> str:
    return day.strftime("%a %Y-%m-%d")


def _format_optional(value, suffix: str = "") -> str:
    """Unknown values are shown as N/A, never as zero."""
    if value is None:
        return "N/A"
    if isinstance(value, float):
        return f"{value:,.1f}{suffix}"
    return f"{value:,}{suffix}"


def _format_score(score: Optional[float]) -> str:
    return "N/A" if score is None else f"{score:g}/10"


def _display_snapshot(snap: MetricSnapshot):
    """Display the snapshot as one table of agency health and key figures."""
    console.print(f"\n[bold]Metric Snapshot[/bold] as of {snap.timestamp:%Y-%m-%d %H:%M}")

    table = Table()
    table.add_column("Agency")
    table.add_column("Health", justify="right")
    table.add_column("Label")
    table.add_column("Key figures")
    table.add_row(
        "GPL", _format_score(snap.gpl.health.score), snap.gpl.health.label,
        f"Reserve {_format_optional(snap.gpl.reserve_mw, ' MW')}, "
        f"Units {_format_optional(snap.gpl.units_online)}/{_format_optional(snap.gpl.units_total)}"
    )
    table.add_row(
        "GWI", _format_score(snap.gwi.health.score), snap.gwi.health.label,
        f"Resolution {_format_optional(snap.gwi.resolution_rate_pct, '%')}"
    )
    table.add_row(
        "CJIA", _format_score(snap.cjia.health.score), snap.cjia.health.label,
        f"On-time {_format_optional(snap.cjia.on_time_pct, '%')}"
    )
    table.add_row(
        "GCAA", _format_score(snap.gcaa.health.score), snap.gcaa.health.label,
        f"Compliance {_format_optional(snap.gcaa.compliance_rate_pct, '%')}"
    )
    console.print(table)
    console.print(
        f"Projects: {_format_optional(snap.projects.total)} total, {_format_optional(snap.projects.delayed)} delayed"
    )
    console.print(
        f"Tasks: {_format_optional(snap.tasks.active)} active, {_format_optional(snap.tasks.overdue)} overdue"
    )


if __name__ == "__main__":
    app()
