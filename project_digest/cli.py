"""
Command-line interface for the project digest bot.

Uses Typer to provide a CLI with options for the main configuration
settings. Loads ``.env`` files and deployment environment variables.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table
import typer

from .config import apply_env_overrides, get_api_key, load_config
from .core.errors import DigestError
from .core.types import RunResult
from .llm.tracing import flush
from .runner import run_configured, run_options_from_config, watch
from .utils.logging import setup_logging

app = typer.Typer(add_completion=False)
console = Console()


def should_generate_summary(api_key: str | None, has_new_facts: bool, no_ai: bool) -> bool:
    """Return True when an AI summary is both possible and wanted."""
    return bool(api_key) and has_new_facts and not no_ai


def should_index_only(index_only: bool) -> bool:
    return bool(index_only)


@app.command()
def run(
    config: Path | None = typer.Option(None, "--config", "-c", exists=True, readable=True),
    state_file: Path | None = typer.Option(None, "--state-file", help="Path of the persisted state JSON."),
    window_hours: float | None = typer.Option(None, "--window-hours", help="Maximum span of one update batch."),
    since: str | None = typer.Option(None, "--since", help="Pull cutoff override (ISO 8601)."),
    publisher: str | None = typer.Option(None, "--publisher", help="Publisher: fs, gh-pages or none."),
    out_dir: Path | None = typer.Option(None, "--out-dir", help="Output directory for the fs publisher."),
    no_ai: bool = typer.Option(False, "--no-ai", help="Skip AI summaries even when an API key is set."),
    index_only: bool = typer.Option(False, "--index-only", help="Only rebuild the published index."),
    watch_mode: bool = typer.Option(False, "--watch", help="Run repeatedly on a fixed interval."),
    interval_minutes: float | None = typer.Option(None, "--interval-minutes", help="Sleep between watch runs."),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level."),
    api_key: str | None = typer.Option(
        None,
        "--api-key",
        help="Override LLM provider API key (or set OPENAI_API_KEY / .env).",
    ),
):
    """Pull project activity, persist new facts and publish windowed updates.

    Args:
        config: Optional path to YAML config file
        state_file: State file override
        window_hours: Batch window override; non-positive values are ignored
        since: Pull cutoff override
        publisher: Publisher kind override
        out_dir: Filesystem publisher output directory override
        no_ai: Disable AI summaries
        index_only: Rebuild the index and exit
        watch_mode: Keep running every ``interval_minutes``
        interval_minutes: Watch interval override; non-positive values are ignored
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        api_key: Override LLM provider API key
    """
    load_dotenv()

    try:
        cfg = apply_env_overrides(load_config(str(config) if config else None))
    except ValueError as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    if api_key:
        cfg.provider.api_key = api_key
    if state_file:
        cfg.state.path = str(state_file)
    if window_hours is not None and window_hours > 0:
        cfg.pipeline.window_hours = window_hours
    if publisher:
        cfg.publisher.kind = publisher
    if out_dir:
        cfg.publisher.out_dir = str(out_dir)
    if interval_minutes is not None and interval_minutes > 0:
        cfg.pipeline.interval_minutes = interval_minutes
    if log_level:
        cfg.logging.level = log_level

    log_dir = Path(cfg.state.path).expanduser().resolve().parent / "logs"
    logger = setup_logging(cfg.logging, log_dir)
    options = run_options_from_config(cfg, since=since)
    provider_key = get_api_key(cfg.provider)

    if should_index_only(index_only):
        try:
            asyncio.run(run_configured(cfg, options, index_only=True, logger=logger))
        except DigestError as exc:
            console.print(f"[red]Index refresh failed:[/red] {exc}")
            raise typer.Exit(code=1) from exc
        console.print("Index refreshed.")
        return

    async def _run_and_report() -> RunResult | None:
        result = await run_configured(cfg, options, ai=not no_ai, logger=logger)
        if result is not None:
            _print_result(result, cfg.state.path, cfg.pipeline.timezone, provider_key, no_ai)
        return result

    if watch_mode:
        try:
            asyncio.run(watch(_run_and_report, cfg.pipeline.interval_minutes, logger=logger))
        except KeyboardInterrupt:
            console.print("Stopped.")
        finally:
            flush()
        return

    try:
        result = asyncio.run(_run_and_report())
    except (DigestError, ValueError) as exc:
        console.print(f"[red]Run failed:[/red] {exc}")
        raise typer.Exit(code=1) from exc
    finally:
        flush()

    if result is not None and result.publish_errors:
        raise typer.Exit(code=1)


def _print_result(
    result: RunResult,
    state_file: str,
    timezone_name: str,
    api_key: str | None,
    no_ai: bool,
) -> None:
    if result.batches:
        table = Table(title="Update batches")
        table.add_column("Draft")
        table.add_column("Facts", justify="right")
        table.add_column("Published")
        table.add_column("Summary")
        for batch in result.batches:
            published = batch.published.url or batch.published.id if batch.published else ""
            status = f"[red]{batch.error}[/red]" if batch.error else published
            summary = ""
            if batch.summary is not None:
                summary = f"[yellow]{batch.summary.error}[/yellow]" if batch.summary.error else (batch.summary.title or "ok")
            table.add_row(batch.draft.id, str(len(batch.facts)), status, summary)
        console.print(table)
    else:
        console.print("No new facts.")

    payload = {
        "timezone": timezone_name,
        "stateFile": state_file,
        "pulledFacts": result.pulled_fact_count,
        "newFacts": result.new_fact_count,
        "lastRunAt": result.state.last_run_at,
        "published": [
            {"id": b.published.id, "url": b.published.url} for b in result.batches if b.published
        ],
        "aiSummaries": [
            b.summary.text
            for b in result.batches
            if b.summary is not None and b.summary.text
        ],
        "aiSummaryRequested": should_generate_summary(api_key, result.new_fact_count > 0, no_ai),
        "errors": result.publish_errors,
    }
    console.print_json(json.dumps(payload))


if __name__ == "__main__":
    app()
