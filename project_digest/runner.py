"""
Main pipeline orchestration for the project digest.

This module coordinates one run:
1. Read the previous state
2. Pull events from every source since the cutoff and convert them to facts
3. Merge facts by id and select the ones never seen before
4. Group new facts into time windows and assemble one draft per window
5. Persist the new state (once, before anything is published)
6. Publish each draft, then optionally summarize it with an LLM

Source failures abort the run before state is written. Publish and summary
failures are recorded per batch and never abort the run.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging
from pathlib import Path
from typing import Awaitable, Callable, Sequence

import httpx

from .config import AppConfig, get_api_key, get_github_token
from .core.merge import merge_facts, select_new_facts
from .core.storage import FileStateStore, StateStore
from .core.types import (
    EPOCH_ISO,
    BatchOutcome,
    Fact,
    ProjectState,
    RunResult,
    SummaryOutcome,
    UpdateDraft,
    format_iso8601,
    normalize_iso8601,
    parse_iso8601,
)
from .core.windows import build_window_items, group_into_windows
from .github.client import GitHubClient
from .llm.providers.factory import create_provider
from .llm.summarizer import Summarizer, summary_draft
from .llm.tracing import set_span_output, setup_langfuse, start_span
from .output.renderer import build_update_draft
from .publishers.base import Publisher
from .publishers.factory import build_publisher
from .sources.base import Source
from .sources.github import GitHubSource
from .utils.logging import log_event, setup_llm_logger, setup_logging

_LOGGER = logging.getLogger("project_digest")


@dataclass
class RunOptions:
    """Explicit per-run settings; the core never reads process state.

    Attributes:
        since: Pull cutoff override; defaults to the previous run time
        window_hours: Maximum batch span; non-positive or None uses 12 hours
        title: Title given to every assembled draft
        now: Run start time override (defaults to the current UTC time)
    """

    since: str | None = None
    window_hours: float | None = None
    title: str | None = "Project Update"
    now: datetime | None = None


async def run_once(
    sources: Sequence[Source],
    store: StateStore,
    options: RunOptions | None = None,
    publisher: Publisher | None = None,
    summarizer: Summarizer | None = None,
    logger: logging.Logger | None = None,
) -> RunResult:
    """Run the pipeline once and return what happened per batch.

    Raises:
        SourceError: If any source fails; state is left untouched
        StateError: If the previous state cannot be read or the new one written
    """
    options = options or RunOptions()
    logger = logger or _LOGGER
    now = options.now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        # Naive run times are UTC, matching format_iso8601.
        now = now.replace(tzinfo=timezone.utc)
    run_started = format_iso8601(now)

    with start_span("pipeline.run_once", kind="chain", attributes={"sources": len(sources)}) as span:
        prev = store.read_state() or ProjectState()
        if options.since:
            since_iso = normalize_iso8601(options.since)
        else:
            since_iso = prev.last_run_at or EPOCH_ISO
        log_event(
            logger,
            "Pipeline start",
            event="pipeline_start",
            since=since_iso,
            known_facts=len(prev.facts),
        )

        pulled: list[Fact] = []
        for source in sources:
            events = await source.pull_since(since_iso)
            facts = await source.to_facts(events)
            pulled.extend(facts)
            log_event(
                logger,
                "Source pulled",
                event="source_pulled",
                source=source.name,
                events=len(events),
                facts=len(facts),
            )

        merged = merge_facts(prev.facts, pulled)
        new_facts = select_new_facts(prev.facts, merged)
        items = build_window_items(new_facts, parse_iso8601(since_iso), now)
        batches = group_into_windows(items, options.window_hours)

        drafts = [
            build_update_draft(batch, format_iso8601(now + timedelta(milliseconds=idx)), options.title)
            for idx, batch in enumerate(batches)
        ]

        state = ProjectState(
            facts=merged,
            last_run_at=run_started,
            last_update=drafts[-1] if drafts else prev.last_update,
        )
        store.write_state(state)
        log_event(
            logger,
            "State persisted",
            event="state_persisted",
            facts=len(merged),
            new_facts=len(new_facts),
            batches=len(drafts),
        )

        outcomes: list[BatchOutcome] = []
        for draft, batch in zip(drafts, batches):
            outcome = BatchOutcome(draft=draft, facts=batch)
            if publisher is not None:
                await _publish_batch(publisher, outcome, state, logger)
            if summarizer is not None:
                outcome.summary = await _summarize_batch(
                    summarizer, draft, batch, sources, publisher, state, logger
                )
            outcomes.append(outcome)

        result = RunResult(
            state=state,
            new_fact_count=len(new_facts),
            pulled_fact_count=len(pulled),
            batches=outcomes,
        )
        set_span_output(
            span,
            {"new_facts": len(new_facts), "batches": len(outcomes), "publish_errors": len(result.publish_errors)},
        )

    log_event(
        logger,
        "Pipeline complete",
        event="pipeline_complete",
        pulled=len(pulled),
        new_facts=len(new_facts),
        batches=len(outcomes),
        publish_errors=len(result.publish_errors),
    )
    return result


async def _publish_batch(
    publisher: Publisher,
    outcome: BatchOutcome,
    state: ProjectState,
    logger: logging.Logger,
) -> None:
    try:
        outcome.published = await publisher.publish(outcome.draft, state)
    except Exception as exc:  # noqa: BLE001
        outcome.error = str(exc) or type(exc).__name__
        log_event(
            logger,
            "Publish failed",
            level=logging.ERROR,
            event="publish_failed",
            draft_id=outcome.draft.id,
            error=outcome.error,
        )
        return
    log_event(
        logger,
        "Batch published",
        event="batch_published",
        draft_id=outcome.draft.id,
        url=outcome.published.url,
        facts=len(outcome.facts),
    )


async def _summarize_batch(
    summarizer: Summarizer,
    draft: UpdateDraft,
    facts: list[Fact],
    sources: Sequence[Source],
    publisher: Publisher | None,
    state: ProjectState,
    logger: logging.Logger,
) -> SummaryOutcome:
    try:
        details = await summarizer.collect_details(facts, sources)
        outcome = await summarizer.summarize(draft, details)
    except Exception as exc:  # noqa: BLE001
        log_event(
            logger,
            "Summary failed",
            level=logging.WARNING,
            event="summary_failed",
            draft_id=draft.id,
            error=str(exc),
        )
        return SummaryOutcome(error=str(exc) or type(exc).__name__)

    if publisher is not None and summarizer.publish_enabled:
        try:
            outcome.published = await publisher.publish(summary_draft(draft, outcome), state)
        except Exception as exc:  # noqa: BLE001
            outcome.error = str(exc) or type(exc).__name__
            log_event(
                logger,
                "Summary publish failed",
                level=logging.WARNING,
                event="summary_failed",
                draft_id=draft.id,
                error=outcome.error,
            )
    return outcome


def build_sources(
    cfg: AppConfig,
    logger: logging.Logger | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[Source]:
    """Build the configured sources; GitHub is enabled when repos are listed."""
    if not cfg.github.repos:
        log_event(logger, "No GitHub repositories configured", level=logging.WARNING, event="no_sources")
        return []
    client = GitHubClient(
        get_github_token(cfg.github),
        api_url=cfg.github.api_url,
        timeout_seconds=cfg.github.timeout_seconds,
        retries=cfg.github.retries,
        trust_env=cfg.github.trust_env,
        transport=transport,
        logger=logger,
    )
    return [GitHubSource(client, cfg.github.repos, per_page=cfg.github.per_page, logger=logger)]


def build_summarizer(
    cfg: AppConfig,
    logger: logging.Logger | None = None,
    llm_logger: logging.Logger | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Summarizer | None:
    """Build the summarizer, or None when disabled or no API key is configured."""
    if not cfg.summary.enabled or not get_api_key(cfg.provider):
        return None
    try:
        provider = create_provider(cfg.provider, cfg.summary, cfg.logging, llm_logger, transport=transport)
    except ValueError as exc:
        log_event(logger, "Summary provider unavailable", level=logging.WARNING, event="summary_disabled", error=str(exc))
        return None
    return Summarizer(provider, cfg.summary, timezone=cfg.pipeline.timezone, logger=logger)


def run_options_from_config(cfg: AppConfig, since: str | None = None) -> RunOptions:
    return RunOptions(since=since, window_hours=cfg.pipeline.window_hours, title=cfg.pipeline.title)


async def run_configured(
    cfg: AppConfig,
    options: RunOptions,
    *,
    index_only: bool = False,
    ai: bool = True,
    logger: logging.Logger | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> RunResult | None:
    """Wire collaborators from ``cfg`` and run once (or only refresh the index)."""
    log_dir = Path(cfg.state.path).expanduser().resolve().parent / "logs"
    logger = logger or setup_logging(cfg.logging, log_dir)
    setup_langfuse(cfg.langfuse)

    publisher = build_publisher(cfg, logger=logger, transport=transport)
    if index_only:
        if publisher is not None:
            try:
                await publisher.refresh_index()
            finally:
                await publisher.aclose()
        return None

    sources = build_sources(cfg, logger=logger, transport=transport)
    summarizer = None
    if ai:
        summarizer = build_summarizer(cfg, logger, setup_llm_logger(cfg.logging, log_dir), transport=transport)
    store = FileStateStore(cfg.state.path)
    try:
        return await run_once(sources, store, options, publisher=publisher, summarizer=summarizer, logger=logger)
    finally:
        for source in sources:
            await source.aclose()
        if publisher is not None:
            await publisher.aclose()
        if summarizer is not None:
            await summarizer.provider.aclose()


def run_pipeline(
    cfg: AppConfig,
    options: RunOptions,
    *,
    index_only: bool = False,
    ai: bool = True,
    logger: logging.Logger | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> RunResult | None:
    """Synchronous entry point around :func:`run_configured`."""
    return asyncio.run(
        run_configured(cfg, options, index_only=index_only, ai=ai, logger=logger, transport=transport)
    )


async def watch(
    run: Callable[[], Awaitable[object]],
    interval_minutes: float,
    logger: logging.Logger | None = None,
    max_iterations: int | None = None,
) -> None:
    """Invoke ``run`` repeatedly, sleeping ``interval_minutes`` between calls.

    Each invocation is independent; an exception is logged and the loop
    continues with the next interval.
    """
    logger = logger or _LOGGER
    interval_seconds = max(0.0, float(interval_minutes)) * 60
    iteration = 0
    while max_iterations is None or iteration < max_iterations:
        iteration += 1
        try:
            await run()
        except Exception as exc:  # noqa: BLE001
            log_event(
                logger,
                "Watch iteration failed",
                level=logging.ERROR,
                event="watch_iteration_failed",
                iteration=iteration,
                error=str(exc),
            )
        if max_iterations is not None and iteration >= max_iterations:
            break
        log_event(logger, "Sleeping until next run", event="watch_sleep", seconds=interval_seconds)
        await asyncio.sleep(interval_seconds)
