"""Utilities for grouping new facts into time-windowed update batches."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable

from .types import Fact, parse_iso8601

DEFAULT_WINDOW = timedelta(hours=12)


@dataclass(frozen=True)
class WindowItem:
    """A fact paired with the time used for windowing decisions."""

    fact: Fact
    effective_time: datetime


def resolve_window(window: timedelta | float | int | None) -> timedelta:
    """Return a strictly positive window, falling back to the default.

    Numbers are interpreted as hours.
    """
    if window is None:
        return DEFAULT_WINDOW
    if not isinstance(window, timedelta):
        window = timedelta(hours=float(window))
    if window <= timedelta(0):
        return DEFAULT_WINDOW
    return window


def effective_time(fact: Fact, since: datetime, now: datetime) -> datetime:
    """Return the time a fact counts at for windowing.

    A fact that occurred before the run's ``since`` cutoff was discovered
    late; it counts at ``now`` so it lands with this run's facts instead of
    a stale window in the past.
    """
    occurred = parse_iso8601(fact.occurred_at)
    if occurred < since:
        return now
    return occurred


def build_window_items(facts: Iterable[Fact], since: datetime, now: datetime) -> list[WindowItem]:
    return [WindowItem(fact=fact, effective_time=effective_time(fact, since, now)) for fact in facts]


def group_into_windows(
    items: Iterable[WindowItem],
    window: timedelta | float | int | None = None,
) -> list[list[Fact]]:
    """Partition items into batches bounded by a maximum time span.

    Items are stably sorted by effective time first, so callers may pass
    them in any order and equal effective times keep their input order.
    The scan is greedy: each batch is anchored at its first item, and a
    later item joins while its distance from the anchor is at most
    ``window`` (inclusive).

    Args:
        items: Facts with their effective times
        window: Maximum batch span; non-positive values use the default

    Returns:
        Ordered list of non-empty batches of the original facts
    """
    span = resolve_window(window)
    ordered = sorted(items, key=lambda item: item.effective_time)

    batches: list[list[Fact]] = []
    anchor: datetime | None = None
    current: list[Fact] = []
    for item in ordered:
        if anchor is not None and item.effective_time - anchor <= span:
            current.append(item.fact)
            continue
        if current:
            batches.append(current)
        anchor = item.effective_time
        current = [item.fact]

    if current:
        batches.append(current)
    return batches
