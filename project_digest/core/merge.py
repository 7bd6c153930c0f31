"""
Fact merging and novelty selection.

Facts are deduplicated by id only:
1. Merge: incoming facts overwrite existing facts with the same id
2. Novelty: a fact is new when its id was unknown before this run

Neither step looks at timestamps for identity, so a backfilled fact that
occurred long before the last run is still reported exactly once.
"""

from __future__ import annotations

from typing import Iterable

from .types import Fact


def merge_facts(existing: Iterable[Fact], incoming: Iterable[Fact]) -> list[Fact]:
    """Merge incoming facts into existing facts, last write wins by id.

    A replaced fact keeps its original insertion position, so ties on
    ``occurred_at`` stay in first-seen order. If a re-pulled fact carries a
    corrected timestamp, the replacement moves it in the canonical order.

    Args:
        existing: Previously known facts
        incoming: Freshly pulled facts

    Returns:
        Unique facts sorted ascending by occurred_at (stable)
    """
    by_id: dict[str, Fact] = {}
    for fact in existing:
        by_id[fact.id] = fact
    for fact in incoming:
        by_id[fact.id] = fact
    # Canonical timestamps are fixed-width UTC, so string order is time order.
    return sorted(by_id.values(), key=lambda fact: fact.occurred_at)


def select_new_facts(prev_facts: Iterable[Fact], merged_facts: Iterable[Fact]) -> list[Fact]:
    """Return facts whose id was not present in the previous state.

    Args:
        prev_facts: Facts from the state read at the start of the run
        merged_facts: Facts after merging this run's pull

    Returns:
        New facts sorted ascending by occurred_at
    """
    known_ids = {fact.id for fact in prev_facts}
    fresh = [fact for fact in merged_facts if fact.id not in known_ids]
    return sorted(fresh, key=lambda fact: fact.occurred_at)
