"""Tests for id-based fact merging and novelty selection."""

from project_digest.core.merge import merge_facts, select_new_facts
from project_digest.core.types import Fact


def _fact(fact_id: str, occurred_at: str, summary: str = "") -> Fact:
    return Fact(
        id=fact_id,
        kind="note",
        summary=summary or fact_id,
        occurred_at=occurred_at,
        source="test",
    )


def test_merge_sorts_by_occurred_at() -> None:
    a = _fact("a", "2024-01-02T00:00:00.000Z")
    b = _fact("b", "2024-01-01T00:00:00.000Z")

    merged = merge_facts([a], [b])

    assert [f.id for f in merged] == ["b", "a"]


def test_merge_incoming_wins_on_id_collision() -> None:
    old = _fact("x", "2024-01-01T00:00:00.000Z", summary="old")
    new = _fact("x", "2024-01-01T00:00:00.000Z", summary="new")

    merged = merge_facts([old], [new])

    assert len(merged) == 1
    assert merged[0].summary == "new"


def test_merge_is_idempotent() -> None:
    existing = [_fact("a", "2024-01-01T00:00:00.000Z")]
    incoming = [
        _fact("b", "2024-01-03T00:00:00.000Z"),
        _fact("a", "2024-01-01T00:00:00.000Z", summary="a2"),
    ]

    once = merge_facts(existing, incoming)
    twice = merge_facts(once, incoming)

    assert twice == once


def test_merge_keeps_first_seen_order_on_timestamp_ties() -> None:
    ts = "2024-01-01T00:00:00.000Z"
    merged = merge_facts([_fact("b", ts), _fact("a", ts)], [_fact("c", ts), _fact("b", ts, summary="b2")])

    assert [f.id for f in merged] == ["b", "a", "c"]
    assert merged[0].summary == "b2"


def test_merge_reorders_fact_whose_timestamp_changed() -> None:
    a = _fact("a", "2024-01-01T00:00:00.000Z")
    b = _fact("b", "2024-01-02T00:00:00.000Z")
    moved = _fact("a", "2024-01-03T00:00:00.000Z")

    merged = merge_facts([a, b], [moved])

    assert [f.id for f in merged] == ["b", "a"]
    assert merged[1].occurred_at == "2024-01-03T00:00:00.000Z"


def test_select_new_facts_is_id_based() -> None:
    prev = [_fact("a", "2024-01-05T00:00:00.000Z")]
    backfilled = _fact("old", "2020-01-01T00:00:00.000Z")
    merged = merge_facts(prev, [backfilled, _fact("a", "2024-01-05T00:00:00.000Z")])

    new = select_new_facts(prev, merged)

    assert [f.id for f in new] == ["old"]


def test_select_new_facts_empty_when_nothing_new() -> None:
    prev = [_fact("a", "2024-01-01T00:00:00.000Z")]

    assert select_new_facts(prev, merge_facts(prev, prev)) == []


def test_select_new_facts_orders_by_occurred_at() -> None:
    merged = [
        _fact("late", "2024-01-03T00:00:00.000Z"),
        _fact("early", "2024-01-01T00:00:00.000Z"),
    ]

    assert [f.id for f in select_new_facts([], merged)] == ["early", "late"]
