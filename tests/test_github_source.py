import asyncio
import json

import httpx
import pytest

from project_digest.core.errors import GitHubAPIError, SourceError
from project_digest.core.types import CommitData, Event, IssueData, PullRequestData
from project_digest.github.client import GitHubClient
from project_digest.sources.github import GitHubSource, RepoRef, map_event_to_fact, parse_repo_spec

SINCE = "2024-06-01T00:00:00.000Z"


def _client(handler, **kwargs) -> GitHubClient:
    kwargs.setdefault("backoff_seconds", 0)
    return GitHubClient("tok", transport=httpx.MockTransport(handler), **kwargs)


def _issue(item_id: int, number: int, *, pr: bool = False) -> dict:
    item = {
        "id": item_id,
        "number": number,
        "title": f"Item {number}",
        "state": "open",
        "html_url": f"https://github.com/acme/app/issues/{number}",
        "created_at": "2024-06-01T08:00:00Z",
        "updated_at": "2024-06-01T09:30:00Z",
    }
    if pr:
        item["pull_request"] = {"url": "https://api.github.com/repos/acme/app/pulls/1"}
    return item


def _commit(sha: str, message: str) -> dict:
    return {
        "sha": sha,
        "html_url": f"https://github.com/acme/app/commit/{sha}",
        "commit": {
            "message": message,
            "author": {"name": "Ada", "date": "2024-06-01T10:00:00Z"},
            "committer": {"name": "Ada", "date": "2024-06-01T10:05:00Z"},
        },
    }


def test_parse_repo_spec() -> None:
    assert parse_repo_spec("acme/app") == RepoRef("acme", "app")
    assert parse_repo_spec(" acme/app@main ") == RepoRef("acme", "app", "main")
    assert parse_repo_spec("") is None
    assert parse_repo_spec("acme") is None
    assert parse_repo_spec("acme/app/extra") is None


def test_pull_since_paginates_and_maps_items() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        assert request.headers["Authorization"] == "Bearer tok"
        if request.url.path == "/repos/acme/app/issues":
            if request.url.params.get("page") == "2":
                return httpx.Response(200, json=[_issue(2, 8, pr=True)])
            return httpx.Response(
                200,
                json=[_issue(1, 7)],
                headers={"Link": '<https://api.github.com/repos/acme/app/issues?page=2>; rel="next"'},
            )
        if request.url.path == "/repos/acme/app/commits":
            return httpx.Response(200, json=[_commit("abcdef1234567", "Fix parser\n\nLong body")])
        return httpx.Response(404, json={"message": "Not Found"})

    async def scenario():
        source = GitHubSource(_client(handler), ["acme/app@main"])
        try:
            events = await source.pull_since(SINCE)
            return events, await source.to_facts(events)
        finally:
            await source.aclose()

    events, facts = asyncio.run(scenario())

    first = seen[0]
    assert first.url.params["state"] == "all"
    assert first.url.params["since"] == SINCE
    commits_request = next(r for r in seen if r.url.path.endswith("/commits"))
    assert commits_request.url.params["sha"] == "main"

    assert [e.id for e in events] == ["gh-1", "gh-2", "gh-commit-abcdef1234567"]
    assert [e.kind for e in events] == ["issue", "pull_request", "commit"]
    assert events[0].occurred_at == "2024-06-01T09:30:00.000Z"
    assert events[2].occurred_at == "2024-06-01T10:00:00.000Z"

    assert facts[0].summary == "Issue #7: Item 7 [open]"
    assert facts[1].summary == "PR #8: Item 8 [open]"
    assert facts[2].summary == "Commit abcdef1: Fix parser"
    assert facts[2].data == CommitData(sha="abcdef1234567", message="Fix parser\n\nLong body", author="Ada", repo="acme/app")
    assert isinstance(facts[1].data, PullRequestData)
    assert all(f.source == "github" for f in facts)


def test_rate_limited_request_is_retried() -> None:
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        if calls["n"] == 1:
            return httpx.Response(429, json={"message": "slow down"})
        return httpx.Response(200, json=[])

    async def scenario():
        client = _client(handler, retries=3)
        async with client:
            return await client.paginate("/repos/acme/app/issues")

    assert asyncio.run(scenario()) == []
    assert calls["n"] == 2


def test_client_raises_with_status_after_retries() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"message": "API rate limit exceeded"})

    async def scenario():
        async with _client(handler, retries=2) as client:
            await client.get_json("/repos/acme/app")

    with pytest.raises(GitHubAPIError) as excinfo:
        asyncio.run(scenario())
    assert excinfo.value.status == 403
    assert "API rate limit exceeded" in str(excinfo.value)


def test_pull_failure_becomes_source_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"message": "boom"})

    async def scenario():
        source = GitHubSource(_client(handler), ["acme/app"])
        try:
            await source.pull_since(SINCE)
        finally:
            await source.aclose()

    with pytest.raises(SourceError, match="acme/app"):
        asyncio.run(scenario())


def test_map_event_without_sha_or_known_kind() -> None:
    commit = map_event_to_fact(
        Event(id="c", source="github", kind="commit", occurred_at=SINCE, payload={"message": "hello\nworld"})
    )
    other = map_event_to_fact(
        Event(id="r", source="github", kind="release", occurred_at=SINCE, payload={"summary": "v1.0 shipped"})
    )

    assert commit.summary == "Commit: hello"
    assert other.summary == "v1.0 shipped"
    assert other.data.fields == {"summary": "v1.0 shipped"}


def test_fetch_details_collects_bodies_and_comments() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/repos/acme/app/pulls/8":
            return httpx.Response(200, json={"title": "Add cache", "body": "x" * 50})
        if path == "/repos/acme/app/issues/8/comments":
            assert request.url.params["per_page"] == "2"
            return httpx.Response(200, json=[{"user": {"login": "bob"}, "body": "LGTM"}])
        if path == "/repos/acme/app/commits/abc":
            return httpx.Response(
                200,
                json={"commit": {"message": "Tidy"}, "files": [{}, {}], "stats": {"additions": 3, "deletions": 1}},
            )
        if path == "/repos/acme/app/issues/9":
            return httpx.Response(404, json={"message": "Not Found"})
        return httpx.Response(500)

    events = [
        Event(id="pr", source="github", kind="pull_request", occurred_at=SINCE, payload={"number": 8, "repo": "acme/app"}),
        Event(id="c", source="github", kind="commit", occurred_at=SINCE, payload={"sha": "abc", "repo": "acme/app"}),
        Event(id="gone", source="github", kind="issue", occurred_at=SINCE, payload={"number": 9, "repo": "acme/app"}),
    ]

    async def scenario():
        source = GitHubSource(_client(handler), [])
        try:
            facts = await source.to_facts(events)
            return await source.fetch_details(facts, max_comments=2, max_chars=10)
        finally:
            await source.aclose()

    details = asyncio.run(scenario())

    assert set(details) == {"pr", "c"}
    assert details["pr"] == "PR #8: Add cache\n" + "x" * 10 + "…\nRecent comments:\n- bob: LGTM"
    assert details["c"] == "Commit abc\nTidy\nFiles changed: 2 (+3/-1)"
    assert isinstance(map_event_to_fact(events[2]).data, IssueData)
