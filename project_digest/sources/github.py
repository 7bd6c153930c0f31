"""
GitHub activity source.

Pulls, per configured repository:
1. Issues and pull requests updated since the cutoff (``/issues?state=all``)
2. Commits since the cutoff, optionally restricted to a branch

Repositories are given as ``owner/repo`` or ``owner/repo@branch``.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Sequence

from ..core.errors import GitHubAPIError, SourceError
from ..core.types import (
    CommitData,
    Event,
    Fact,
    GenericData,
    IssueData,
    PullRequestData,
    normalize_iso8601,
)
from ..github.client import GitHubClient
from ..utils.logging import log_event
from .base import Source

SOURCE_NAME = "github"


@dataclass(frozen=True)
class RepoRef:
    owner: str
    repo: str
    branch: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


def parse_repo_spec(raw: str) -> RepoRef | None:
    """Parse ``owner/repo[@branch]``; returns None for blank or malformed input."""
    spec = raw.strip()
    if not spec:
        return None
    repo_part, _, branch = spec.partition("@")
    owner, _, repo = repo_part.partition("/")
    if not owner or not repo or "/" in repo:
        return None
    return RepoRef(owner=owner, repo=repo, branch=branch or None)


def map_event_to_fact(event: Event) -> Fact:
    """Convert one GitHub event into a fact with kind-specific detail."""
    payload = event.payload or {}

    if event.kind == "commit":
        sha = str(payload.get("sha") or "")
        message = str(payload.get("message") or "")
        first_line = message.split("\n")[0]
        summary = f"Commit {sha[:7]}: {first_line}" if sha else f"Commit: {first_line}"
        return Fact(
            id=event.id,
            kind=event.kind,
            summary=summary,
            occurred_at=event.occurred_at,
            source=SOURCE_NAME,
            url=event.url,
            data=CommitData(
                sha=sha,
                message=message,
                author=payload.get("author"),
                repo=payload.get("repo"),
            ),
        )

    if event.kind in ("issue", "pull_request"):
        number = payload.get("number") if isinstance(payload.get("number"), int) else None
        title = payload.get("title") if isinstance(payload.get("title"), str) else None
        state = payload.get("state") if isinstance(payload.get("state"), str) else None
        repo = payload.get("repo") if isinstance(payload.get("repo"), str) else None
        label = "PR" if event.kind == "pull_request" else "Issue"
        number_part = f" #{number}" if number is not None else ""
        title_part = f": {title}" if title else ""
        state_part = f" [{state}]" if state else ""
        data_cls = PullRequestData if event.kind == "pull_request" else IssueData
        return Fact(
            id=event.id,
            kind=event.kind,
            summary=f"{label}{number_part}{title_part}{state_part}".strip(),
            occurred_at=event.occurred_at,
            source=SOURCE_NAME,
            url=event.url,
            data=data_cls(number=number, title=title, state=state, repo=repo),
        )

    return Fact(
        id=event.id,
        kind=event.kind,
        summary=str(payload.get("summary") or event.kind),
        occurred_at=event.occurred_at,
        source=SOURCE_NAME,
        url=event.url,
        data=GenericData(fields=dict(payload)),
    )


class GitHubSource(Source):
    """Pull issues, pull requests and commits from GitHub repositories."""

    name = SOURCE_NAME

    def __init__(
        self,
        client: GitHubClient,
        repos: Sequence[str],
        per_page: int = 100,
        logger: logging.Logger | None = None,
    ):
        self.client = client
        self.repos = [ref for ref in (parse_repo_spec(raw) for raw in repos) if ref is not None]
        self.per_page = per_page
        self.logger = logger

    async def pull_since(self, since_iso: str) -> list[Event]:
        events: list[Event] = []
        for ref in self.repos:
            try:
                issues = await self.client.paginate(
                    f"/repos/{ref.owner}/{ref.repo}/issues",
                    params={"state": "all", "since": since_iso, "per_page": self.per_page},
                )
                commit_params: dict[str, Any] = {"since": since_iso, "per_page": self.per_page}
                if ref.branch:
                    commit_params["sha"] = ref.branch
                commits = await self.client.paginate(
                    f"/repos/{ref.owner}/{ref.repo}/commits",
                    params=commit_params,
                )
            except GitHubAPIError as exc:
                raise SourceError(f"GitHub pull failed for {ref.full_name}: {exc}") from exc

            events.extend(_issue_event(item, ref, since_iso) for item in issues)
            events.extend(_commit_event(item, ref, since_iso) for item in commits)
            log_event(
                self.logger,
                "GitHub repository pulled",
                event="github_repo_pulled",
                repo=ref.full_name,
                issues=len(issues),
                commits=len(commits),
            )
        return events

    async def to_facts(self, events: Sequence[Event]) -> list[Fact]:
        return [map_event_to_fact(event) for event in events]

    async def fetch_details(
        self,
        facts: Sequence[Fact],
        *,
        include_bodies: bool = True,
        max_comments: int = 3,
        max_chars: int = 2000,
    ) -> dict[str, str]:
        details: dict[str, str] = {}
        for fact in facts:
            repo_full = getattr(fact.data, "repo", None)
            if not repo_full or "/" not in repo_full:
                continue
            try:
                text = await self._fact_detail(fact, repo_full, include_bodies, max_comments, max_chars)
            except GitHubAPIError as exc:
                log_event(
                    self.logger,
                    "GitHub detail fetch failed",
                    level=logging.WARNING,
                    event="github_detail_failed",
                    fact_id=fact.id,
                    status=exc.status,
                    error=str(exc),
                )
                continue
            if text:
                details[fact.id] = text
        return details

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _fact_detail(
        self,
        fact: Fact,
        repo_full: str,
        include_bodies: bool,
        max_comments: int,
        max_chars: int,
    ) -> str | None:
        data = fact.data
        if isinstance(data, CommitData):
            if not data.sha:
                return None
            commit = await self.client.get_json(f"/repos/{repo_full}/commits/{data.sha}")
            message = _trim((commit.get("commit") or {}).get("message") or "", max_chars)
            files = commit.get("files")
            stats = commit.get("stats") or {}
            files_changed = len(files) if isinstance(files, list) else None
            stats_line = ""
            if files_changed is not None or stats:
                stats_line = (
                    f"\nFiles changed: {files_changed if files_changed is not None else '?'} "
                    f"(+{stats.get('additions', 0)}/-{stats.get('deletions', 0)})"
                )
            return f"Commit {data.sha}\n{message}{stats_line}".strip()

        if isinstance(data, (IssueData, PullRequestData)) and data.number:
            is_pr = isinstance(data, PullRequestData)
            endpoint = "pulls" if is_pr else "issues"
            item = await self.client.get_json(f"/repos/{repo_full}/{endpoint}/{data.number}")
            body = _trim(item.get("body") or "", max_chars) if include_bodies else ""
            comment_lines: list[str] = []
            if max_comments > 0:
                comments = await self.client.get_json(
                    f"/repos/{repo_full}/issues/{data.number}/comments",
                    params={"per_page": max_comments},
                )
                if isinstance(comments, list):
                    for comment in comments[-max_comments:]:
                        login = _trim((comment.get("user") or {}).get("login") or "user", 40)
                        comment_lines.append(f"- {login}: {_trim(comment.get('body') or '', 300)}")

            label = "PR" if is_pr else "Issue"
            parts = [f"{label} #{data.number}: {item.get('title') or ''}"]
            if body:
                parts.append(f"\n{body}")
            if comment_lines:
                parts.append("\nRecent comments:\n" + "\n".join(comment_lines))
            return "".join(parts).strip()

        return None


def _issue_event(item: dict[str, Any], ref: RepoRef, since_iso: str) -> Event:
    is_pr = "pull_request" in item
    occurred = item.get("updated_at") or item.get("created_at") or since_iso
    return Event(
        id=f"gh-{item['id']}",
        source=SOURCE_NAME,
        kind="pull_request" if is_pr else "issue",
        occurred_at=normalize_iso8601(occurred),
        payload={
            "number": item.get("number"),
            "title": item.get("title"),
            "state": item.get("state"),
            "repo": ref.full_name,
        },
        url=item.get("html_url"),
    )


def _commit_event(item: dict[str, Any], ref: RepoRef, since_iso: str) -> Event:
    commit = item.get("commit") or {}
    author = commit.get("author") or {}
    committer = commit.get("committer") or {}
    occurred = author.get("date") or committer.get("date") or since_iso
    return Event(
        id=f"gh-commit-{item['sha']}",
        source=SOURCE_NAME,
        kind="commit",
        occurred_at=normalize_iso8601(occurred),
        payload={
            "sha": item["sha"],
            "message": commit.get("message") or "",
            "author": author.get("name"),
            "repo": ref.full_name,
        },
        url=item.get("html_url"),
    )


def _trim(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "…"
