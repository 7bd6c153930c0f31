import asyncio
import base64
import json

import httpx
import pytest
import yaml

from project_digest.core.errors import PublishError
from project_digest.core.types import ProjectState, UpdateDraft
from project_digest.github.client import GitHubClient
from project_digest.publishers.ghpages import BODY_END, BODY_START, GitHubPagesPublisher

REPO = "/repos/acme/site"


class FakePages:
    """In-memory stand-in for the GitHub refs and contents endpoints."""

    def __init__(self, branch_exists: bool = True, files: dict[str, str] | None = None):
        self.branch_exists = branch_exists
        self.files = dict(files or {})
        self.puts: list[tuple[str, dict]] = []
        self.created_refs: list[dict] = []
        self.fail_put_status: int | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if request.method == "GET" and path == f"{REPO}/git/ref/heads/gh-pages":
            if self.branch_exists:
                return httpx.Response(200, json={"object": {"sha": "pages-sha"}})
            return httpx.Response(404, json={"message": "Not Found"})
        if request.method == "GET" and path == REPO:
            return httpx.Response(200, json={"default_branch": "main"})
        if request.method == "GET" and path == f"{REPO}/git/ref/heads/main":
            return httpx.Response(200, json={"object": {"sha": "main-sha"}})
        if request.method == "POST" and path == f"{REPO}/git/refs":
            payload = json.loads(request.content)
            self.created_refs.append(payload)
            self.branch_exists = True
            return httpx.Response(201, json={"ref": payload["ref"]})

        prefix = f"{REPO}/contents/"
        if path.startswith(prefix):
            file_path = path[len(prefix):]
            if request.method == "GET":
                if file_path not in self.files:
                    return httpx.Response(404, json={"message": "Not Found"})
                encoded = base64.b64encode(self.files[file_path].encode("utf-8")).decode("ascii")
                return httpx.Response(200, json={"sha": f"sha-{file_path}", "content": encoded, "encoding": "base64"})
            if request.method == "PUT":
                if self.fail_put_status:
                    return httpx.Response(self.fail_put_status, json={"message": "denied"})
                payload = json.loads(request.content)
                self.puts.append((file_path, payload))
                self.files[file_path] = base64.b64decode(payload["content"]).decode("utf-8")
                return httpx.Response(200, json={"content": {"path": file_path}})
        return httpx.Response(500, json={"message": f"unexpected {request.method} {path}"})


def _publisher(fake: FakePages, **kwargs) -> GitHubPagesPublisher:
    client = GitHubClient("tok", transport=httpx.MockTransport(fake), backoff_seconds=0)
    return GitHubPagesPublisher(client, owner="acme", repo="site", **kwargs)


def _draft(draft_id: str = "update-2024-06-01T09:00:00.000Z") -> UpdateDraft:
    return UpdateDraft(id=draft_id, created_at="2024-06-01T09:00:00.000Z", markdown="# Update\n\n- did things", title="Daily")


def test_missing_owner_is_rejected() -> None:
    client = GitHubClient("tok", transport=httpx.MockTransport(FakePages()))
    with pytest.raises(PublishError, match="missing owner"):
        GitHubPagesPublisher(client, owner=None, repo="site")


def test_publish_bootstraps_branch_and_scaffold() -> None:
    fake = FakePages(branch_exists=False)
    publisher = _publisher(fake)

    result = asyncio.run(publisher.publish(_draft(), ProjectState()))

    assert fake.created_refs == [{"ref": "refs/heads/gh-pages", "sha": "main-sha"}]
    assert [path for path, _ in fake.puts] == [
        "_config.yml",
        "index.md",
        "_updates/update-2024-06-01T09-00-00-000Z.md",
    ]
    assert fake.puts[0][1]["message"] == "project-digest: bootstrap _config.yml"
    assert all(payload["branch"] == "gh-pages" for _, payload in fake.puts)
    assert result.url == "https://acme.github.io/site/updates/update-2024-06-01T09-00-00-000Z.html"


def test_unchanged_scaffold_is_not_rewritten() -> None:
    seed = _publisher(FakePages())
    fake = FakePages(files=seed.render_scaffold())
    publisher = _publisher(fake)

    asyncio.run(publisher.publish(_draft(), ProjectState()))
    asyncio.run(publisher.publish(_draft("update-2"), ProjectState()))

    assert [path for path, _ in fake.puts] == [
        "_updates/update-2024-06-01T09-00-00-000Z.md",
        "_updates/update-2.md",
    ]


def test_republish_sends_existing_sha() -> None:
    fake = FakePages()
    publisher = _publisher(fake)

    asyncio.run(publisher.publish(_draft(), ProjectState()))
    asyncio.run(publisher.publish(_draft(), ProjectState()))

    item_puts = [payload for path, payload in fake.puts if path.startswith("_updates/")]
    assert "sha" not in item_puts[0]
    assert item_puts[1]["sha"] == "sha-_updates/update-2024-06-01T09-00-00-000Z.md"


def test_render_document_marks_body_and_kind() -> None:
    publisher = _publisher(FakePages(), dir="_notes")

    text = publisher.render_document(_draft("update-1-summary"))

    header, body = text[4:].split("---\n", 1)
    meta = yaml.safe_load(header)
    assert meta["ha_kind"] == "summary"
    assert meta["title"] == meta["ha_title"] == "Daily"
    assert meta["permalink"] == "notes/update-1-summary.html"
    assert body == f"\n{BODY_START}\n# Daily\n\n# Update\n\n- did things\n{BODY_END}\n"


def test_public_url_prefers_base_url() -> None:
    publisher = _publisher(FakePages(), base_url="https://docs.example/updates/")

    assert publisher.public_url("u-1") == "https://docs.example/updates/u-1.html"


def test_write_failure_carries_status_help() -> None:
    fake = FakePages()
    fake.fail_put_status = 403
    publisher = _publisher(fake)

    with pytest.raises(PublishError) as excinfo:
        asyncio.run(publisher.publish(_draft(), ProjectState()))

    message = str(excinfo.value)
    assert "acme/site" in message
    assert "contents: write" in message
