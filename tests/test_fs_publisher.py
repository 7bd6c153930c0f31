import asyncio
import json
from pathlib import Path

import yaml

from project_digest.core.types import Citation, ProjectState, UpdateDraft
from project_digest.output.index_sync import load_index, render_index_html, upsert_index_entry
from project_digest.publishers.base import safe_id
from project_digest.publishers.fs import FileSystemPublisher, render_markdown_document


def _draft(draft_id: str, created_at: str, title: str | None = "Project Update") -> UpdateDraft:
    return UpdateDraft(
        id=draft_id,
        created_at=created_at,
        markdown="# Update\n\n- note (2024-06-01T09:00:00.000Z)",
        title=title,
        citations=[Citation(label="note", url="https://example.com/1")],
    )


def _split_front_matter(text: str) -> tuple[dict, str]:
    assert text.startswith("---\n")
    header, body = text[4:].split("---\n", 1)
    return yaml.safe_load(header), body


def test_safe_id_replaces_unsafe_characters() -> None:
    assert safe_id("update-2024-06-01T09:00:00.000Z") == "update-2024-06-01T09-00-00-000Z"
    assert safe_id("a/b c") == "a-b-c"


def test_render_markdown_document_has_front_matter() -> None:
    text = render_markdown_document(_draft("u1", "2024-06-01T09:00:00.000Z"))

    meta, body = _split_front_matter(text)
    assert meta == {
        "id": "u1",
        "title": "Project Update",
        "createdAt": "2024-06-01T09:00:00.000Z",
        "citations": 1,
    }
    assert body == "# Update\n\n- note (2024-06-01T09:00:00.000Z)\n"


def test_render_markdown_document_omits_empty_title() -> None:
    meta, _ = _split_front_matter(render_markdown_document(_draft("u1", "2024-06-01T09:00:00.000Z", title=None)))

    assert "title" not in meta


def test_publish_writes_file_index_and_html(tmp_path: Path) -> None:
    publisher = FileSystemPublisher(tmp_path / "out", base_url="https://site.example/updates/")
    draft = _draft("update-2024-06-01T09:00:00.000Z", "2024-06-01T09:00:00.000Z")

    result = asyncio.run(publisher.publish(draft, ProjectState()))

    file_name = "update-2024-06-01T09-00-00-000Z.md"
    assert result.id == draft.id
    assert result.url == f"https://site.example/updates/{file_name}"
    assert (tmp_path / "out" / file_name).exists()
    index = json.loads((tmp_path / "out" / "index.json").read_text(encoding="utf-8"))
    assert index == [
        {
            "id": draft.id,
            "title": "Project Update",
            "createdAt": draft.created_at,
            "path": file_name,
            "url": result.url,
        }
    ]
    html = (tmp_path / "out" / "index.html").read_text(encoding="utf-8")
    assert file_name in html


def test_publish_without_base_url_has_no_url(tmp_path: Path) -> None:
    publisher = FileSystemPublisher(tmp_path)

    result = asyncio.run(publisher.publish(_draft("u1", "2024-06-01T09:00:00.000Z"), ProjectState()))

    assert result.url is None
    assert "url" not in load_index(tmp_path / "index.json")[0]


def test_republishing_replaces_entry_and_sorts_newest_first(tmp_path: Path) -> None:
    upsert_index_entry(tmp_path, _draft("old", "2024-06-01T09:00:00.000Z"), path="old.md")
    upsert_index_entry(tmp_path, _draft("new", "2024-06-02T09:00:00.000Z"), path="new.md")
    upsert_index_entry(tmp_path, _draft("old", "2024-06-01T09:00:00.000Z", title="Renamed"), path="old.md")

    entries = load_index(tmp_path / "index.json")

    assert [e["id"] for e in entries] == ["new", "old"]
    assert entries[1]["title"] == "Renamed"


def test_malformed_index_is_normalized(tmp_path: Path) -> None:
    (tmp_path / "index.json").write_text(
        json.dumps(
            [
                {"id": "ok", "createdAt": "2024-06-01T09:00:00.000Z", "path": "ok.md", "title": 5},
                {"id": "bad-time", "createdAt": "yesterday", "path": "x.md"},
                {"createdAt": "2024-06-01T09:00:00.000Z", "path": "noid.md"},
                "garbage",
            ]
        ),
        encoding="utf-8",
    )

    render_index_html(tmp_path, "My Updates")

    assert json.loads((tmp_path / "index.json").read_text(encoding="utf-8")) == [
        {"id": "ok", "title": "", "createdAt": "2024-06-01T09:00:00.000Z", "path": "ok.md"}
    ]
    assert "My Updates" in (tmp_path / "index.html").read_text(encoding="utf-8")


def test_unreadable_index_starts_fresh(tmp_path: Path) -> None:
    (tmp_path / "index.json").write_text("{not json", encoding="utf-8")

    assert load_index(tmp_path / "index.json") == []


def test_refresh_index_creates_output(tmp_path: Path) -> None:
    publisher = FileSystemPublisher(tmp_path / "fresh", site_title="Team Log")

    asyncio.run(publisher.refresh_index())

    html = (tmp_path / "fresh" / "index.html").read_text(encoding="utf-8")
    assert "Team Log" in html
    assert "No updates yet." in html
