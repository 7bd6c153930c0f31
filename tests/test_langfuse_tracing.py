"""Tests for Langfuse tracing setup behavior."""

from __future__ import annotations

import sys
import types

import pytest

from project_digest.config import LangfuseConfig
from project_digest.llm import tracing


@pytest.fixture(autouse=True)
def _reset_tracer():
    yield
    tracing.setup_langfuse(LangfuseConfig())


def test_setup_langfuse_uses_only_langfuse_base_url_env(monkeypatch):
    captured: dict = {}

    class DummyLangfuse:
        def __init__(self, **kwargs):
            captured.update(kwargs)

    fake_module = types.SimpleNamespace(Langfuse=DummyLangfuse)
    monkeypatch.setitem(sys.modules, "langfuse", fake_module)
    monkeypatch.setenv("LANGFUSE_PUBLIC_KEY", "pk-test")
    monkeypatch.setenv("LANGFUSE_SECRET_KEY", "sk-test")
    monkeypatch.setenv("LANGFUSE_BASE_URL", "https://us.cloud.langfuse.com")
    monkeypatch.setenv("LANGFUSE_HOST", "https://should-be-ignored.example.com")

    tracing.setup_langfuse(LangfuseConfig(enabled=True, timeout_seconds=45))

    assert captured["public_key"] == "pk-test"
    assert captured["secret_key"] == "sk-test"
    assert captured["base_url"] == "https://us.cloud.langfuse.com"
    assert captured["timeout"] == 45
    assert isinstance(tracing.get_tracer(), DummyLangfuse)


def test_setup_langfuse_disables_tracer_when_keys_missing(monkeypatch):
    monkeypatch.delenv("LANGFUSE_PUBLIC_KEY", raising=False)
    monkeypatch.delenv("LANGFUSE_SECRET_KEY", raising=False)

    tracing.setup_langfuse(LangfuseConfig(enabled=True))

    assert tracing.get_tracer() is None


def test_span_helpers_record_output_and_errors(monkeypatch):
    updates: list[dict] = []

    class DummySpan:
        def update(self, **kwargs):
            updates.append(kwargs)

    class DummyContext:
        def __enter__(self):
            return DummySpan()

        def __exit__(self, *exc_info):
            return False

    class DummyLangfuse:
        def __init__(self, **kwargs):
            self.started: list[dict] = []

        def start_as_current_span(self, **kwargs):
            self.started.append(kwargs)
            return DummyContext()

    monkeypatch.setitem(sys.modules, "langfuse", types.SimpleNamespace(Langfuse=DummyLangfuse))
    tracing.setup_langfuse(
        LangfuseConfig(enabled=True, public_key="pk", secret_key="sk", redaction="none", max_text_chars=5)
    )

    with tracing.start_span("pipeline.run_once", kind="chain", attributes={"sources": 2, "skip": None}) as span:
        tracing.set_span_output(span, "abcdefghij")
        tracing.record_span_error(span, RuntimeError("boom"))

    started = tracing.get_tracer().started[0]
    assert started["name"] == "pipeline.run_once"
    assert started["metadata"] == {"sources": 2, "span.kind": "chain"}
    assert updates[0]["output"].startswith("abcde")
    assert updates[1] == {"level": "ERROR", "status_message": "boom"}


def test_start_span_yields_none_without_tracer():
    tracing.setup_langfuse(LangfuseConfig(enabled=False))

    with tracing.start_span("noop", kind="chain") as span:
        assert span is None
