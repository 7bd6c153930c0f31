"""Google Gemini provider for update summaries."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ...config import LoggingConfig, ProviderConfig, SummaryConfig
from ..tracing import record_span_error, set_span_output, start_span
from ._logging import log_llm_response
from .base import SummaryProvider

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com"

_SUMMARY_RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "title": {"type": "STRING"},
        "summary": {"type": "STRING"},
    },
    "required": ["title", "summary"],
}


class GeminiProvider(SummaryProvider):
    """Gemini-backed provider using the ``generateContent`` REST endpoint."""

    name = "gemini"
    default_model = "gemini-2.5-flash"

    def __init__(
        self,
        cfg: ProviderConfig,
        summary_cfg: SummaryConfig,
        api_key: str | None,
        log_cfg: LoggingConfig,
        llm_logger: logging.Logger | None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not api_key:
            raise ValueError("Missing Google API key")
        self.cfg = cfg
        self.model = cfg.model or self.default_model
        self.summary_cfg = summary_cfg
        self.api_key = api_key
        self.log_cfg = log_cfg
        self.llm_logger = llm_logger
        self._client = httpx.AsyncClient(
            timeout=cfg.timeout_seconds,
            trust_env=cfg.trust_env,
            transport=transport,
        )

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        payload = {
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "contents": [{"role": "user", "parts": [{"text": user_prompt}]}],
            "generationConfig": {
                "temperature": self.summary_cfg.temperature,
                "maxOutputTokens": self.summary_cfg.max_output_tokens,
                "responseMimeType": "application/json",
                "responseSchema": _SUMMARY_RESPONSE_SCHEMA,
            },
        }
        with start_span(
            "gemini.summarize",
            kind="llm",
            input_value=user_prompt,
            attributes={"llm.model": self.model, "llm.provider": "gemini"},
        ) as span:
            try:
                data = await self._post(payload)
            except httpx.HTTPError as exc:
                record_span_error(span, exc)
                log_llm_response(
                    self.llm_logger,
                    self.log_cfg,
                    provider=self.name,
                    model=self.model,
                    status="provider_error",
                    content=str(exc),
                    prompt=user_prompt,
                )
                raise
            content = _extract_text(data)
            set_span_output(span, content)
            log_llm_response(
                self.llm_logger,
                self.log_cfg,
                provider=self.name,
                model=self.model,
                status="ok",
                content=content,
                prompt=user_prompt,
            )
            return content.strip()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        base_url = self.cfg.base_url or GEMINI_BASE_URL
        url = f"{base_url.rstrip('/')}/v1beta/models/{self.model}:generateContent"
        resp = await self._client.post(url, params={"key": self.api_key}, json=payload)
        resp.raise_for_status()
        return resp.json()


def _extract_text(data: dict[str, Any]) -> str:
    try:
        parts = data["candidates"][0]["content"]["parts"]
    except (KeyError, IndexError, TypeError):
        return ""

    if not isinstance(parts, list):
        return ""

    non_thought_chunks: list[str] = []
    all_chunks: list[str] = []
    for part in parts:
        if not isinstance(part, dict):
            continue
        text = part.get("text")
        if not text:
            continue
        chunk = str(text)
        all_chunks.append(chunk)
        if not part.get("thought"):
            non_thought_chunks.append(chunk)

    if non_thought_chunks:
        return "".join(non_thought_chunks)
    return "".join(all_chunks)
