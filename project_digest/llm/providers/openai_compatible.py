"""OpenAI-compatible chat completions provider."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ...config import LoggingConfig, ProviderConfig, SummaryConfig
from ..tracing import record_span_error, set_span_output, start_span
from ._logging import log_llm_response
from .base import SummaryProvider

OPENAI_BASE_URL = "https://api.openai.com/v1"


class OpenAICompatibleProvider(SummaryProvider):
    """Provider for any endpoint that speaks the ``/chat/completions`` API."""

    name = "openai"
    default_model = "gpt-4o-mini"

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
            raise ValueError("Missing OpenAI API key")
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
            "model": self.model,
            "temperature": self.summary_cfg.temperature,
            "max_tokens": self.summary_cfg.max_output_tokens,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        }
        with start_span(
            "openai.summarize",
            kind="llm",
            input_value=user_prompt,
            attributes={"llm.model": self.model, "llm.provider": "openai"},
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
        base_url = self.cfg.base_url or OPENAI_BASE_URL
        url = f"{base_url.rstrip('/')}/chat/completions"
        headers = {"Authorization": f"Bearer {self.api_key}"}
        resp = await self._client.post(url, headers=headers, json=payload)
        resp.raise_for_status()
        return resp.json()


def _extract_text(data: dict[str, Any]) -> str:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return ""
    return content if isinstance(content, str) else ""
