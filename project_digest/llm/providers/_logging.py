"""LLM interaction logging shared by provider implementations."""

from __future__ import annotations

import logging

from ...config import LoggingConfig
from ...utils.logging import log_event, redact_text, truncate_text


def log_llm_response(
    llm_logger: logging.Logger | None,
    log_cfg: LoggingConfig,
    *,
    provider: str,
    model: str,
    status: str,
    content: str,
    prompt: str,
) -> None:
    if llm_logger is None:
        return
    redaction = log_cfg.llm_log_redaction
    payload = {
        "event": "llm_summary_response",
        "status": status,
        "provider": provider,
        "model": model,
        "raw_response": truncate_text(redact_text(content, redaction)),
    }
    if log_cfg.llm_log_detail == "prompt_response":
        payload["raw_prompt"] = truncate_text(redact_text(prompt, redaction))
    log_event(llm_logger, "LLM response", **payload)
