import json
import logging

from project_digest.config import LoggingConfig
from project_digest.utils.logging import log_event, setup_llm_logger, setup_logging


def test_repeated_llm_logger_setup_closes_previous_files(tmp_path):
    cfg = LoggingConfig()
    replaced: list[logging.FileHandler] = []

    for _ in range(3):
        logger = setup_llm_logger(cfg, tmp_path)
        replaced.extend(h for h in logger.handlers if isinstance(h, logging.FileHandler))

    current = logger.handlers[0]
    assert len(logger.handlers) == 1
    assert all(h.stream is None for h in replaced if h is not current)
    logger.removeHandler(current)
    current.close()


def test_setup_logging_writes_jsonl_events(tmp_path):
    cfg = LoggingConfig(console=False)
    logger = setup_logging(cfg, tmp_path)
    setup_logging(cfg, tmp_path)

    log_event(logger, "Pipeline start", event="pipeline_start", since="1970-01-01T00:00:00.000Z")
    for handler in logger.handlers:
        handler.flush()

    lines = (tmp_path / cfg.filename).read_text(encoding="utf-8").splitlines()
    record = json.loads(lines[-1])
    assert record["event"] == "pipeline_start"
    assert record["since"] == "1970-01-01T00:00:00.000Z"
    assert len(logger.handlers) == 1
    handler = logger.handlers[0]
    logger.removeHandler(handler)
    handler.close()
