"""Structured logging setup for the loader."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from NativeBridge.LibraryLoader.logging_utils import LOGGER_NAME, JSONFormatter, setup_logging


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(LOGGER_NAME, logging.INFO, __file__, 1, "resolved %s", ("torch",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_extra_fields():
    payload = json.loads(JSONFormatter().format(_record(stage="resolve", path=Path("/tmp/lib"))))

    assert payload["message"] == "resolved torch"
    assert payload["level"] == "INFO"
    assert payload["stage"] == "resolve"
    assert payload["path"] == str(Path("/tmp/lib"))
    assert payload["timestamp"].endswith("Z")
    assert "args" not in payload


def test_json_formatter_defaults_stage_to_none():
    assert json.loads(JSONFormatter().format(_record()))["stage"] is None


def test_setup_logging_writes_json_lines(tmp_path: Path):
    log_file = tmp_path / "logs" / "loader.jsonl"
    logger = setup_logging(level="DEBUG", log_file=log_file)

    logging.getLogger(f"{LOGGER_NAME}.download").info("downloading native file", extra={"stage": "download"})
    for handler in logger.handlers:
        handler.flush()

    lines = log_file.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    entry = json.loads(lines[0])
    assert entry["logger"] == f"{LOGGER_NAME}.download"
    assert entry["stage"] == "download"
    assert logger.level == logging.DEBUG
    assert logger.propagate is False


def test_setup_logging_is_idempotent(tmp_path: Path):
    setup_logging(log_file=tmp_path / "a.jsonl")
    logger = setup_logging(level="warning")

    assert len(logger.handlers) == 1
    assert logger.level == logging.WARNING
