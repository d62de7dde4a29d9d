"""
Tests für mmstatus.utils.logging – Structured Logging.

Testet:
  - Setup mit verschiedenen Konfigurationen
  - JSONL-Datei-Logging
  - Stdlib-Records laufen durch dieselbe Kette
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

import pytest
import structlog

from mmstatus.utils.logging import LOG_FILE_NAME, get_logger, setup_logging

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    yield
    for handler in list(logging.root.handlers):
        logging.root.removeHandler(handler)
        handler.close()
    structlog.reset_defaults()


def _records(path: Path) -> list[dict]:
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines() if line]


class TestLoggingSetup:
    def test_default_setup(self) -> None:
        """Logging initialisiert ohne Fehler."""
        setup_logging(level="INFO", console=True)
        log = get_logger("test")
        log.info("test_event", key="value")

    def test_json_mode(self) -> None:
        setup_logging(level="INFO", json_logs=True, console=True)
        get_logger("test.json").info("json_test", number=42)

    def test_noisy_loggers_quieted(self) -> None:
        setup_logging(level="DEBUG", console=True)
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("apscheduler").level == logging.WARNING

    def test_file_logging(self, tmp_path: Path) -> None:
        log_dir = tmp_path / "logs"
        setup_logging(level="INFO", log_dir=log_dir, console=False)
        get_logger("test.file").info("file_event", status="away")

        log_file = log_dir / LOG_FILE_NAME
        assert log_file.exists()
        events = {rec["event"]: rec for rec in _records(log_file)}
        assert events["file_event"]["status"] == "away"
        assert events["file_event"]["level"] == "info"

    def test_file_gets_debug_even_if_console_is_info(self, tmp_path: Path) -> None:
        setup_logging(level="INFO", log_dir=tmp_path, console=False)
        get_logger("test.debug").debug("debug_event")

        assert "debug_event" in {rec["event"] for rec in _records(tmp_path / LOG_FILE_NAME)}

    def test_stdlib_records_rendered(self, tmp_path: Path) -> None:
        setup_logging(level="INFO", log_dir=tmp_path, console=False)
        logging.getLogger("mmstatus.config").info("Config geladen")

        records = _records(tmp_path / LOG_FILE_NAME)
        assert records[-1]["event"] == "Config geladen"
        assert records[-1]["logger"] == "mmstatus.config"
