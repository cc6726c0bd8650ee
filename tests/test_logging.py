"""Tests for logging setup and the JSON formatter."""

import json
import logging

import pytest

from hivewatch.utilities.logging import (
    JSONFormatter,
    reset_logging,
    setup_logging,
    split_tag,
)


def _record(message: str, level: int = logging.INFO) -> logging.LogRecord:
    return logging.LogRecord(
        "hivewatch.consumers.scheduler", level, __file__, 10, message, (), None
    )


@pytest.fixture
def root_handlers():
    """Remove the installed handlers and restore the root level afterwards."""
    root = logging.getLogger()
    saved_level = root.level
    yield
    reset_logging()
    root.setLevel(saved_level)


class TestTags:
    @pytest.mark.parametrize(
        "message,expected",
        [
            ("[POLL] tick done", ("POLL", "tick done")),
            ("[HIVE]x", ("HIVE", "x")),
            ("no tag here", (None, "no tag here")),
            ("[lower] stays", (None, "[lower] stays")),
        ],
    )
    def test_split_tag(self, message, expected):
        assert split_tag(message) == expected

    def test_json_formatter(self):
        data = json.loads(JSONFormatter().format(_record("[POLL] 2 new game(s)")))

        assert data["tag"] == "POLL"
        assert data["message"] == "2 new game(s)"
        assert data["level"] == "INFO"
        assert data["logger"] == "hivewatch.consumers.scheduler"
        assert "thread" not in data


class TestSetup:
    """Handlers and files."""

    def test_writes_main_and_error_logs(self, tmp_path, root_handlers):
        setup_logging(log_level="WARNING", log_dir=tmp_path, use_json=True)

        logger = logging.getLogger("hivewatch.test")
        logger.info("[ROSTER] added steve")
        logger.error("[STATE] save failed")
        for handler in logging.getLogger().handlers:
            handler.flush()

        main_lines = (tmp_path / "hivewatch.log").read_text().splitlines()
        error_lines = (tmp_path / "hivewatch_errors.log").read_text().splitlines()
        assert any(json.loads(line)["message"] == "added steve" for line in main_lines)
        assert [json.loads(line)["tag"] for line in error_lines] == ["STATE"]

    def test_second_call_is_noop(self, tmp_path, root_handlers):
        setup_logging(log_dir=tmp_path)
        handlers = logging.getLogger().handlers[:]

        setup_logging(log_dir=tmp_path / "other")

        assert logging.getLogger().handlers == handlers
        assert not (tmp_path / "other").exists()

    def test_quiets_http_loggers(self, tmp_path, root_handlers):
        setup_logging(log_dir=tmp_path)
        assert logging.getLogger("httpx").level == logging.WARNING
