"""Logging setup for hivewatch.

Modules log through `logging.getLogger(__name__)` and prefix messages with
a subsystem tag:

    logger.info("[POLL] %s: %d new game(s)", username, count)

Tags in use: [POLL], [DIFF], [CLASSIFY], [MILESTONE], [DAILY], [STATE], [HIVE],
[ROSTER], [NOTIFY], [STARTUP]. The JSON formatter lifts the tag into its own
field so a log pipeline can filter e.g. every [HIVE] rate limit warning.

Environment variables:
    LOG_LEVEL: console level (default: INFO)
    LOG_DIR: log file directory (default: "logs" next to the state database)
    LOG_FORMAT: "text" or "json" (default: text)
"""

import json
import logging
import os
import re
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

_TAG_PATTERN = re.compile(r"^\[([A-Z_]+)\]\s*")

# Per-request chatter from the HTTP stack drowns the poll log
QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "httpcore.connection", "httpcore.http11")

_configured = False
_installed: list[logging.Handler] = []


def split_tag(message: str) -> tuple[str | None, str]:
    """'[POLL] tick done' -> ('POLL', 'tick done'); untagged -> (None, message)."""
    match = _TAG_PATTERN.match(message)
    if match is None:
        return None, message
    return match.group(1), message[match.end() :]


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with the [TAG] prefix as its own field."""

    def format(self, record: logging.LogRecord) -> str:
        tag, message = split_tag(record.getMessage())
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "tag": tag,
            "message": message,
            "line": record.lineno,
        }
        if record.threadName and record.threadName != "MainThread":
            log_data["thread"] = record.threadName

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def _get_log_dir() -> Path:
    if env_dir := os.getenv("LOG_DIR"):
        return Path(env_dir)

    from hivewatch.config import Config

    return Path(Config.DATABASE_PATH).parent / "logs"


def _get_log_level() -> int:
    level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def _get_formatter(use_json: bool = False) -> logging.Formatter:
    if use_json:
        return JSONFormatter()

    # Thread name tells the poll loop apart from fetch workers and requests
    return logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(threadName)-14.14s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _rotating(
    path: Path, level: int, backups: int, formatter: logging.Formatter
) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        path, maxBytes=5 * 1024 * 1024, backupCount=backups, encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    log_level: str | None = None,
    log_dir: str | Path | None = None,
    use_json: bool | None = None,
) -> None:
    """Install console, hivewatch.log and hivewatch_errors.log handlers.

    Later calls are no-ops until reset_logging().

    Args:
        log_level: Console level, overrides LOG_LEVEL
        log_dir: Overrides LOG_DIR
        use_json: Overrides LOG_FORMAT
    """
    global _configured
    if _configured:
        return

    level = getattr(logging, (log_level or "").upper(), None) or _get_log_level()
    log_path = Path(log_dir) if log_dir else _get_log_dir()
    if use_json is None:
        use_json = os.getenv("LOG_FORMAT", "text").lower() == "json"

    log_path.mkdir(parents=True, exist_ok=True)
    formatter = _get_formatter(use_json)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)

    handlers = [
        console_handler,
        _rotating(log_path / "hivewatch.log", logging.DEBUG, 5, formatter),
        _rotating(log_path / "hivewatch_errors.log", logging.ERROR, 3, formatter),
    ]

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()
    for handler in handlers:
        root_logger.addHandler(handler)
    _installed[:] = handlers

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _configured = True
    _log_banner(level, log_path, use_json)


def _log_banner(level: int, log_path: Path, use_json: bool) -> None:
    from hivewatch.config import VERSION, Config

    logger = logging.getLogger("hivewatch")
    logger.info("[STARTUP] hivewatch %s", VERSION)
    logger.info(
        "[STARTUP] Polling %s every %.0fs, up to %d players",
        Config.HIVE_API_BASE_URL,
        Config.POLL_INTERVAL_SECONDS,
        Config.MAX_TRACKED_PLAYERS,
    )
    logger.info(
        "[STARTUP] Budget %d requests/%.0fs, %d concurrent",
        Config.RATE_LIMIT_RESERVOIR,
        Config.RATE_LIMIT_REFRESH_SECONDS,
        Config.RATE_LIMIT_MAX_CONCURRENT,
    )
    logger.info("[STARTUP] State database: %s", Config.DATABASE_PATH)
    logger.info(
        "[STARTUP] Logs: %s (%s, console %s)",
        log_path,
        "json" if use_json else "text",
        logging.getLevelName(level),
    )


def reset_logging() -> None:
    """Remove and close the handlers setup_logging() installed."""
    global _configured
    root_logger = logging.getLogger()
    for handler in _installed:
        root_logger.removeHandler(handler)
        handler.close()
    _installed.clear()
    _configured = False
