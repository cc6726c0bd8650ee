"""Application configuration.

Single source of truth for all configuration values.
Loads from environment variables with .env file support.
"""

import os
import tomllib
from dataclasses import dataclass
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

# =============================================================================
# VERSION - Read from pyproject.toml (single source of truth)
# =============================================================================


def _get_version() -> str:
    """Version from pyproject.toml when running from source, else package metadata."""
    try:
        pyproject_path = Path(__file__).parent.parent.parent / "pyproject.toml"
        if pyproject_path.exists():
            with open(pyproject_path, "rb") as f:
                data = tomllib.load(f)
                return data.get("project", {}).get("version", "0.0.0")
    except (OSError, KeyError, ValueError):
        pass

    # Installed without the source tree
    try:
        return version("hivewatch")
    except PackageNotFoundError:
        return "0.0.0"


VERSION = _get_version()

# Load .env file from project root
_PROJECT_ROOT = Path(__file__).parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"
load_dotenv(_ENV_FILE)


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


@dataclass(frozen=True)
class PollSettings:
    """Scheduler cadence and request budget.

    Immutable so the scheduler thread can share it without locking.
    """

    interval_seconds: float = 5.0
    inactive_after_seconds: float = 30 * 60
    inactive_poll_seconds: float = 2 * 60
    max_concurrent: int = 10
    reservoir: int = 120
    refresh_seconds: float = 60.0
    temp_cleanup_seconds: float = 5 * 60
    daily_reset_cron: str = "0 0 * * *"
    daily_reset_timezone: str = "Europe/Berlin"
    pace_requests: bool = True

    @property
    def timezone(self) -> ZoneInfo:
        return ZoneInfo(self.daily_reset_timezone)


class Config:
    """Application configuration singleton.

    All configuration values should be accessed through this class.
    Values are loaded from environment variables with sensible defaults.
    """

    # Database
    DATABASE_PATH: str = os.getenv(
        "DATABASE_PATH",
        str(_PROJECT_ROOT / "data" / "hivewatch.db"),
    )

    # API
    API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
    API_PORT: int = _env_int("API_PORT", 8000)

    # Hive stats API (public, no auth)
    HIVE_API_BASE_URL: str = os.getenv("HIVE_API_BASE_URL", "https://api.playhive.com/v0")
    HIVE_USER_AGENT: str = os.getenv("HIVE_USER_AGENT", "PersonalTracker")
    HTTP_TIMEOUT_SECONDS: float = _env_float("HTTP_TIMEOUT_SECONDS", 10.0)

    # Polling
    POLL_INTERVAL_SECONDS: float = _env_float("POLL_INTERVAL_SECONDS", 5.0)
    INACTIVE_AFTER_SECONDS: float = _env_float("INACTIVE_AFTER_SECONDS", 30 * 60)
    INACTIVE_POLL_SECONDS: float = _env_float("INACTIVE_POLL_SECONDS", 2 * 60)
    TEMP_CLEANUP_SECONDS: float = _env_float("TEMP_CLEANUP_SECONDS", 5 * 60)

    # Rate limiter (Hive allows 120 requests/minute)
    RATE_LIMIT_MAX_CONCURRENT: int = _env_int("RATE_LIMIT_MAX_CONCURRENT", 10)
    RATE_LIMIT_RESERVOIR: int = _env_int("RATE_LIMIT_RESERVOIR", 120)
    RATE_LIMIT_REFRESH_SECONDS: float = _env_float("RATE_LIMIT_REFRESH_SECONDS", 60.0)

    # Roster
    MAX_TRACKED_PLAYERS: int = _env_int("MAX_TRACKED_PLAYERS", 75)

    # Daily K/D reset
    DAILY_RESET_TIMEZONE: str = os.getenv("DAILY_RESET_TIMEZONE", "Europe/Berlin")
    DAILY_RESET_CRON: str = os.getenv("DAILY_RESET_CRON", "0 0 * * *")

    # Notifications
    WEBHOOK_URL: str | None = os.getenv("WEBHOOK_URL") or None

    @classmethod
    def poll_settings(cls) -> PollSettings:
        """Scheduler settings built from the current environment values."""
        return PollSettings(
            interval_seconds=cls.POLL_INTERVAL_SECONDS,
            inactive_after_seconds=cls.INACTIVE_AFTER_SECONDS,
            inactive_poll_seconds=cls.INACTIVE_POLL_SECONDS,
            max_concurrent=cls.RATE_LIMIT_MAX_CONCURRENT,
            reservoir=cls.RATE_LIMIT_RESERVOIR,
            refresh_seconds=cls.RATE_LIMIT_REFRESH_SECONDS,
            temp_cleanup_seconds=cls.TEMP_CLEANUP_SECONDS,
            daily_reset_cron=cls.DAILY_RESET_CRON,
            daily_reset_timezone=cls.DAILY_RESET_TIMEZONE,
        )

    @classmethod
    def get_timezone(cls) -> ZoneInfo:
        """Timezone that defines the daily stats calendar day."""
        try:
            return ZoneInfo(cls.DAILY_RESET_TIMEZONE)
        except (KeyError, ValueError):
            return ZoneInfo("Europe/Berlin")

    @classmethod
    def reload(cls) -> None:
        """Reload configuration from environment.

        Useful for testing or runtime config changes.
        """
        load_dotenv(_ENV_FILE, override=True)
        cls.DATABASE_PATH = os.getenv("DATABASE_PATH", cls.DATABASE_PATH)
        cls.API_HOST = os.getenv("API_HOST", cls.API_HOST)
        cls.API_PORT = _env_int("API_PORT", cls.API_PORT)
        cls.HIVE_API_BASE_URL = os.getenv("HIVE_API_BASE_URL", cls.HIVE_API_BASE_URL)
        cls.HIVE_USER_AGENT = os.getenv("HIVE_USER_AGENT", cls.HIVE_USER_AGENT)
        cls.HTTP_TIMEOUT_SECONDS = _env_float("HTTP_TIMEOUT_SECONDS", cls.HTTP_TIMEOUT_SECONDS)
        cls.POLL_INTERVAL_SECONDS = _env_float("POLL_INTERVAL_SECONDS", cls.POLL_INTERVAL_SECONDS)
        cls.INACTIVE_AFTER_SECONDS = _env_float(
            "INACTIVE_AFTER_SECONDS", cls.INACTIVE_AFTER_SECONDS
        )
        cls.INACTIVE_POLL_SECONDS = _env_float("INACTIVE_POLL_SECONDS", cls.INACTIVE_POLL_SECONDS)
        cls.TEMP_CLEANUP_SECONDS = _env_float("TEMP_CLEANUP_SECONDS", cls.TEMP_CLEANUP_SECONDS)
        cls.RATE_LIMIT_MAX_CONCURRENT = _env_int(
            "RATE_LIMIT_MAX_CONCURRENT", cls.RATE_LIMIT_MAX_CONCURRENT
        )
        cls.RATE_LIMIT_RESERVOIR = _env_int("RATE_LIMIT_RESERVOIR", cls.RATE_LIMIT_RESERVOIR)
        cls.RATE_LIMIT_REFRESH_SECONDS = _env_float(
            "RATE_LIMIT_REFRESH_SECONDS", cls.RATE_LIMIT_REFRESH_SECONDS
        )
        cls.MAX_TRACKED_PLAYERS = _env_int("MAX_TRACKED_PLAYERS", cls.MAX_TRACKED_PLAYERS)
        cls.DAILY_RESET_TIMEZONE = os.getenv("DAILY_RESET_TIMEZONE", cls.DAILY_RESET_TIMEZONE)
        cls.DAILY_RESET_CRON = os.getenv("DAILY_RESET_CRON", cls.DAILY_RESET_CRON)
        cls.WEBHOOK_URL = os.getenv("WEBHOOK_URL") or None
