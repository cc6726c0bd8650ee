"""Error taxonomy for hivewatch.

None of these are fatal to the process: the scheduler logs them and
carries on with the next player.
"""


class HiveWatchError(Exception):
    """Base class for hivewatch errors."""


class NotFoundError(HiveWatchError):
    """Player does not exist on the stats provider (HTTP 404)."""

    def __init__(self, username: str):
        super().__init__(f"Player '{username}' not found")
        self.username = username


class TransientFetchError(HiveWatchError):
    """Network or provider failure; the player is skipped this tick."""

    def __init__(self, message: str, retry_after: float | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class MalformedStateError(HiveWatchError):
    """A persisted per-player field matches no known schema."""

    def __init__(self, key: str, field: str, detail: str = ""):
        message = f"Malformed state for {key}.{field}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.key = key
        self.field = field
