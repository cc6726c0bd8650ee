"""Abstract interfaces for hivewatch.

Defines the contracts for the engine's external collaborators: the stats
provider, the durable store and the notification layer.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Protocol

from hivewatch.core.types import NotificationRecord, PlayerProfile, StatSnapshot

# =============================================================================
# STATS PROVIDER
# =============================================================================


class StatsProvider(ABC):
    """Abstract base class for player stats providers.

    Providers fetch data from an external API and normalize it into
    StatSnapshot dataclasses.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier (e.g., 'hive')."""
        ...

    @abstractmethod
    def fetch_snapshot(self, username: str) -> StatSnapshot:
        """Fetch the cumulative per-family stats for a player.

        Args:
            username: Player name as typed by the user

        Returns:
            StatSnapshot keyed by game family

        Raises:
            NotFoundError: Player does not exist
            TransientFetchError: Network/provider failure
        """
        ...

    def fetch_profile(self, username: str) -> PlayerProfile:
        """Fetch stats plus the provider's canonical spelling of the name.

        Providers that cannot tell the canonical name echo the input.
        """
        return PlayerProfile(username=username, snapshot=self.fetch_snapshot(username))


# =============================================================================
# STATE STORE
# =============================================================================


class StateStore(Protocol):
    """Flat keyed store for engine state.

    Values are JSON-compatible dicts. Implementations can be sqlite-backed
    or in-memory for testing.
    """

    def get(self, key: str) -> dict | None:
        """Get the value stored under key, None if absent."""
        ...

    def set(self, key: str, value: dict) -> None:
        """Store value under key, replacing any existing value."""
        ...

    def delete(self, key: str) -> None:
        """Remove key if present."""
        ...

    def keys(self, prefix: str = "") -> list[str]:
        """All keys starting with prefix."""
        ...

    def set_many(self, items: Iterable[tuple[str, dict]]) -> None:
        """Store several values in one transaction."""
        ...


# =============================================================================
# NOTIFICATION SINK
# =============================================================================


class NotificationSink(Protocol):
    """Receives structured records; rendering is the sink's business."""

    def publish(self, record: NotificationRecord) -> None:
        ...
