"""Key/value state stores.

SQLiteStateStore persists JSON documents in the kv_state table;
MemoryStateStore keeps them in a dict for tests and ephemeral runs.
"""

import copy
import json
import logging
import threading
from collections.abc import Iterable
from pathlib import Path

from hivewatch.core.interfaces import StateStore
from hivewatch.database.connection import get_db
from hivewatch.database.state_codec import META_PREFIX, PLAYER_PREFIX

logger = logging.getLogger(__name__)


class SQLiteStateStore:
    """StateStore backed by the kv_state table.

    Opens a short-lived connection per call, like the rest of the database
    layer, so it is safe to share between the scheduler thread and API
    workers.
    """

    def __init__(self, db_path: Path | str | None = None):
        self._db_path = db_path

    def get(self, key: str) -> dict | None:
        with get_db(self._db_path) as conn:
            row = conn.execute("SELECT value FROM kv_state WHERE key = ?", (key,)).fetchone()
        if row is None:
            return None
        try:
            return json.loads(row["value"])
        except json.JSONDecodeError:
            logger.warning("[STATE] Value for %s is not valid JSON, ignoring", key)
            return None

    def set(self, key: str, value: dict) -> None:
        with get_db(self._db_path) as conn:
            conn.execute(
                """
                INSERT INTO kv_state (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (key, json.dumps(value)),
            )

    def set_many(self, items: Iterable[tuple[str, dict]]) -> None:
        rows = [(key, json.dumps(value)) for key, value in items]
        if not rows:
            return
        with get_db(self._db_path) as conn:
            conn.executemany(
                """
                INSERT INTO kv_state (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = CURRENT_TIMESTAMP
                """,
                rows,
            )

    def delete(self, key: str) -> None:
        with get_db(self._db_path) as conn:
            conn.execute("DELETE FROM kv_state WHERE key = ?", (key,))

    def keys(self, prefix: str = "") -> list[str]:
        escaped = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        with get_db(self._db_path) as conn:
            rows = conn.execute(
                "SELECT key FROM kv_state WHERE key LIKE ? ESCAPE '\\' ORDER BY key",
                (f"{escaped}%",),
            ).fetchall()
        return [row["key"] for row in rows]


class MemoryStateStore:
    """In-process StateStore. Values are deep-copied in and out."""

    def __init__(self, initial: dict[str, dict] | None = None):
        self._data: dict[str, dict] = copy.deepcopy(initial) if initial else {}
        self._lock = threading.Lock()

    def get(self, key: str) -> dict | None:
        with self._lock:
            value = self._data.get(key)
            return copy.deepcopy(value) if value is not None else None

    def set(self, key: str, value: dict) -> None:
        with self._lock:
            self._data[key] = copy.deepcopy(value)

    def set_many(self, items: Iterable[tuple[str, dict]]) -> None:
        with self._lock:
            for key, value in items:
                self._data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self, prefix: str = "") -> list[str]:
        with self._lock:
            return sorted(key for key in self._data if key.startswith(prefix))


# =============================================================================
# DOCUMENT SETS
# =============================================================================


def read_documents(store: StateStore) -> dict[str, dict]:
    """Every meta and player document currently in the store."""
    documents = {}
    for key in [*store.keys(META_PREFIX), *store.keys(PLAYER_PREFIX)]:
        value = store.get(key)
        if value is not None:
            documents[key] = value
    return documents


def write_documents(store: StateStore, documents: dict[str, dict]) -> None:
    """Replace the stored player set with `documents`.

    Player keys in the store but not in `documents` (removed players) are
    deleted.
    """
    store.set_many(documents.items())
    for key in store.keys(PLAYER_PREFIX):
        if key not in documents:
            store.delete(key)
