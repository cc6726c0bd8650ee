"""Database layer."""

from hivewatch.database.connection import get_connection, get_db, init_db, reset_db
from hivewatch.database.state_codec import (
    SCHEMA_VERSION,
    PlayerState,
    decode_documents,
    decode_legacy_document,
    decode_player,
    encode_player,
)
from hivewatch.database.state_store import (
    MemoryStateStore,
    SQLiteStateStore,
    read_documents,
    write_documents,
)

__all__ = [
    # Connection
    "get_connection",
    "get_db",
    "init_db",
    "reset_db",
    # Codec
    "SCHEMA_VERSION",
    "PlayerState",
    "decode_documents",
    "decode_legacy_document",
    "decode_player",
    "encode_player",
    # Stores
    "MemoryStateStore",
    "SQLiteStateStore",
    "read_documents",
    "write_documents",
]
