"""Command line entry point.

Usage:
    # Serve the API and run the poll scheduler
    python -m hivewatch

    # Import the original bot's bot_data.json into the database
    python -m hivewatch import-legacy data/bot_data.json
"""

import argparse
import json
import logging
import sys
import time
from pathlib import Path

from hivewatch.config import VERSION, Config
from hivewatch.utilities.logging import setup_logging

logger = logging.getLogger(__name__)


def import_legacy(path: Path, db_path: str | None = None) -> int:
    """Load a legacy bot_data.json and replace the stored roster with it.

    Returns:
        Number of players imported
    """
    from hivewatch.consumers.tracker import TrackingEngine
    from hivewatch.database import SQLiteStateStore, decode_legacy_document, init_db

    with open(path, encoding="utf-8") as f:
        doc = json.load(f)

    init_db(db_path)
    store = SQLiteStateStore(db_path)
    engine = TrackingEngine(timezone=Config.get_timezone())
    count = engine.load_players(decode_legacy_document(doc, time.time()))
    engine.save_to(store)
    return count


def serve(host: str, port: int) -> None:
    import uvicorn

    uvicorn.run("hivewatch.api.app:app", host=host, port=port, log_config=None)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="hivewatch", description="Hive player stats tracker")
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    subparsers = parser.add_subparsers(dest="command")

    serve_parser = subparsers.add_parser("serve", help="Run the API and poll scheduler (default)")
    serve_parser.add_argument("--host", default=Config.API_HOST)
    serve_parser.add_argument("--port", type=int, default=Config.API_PORT)

    legacy_parser = subparsers.add_parser(
        "import-legacy", help="Import the original bot's bot_data.json"
    )
    legacy_parser.add_argument("path", type=Path)
    legacy_parser.add_argument("--db", default=None, help="Database path (default: DATABASE_PATH)")

    args = parser.parse_args(argv)

    if args.command == "import-legacy":
        setup_logging()
        try:
            count = import_legacy(args.path, args.db)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Could not read %s: %s", args.path, e)
            return 1
        print(f"Imported {count} player(s) from {args.path}")
        return 0

    host = getattr(args, "host", Config.API_HOST)
    port = getattr(args, "port", Config.API_PORT)
    serve(host, port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
