# ===== IMPORTS & DEPENDENCIES =====
import argparse
import asyncio
import json
import logging
import os
import sys
from typing import List, Optional

import aiohttp

# --- Configuration ---
from library_mirror.config import (
    LOG_LEVEL, DATABASE_PATH, SNAPSHOT_DIR, SNAPSHOT_CACHE, PipelineConfig, parse_account_ids,
)

# --- Core Components ---
from library_mirror.core.database import Database
from library_mirror.core.pipeline import LibraryPipeline
from library_mirror.core.snapshot import SnapshotPublisher, SnapshotStore, FileSnapshotStore, NullSnapshotStore
from library_mirror.models.report import RunReport
from library_mirror.sources.steam_library import SteamLibrarySource

# ===== CONFIGURATION & CONSTANTS =====
logging.basicConfig(
    level=LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)


def build_snapshot_store(kind: str = SNAPSHOT_CACHE) -> SnapshotStore:
    if kind == "none":
        return NullSnapshotStore()
    return FileSnapshotStore(SNAPSHOT_DIR)


async def run_sync(config: PipelineConfig, db: Database, publisher: SnapshotPublisher) -> RunReport:
    """Runs one pipeline invocation with a fresh HTTP session."""
    async with aiohttp.ClientSession() as session:
        source = SteamLibrarySource(session, api_key=config.api_key, timeout=config.request_timeout)
        pipeline = LibraryPipeline(db, source, publisher, config)
        return await pipeline.run()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Mirror owned game libraries into a local store.")
    subparsers = parser.add_subparsers(dest="command")

    sync = subparsers.add_parser("sync", help="Reconcile the store with the upstream libraries.")
    sync.add_argument("--force", action="store_true", help="Run even if the library is still fresh.")
    sync.add_argument("--no-enrich", action="store_true", help="Skip per-game detail enrichment.")
    sync.add_argument("--accounts", help="Comma-separated account ids (overrides STEAM_IDS).")

    serve = subparsers.add_parser("serve", help="Serve the read API.")
    serve.add_argument("--host", default=os.getenv("HOST", "127.0.0.1"))
    serve.add_argument("--port", type=int, default=int(os.getenv("PORT", "8000")))

    subparsers.add_parser("snapshot", help="Regenerate the snapshot artifact from the store.")

    args = parser.parse_args(argv)
    if args.command is None:
        args.command = "sync"
        args.force = False
        args.no_enrich = False
        args.accounts = None
    return args


# ===== INITIALIZATION & STARTUP =====
def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    config = PipelineConfig.from_env()
    db = Database(DATABASE_PATH)
    publisher = SnapshotPublisher(db, build_snapshot_store())

    if args.command == "snapshot":
        publisher.publish()
        return 0

    if args.command == "serve":
        import uvicorn
        from library_mirror.web.server import create_app

        async def sync_runner(force: bool) -> RunReport:
            return await run_sync(config.with_overrides(force=force), db, publisher)

        uvicorn.run(create_app(db, publisher, sync_runner), host=args.host, port=args.port)
        return 0

    config = config.with_overrides(
        force=args.force or None,
        enrich_enabled=False if args.no_enrich else None,
        account_ids=tuple(parse_account_ids(args.accounts)) if args.accounts else None,
    )
    if not config.api_key:
        logger.error("❌ STEAM_API_KEY is not set.")
        return 1

    report = asyncio.run(run_sync(config, db, publisher))
    print(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
    return 0 if report.success or report.skipped else 1


if __name__ == "__main__":
    sys.exit(main())
