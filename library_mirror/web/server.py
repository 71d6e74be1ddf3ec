from typing import Awaitable, Callable, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse, Response

from library_mirror.config import (
    DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, SNAPSHOT_CACHE_CONTROL, GAME_CACHE_CONTROL,
)
from library_mirror.core.database import Database
from library_mirror.core.snapshot import SnapshotPublisher
from library_mirror.models.report import RunReport

SyncRunner = Callable[[bool], Awaitable[RunReport]]


def get_db(request: Request) -> Database:
    return request.app.state.db


def get_publisher(request: Request) -> SnapshotPublisher:
    return request.app.state.publisher


def create_app(db: Database, publisher: SnapshotPublisher, sync_runner: Optional[SyncRunner] = None) -> FastAPI:
    app = FastAPI(title="Library Mirror", version="1.0.0")
    app.state.db = db
    app.state.publisher = publisher
    app.state.sync_runner = sync_runner

    @app.get("/api/ping", tags=["System"])
    def ping(db: Database = Depends(get_db)):
        count, last_update = db.get_freshness()
        return {"ok": True, "games": count, "last_update": last_update.isoformat() if last_update else None}

    @app.get("/api/games", tags=["Games"])
    def list_games(page: str = "1", per: str = str(DEFAULT_PAGE_SIZE), db: Database = Depends(get_db)):
        """Paged games sorted by name. Malformed paging values fall back to defaults."""
        page_number = max(1, _to_int(page, 1))
        page_size = min(MAX_PAGE_SIZE, max(1, _to_int(per, DEFAULT_PAGE_SIZE)))
        results = db.list_games(page_number, page_size)
        return JSONResponse(
            {"page": page_number, "per": page_size, "results": results},
            headers={"cache-control": SNAPSHOT_CACHE_CONTROL},
        )

    @app.get("/api/game", tags=["Games"])
    @app.get("/api/game/{app_id}", tags=["Games"])
    def get_game(app_id: Optional[str] = None, id_param: Optional[str] = Query(default=None, alias="id"), db: Database = Depends(get_db)):
        """A single game joined with its genres; the id may come from the path or `?id=`."""
        game_id = _to_int(id_param or app_id, 0)
        if game_id <= 0:
            return Response("missing id", status_code=400)
        game = db.get_game(game_id)
        if game is None:
            return Response("not found", status_code=404)
        return JSONResponse(game, headers={"cache-control": GAME_CACHE_CONTROL})

    @app.get("/api/snapshot", tags=["Games"])
    def get_snapshot(publisher: SnapshotPublisher = Depends(get_publisher)):
        """Serves the pre-rendered snapshot, rebuilding it on a cache miss."""
        payload = publisher.load_or_regenerate()
        if payload is None:
            return Response("snapshot not found", status_code=404)
        return Response(
            payload,
            media_type="application/json",
            headers={"cache-control": SNAPSHOT_CACHE_CONTROL},
        )

    @app.post("/api/sync", tags=["Sync"])
    async def trigger_sync(request: Request, force: bool = False):
        runner = request.app.state.sync_runner
        if runner is None:
            return JSONResponse({"error": "sync is not configured"}, status_code=503)
        report = await runner(force)
        return JSONResponse(report.to_dict(), status_code=200 if report.success or report.skipped else 500)

    return app


def _to_int(value: Optional[str], default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default
