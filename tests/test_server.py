import json

from fastapi.testclient import TestClient

from library_mirror.core.reconciler import diff
from library_mirror.models.report import RunReport
from library_mirror.web.server import create_app


def _seed(db, now, games):
    by_id = {game["app_id"]: game for game in games}
    db.apply(diff(set(by_id), db.get_app_ids()), by_id, now=now)


def _game(app_id, name, genres=()):
    return {
        "app_id": app_id, "name": name, "cover_url": f"https://cdn.example/{app_id}.jpg",
        "developer": "Dev", "publisher": "Pub", "release_year": 2015,
        "genres": list(genres), "enriched": True,
    }


class TestReadApi:
    def test_ping(self, db, publisher, now):
        _seed(db, now, [_game(1, "Alpha")])
        client = TestClient(create_app(db, publisher))

        response = client.get("/api/ping")

        assert response.status_code == 200
        assert response.json() == {"ok": True, "games": 1, "last_update": now.isoformat()}

    def test_games_are_paged_by_name(self, db, publisher, now):
        _seed(db, now, [_game(i, f"Game {i:03d}") for i in range(1, 121)])
        client = TestClient(create_app(db, publisher))

        first = client.get("/api/games").json()
        second = client.get("/api/games", params={"page": 2, "per": 500}).json()
        bogus = client.get("/api/games", params={"page": "x", "per": "0"}).json()

        assert first["page"] == 1 and first["per"] == 50
        assert [g["app_id"] for g in first["results"]][:3] == [1, 2, 3]
        assert second["per"] == 100
        assert [g["app_id"] for g in second["results"]] == list(range(101, 121))
        assert bogus["page"] == 1 and bogus["per"] == 1

    def test_games_cache_header(self, db, publisher):
        response = TestClient(create_app(db, publisher)).get("/api/games")
        assert response.headers["cache-control"] == "public, max-age=3600, stale-while-revalidate=86400"

    def test_get_game_by_path_and_query(self, db, publisher, now):
        _seed(db, now, [_game(570, "Dota 2", ["Strategy", "Action"])])
        client = TestClient(create_app(db, publisher))

        by_path = client.get("/api/game/570")
        by_query = client.get("/api/game", params={"id": 570})

        assert by_path.status_code == 200
        assert by_path.json()["genres"] == ["Action", "Strategy"]
        assert by_query.json()["name"] == "Dota 2"
        assert by_path.headers["cache-control"] == "public, max-age=3600"

    def test_get_game_errors(self, db, publisher):
        client = TestClient(create_app(db, publisher))

        assert client.get("/api/game/999").status_code == 404
        assert client.get("/api/game/abc").status_code == 400
        assert client.get("/api/game").status_code == 400

    def test_snapshot_missing_when_store_empty(self, db, publisher):
        response = TestClient(create_app(db, publisher)).get("/api/snapshot")
        assert response.status_code == 404

    def test_snapshot_is_regenerated_and_cached(self, db, publisher, snapshot_store, now):
        _seed(db, now, [_game(1, "Alpha", ["Indie"])])
        client = TestClient(create_app(db, publisher))

        response = client.get("/api/snapshot")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/json")
        assert response.headers["cache-control"] == "public, max-age=3600, stale-while-revalidate=86400"
        assert response.json()[0]["genres"] == ["Indie"]
        assert json.loads(snapshot_store.get("all.json")) == response.json()

    def test_snapshot_served_from_cache(self, db, publisher, snapshot_store):
        snapshot_store.set("all.json", '[{"app_id": 7}]')
        response = TestClient(create_app(db, publisher)).get("/api/snapshot")
        assert response.json() == [{"app_id": 7}]


class TestSyncEndpoint:
    def test_unconfigured(self, db, publisher):
        response = TestClient(create_app(db, publisher)).post("/api/sync")
        assert response.status_code == 503

    def test_runs_sync_with_force_flag(self, db, publisher, now):
        calls = []

        async def runner(force):
            calls.append(force)
            return RunReport(started_at=now.isoformat(), success=True, added=3)

        response = TestClient(create_app(db, publisher, runner)).post("/api/sync", params={"force": "true"})

        assert calls == [True]
        assert response.status_code == 200
        assert response.json()["added"] == 3

    def test_failed_sync_is_500(self, db, publisher, now):
        async def runner(force):
            return RunReport(started_at=now.isoformat(), success=False, error="boom")

        response = TestClient(create_app(db, publisher, runner)).post("/api/sync")

        assert response.status_code == 500
        assert response.json()["error"] == "boom"
