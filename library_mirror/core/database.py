# ===== IMPORTS & DEPENDENCIES =====
import sqlite3
import logging
import os
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterator, List, NamedTuple, Optional, Set, Tuple

from library_mirror.core.reconciler import LibraryDiff
from library_mirror.models.game import GameData, SnapshotEntry
from library_mirror.models.report import PipelineError

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)

ENRICHABLE_COLUMNS = ('name', 'cover_url', 'developer', 'publisher', 'release_year')


class PersistenceError(PipelineError):
    """Raised when a reconciliation batch could not be committed and was rolled back."""


class PersistStats(NamedTuple):
    added: int
    refreshed: int
    updated: int
    removed: int
    genre_errors: int
    total: int


def _as_utc(value: datetime) -> datetime:
    """Stored timestamps without an offset are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ===== CORE BUSINESS LOGIC =====
class Database:
    """Owns the durable library: games, the genre dictionary and their join table."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        directory = os.path.dirname(db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self._create_tables()
        logger.info(f"[{self.__class__.__name__}] Database initialized at: {self.db_path}")

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Yields a new autocommit connection; transactions are opened explicitly."""
        conn = sqlite3.connect(self.db_path, isolation_level=None, timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
        finally:
            conn.close()

    def _create_tables(self):
        """Creates required tables if they don't exist."""
        with self._get_connection() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS games (
                    app_id INTEGER PRIMARY KEY,
                    name TEXT NOT NULL,
                    cover_url TEXT,
                    developer TEXT,
                    publisher TEXT,
                    release_year INTEGER,
                    last_seen_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS ix_games_name ON games (name COLLATE NOCASE);

                CREATE TABLE IF NOT EXISTS genres (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE
                );

                CREATE TABLE IF NOT EXISTS game_genres (
                    app_id INTEGER NOT NULL REFERENCES games (app_id) ON DELETE CASCADE,
                    genre_id INTEGER NOT NULL REFERENCES genres (id),
                    UNIQUE (app_id, genre_id)
                );

                -- Single-row advisory lock held for the duration of a sync run
                CREATE TABLE IF NOT EXISTS run_lock (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    owner TEXT NOT NULL,
                    acquired_at TEXT NOT NULL
                );
            """)
            logger.info(f"[{self.__class__.__name__}] Database tables verified/created.")

    # --- State queries used by the pipeline ---

    def get_app_ids(self) -> Set[int]:
        with self._get_connection() as conn:
            return {row[0] for row in conn.execute("SELECT app_id FROM games")}

    def count_games(self) -> int:
        with self._get_connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM games").fetchone()[0]

    def get_freshness(self) -> Tuple[int, Optional[datetime]]:
        """
        Returns the number of persisted games and the time of the last successful
        persist, i.e. the latest of updated_at and last_seen_at.
        """
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT COUNT(*), MAX(updated_at), MAX(last_seen_at) FROM games"
            ).fetchone()
        stamps = [_as_utc(datetime.fromisoformat(value)) for value in (row[1], row[2]) if value]
        return row[0], (max(stamps) if stamps else None)

    # --- Reconciliation ---

    def _upsert_game(self, conn: sqlite3.Connection, game: GameData, timestamp: str) -> Tuple[bool, bool]:
        """
        Inserts the game or brings an existing row up to date.
        Returns (inserted, content_changed). Records without detail metadata
        only mark the row as seen so earlier enrichment is not erased.
        """
        existing = conn.execute(
            "SELECT name, cover_url, developer, publisher, release_year FROM games WHERE app_id = ?",
            (game['app_id'],)
        ).fetchone()

        if existing is None:
            conn.execute(
                "INSERT INTO games (app_id, name, cover_url, developer, publisher, release_year, last_seen_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (game['app_id'], game['name'], game['cover_url'], game['developer'],
                 game['publisher'], game['release_year'], timestamp, timestamp)
            )
            return True, True

        changed = game['enriched'] and any(existing[column] != game[column] for column in ENRICHABLE_COLUMNS)
        if changed:
            conn.execute(
                "UPDATE games SET name = ?, cover_url = ?, developer = ?, publisher = ?, release_year = ?, "
                "last_seen_at = ?, updated_at = ? WHERE app_id = ?",
                (game['name'], game['cover_url'], game['developer'], game['publisher'],
                 game['release_year'], timestamp, timestamp, game['app_id'])
            )
        else:
            conn.execute("UPDATE games SET last_seen_at = ? WHERE app_id = ?", (timestamp, game['app_id']))
        return False, changed

    def _attach_genre(self, conn: sqlite3.Connection, app_id: int, genre_name: str) -> bool:
        """Links a game to a genre inside its own savepoint. Returns False if it was skipped."""
        conn.execute("SAVEPOINT attach_genre")
        try:
            conn.execute("INSERT OR IGNORE INTO genres (name) VALUES (?)", (genre_name,))
            genre_id = conn.execute("SELECT id FROM genres WHERE name = ?", (genre_name,)).fetchone()[0]
            conn.execute(
                "INSERT OR IGNORE INTO game_genres (app_id, genre_id) VALUES (?, ?)",
                (app_id, genre_id)
            )
        except sqlite3.Error as e:
            conn.execute("ROLLBACK TO SAVEPOINT attach_genre")
            conn.execute("RELEASE SAVEPOINT attach_genre")
            logger.warning(f"⚠️ [{self.__class__.__name__}] Skipping genre '{genre_name}' for App ID {app_id}: {e}")
            return False
        conn.execute("RELEASE SAVEPOINT attach_genre")
        return True

    def apply(self, changes: LibraryDiff, games: Dict[int, GameData], now: datetime) -> PersistStats:
        """
        Applies a reconciliation diff in one transaction. Genre links are
        append-only and a failing genre is skipped; any other failure rolls
        the whole batch back and raises PersistenceError.
        """
        timestamp = now.isoformat()
        added = refreshed = updated = genre_errors = 0

        with self._get_connection() as conn:
            try:
                conn.execute("BEGIN IMMEDIATE")
                for app_id in sorted(changes.to_add | changes.to_refresh):
                    game = games.get(app_id)
                    if game is None:
                        raise PersistenceError(f"No record prepared for App ID {app_id}")

                    inserted, changed = self._upsert_game(conn, game, timestamp)
                    if inserted:
                        added += 1
                    else:
                        refreshed += 1
                        updated += int(changed)

                    for genre_name in game['genres']:
                        if not self._attach_genre(conn, app_id, genre_name):
                            genre_errors += 1

                removals = [(app_id,) for app_id in sorted(changes.to_remove)]
                conn.executemany("DELETE FROM game_genres WHERE app_id = ?", removals)
                conn.executemany("DELETE FROM games WHERE app_id = ?", removals)
                total = conn.execute("SELECT COUNT(*) FROM games").fetchone()[0]
                conn.execute("COMMIT")
            except Exception as e:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                logger.error(f"❌ [{self.__class__.__name__}] Reconciliation rolled back: {e}", exc_info=True)
                if isinstance(e, PersistenceError):
                    raise
                raise PersistenceError(f"Reconciliation rolled back: {e}") from e

        logger.info(f"💾 [{self.__class__.__name__}] Committed {added} added, {refreshed} refreshed ({updated} changed), "
                    f"{len(changes.to_remove)} removed, {genre_errors} genre errors.")
        return PersistStats(added=added, refreshed=refreshed, updated=updated,
                            removed=len(changes.to_remove), genre_errors=genre_errors, total=total)

    # --- Read views ---

    def _genres_by_app_id(self, conn: sqlite3.Connection, app_id: Optional[int] = None) -> Dict[int, List[str]]:
        query = ("SELECT gg.app_id, gn.name FROM game_genres gg "
                 "JOIN genres gn ON gn.id = gg.genre_id")
        params: tuple = ()
        if app_id is not None:
            query += " WHERE gg.app_id = ?"
            params = (app_id,)
        query += " ORDER BY gn.name"

        genres: Dict[int, List[str]] = {}
        for row in conn.execute(query, params):
            genres.setdefault(row[0], []).append(row[1])
        return genres

    def fetch_library(self) -> List[SnapshotEntry]:
        """Returns every game joined with its genres, ordered by name."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT app_id, name, cover_url, developer, publisher, release_year FROM games "
                "ORDER BY name COLLATE NOCASE, app_id"
            ).fetchall()
            genres = self._genres_by_app_id(conn)
        return [
            {
                'app_id': row['app_id'],
                'name': row['name'],
                'cover_url': row['cover_url'],
                'developer': row['developer'],
                'publisher': row['publisher'],
                'release_year': row['release_year'],
                'genres': genres.get(row['app_id'], []),
            }
            for row in rows
        ]

    def list_games(self, page: int, per: int) -> List[dict]:
        """One page of games sorted by name, without genres."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT app_id, name, cover_url, developer, publisher, release_year FROM games "
                "ORDER BY name COLLATE NOCASE, app_id LIMIT ? OFFSET ?",
                (per, (page - 1) * per)
            ).fetchall()
        return [dict(row) for row in rows]

    def get_game(self, app_id: int) -> Optional[dict]:
        """One game with all columns and its genre list, or None."""
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM games WHERE app_id = ?", (app_id,)).fetchone()
            if row is None:
                return None
            game = dict(row)
            game['genres'] = self._genres_by_app_id(conn, app_id).get(app_id, [])
        return game

    # --- Run lock ---

    def acquire_run_lock(self, owner: str, ttl_seconds: int, now: datetime) -> bool:
        """Takes the run lock unless another owner holds an unexpired one."""
        expiry = (now - timedelta(seconds=ttl_seconds)).isoformat()
        with self._get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                conn.execute("DELETE FROM run_lock WHERE acquired_at < ?", (expiry,))
                cursor = conn.execute(
                    "INSERT OR IGNORE INTO run_lock (id, owner, acquired_at) VALUES (1, ?, ?)",
                    (owner, now.isoformat())
                )
                conn.execute("COMMIT")
            except sqlite3.Error:
                conn.execute("ROLLBACK")
                raise
        acquired = cursor.rowcount == 1
        if not acquired:
            logger.warning(f"⚠️ [{self.__class__.__name__}] Run lock is held by another run.")
        return acquired

    def release_run_lock(self, owner: str) -> None:
        with self._get_connection() as conn:
            conn.execute("DELETE FROM run_lock WHERE owner = ?", (owner,))
