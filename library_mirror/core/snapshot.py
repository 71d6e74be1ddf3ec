# ===== IMPORTS & DEPENDENCIES =====
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from typing import List, Optional

from library_mirror.config import SNAPSHOT_KEY
from library_mirror.core.database import Database
from library_mirror.models.game import SnapshotEntry
from library_mirror.utils.text import sanitize, sanitize_optional, sanitize_genres, fallback_name

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)


# ===== CACHE STORES =====
class SnapshotStore(ABC):
    """A named-blob cache. Implementations may lose data at any time."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Returns the blob, or None on a miss."""

    @abstractmethod
    def set(self, key: str, data: str) -> None:
        """Replaces the blob so readers see either the old or the new version."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Drops the blob if present."""


class FileSnapshotStore(SnapshotStore):
    """Stores blobs as files in a directory, swapped into place atomically."""

    def __init__(self, directory: str):
        self._directory = directory
        os.makedirs(self._directory, exist_ok=True)
        logger.debug(f"[{self.__class__.__name__}] Initialized with blob dir: {self._directory}")

    def _get_path(self, key: str) -> str:
        return os.path.join(self._directory, os.path.basename(key))

    def get(self, key: str) -> Optional[str]:
        path = self._get_path(key)
        if not os.path.exists(path):
            return None
        with open(path, 'r', encoding='utf-8') as f:
            return f.read()

    def set(self, key: str, data: str) -> None:
        path = self._get_path(key)
        fd, tmp_path = tempfile.mkstemp(dir=self._directory, prefix='.tmp-', suffix='.json')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(data)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
        logger.info(f"💾 [{self.__class__.__name__}] Blob saved: {path}")

    def delete(self, key: str) -> None:
        path = self._get_path(key)
        if os.path.exists(path):
            os.remove(path)
            logger.info(f"🗑️ [{self.__class__.__name__}] Blob removed: {path}")


class NullSnapshotStore(SnapshotStore):
    """A pass-through store that never holds anything."""

    def get(self, key: str) -> Optional[str]:
        return None

    def set(self, key: str, data: str) -> None:
        logger.debug(f"[{self.__class__.__name__}] Discarding blob '{key}' ({len(data)} bytes).")

    def delete(self, key: str) -> None:
        pass


# ===== CORE BUSINESS LOGIC =====
class SnapshotPublisher:
    """Serializes the joined library view into one cached artifact."""

    def __init__(self, db: Database, store: SnapshotStore, key: str = SNAPSHOT_KEY):
        self.db = db
        self.store = store
        self.key = key

    def build(self) -> List[SnapshotEntry]:
        """Reads the joined view from the store and sanitizes every text field."""
        entries: List[SnapshotEntry] = []
        for game in self.db.fetch_library():
            entries.append({
                'app_id': game['app_id'],
                'name': sanitize(game['name']) or fallback_name(game['app_id']),
                'cover_url': game['cover_url'],
                'developer': sanitize_optional(game['developer']),
                'publisher': sanitize_optional(game['publisher']),
                'release_year': game['release_year'],
                'genres': sanitize_genres(game['genres']),
            })
        return entries

    def serialize(self) -> str:
        return json.dumps(self.build(), ensure_ascii=False)

    def publish(self) -> str:
        """Rebuilds and writes the artifact unconditionally. Returns the serialized JSON."""
        payload = self.serialize()
        self.store.set(self.key, payload)
        logger.info(f"✅ [{self.__class__.__name__}] Snapshot '{self.key}' published ({len(payload)} bytes).")
        return payload

    def invalidate(self) -> None:
        """Drops the cached artifact so the next read rebuilds it from the store."""
        self.store.delete(self.key)
        logger.info(f"[{self.__class__.__name__}] Snapshot '{self.key}' invalidated.")

    def load_or_regenerate(self) -> Optional[str]:
        """
        Serves the cached artifact, regenerating it from the store on a miss.
        Returns None when there is nothing to serve. A failed cache write still
        serves the regenerated payload.
        """
        cached = self.store.get(self.key)
        if cached is not None:
            return cached
        logger.info(f"[{self.__class__.__name__}] Snapshot cache miss. Regenerating from the store.")
        if self.db.count_games() == 0:
            return None

        payload = self.serialize()
        try:
            self.store.set(self.key, payload)
        except OSError as e:
            logger.warning(f"⚠️ [{self.__class__.__name__}] Could not write snapshot cache: {e}")
        return payload
