# ===== TYPES & INTERFACES =====

from typing import TypedDict, List, Optional


class OwnedRecord(TypedDict):
    """
    One game as reported by a single upstream account's ownership list.
    Lives only for the duration of a run and is never persisted directly.

    Attributes:
        app_id (int): Stable numeric identifier from the upstream system.
        name (str): Display name as reported by the ownership API (may be empty).
    """
    app_id: int
    name: str


class DetailRecord(TypedDict, total=False):
    """
    Parsed secondary metadata for a game from the store detail API.
    `total=False` because the upstream omits fields freely.

    Attributes:
        name (str): Store display name.
        header_image (str): Cover image URL.
        developers (List[str]): Developer names, first one is canonical.
        publishers (List[str]): Publisher names, first one is canonical.
        release_date (str): Free-text release date (e.g. '21 Aug, 2012').
        genres (List[str]): Genre display names.
    """
    name: str
    header_image: str
    developers: List[str]
    publishers: List[str]
    release_date: str
    genres: List[str]


class GameData(TypedDict):
    """
    A game ready to be persisted: sanitized, defaulted and optionally enriched.

    Attributes:
        app_id (int): Conflict key in the store.
        name (str): Never empty; falls back to 'App {app_id}'.
        cover_url (Optional[str]): Header image or the CDN template URL.
        developer (Optional[str]): First listed developer.
        publisher (Optional[str]): First listed publisher.
        release_year (Optional[int]): Year parsed out of the release date.
        genres (List[str]): Sanitized, non-empty, de-duplicated genre names.
        enriched (bool): True when detail metadata was applied. Basic records
            never overwrite previously enriched columns.
    """
    app_id: int
    name: str
    cover_url: Optional[str]
    developer: Optional[str]
    publisher: Optional[str]
    release_year: Optional[int]
    genres: List[str]
    enriched: bool


class SnapshotEntry(TypedDict):
    """One element of the serialized snapshot artifact and of the joined read view."""
    app_id: int
    name: str
    cover_url: Optional[str]
    developer: Optional[str]
    publisher: Optional[str]
    release_year: Optional[int]
    genres: List[str]
