"""Test doubles for the network seams."""

from typing import Any, Dict, Iterable, List, Optional
from unittest.mock import MagicMock

import aiohttp


class FakeResponse:
    def __init__(self, status: int = 200, payload: Any = None, error: Optional[BaseException] = None):
        self.status = status
        self.payload = payload
        self.error = error

    async def __aenter__(self):
        if self.error is not None:
            raise self.error
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    def raise_for_status(self):
        if self.status >= 400:
            raise aiohttp.ClientResponseError(MagicMock(), (), status=self.status, message="error")

    async def json(self, content_type=None):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeSession:
    """Returns queued FakeResponses in order and records every request."""

    def __init__(self, responses: Iterable[FakeResponse]):
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        return self.responses.pop(0)


class FakeSource:
    """Stands in for SteamLibrarySource with canned per-account and per-game data."""

    def __init__(self, owned: Optional[Dict[str, Any]] = None, details: Optional[Dict[int, Any]] = None):
        self.owned = owned or {}
        self.details = details or {}
        self.owned_calls: List[str] = []
        self.detail_calls: List[int] = []

    async def fetch_owned(self, account_id):
        self.owned_calls.append(account_id)
        records = self.owned.get(account_id)
        if records is None:
            return None
        return [dict(record) for record in records]

    async def fetch_details(self, app_id):
        self.detail_calls.append(app_id)
        value = self.details.get(app_id)
        if isinstance(value, Exception):
            raise value
        return value

    @property
    def call_count(self) -> int:
        return len(self.owned_calls) + len(self.detail_calls)


def owned(*pairs):
    """owned((1, "Portal"), (2, "Dota 2")) -> list of OwnedRecord dicts."""
    return [{"app_id": app_id, "name": name} for app_id, name in pairs]


def detail(name, developer="Valve", publisher="Valve", date="10 Oct, 2007", genres=("Action",), header=None):
    record = {
        "name": name,
        "developers": [developer] if developer else [],
        "publishers": [publisher] if publisher else [],
        "release_date": date,
        "genres": list(genres),
    }
    if header:
        record["header_image"] = header
    return record
