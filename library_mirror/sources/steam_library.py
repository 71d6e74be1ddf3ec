# ===== IMPORTS & DEPENDENCIES =====
import logging
import aiohttp
from typing import List, Optional, Dict, Any

from library_mirror.core.base_client import BaseWebClient
from library_mirror.models.game import OwnedRecord, DetailRecord
from library_mirror.config import STEAM_OWNED_GAMES_URL, STEAM_APP_DETAILS_URL

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)


# ===== CORE BUSINESS LOGIC =====
class SteamLibrarySource(BaseWebClient):
    """Reads owned-game lists and per-game store details from the Steam Web APIs."""

    def __init__(self, session: aiohttp.ClientSession, api_key: str, timeout: float = 10.0, max_retries: int = 2):
        super().__init__(session=session, timeout=timeout, max_retries=max_retries)
        self._api_key = api_key

    def _parse_owned_response(self, account_id: str, response_data: Any) -> Optional[List[OwnedRecord]]:
        """
        Validates the whole ownership payload before accepting any of it.
        A malformed entry invalidates the account's list rather than yielding a partial one.
        """
        if not isinstance(response_data, dict) or not isinstance(response_data.get('response'), dict):
            logger.warning(f"⚠️ [{self.__class__.__name__}] Invalid ownership response for account {account_id}.")
            return None

        games = response_data['response'].get('games', [])
        if not isinstance(games, list):
            logger.warning(f"⚠️ [{self.__class__.__name__}] 'games' is not a list for account {account_id}.")
            return None

        records: List[OwnedRecord] = []
        for game in games:
            app_id = game.get('appid') if isinstance(game, dict) else None
            if not isinstance(app_id, int) or isinstance(app_id, bool):
                logger.warning(f"⚠️ [{self.__class__.__name__}] Malformed game entry for account {account_id}: {game!r}. Discarding account result.")
                return None
            name = game.get('name')
            records.append({'app_id': app_id, 'name': name if isinstance(name, str) else ''})
        return records

    async def fetch_owned(self, account_id: str) -> Optional[List[OwnedRecord]]:
        """
        Returns the full owned-game list for one account, or None when the
        account could not be read. Never returns a partial list.
        """
        params = {
            'key': self._api_key,
            'steamid': account_id,
            'include_appinfo': '1',
            'include_played_free_games': '1',
            'format': 'json',
        }
        response_data = await self._fetch(STEAM_OWNED_GAMES_URL, params=params)
        if response_data is None:
            logger.warning(f"⚠️ [{self.__class__.__name__}] No ownership data for account {account_id}.")
            return None

        records = self._parse_owned_response(account_id, response_data)
        if records is not None:
            logger.info(f"✅ [{self.__class__.__name__}] {len(records)} games found for account {account_id}.")
        return records

    def _parse_details_response(self, app_id: int, response_data: Dict[str, Any]) -> Optional[DetailRecord]:
        """Parses the appdetails JSON response into a DetailRecord."""
        entry = response_data.get(str(app_id)) if isinstance(response_data, dict) else None
        if not isinstance(entry, dict) or not entry.get('success') or not isinstance(entry.get('data'), dict):
            logger.debug(f"[{self.__class__.__name__}] Detail response for App ID {app_id} was unsuccessful or empty.")
            return None

        details = entry['data']
        record: DetailRecord = {}
        if isinstance(details.get('name'), str):
            record['name'] = details['name']
        if isinstance(details.get('header_image'), str):
            record['header_image'] = details['header_image']
        if isinstance(details.get('developers'), list):
            record['developers'] = [d for d in details['developers'] if isinstance(d, str)]
        if isinstance(details.get('publishers'), list):
            record['publishers'] = [p for p in details['publishers'] if isinstance(p, str)]

        release_date = details.get('release_date')
        if isinstance(release_date, dict) and isinstance(release_date.get('date'), str):
            record['release_date'] = release_date['date']

        genres = details.get('genres')
        if isinstance(genres, list):
            record['genres'] = [
                genre['description'] for genre in genres
                if isinstance(genre, dict) and isinstance(genre.get('description'), str) and genre['description']
            ]
        return record

    async def fetch_details(self, app_id: int) -> Optional[DetailRecord]:
        """Fetches store metadata for one game; None when absent or on failure."""
        response_data = await self._fetch(STEAM_APP_DETAILS_URL, params={'appids': str(app_id)})
        if not response_data:
            return None
        return self._parse_details_response(app_id, response_data)
