# ===== IMPORTS & DEPENDENCIES =====
import asyncio
import logging
from typing import Dict, Iterable, List, NamedTuple

from library_mirror.models.game import OwnedRecord, GameData
from library_mirror.sources.steam_library import SteamLibrarySource
from library_mirror.utils.text import (
    sanitize, sanitize_optional, sanitize_genres, fallback_name,
    default_cover_url, parse_release_year, first_non_empty,
)

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)


class EnrichmentResult(NamedTuple):
    games: Dict[int, GameData]
    failures: int


# ===== CORE BUSINESS LOGIC =====
class SteamEnricher:
    """Enriches owned games with developer, publisher, year and genres from the Steam store."""

    def __init__(self, source: SteamLibrarySource, batch_size: int = 15, inter_batch_delay: float = 0.3):
        self.source = source
        self.batch_size = max(1, batch_size)
        self.inter_batch_delay = inter_batch_delay

    def basic(self, owned: OwnedRecord) -> GameData:
        """Builds the cheap default record used when no detail metadata is applied."""
        app_id = owned['app_id']
        return {
            'app_id': app_id,
            'name': sanitize(owned.get('name') or '') or fallback_name(app_id),
            'cover_url': default_cover_url(app_id),
            'developer': None,
            'publisher': None,
            'release_year': None,
            'genres': [],
            'enriched': False,
        }

    async def enrich(self, owned: OwnedRecord) -> GameData:
        """
        Returns the game with detail metadata applied when available.
        Total: any failure leaves the defaults from `basic` in place.
        """
        game = self.basic(owned)
        app_id = game['app_id']
        try:
            details = await self.source.fetch_details(app_id)
            if not details:
                logger.debug(f"[{self.__class__.__name__}] No details for App ID {app_id}. Keeping defaults.")
                return game

            game['name'] = sanitize(details.get('name') or '') or game['name']
            game['cover_url'] = details.get('header_image') or game['cover_url']
            game['developer'] = sanitize_optional(first_non_empty(details.get('developers')))
            game['publisher'] = sanitize_optional(first_non_empty(details.get('publishers')))
            game['release_year'] = parse_release_year(details.get('release_date'))
            game['genres'] = sanitize_genres(details.get('genres', []))
            game['enriched'] = True
        except Exception as e:
            logger.warning(f"⚠️ [{self.__class__.__name__}] Enrichment failed for App ID {app_id}: {e}")
            return self.basic(owned)
        return game

    async def enrich_all(self, owned_records: Iterable[OwnedRecord]) -> EnrichmentResult:
        """Enriches records in concurrent batches, pausing between batches."""
        records: List[OwnedRecord] = list(owned_records)
        games: Dict[int, GameData] = {}
        batch_count = (len(records) + self.batch_size - 1) // self.batch_size

        for start in range(0, len(records), self.batch_size):
            batch = records[start:start + self.batch_size]
            results = await asyncio.gather(*(self.enrich(record) for record in batch))
            for game in results:
                games[game['app_id']] = game

            batch_number = start // self.batch_size + 1
            logger.info(f"[{self.__class__.__name__}] Batch {batch_number}/{batch_count} enriched ({len(batch)} games)")
            if start + self.batch_size < len(records) and self.inter_batch_delay > 0:
                await asyncio.sleep(self.inter_batch_delay)

        failures = sum(1 for game in games.values() if not game['enriched'])
        logger.info(f"✅ [{self.__class__.__name__}] Enriched {len(games) - failures}/{len(games)} games.")
        return EnrichmentResult(games=games, failures=failures)
