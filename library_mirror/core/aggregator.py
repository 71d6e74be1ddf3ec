# ===== IMPORTS & DEPENDENCIES =====
import asyncio
import logging
from typing import Dict, Iterable, List, NamedTuple

from library_mirror.models.game import OwnedRecord
from library_mirror.sources.steam_library import SteamLibrarySource

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)


class Aggregation(NamedTuple):
    records: Dict[int, OwnedRecord]
    failed_accounts: List[str]
    responded_accounts: int


# ===== CORE BUSINESS LOGIC =====
class Aggregator:
    """Merges the ownership lists of several accounts into one canonical set."""

    def __init__(self, source: SteamLibrarySource, account_delay: float = 0.3):
        self.source = source
        self.account_delay = account_delay

    async def aggregate(self, account_ids: Iterable[str]) -> Aggregation:
        """
        Fetches accounts strictly one after another, pausing between calls.
        The first account to report an app_id wins; later duplicates are dropped.
        Failed accounts contribute nothing and are listed in the result.
        """
        account_ids = list(account_ids)
        records: Dict[int, OwnedRecord] = {}
        failed: List[str] = []
        responded = 0

        for index, account_id in enumerate(account_ids):
            logger.info(f"[{self.__class__.__name__}] Requesting account {account_id} ({index + 1}/{len(account_ids)})")
            owned = await self.source.fetch_owned(account_id)
            if owned is None:
                failed.append(account_id)
            else:
                responded += 1
                for record in owned:
                    if record['app_id'] not in records:
                        records[record['app_id']] = record

            if index < len(account_ids) - 1 and self.account_delay > 0:
                await asyncio.sleep(self.account_delay)

        logger.info(f"✅ [{self.__class__.__name__}] {len(records)} unique games from {responded}/{len(account_ids)} accounts.")
        return Aggregation(records=records, failed_accounts=failed, responded_accounts=responded)
