# ===== IMPORTS & DEPENDENCIES =====
import logging
import time
import uuid
from datetime import datetime, timezone, timedelta
from typing import Callable, Iterable, Optional

from library_mirror.config import PipelineConfig
from library_mirror.core.aggregator import Aggregator
from library_mirror.core.database import Database
from library_mirror.core.reconciler import diff
from library_mirror.core.snapshot import SnapshotPublisher
from library_mirror.enrichment.steam_enricher import SteamEnricher
from library_mirror.models.report import RunReport, PipelineStage, PipelineError
from library_mirror.sources.steam_library import SteamLibrarySource

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ===== CORE BUSINESS LOGIC / PIPELINE =====
class LibraryPipeline:
    """Orchestrates one reconciliation run: collect, enrich, diff, persist, publish."""

    def __init__(
        self,
        db: Database,
        source: SteamLibrarySource,
        publisher: SnapshotPublisher,
        config: PipelineConfig,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.db = db
        self.source = source
        self.publisher = publisher
        self.config = config
        self.clock = clock

    def _is_fresh(self, report: RunReport) -> bool:
        """True when persisted data exists and the last run falls inside the freshness window."""
        count, last_update = self.db.get_freshness()
        report.previous_count = count
        if count == 0 or last_update is None:
            return False
        if last_update.tzinfo is None:
            last_update = last_update.replace(tzinfo=timezone.utc)
        return self.clock() - last_update < timedelta(seconds=self.config.freshness_window)

    def _warm_cache(self) -> None:
        """Regenerates the snapshot on the skip path when the cache has lost it."""
        try:
            self.publisher.load_or_regenerate()
        except Exception as e:
            logger.warning(f"⚠️ Snapshot warm-up failed on skipped run: {e}")

    async def _reconcile(self, account_ids: list, report: RunReport, enrich: bool) -> None:
        logger.info("--- Step 2: Collecting owned games from all accounts ---")
        report.stage = PipelineStage.COLLECTING
        aggregator = Aggregator(self.source, account_delay=self.config.account_delay)
        aggregation = await aggregator.aggregate(account_ids)
        report.failed_accounts = list(aggregation.failed_accounts)
        report.owned_total = len(aggregation.records)

        enricher = SteamEnricher(self.source, batch_size=self.config.batch_size,
                                 inter_batch_delay=self.config.inter_batch_delay)
        if enrich:
            logger.info(f"--- Step 3: Enriching {len(aggregation.records)} games ---")
            report.stage = PipelineStage.ENRICHING
            enrichment = await enricher.enrich_all(aggregation.records.values())
            games = enrichment.games
            report.enrichment_failures = enrichment.failures
        else:
            logger.info("--- Step 3: Enrichment disabled, using basic fields ---")
            games = {app_id: enricher.basic(record) for app_id, record in aggregation.records.items()}

        logger.info("--- Step 4: Reconciling against the persisted library ---")
        report.stage = PipelineStage.RECONCILING
        changes = diff(set(games), self.db.get_app_ids())

        logger.info(f"--- Step 5: Persisting {len(changes.to_add)} additions, "
                    f"{len(changes.to_refresh)} refreshes, {len(changes.to_remove)} removals ---")
        report.stage = PipelineStage.PERSISTING
        stats = self.db.apply(changes, games, now=self.clock())
        report.added = stats.added
        report.refreshed = stats.refreshed
        report.updated = stats.updated
        report.removed = stats.removed
        report.genre_errors = stats.genre_errors
        report.persisted_count = stats.total
        report.upstream_count = len(games)

        logger.info("--- Step 6: Publishing snapshot ---")
        report.stage = PipelineStage.PUBLISHING
        try:
            self.publisher.publish()
            report.snapshot_published = True
        except Exception as e:
            logger.error(f"❌ Snapshot publish failed; the store remains authoritative: {e}", exc_info=True)
            try:
                self.publisher.invalidate()
            except Exception as invalidate_error:
                logger.warning(f"⚠️ Could not drop the stale snapshot: {invalidate_error}")

    async def run(
        self,
        account_ids: Optional[Iterable[str]] = None,
        force: Optional[bool] = None,
        enrich: Optional[bool] = None,
    ) -> RunReport:
        """
        Executes a complete run and reports its outcome. Never raises: failures
        before persisting leave the store untouched and are returned in the report.
        """
        started = time.monotonic()
        account_ids = list(self.config.account_ids if account_ids is None else account_ids)
        force = self.config.force if force is None else force
        enrich = self.config.enrich_enabled if enrich is None else enrich
        report = RunReport(started_at=self.clock().isoformat(), accounts=len(account_ids))
        lock_owner = uuid.uuid4().hex
        locked = False

        logger.info("🚀🚀🚀 Starting Library Sync Pipeline 🚀🚀🚀")
        try:
            logger.info("--- Step 1: Checking freshness ---")
            report.stage = PipelineStage.CHECK_STALENESS
            fresh = self._is_fresh(report)
            if fresh and not force:
                logger.info("⏭️ Sync unnecessary - library updated recently (force to override).")
                report.skipped = True
                report.success = True
                report.reason = "fresh"
                report.persisted_count = report.previous_count
                self._warm_cache()
                return report

            if not self.db.acquire_run_lock(lock_owner, self.config.lock_ttl, self.clock()):
                report.skipped = True
                report.reason = "locked"
                return report
            locked = True

            await self._reconcile(account_ids, report, enrich)
            report.stage = PipelineStage.DONE
            report.success = True
            logger.info("🏁🏁🏁 Pipeline finished successfully 🏁🏁🏁")
        except PipelineError as e:
            logger.error(f"❌ Run aborted during {report.stage.value}: {e}")
            report.error = str(e)
        except Exception as e:
            logger.critical(f"🔥🔥🔥 A critical error occurred in the pipeline: {e}", exc_info=True)
            report.error = f"{type(e).__name__}: {e}"
        finally:
            if locked:
                self.db.release_run_lock(lock_owner)
            report.duration_ms = int((time.monotonic() - started) * 1000)
        return report
