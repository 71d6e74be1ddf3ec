# ===== CONFIGURATION & CONSTANTS =====
import logging
import os
from dataclasses import dataclass, replace
from typing import List

logger = logging.getLogger(__name__)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"⚠️ [config] Invalid number for {name}={raw!r}. Using default {default}.")
        return default


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, default))


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() not in ("false", "0", "no", "off")


def parse_account_ids(csv: str) -> List[str]:
    """Splits a comma-separated list of account ids, dropping blanks and repeats."""
    seen: List[str] = []
    for part in (csv or "").split(","):
        account_id = part.strip()
        if account_id and account_id not in seen:
            seen.append(account_id)
    return seen


# --- General Settings ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DATABASE_PATH = os.getenv("DATABASE_PATH", "data/library.db")
SNAPSHOT_DIR = os.getenv("SNAPSHOT_DIR", "web_data")
SNAPSHOT_CACHE = os.getenv("SNAPSHOT_CACHE", "file").lower()
SNAPSHOT_KEY = "all.json"
RUN_LOCK_TTL = _env_int("RUN_LOCK_TTL", 1800)

# --- Upstream Credentials ---
STEAM_API_KEY = os.getenv("STEAM_API_KEY", "")
STEAM_IDS = os.getenv("STEAM_IDS", "")

# --- Web API Headers ---
COMMON_HEADERS = {
    'User-Agent': 'LibraryMirror-Sync/1.0',
    'Accept': 'application/json, text/plain, */*',
    'Accept-Language': 'en-US,en;q=0.9',
}

# --- Steam Ownership API ---
STEAM_OWNED_GAMES_URL = "https://api.steampowered.com/IPlayerService/GetOwnedGames/v0001/"

# --- Steam Store Detail API ---
STEAM_APP_DETAILS_URL = "https://store.steampowered.com/api/appdetails"
STEAM_COVER_URL_TEMPLATE = "https://cdn.cloudflare.steamstatic.com/steam/apps/{app_id}/header.jpg"

# --- Read API ---
SNAPSHOT_CACHE_CONTROL = "public, max-age=3600, stale-while-revalidate=86400"
GAME_CACHE_CONTROL = "public, max-age=3600"
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100

# --- Enrichment Batching ---
MIN_BATCH_SIZE = 8
MAX_BATCH_SIZE = 50


@dataclass(frozen=True)
class PipelineConfig:
    """
    The single set of knobs a sync run is parameterized by.

    Attributes:
        api_key (str): Key for the ownership API.
        account_ids (List[str]): Upstream accounts whose libraries are merged.
        enrich_enabled (bool): Whether detail metadata is fetched per game.
        force (bool): Ignore the freshness window.
        freshness_window (float): Seconds a previous run stays fresh.
        batch_size (int): Concurrent detail requests per batch.
        inter_batch_delay (float): Seconds paused between detail batches.
        account_delay (float): Seconds paused between ownership calls.
        request_timeout (float): Per-request timeout in seconds.
        lock_ttl (int): Seconds after which an abandoned run lock expires.
    """
    api_key: str = ""
    account_ids: tuple = ()
    enrich_enabled: bool = True
    force: bool = False
    freshness_window: float = 6 * 3600.0
    batch_size: int = 15
    inter_batch_delay: float = 0.3
    account_delay: float = 0.3
    request_timeout: float = 10.0
    lock_ttl: int = 1800

    def __post_init__(self):
        clamped = max(MIN_BATCH_SIZE, min(MAX_BATCH_SIZE, int(self.batch_size)))
        object.__setattr__(self, "batch_size", clamped)
        object.__setattr__(self, "account_ids", tuple(self.account_ids))

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        return cls(
            api_key=STEAM_API_KEY,
            account_ids=tuple(parse_account_ids(STEAM_IDS)),
            enrich_enabled=_env_bool("ENRICH_DETAILS", True),
            freshness_window=_env_float("FRESHNESS_WINDOW_HOURS", 6.0) * 3600.0,
            batch_size=_env_int("ENRICH_BATCH_SIZE", 15),
            inter_batch_delay=_env_float("ENRICH_BATCH_DELAY", 0.3),
            account_delay=_env_float("ACCOUNT_REQUEST_DELAY", 0.3),
            request_timeout=_env_float("REQUEST_TIMEOUT", 10.0),
            lock_ttl=RUN_LOCK_TTL,
        )

    def with_overrides(self, **changes) -> "PipelineConfig":
        """Returns a copy with the given fields replaced; `None` values are ignored."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})
