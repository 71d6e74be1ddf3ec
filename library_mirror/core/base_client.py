# ===== IMPORTS & DEPENDENCIES =====
import logging
import asyncio
import aiohttp
import random
from typing import Optional, Any, Dict

from library_mirror.config import COMMON_HEADERS

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = (429, 502, 503, 504)


# ===== CORE BUSINESS LOGIC =====
class BaseWebClient:
    """A base class for JSON web clients with bounded timeouts and retry on throttling."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        timeout: float = 10.0,
        max_retries: int = 2,
        initial_delay: float = 1.0,
    ):
        self._session = session
        self._timeout = timeout
        self._max_retries = max(1, max_retries)
        self._initial_delay = initial_delay
        logger.debug(f"[{self.__class__.__name__}] Initialized with timeout {self._timeout}s and {self._max_retries} attempts")

    async def _fetch(
        self,
        url: str,
        params: Optional[Dict[str, str]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Optional[Any]:
        """
        Fetches a JSON document with a per-request timeout, retrying throttled or
        unavailable responses with exponential backoff.
        Returns None on any failure; callers treat failures as data.
        """
        logger.debug(f"➡️ [{self.__class__.__name__}] Fetching from network: {url}")
        request_headers = headers or COMMON_HEADERS
        timeout = aiohttp.ClientTimeout(total=self._timeout)

        for attempt in range(self._max_retries):
            try:
                async with self._session.request('GET', url, params=params, headers=request_headers, timeout=timeout) as response:
                    response.raise_for_status()
                    # content_type=None handles non-standard API content-types
                    return await response.json(content_type=None)

            except aiohttp.ClientResponseError as e:
                logger.warning(f"⚠️ [{self.__class__.__name__}] HTTP error on {url} (Attempt {attempt + 1}/{self._max_retries}): Status {e.status}")
                if attempt >= self._max_retries - 1 or e.status not in RETRYABLE_STATUSES:
                    logger.error(f"❌ [{self.__class__.__name__}] Unrecoverable error on {url}. Giving up.")
                    return None
            except (asyncio.TimeoutError, aiohttp.ClientConnectionError) as e:
                logger.warning(f"⚠️ [{self.__class__.__name__}] Network error on {url} (Attempt {attempt + 1}/{self._max_retries}): {type(e).__name__}")
                if attempt >= self._max_retries - 1:
                    logger.error(f"❌ [{self.__class__.__name__}] Failed to connect to {url} after {self._max_retries} attempts.")
                    return None
            except Exception as e:
                logger.error(f"❌ [{self.__class__.__name__}] Unexpected error fetching {url}: {e}", exc_info=True)
                return None

            delay = self._initial_delay * (2 ** attempt) + random.uniform(0, 1)
            logger.info(f"Retrying request to {url} in {delay:.2f} seconds...")
            await asyncio.sleep(delay)

        return None
