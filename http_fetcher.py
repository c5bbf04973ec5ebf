"""
Shared async HTTP fetching with timeout, retries and exponential backoff.
"""

import asyncio
import logging
from typing import Dict, Optional

import aiohttp

logger = logging.getLogger(__name__)


class FetchFailure(Exception):
    """A URL could not be fetched after all attempts."""

    def __init__(self, url: str, reason: str, status: Optional[int] = None):
        super().__init__(f"{reason} ({url})")
        self.url = url
        self.reason = reason
        self.status = status


class HttpFetcher:
    """Fetches URLs over one persistent aiohttp session."""

    def __init__(self, session: aiohttp.ClientSession, timeout: float = 10,
                 retries: int = 2, backoff: float = 0.5):
        self.session = session
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.retries = max(1, retries)
        self.backoff = backoff

    async def fetch_bytes(self, url: str, headers: Optional[Dict[str, str]] = None) -> bytes:
        """Fetch URL body as bytes, raising FetchFailure on the last failed attempt"""
        last_failure = None

        for attempt in range(self.retries):
            try:
                async with self.session.get(url, headers=headers, timeout=self.timeout) as response:
                    if 200 <= response.status < 300:
                        return await response.read()
                    last_failure = FetchFailure(url, f"HTTP {response.status}", status=response.status)
                    logger.warning(f"HTTP {response.status} for {url} (Attempt {attempt+1})")
                    # Client errors won't change on retry
                    if 400 <= response.status < 500:
                        break
            except asyncio.TimeoutError:
                last_failure = FetchFailure(url, "Timed out")
                logger.warning(f"Timeout fetching {url} (Attempt {attempt+1})")
            except aiohttp.ClientError as e:
                last_failure = FetchFailure(url, f"Network error: {e}")
                logger.warning(f"Network error {url}: {e} (Attempt {attempt+1})")

            # Backoff if not last attempt
            if attempt < self.retries - 1:
                await asyncio.sleep(self.backoff * (2 ** attempt))

        logger.error(f"Failed to fetch {url}: {last_failure.reason}")
        raise last_failure

    async def fetch_text(self, url: str, headers: Optional[Dict[str, str]] = None) -> str:
        data = await self.fetch_bytes(url, headers=headers)
        return data.decode('utf-8', errors='replace')
