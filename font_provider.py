"""
Font acquisition and caching.

Font families are resolved through the Google Fonts CSS API: the stylesheet for
weights 400 and 700 is fetched, its ``src: url(...) format('truetype')`` entries
are parsed in document order (regular first, bold second) and each font file is
downloaded. Resolved families live in a FontCache that is created once per
process and injected into the provider.
"""

import asyncio
import logging
import re
import threading
import time
from dataclasses import dataclass, field
from io import BytesIO
from typing import Callable, Dict, List, Optional
from urllib.parse import urlencode

from PIL import ImageFont

from errors import FontFetchError, FontNotFoundError, RenderError
from http_fetcher import FetchFailure, HttpFetcher

logger = logging.getLogger(__name__)

REGULAR = 400
BOLD = 700

FONT_SOURCE_RE = re.compile(
    r"url\(\s*['\"]?([^'\")\s]+)['\"]?\s*\)\s*format\(\s*['\"](opentype|truetype)['\"]\s*\)",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class FontAsset:
    """One font family resolved to its regular and bold font files."""
    family: str
    regular: bytes = field(repr=False)
    bold: bytes = field(repr=False)

    def data(self, weight: int) -> bytes:
        return self.bold if weight >= BOLD else self.regular

    def font(self, weight: int, size: int) -> ImageFont.FreeTypeFont:
        """Build a Pillow font for the given weight and pixel size."""
        try:
            return ImageFont.truetype(BytesIO(self.data(weight)), size)
        except OSError as e:
            raise RenderError(f"Font data for {self.family} ({weight}) is not a usable font: {e}") from e


def cache_key(family: str) -> str:
    return ' '.join(family.split()).lower()


class FontCache:
    """
    Process-wide store of resolved fonts keyed by family name.

    Entries are inserted whole and never mutated; an entry older than the
    time-to-live is dropped on lookup so the next resolve re-fetches it.
    All operations take a lock, so the cache is safe to share between the
    event loop and executor threads.
    """

    def __init__(self, ttl_seconds: float = 0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: Dict[str, tuple] = {}
        self._lock = threading.Lock()

    def get(self, family: str) -> Optional[FontAsset]:
        key = cache_key(family)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            asset, stored_at = entry
            if self.ttl_seconds and self.clock() - stored_at >= self.ttl_seconds:
                del self._entries[key]
                logger.info(f"Font cache entry expired: {family}")
                return None
            return asset

    def put(self, family: str, asset: FontAsset) -> FontAsset:
        """Insert asset unless a live entry already exists; return the stored one."""
        key = cache_key(family)
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and not self._expired(entry):
                return entry[0]
            self._entries[key] = (asset, self.clock())
            return asset

    def expire(self, family: Optional[str] = None) -> None:
        """Drop one family, or everything when family is None."""
        with self._lock:
            if family is None:
                self._entries.clear()
            else:
                self._entries.pop(cache_key(family), None)

    def _expired(self, entry: tuple) -> bool:
        return bool(self.ttl_seconds) and self.clock() - entry[1] >= self.ttl_seconds

    def __contains__(self, family: str) -> bool:
        return self.get(family) is not None

    def __len__(self) -> int:
        with self._lock:
            return sum(1 for entry in self._entries.values() if not self._expired(entry))


def parse_font_sources(css_text: str) -> List[str]:
    """Return opentype/truetype font URLs from a stylesheet, in document order."""
    return [m.group(1) for m in FONT_SOURCE_RE.finditer(css_text)]


class FontProvider:
    """Resolves a family name to a FontAsset, fetching on first use only."""

    def __init__(self, fetcher: HttpFetcher, cache: FontCache,
                 css_url: str = 'https://fonts.googleapis.com/css2',
                 user_agent: str = 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36'):
        self.fetcher = fetcher
        self.cache = cache
        self.css_url = css_url
        self.user_agent = user_agent
        self._inflight: Dict[str, asyncio.Task] = {}

    def stylesheet_url(self, family: str) -> str:
        query = urlencode({'family': f"{family.strip()}:wght@{REGULAR};{BOLD}", 'display': 'swap'}, safe=':;@')
        return f"{self.css_url}?{query}"

    async def resolve(self, family: str) -> FontAsset:
        cached = self.cache.get(family)
        if cached is not None:
            return cached

        # Collapse concurrent misses for the same family onto one download
        key = cache_key(family)
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch_family(family))
            self._inflight[key] = task
            task.add_done_callback(lambda _t: self._inflight.pop(key, None))
        return await asyncio.shield(task)

    async def _fetch_family(self, family: str) -> FontAsset:
        url = self.stylesheet_url(family)
        logger.info(f"Fetching font stylesheet for {family}")

        try:
            css_text = await self.fetcher.fetch_text(url, headers={'User-Agent': self.user_agent})
        except FetchFailure as e:
            # The CSS API answers 400 for families it doesn't know
            if e.status == 400:
                raise FontNotFoundError(f"Unknown font family: {family}") from e
            raise FontFetchError(f"Could not fetch stylesheet for {family}: {e.reason}") from e

        sources = parse_font_sources(css_text)
        if not sources:
            raise FontNotFoundError(f"No opentype/truetype sources found for {family}")
        if len(sources) == 1:
            logger.warning(f"Only one font source for {family}; using it for both weights")
            sources = sources * 2

        payloads = []
        for source_url in sources[:2]:
            try:
                payloads.append(await self.fetcher.fetch_bytes(source_url))
            except FetchFailure as e:
                raise FontFetchError(f"Could not download font file for {family}: {e.reason}") from e

        asset = FontAsset(family=family, regular=payloads[0], bold=payloads[1])
        stored = self.cache.put(family, asset)
        if stored is asset:
            logger.info(f"Downloaded and cached font: {family} ({len(asset.regular)} + {len(asset.bold)} bytes)")
        else:
            logger.info(f"Font {family} was cached meanwhile; keeping the stored copy")
        return stored
