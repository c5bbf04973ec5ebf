"""
Render pipeline: validate -> resolve fonts + fetch icon -> compose -> encode.

Each stage returns a StageResult instead of letting exceptions unwind the whole
pipeline; RenderPipeline.run() aggregates them into one RenderOutcome that the
HTTP layer maps to a response. An outcome carries either PNG bytes or an error,
never both.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from functools import partial
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from errors import OGImageError, RenderError
from font_provider import FontProvider
from http_fetcher import HttpFetcher
from image_templates.og_card import OGCardComposer, RenderRequest, load_icon
from image_templates.surface import PillowSurface, encode_png

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass(frozen=True)
class StageResult(Generic[T]):
    """Outcome of one pipeline stage."""
    stage: str
    value: Optional[T] = None
    error: Optional[OGImageError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class RenderOutcome:
    png: Optional[bytes] = None
    error: Optional[OGImageError] = None
    failed_stage: Optional[str] = None
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


async def run_stage(stage: str, work: Callable[[], Awaitable[T]]) -> StageResult[T]:
    """Await work and capture its failure as a StageResult."""
    try:
        return StageResult(stage=stage, value=await work())
    except OGImageError as e:
        return StageResult(stage=stage, error=e)
    except Exception as e:
        logger.debug(f"Unexpected failure in stage {stage}", exc_info=e)
        return StageResult(stage=stage, error=RenderError(f"{stage} failed: {e}"))


class RenderPipeline:
    """One render per call; holds only the shared, injected collaborators."""

    def __init__(self, fonts: FontProvider, fetcher: HttpFetcher,
                 composer: Optional[OGCardComposer] = None, executor=None):
        self.fonts = fonts
        self.fetcher = fetcher
        self.composer = composer or OGCardComposer()
        # Composition is CPU bound; None means the loop's default thread pool
        self.executor = executor

    def validate(self, payload: Any) -> StageResult[RenderRequest]:
        try:
            return StageResult(stage='validate', value=RenderRequest.from_dict(payload))
        except OGImageError as e:
            return StageResult(stage='validate', error=e)

    def draw(self, request: RenderRequest, fonts, icon) -> bytes:
        surface = PillowSurface(self.composer.width, self.composer.height, request.background)
        self.composer.compose(request, fonts, icon, surface)
        return encode_png(surface)

    async def run(self, payload: Any) -> RenderOutcome:
        started = time.perf_counter()

        def finish(result: StageResult) -> RenderOutcome:
            elapsed_ms = (time.perf_counter() - started) * 1000
            if result.ok:
                return RenderOutcome(png=result.value, elapsed_ms=elapsed_ms)
            return RenderOutcome(error=result.error, failed_stage=result.stage, elapsed_ms=elapsed_ms)

        validated = self.validate(payload)
        if not validated.ok:
            return finish(validated)
        request = validated.value

        # Both network stages run concurrently; either failure aborts the render
        font_result, icon_result = await asyncio.gather(
            run_stage('fonts', partial(self.fonts.resolve, request.font_family)),
            run_stage('icon', partial(load_icon, self.fetcher, request.icon_url)),
        )
        for result in (font_result, icon_result):
            if not result.ok:
                return finish(result)

        loop = asyncio.get_running_loop()
        composed = await run_stage('compose', partial(
            loop.run_in_executor, self.executor, self.draw, request, font_result.value, icon_result.value
        ))
        return finish(composed)
