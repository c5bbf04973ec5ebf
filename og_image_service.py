"""
OG Image Generator API
POST /generate-og renders a 1200x628 share image from JSON fields and returns PNG bytes.
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

import aiohttp
import pytz
import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response

from config import Config, get_config, validate_config
from errors import OGImageError, ValidationError
from font_provider import FontCache, FontProvider
from http_fetcher import HttpFetcher
from logging_config import Colors, LogStyler, log_exception, loop_exception_handler, setup_logging
from render_pipeline import RenderPipeline

logger = logging.getLogger("og_image_service")


def build_pipeline(session: aiohttp.ClientSession, settings: Optional[dict] = None) -> RenderPipeline:
    """Wire the shared collaborators for one process."""
    settings = settings or get_config()
    network = settings["network"]
    fetcher = HttpFetcher(
        session,
        timeout=network["timeout_seconds"],
        retries=network["retries"],
        backoff=network["backoff_seconds"],
    )
    cache = FontCache(ttl_seconds=settings["font_cache_ttl_seconds"])
    fonts = FontProvider(fetcher, cache, css_url=settings["font_css_url"], user_agent=settings["font_user_agent"])
    return RenderPipeline(fonts, fetcher)


def error_response(error: OGImageError) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


def create_app(api_token: str, pipeline: Optional[RenderPipeline] = None) -> FastAPI:
    if not api_token:
        raise ValueError("api_token is required")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        asyncio.get_running_loop().set_exception_handler(loop_exception_handler)

        session = None
        if pipeline is None:
            session = aiohttp.ClientSession()
            app.state.pipeline = build_pipeline(session)
            logger.info("Persistent HTTP Session Created (Keep-Alive)")
        else:
            app.state.pipeline = pipeline
        try:
            yield
        finally:
            if session is not None:
                await session.close()
                logger.info("HTTP Session Closed")

    app = FastAPI(title="OG Image Generator", version="1.0.0", lifespan=lifespan)

    def authenticate(request: Request) -> None:
        auth_header = request.headers.get('authorization', '')
        parts = auth_header.split(' ')
        token = parts[1] if len(parts) > 1 and parts[1] else None

        if token is None:
            logger.info("Authentication failed: No token provided")
            raise HTTPException(status_code=401, detail="Unauthorized")
        if token != api_token:
            logger.info("Authentication failed: Invalid token")
            raise HTTPException(status_code=403, detail="Forbidden")

    @app.post("/generate-og", dependencies=[Depends(authenticate)])
    async def generate_og(request: Request):
        try:
            payload = await request.json()
        except ValueError:
            return error_response(ValidationError("Request body is not valid JSON"))

        outcome = await request.app.state.pipeline.run(payload)

        if not outcome.ok:
            if isinstance(outcome.error, ValidationError):
                logger.warning(f"Rejected request: {outcome.error}")
            else:
                log_exception(outcome.error, f"Error generating image (stage: {outcome.failed_stage})")
            return error_response(outcome.error)

        logger.info(f"Rendered OG image ({len(outcome.png) // 1024} KB in {outcome.elapsed_ms:.0f} ms)")
        return Response(content=outcome.png, media_type="image/png")

    @app.get("/health")
    async def health(request: Request):
        return {
            "status": "ok",
            "cached_fonts": len(request.app.state.pipeline.fonts.cache),
        }

    return app


def main():
    setup_logging(Config.LOG_FILE, Config.LOG_DEBUG_FILE, Config.LOG_TIMEZONE)

    settings = get_config()
    if not validate_config(settings["api_token"]):
        sys.exit(1)

    LogStyler.box("OG IMAGE GENERATOR", [
        ("Started:", datetime.now(pytz.timezone(Config.LOG_TIMEZONE)).strftime("%H:%M:%S")),
        ("Listening:", f"{settings['host']}:{settings['port']}"),
        ("Canvas:", f"{Config.IMAGE_WIDTH}x{Config.IMAGE_HEIGHT}"),
        ("Font TTL:", f"{settings['font_cache_ttl_seconds'] // 3600}h"),
    ], color=Colors.GREEN)

    uvicorn.run(create_app(settings["api_token"]), host=settings["host"], port=settings["port"], log_config=None)


if __name__ == "__main__":
    try:
        main()
    except Exception as e:
        log_exception(e, "Fatal Error in Main Loop")
        sys.exit(1)
