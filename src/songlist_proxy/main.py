"""
SongList Proxy - FastAPI application serving karaoke catalog searches
"""

import logging
import sys
import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from songlist_proxy.core.config import Settings, get_settings
from songlist_proxy.api.v1.health import router as health_router
from songlist_proxy.api.v1.songs import router as songs_router
from songlist_proxy.services.song_catalog import ProxyError, QueryProxyService

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


# ========================= Logging Configuration =========================

class ColoredFormatter(logging.Formatter):
    """Wraps the level name in an ANSI color when logging to a terminal."""

    LEVEL_COLORS = {
        logging.DEBUG: "38;21",
        logging.INFO: "34",
        logging.WARNING: "33",
        logging.ERROR: "31",
        logging.CRITICAL: "31;1",
    }

    def format(self, record):
        code = self.LEVEL_COLORS.get(record.levelno)
        if code is None:
            return super().format(record)
        # other handlers share the record
        colored = logging.makeLogRecord(record.__dict__)
        colored.levelname = f"\x1b[{code}m{record.levelname}\x1b[0m"
        return super().format(colored)


def setup_logging(log_level: str = "INFO"):
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    console_handler = logging.StreamHandler(sys.stdout)
    formatter_cls = ColoredFormatter if sys.stdout.isatty() else logging.Formatter
    console_handler.setFormatter(formatter_cls(LOG_FORMAT, datefmt=LOG_DATEFMT))

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)

    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("songlist_proxy").setLevel(logging.DEBUG)


# ========================= Middleware =========================

SLOW_REQUEST_SECONDS = 1.0

access_log = logging.getLogger("songlist_proxy.access")


class TimingMiddleware(BaseHTTPMiddleware):
    """Tags every response with its request id and handling time."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            elapsed = time.perf_counter() - started
            if elapsed > SLOW_REQUEST_SECONDS:
                access_log.warning("Slow request %s %s: %.3fs", request.method, request.url.path, elapsed)

        response.headers["X-Process-Time"] = f"{elapsed:.3f}"
        response.headers["X-Request-ID"] = request_id
        return response


# ========================= Lifespan Manager =========================

@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    upstream = settings.upstream()
    logging.info("Starting SongList Proxy (upstream %s)", upstream.base_url)

    client = httpx.AsyncClient(timeout=httpx.Timeout(upstream.timeout))
    app.state.song_service = QueryProxyService(upstream, client=client)
    try:
        yield
    finally:
        await client.aclose()
        logging.info("SongList Proxy stopped")


# ========================= Application Factory =========================

def create_application(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    app = FastAPI(
        title="SongList Proxy",
        description="Karaoke song catalog search, XML upstream normalized to JSON",
        version="1.0.0",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
        default_response_class=JSONResponse,
        openapi_tags=[
            {"name": "health", "description": "Health check endpoints"},
            {"name": "songs", "description": "Song catalog search"},
        ],
    )
    app.state.settings = settings

    # browser client on another origin, no cookies
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=False,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Process-Time", "X-Request-ID"],
        max_age=86400,
    )

    app.add_middleware(
        GZipMiddleware,
        minimum_size=1000,
        compresslevel=6,
    )

    # outermost, measures the whole request
    app.add_middleware(TimingMiddleware)

    # Routers
    app.include_router(health_router, prefix="/health", tags=["health"])
    app.include_router(songs_router, prefix="/songs", tags=["songs"])
    app.include_router(songs_router, prefix="/api/v1/songs", tags=["songs"], include_in_schema=False)

    # Exception Handlers
    @app.exception_handler(ProxyError)
    async def proxy_error_handler(request: Request, exc: ProxyError):
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": str(exc),
                "error": exc.code,
                "upstream_status": exc.status_code,
            }
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logging.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"}
        )

    # Root
    @app.get("/", include_in_schema=False)
    async def root():
        return {
            "name": "SongList Proxy",
            "version": "1.0.0",
            "status": "running",
            "docs": "/api/docs"
        }

    return app


app = create_application()


# ========================= Main =========================

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "songlist_proxy.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_config=None,
        access_log=False,
        loop="uvloop" if sys.platform != "win32" else "asyncio",
    )
