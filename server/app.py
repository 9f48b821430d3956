import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse

import config
from errors import NotFoundError, PersistenceError, ValidationError
from hub.broadcast import Broadcaster
from hub.resources import ResourceRegistry
from hub.speeches import SpeechFeed
from hub.stats import StatsTracker
from hub.timer import TimerService
from server.realtime import create_realtime_router
from server.routes import create_router

logger = logging.getLogger(__name__)


def _client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def create_app(timer: TimerService, feed: SpeechFeed, registry: ResourceRegistry,
               stats: StatsTracker, broadcaster: Broadcaster,
               static_dir: Path = config.STATIC_DIR,
               stats_interval: float = config.STATS_RESET_INTERVAL_SECS) -> FastAPI:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        stats.maybe_reset_daily()
        timer.resume()
        reset_task = asyncio.create_task(stats.run_daily_reset(stats_interval))
        yield
        reset_task.cancel()
        await timer.shutdown()

    app = FastAPI(title="Global Debate Hub", version=config.VERSION, lifespan=lifespan)

    @app.middleware("http")
    async def log_access(request: Request, call_next):
        try:
            stats.record_visit(request.url.path, _client_ip(request),
                               request.headers.get("user-agent", ""))
        except PersistenceError as e:
            logger.warning("Could not log access to %s: %s", request.url.path, e)
        return await call_next(request)

    @app.exception_handler(ValidationError)
    async def on_validation_error(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def on_bad_request(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})

    @app.exception_handler(NotFoundError)
    async def on_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"error": str(exc)})

    @app.exception_handler(PersistenceError)
    async def on_persistence_error(request: Request, exc: PersistenceError):
        logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=500, content={"error": "Failed to save or load data"})

    @app.exception_handler(Exception)
    async def on_unhandled(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Something went wrong!"})

    app.include_router(create_router(timer, feed, registry, stats), prefix="/api")
    app.include_router(create_realtime_router(timer, feed, broadcaster))

    static_root = Path(static_dir).resolve()

    @app.get("/{full_path:path}", include_in_schema=False)
    async def spa(full_path: str):
        candidate = (static_root / full_path).resolve()
        if full_path and candidate.is_file() and candidate.is_relative_to(static_root):
            return FileResponse(str(candidate))
        return FileResponse(str(static_root / "index.html"))

    return app
