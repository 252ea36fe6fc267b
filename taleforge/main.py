"""
FastAPI application for TaleForge
"""

import time
import uuid
from typing import Callable

from fastapi import Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from taleforge.api.adventures import router as adventures_router
from taleforge.api.characters import router as characters_router
from taleforge.api.dependencies import get_db, get_provider, get_real_ip
from taleforge.api.rate_limit import router as rate_limit_router
from taleforge.api.users import router as users_router
from taleforge.config import settings
from taleforge.engine.errors import PolicyError, TaleForgeError
from taleforge.providers.base import BaseProvider
from taleforge.utils.logger import LogLevel, get_logger, setup_logging

VERSION = "0.1.0"

log_level_raw = settings.log_level.upper()
log_level: LogLevel = log_level_raw if log_level_raw in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] else "INFO"  # type: ignore

setup_logging(
    level=log_level,
    log_file=settings.log_file,
    enable_colors=settings.enable_console_logs,
    enable_console_logging=settings.enable_console_logs,
)

logger = get_logger(__name__)

app = FastAPI(
    title="TaleForge",
    description="AI-narrated fantasy adventures, one turn at a time",
    version=VERSION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-Id", "X-Scene-Turn"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next: Callable) -> Response:
    """Tag each request with a short id and log its outcome and duration"""
    request_id = uuid.uuid4().hex[:8]
    request.state.request_id = request_id
    start_time = time.time()
    context = {"component": "API", "request_id": request_id}

    logger.debug(
        f"[API] {request.method} {request.url.path} from {get_real_ip(request)}",
        extra=context,
    )
    try:
        response = await call_next(request)
    except Exception as e:
        duration_ms = round((time.time() - start_time) * 1000, 2)
        logger.error(
            f"[API] {request.method} {request.url.path} -> ERROR ({duration_ms}ms): {e}",
            extra={**context, "error_type": type(e).__name__},
            exc_info=True,
        )
        raise

    duration_ms = round((time.time() - start_time) * 1000, 2)
    logger.info(
        f"[API] {request.method} {request.url.path} -> {response.status_code} ({duration_ms}ms)",
        extra={**context, "status_code": response.status_code, "duration_ms": duration_ms},
    )
    response.headers["X-Request-Id"] = request_id
    return response


@app.exception_handler(TaleForgeError)
async def taleforge_error_handler(request: Request, exc: TaleForgeError) -> JSONResponse:
    """Render domain errors as {"detail", "code"} with their own status"""
    # Policy refusals are normal play (limits, finished adventures)
    log = logger.info if isinstance(exc, PolicyError) else logger.warning
    log(
        f"[API] {request.method} {request.url.path} -> {exc.status_code} {exc.code}: {exc.message}",
        extra={
            "component": "API",
            "request_id": getattr(request.state, "request_id", None),
            "code": exc.code,
            **exc.context,
        },
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(adventures_router, prefix="/adventures", tags=["adventures"])
app.include_router(rate_limit_router, prefix="/rate-limit", tags=["rate-limit"])
app.include_router(users_router, prefix="/users", tags=["users"])
app.include_router(characters_router, prefix="/characters", tags=["characters"])


@app.on_event("startup")
async def startup_event():
    """Open the database and log the effective free-tier policy"""
    get_db()
    logger.info(
        f"TaleForge {VERSION} started: provider={settings.model_provider} "
        f"model={settings.model_name} db={settings.database_path}"
    )
    logger.info(
        f"Free tier: anonymous_play={settings.allow_anonymous_play} "
        f"daily_games={settings.anonymous_daily_game_limit} "
        f"turn_cap={settings.anonymous_max_turns} "
        f"history={settings.free_history_limit}; "
        f"scene_images={settings.enable_scene_images}"
    )


@app.get("/")
async def root():
    return {"message": "TaleForge", "version": VERSION, "status": "running"}


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}


@app.get("/health/provider")
async def provider_health(provider: BaseProvider = Depends(get_provider)):
    """Whether the configured narrator model answers"""
    reachable = await provider.health_check()
    if not reachable:
        logger.warning(
            f"Narrator provider {settings.model_provider} is unreachable",
            extra={"component": "API"},
        )
    return JSONResponse(
        status_code=200 if reachable else 503,
        content={
            "status": "healthy" if reachable else "unavailable",
            "provider": settings.model_provider,
            "model": settings.model_name,
        },
    )


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Starting server on {settings.host}:{settings.port}")
    uvicorn.run(
        "taleforge.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=log_level.lower(),
    )
