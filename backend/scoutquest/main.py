from __future__ import annotations
import uuid
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from scoutquest.config import settings
from scoutquest.logging_setup import configure_logging
from scoutquest.routes.system import router as system_router
from scoutquest.routes.challenges import router as challenges_router
from scoutquest.routes.submissions import router as submissions_router
from scoutquest.routes.leaderboard import router as leaderboard_router
from scoutquest.routes.admin import router as admin_router
from scoutquest.routes.badges import router as badges_router
from scoutquest.services.errors import DomainError, DanglingReference
from scoutquest.services.leaderboard import LeaderboardRanker, RankingCache
import structlog

configure_logging()
log = structlog.get_logger()

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    log.info("startup", env=settings.environment, version=settings.app_version, git_sha=settings.git_sha)
    yield
    # Shutdown
    log.info("shutdown")

app = FastAPI(
    title=f"{settings.app_display_name} API",
    version=settings.app_version,
    lifespan=lifespan,
    description=f"{settings.app_display_name} API for scout challenges, validation and leaderboards",
)

# One ranker per process; its cache is invalidated by every award
app.state.ranker = LeaderboardRanker(RankingCache(ttl_seconds=settings.leaderboard_cache_ttl_seconds))

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.environment == "dev" else settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(system_router)
app.include_router(challenges_router)
app.include_router(submissions_router)
app.include_router(leaderboard_router)
app.include_router(badges_router)
app.include_router(admin_router)

@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    if isinstance(exc, DanglingReference):
        log.error(
            "operator_reconciliation_required",
            submission_id=str(exc.submission_id) if exc.submission_id else None,
            detail=exc.detail,
            path=request.url.path,
        )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail, "error": type(exc).__name__})

@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = rid
    structlog.contextvars.bind_contextvars(request_id=rid)
    response: Response = await call_next(request)
    response.headers["X-Request-ID"] = rid
    structlog.contextvars.clear_contextvars()
    return response
