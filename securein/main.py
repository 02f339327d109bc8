from __future__ import annotations
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy.exc import SQLAlchemyError

from .app_logger import get_logger
from .core.config import get_settings
from .db import init_db, async_session_maker
from .routers import auth, events, passes, reports
from .services.auth_service import ensure_admin
from .core.redis import ping_redis
from .core.nats import nats_connect, nats_close

settings = get_settings()
log = get_logger()

@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    async with async_session_maker() as db:
        await ensure_admin(db)
    # best-effort connect to infra; service still runs if these fail
    try:
        await nats_connect()
    except Exception as e:
        log.warning("nats unavailable at startup: %s", e)
    if settings.rl_enabled and not await ping_redis():
        log.warning("redis unavailable at startup; verify rate limit will fail open")
    yield
    await nats_close()

app = FastAPI(title="securein-pass-svc", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(SQLAlchemyError)
async def db_error(request: Request, exc: SQLAlchemyError):
    log.exception("database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Server error"})

app.include_router(auth.router)
app.include_router(events.router)
app.include_router(passes.router)
app.include_router(reports.router)

@app.get("/health")
async def health():
    return {"status": "ok", "service": "securein-pass-svc"}

Instrumentator().instrument(app).expose(app)
