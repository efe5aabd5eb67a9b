import asyncio
import contextlib
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy import text

from app.db.base import SessionLocal, get_db
from app.core.config import settings
from app.core.logging import configure_logging
from app.routers import rules as rules_router
from app.routers import resolve as resolve_router
from app.services.lifecycle import run_prune_loop
from app.core.errors import (
    RoutingServiceError,
    routing_exception_handler,
    validation_exception_handler,
    unhandled_exception_handler,
)

configure_logging(settings.LOG_LEVEL, json_output=settings.APP_ENV != "development")
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    prune_task = None
    if settings.PRUNE_INTERVAL_SECONDS > 0:
        prune_task = asyncio.create_task(
            run_prune_loop(
                SessionLocal,
                settings.PRUNE_INTERVAL_SECONDS,
                run_immediately=settings.PRUNE_ON_STARTUP,
            )
        )
    yield
    if prune_task is not None:
        prune_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await prune_task
        logger.info("prune_loop_stopped")


app = FastAPI(
    title="Routing Rules API",
    description=(
        "**Domain routing rule store and resolver**\n\n"
        "Stores expiring rules keyed by (domain, subdomain, path, query policy) "
        "and resolves incoming requests to the most specific active rule.\n\n"
        "All error responses follow the `{code, message, details}` envelope."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Exception handlers (most specific first) ---
app.add_exception_handler(RoutingServiceError, routing_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# --- Routers ---
app.include_router(rules_router.router)
app.include_router(resolve_router.router)


@app.get("/health", tags=["health"], summary="Health check")
def health(db: Session = Depends(get_db)):
    """
    Returns `{"status": "ok", "db": "ok"}` when both the API and the database
    are reachable. Returns HTTP 503 if the DB is down.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except Exception:
        logger.warning("health_db_unreachable", exc_info=True)
        db_status = "unreachable"

    if db_status != "ok":
        return JSONResponse(
            status_code=503,
            content={"status": "error", "db": db_status},
        )
    return {"status": "ok", "db": "ok", "env": settings.APP_ENV}
