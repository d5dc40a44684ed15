"""
Dev Tracker Backend
Projects, tasks, comments, team invitations, team chat and digest jobs.
"""
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(dotenv_path=Path(__file__).resolve().parent / ".env", override=False)

import os

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from starlette.exceptions import HTTPException as StarletteHTTPException

from database import AUTO_CREATE, check_db_health, get_session, init_db
from exceptions import DevTrackerError
from observability.logging import get_logger
from observability.metrics import metrics_registry
from observability.middleware import ObservabilityMiddleware
from observability.sentry_config import capture_exception, init_sentry
from routes.auth import router as auth_router
from routes.chat import router as chat_router
from routes.comments import router as comments_router
from routes.cron import router as cron_router
from routes.notifications import router as notifications_router
from routes.projects import router as projects_router
from routes.stats import router as stats_router
from routes.tasks import router as tasks_router
from routes.team import router as team_router
from routes.users import router as users_router

logger = get_logger(__name__)

VERSION = "0.1.0"

app = FastAPI(
    title="Dev Tracker Backend",
    description="Project and task tracking with team chat and email digests",
    version=VERSION,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ObservabilityMiddleware)

app.include_router(auth_router)
app.include_router(projects_router)
app.include_router(tasks_router)
app.include_router(comments_router)
app.include_router(team_router)
app.include_router(chat_router)
app.include_router(notifications_router)
app.include_router(stats_router)
app.include_router(users_router)
app.include_router(cron_router)


# ============== ERROR HANDLERS ==============

@app.exception_handler(DevTrackerError)
async def dev_tracker_error_handler(request: Request, exc: DevTrackerError):
    if exc.status_code >= 500:
        logger.error(f"[{request.method} {request.url.path}] {exc.message}", extra={"detail": exc.detail})
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=400,
        content={
            "error": f"{field}: {message}" if field else message,
            "detail": jsonable_encoder(errors, custom_encoder={Exception: str}),
        },
    )


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"[DB] {request.method} {request.url.path}: {exc}", exc_info=exc)
    capture_exception(exc, path=request.url.path)
    return JSONResponse(status_code=500, content={"error": "Database error"})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler for unhandled errors.

    Logs the full traceback under an error id and returns a safe message.
    """
    error_id = f"ERR-{datetime.utcnow().strftime('%Y%m%d%H%M%S')}-{id(exc)}"
    logger.error(
        f"[ERROR {error_id}] Unhandled exception",
        extra={"path": request.url.path, "method": request.method, "error_type": type(exc).__name__},
        exc_info=exc,
    )
    capture_exception(exc, error_id=error_id)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "error_id": error_id,
            "message": "An unexpected error occurred. Please try again.",
        },
    )


# ============== HEALTH / METRICS ==============

@app.get("/health")
async def health_check():
    return {"status": "healthy", "version": VERSION}


@app.get("/health/ready")
async def readiness_check(session: AsyncSession = Depends(get_session)):
    """
    Readiness check - verifies the database is reachable.

    Returns 503 if any dependency is unavailable.
    """
    checks = {}
    try:
        await session.exec(select(1))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {str(e)[:100]}"

    all_ok = all(v == "ok" for v in checks.values())
    return JSONResponse(
        status_code=200 if all_ok else 503,
        content={
            "status": "ready" if all_ok else "degraded",
            "checks": checks,
            "pool": await check_db_health(),
            "timestamp": datetime.utcnow().isoformat(),
        },
    )


@app.get("/metrics")
async def metrics():
    return Response(content=generate_latest(metrics_registry), media_type=CONTENT_TYPE_LATEST)


@app.on_event("startup")
async def startup_event():
    logger.info(f"Dev Tracker backend starting (environment: {os.getenv('ENVIRONMENT', 'development')})")
    init_sentry()
    if AUTO_CREATE:
        await init_db()


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Dev Tracker backend shutting down")
