from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request, Response
from sqlalchemy import text
from sqlalchemy.orm import Session

import jobworth.models  # noqa: F401 - register tables on Base.metadata
from jobworth.core.config import settings
from jobworth.core.errors import PersistenceError
from jobworth.core.logging import configure_logging, correlation_context, get_logger
from jobworth.core.metrics import get_counters, get_metrics, set_metrics_enabled
from jobworth.db.database import Base, SessionLocal, engine, get_db
from jobworth.dependencies import get_histogram_store
from jobworth.routers.admin import router as admin_router
from jobworth.routers.exceptions import register_exception_handlers
from jobworth.routers.job_worth import router as job_worth_router
from jobworth.routers.stats import router as stats_router
from jobworth.stats.authoritative import AuthoritativeStore


configure_logging(environment=settings.environment)
set_metrics_enabled(settings.metrics_enabled)
logger = get_logger("jobworth.main", component="app")

_app_start_time = datetime.now(timezone.utc)


def _rebuild_histogram_on_startup() -> None:
    histogram = get_histogram_store()
    with SessionLocal() as db:
        try:
            scores = AuthoritativeStore(db).iter_scores()
        except PersistenceError:
            logger.warning("startup_histogram_rebuild_skipped")
            return
    folded = histogram.rebuild(scores)
    logger.info("startup_histogram_rebuilt", extra={"structured_data": {"folded": folded}})


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: optional DDL (development only; production uses Alembic) and histogram warm-up."""
    if settings.run_startup_ddl:
        logger.info("startup_execute_ddl", extra={"structured_data": {"run_startup_ddl": True}})
        Base.metadata.create_all(bind=engine)
    if settings.histogram_rebuild_on_startup:
        _rebuild_histogram_on_startup()
    logger.info(
        "startup_complete",
        extra={
            "structured_data": {
                "histogram_backend": settings.histogram_backend,
                "submit_rank_backend": settings.submit_rank_backend,
                "lookup_rank_backend": settings.lookup_rank_backend,
            }
        },
    )
    yield


app = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)
register_exception_handlers(app)

app.include_router(job_worth_router)
app.include_router(stats_router)
app.include_router(admin_router)


@app.middleware("http")
async def bind_correlation_id(request: Request, call_next):
    with correlation_context(request.headers.get("x-request-id")) as correlation_id:
        response = await call_next(request)
        response.headers["X-Request-ID"] = correlation_id
        return response


@app.get("/health")
def health(db: Session = Depends(get_db)):
    """Uptime, database connectivity and a metrics summary for load balancers."""
    now = datetime.now(timezone.utc)
    try:
        db.execute(text("SELECT 1"))
        db_status = "connected"
        overall_status = "healthy"
    except Exception as exc:
        logger.error("health_check_db_failed", extra={"structured_data": {"error": str(exc)}})
        db_status = "disconnected"
        overall_status = "unhealthy"
    counters = get_counters()
    return {
        "status": overall_status,
        "started_at": _app_start_time.isoformat(),
        "uptime_seconds": round((now - _app_start_time).total_seconds(), 2),
        "environment": settings.environment,
        "database": {
            "status": db_status,
            "engine": engine.dialect.name,
        },
        "histogram_backend": settings.histogram_backend,
        "metrics_summary": {
            "tracked_operations": len(get_metrics()),
            "tracked_counters": len(counters),
            "submissions_accepted": int(counters.get("submission.accepted", 0)),
        },
    }


@app.get("/", include_in_schema=False)
def root():
    return {
        "name": settings.app_name,
        "status": "ok",
        "docs": "/docs",
        "health": "/health",
    }


@app.get("/favicon.ico", include_in_schema=False)
def favicon():
    return Response(status_code=204)
