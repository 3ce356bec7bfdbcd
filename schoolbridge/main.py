import logging
import time
from contextlib import asynccontextmanager

import structlog
from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from . import __version__
from .application.use_cases.cleanup import run_cleanup
from .config import settings
from .infrastructure.db import engine
from .infrastructure.metrics import (
    http_request_duration_seconds,
    http_requests_total,
    metrics_endpoint,
)
from .infrastructure.models import Base
from .infrastructure.rate_limit import limiter, storage_status
from .infrastructure.scheduler import shutdown_scheduler, start_scheduler
from .interfaces.http.responses import fail, ok, register_exception_handlers
from .interfaces.http.routers import assignments as assignments_router
from .interfaces.http.routers import auth as auth_router
from .interfaces.http.routers import classes as classes_router
from .interfaces.http.routers import invitations as invitations_router
from .interfaces.http.routers import schools as schools_router
from .interfaces.http.routers import students as students_router
from .interfaces.http.routers import teachers as teachers_router
from .interfaces.http.routers import users as users_router

# Structured logging
log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.make_filtering_bound_logger(log_level),
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting SchoolBridge API", version=__version__)
    Base.metadata.create_all(bind=engine)
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    logger.info("Database connection established")

    if settings.SCHEDULER_ENABLED:
        start_scheduler(run_cleanup)
    yield
    shutdown_scheduler()


app = FastAPI(title="SchoolBridge API", version=__version__, lifespan=lifespan)
app.state.limiter = limiter

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.middleware("http")
async def log_and_measure(request: Request, call_next):
    start_time = time.time()
    method = request.method
    path = request.url.path

    response = await call_next(request)

    if response.headers.get("content-type", "").startswith("application/json"):
        response.headers["content-type"] = "application/json; charset=utf-8"

    duration = time.time() - start_time
    route = request.scope.get("route")
    # label by route template so ids do not explode metric cardinality
    endpoint = getattr(route, "path", path)
    status_code = response.status_code
    http_requests_total.labels(method=method, endpoint=endpoint, status=status_code).inc()
    http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(duration)

    logger.info(
        "http_request",
        method=method,
        path=path,
        status_code=status_code,
        duration_ms=round(duration * 1000, 2)
    )

    return response


api = APIRouter(prefix="/api")


@api.get("/health")
def health():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("health_check_failed", error=str(e))
        return fail(503, "Database unavailable", {"code": "ServiceUnavailable"})
    return ok("SchoolBridge API is running", {"status": "ok", "rateLimitStore": storage_status()})


for module in (
    auth_router,
    invitations_router,
    classes_router,
    teachers_router,
    assignments_router,
    students_router,
    schools_router,
    users_router,
):
    api.include_router(module.router)

app.include_router(api)


@app.get("/metrics")
def metrics():
    """Prometheus metrics endpoint"""
    return metrics_endpoint()
