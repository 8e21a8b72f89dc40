# backend/app/main.py
from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.routing import APIRoute

from .core.config import assert_env, settings
from .core.constants import API_DESCRIPTION, API_TITLE, API_VERSION, BRAND_NAME
from .core.request_context import attach_request_id_filter
from .errors import register_error_handlers
from .middleware.performance import PerformanceMiddleware
from .middleware.prometheus_middleware import PrometheusMiddleware
from .monitoring.prometheus_metrics import prometheus_metrics
from .routes.v1 import availability as availability_v1, bookings as bookings_v1
from .schemas.main_responses import HealthResponse

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s",
)
attach_request_id_filter()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown without deprecated events."""
    logger.info(f"{BRAND_NAME} API starting up...")
    logger.info(f"Environment: {settings.environment}")
    assert_env(settings)

    if settings.google_calendar_configured:
        logger.info("Google Calendar sync enabled for calendar %s", settings.google_calendar_id)
    else:
        logger.info("Google Calendar sync disabled; accepted bookings stay 'accepted'")
    if not settings.redis_url:
        logger.warning("REDIS_URL not set; scheduling locks are process-local")

    yield

    logger.info(f"{BRAND_NAME} API shutting down...")


def _unique_operation_id(route: APIRoute) -> str:
    methods = "_".join(sorted(m.lower() for m in route.methods or []))
    path = route.path_format.replace("/", "_").replace("{", "").replace("}", "").strip("_")
    name = (route.name or "operation").lower().replace(" ", "_")
    return f"{methods}__{path}__{name}".strip("_")


app = FastAPI(
    title=API_TITLE,
    description=API_DESCRIPTION,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
    generate_unique_id_function=_unique_operation_id,
)

# Register unified error envelope handlers
register_error_handlers(app)

assert "*" not in settings.allowed_origins, "CORS allow_origins cannot include * when allow_credentials=True"
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "HEAD", "OPTIONS", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["*"],
)
app.add_middleware(PrometheusMiddleware)
# Added last so it runs first and every later layer sees request.state.request_id
app.add_middleware(PerformanceMiddleware)

# API v1 - availability before bookings so /availability and /tutors win over /{booking_id}
api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(availability_v1.router, prefix="/bookings")
api_v1.include_router(bookings_v1.router, prefix="/bookings")
app.include_router(api_v1)


def _health_payload() -> HealthResponse:
    return HealthResponse(
        status="healthy",
        service=f"{BRAND_NAME.lower()}-api",
        version=API_VERSION,
        environment=settings.environment,
        timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    )


@app.get("/health", response_model=HealthResponse)
def health_check(response: Response) -> HealthResponse:
    response.headers["Cache-Control"] = "no-store"
    return _health_payload()


@app.get("/metrics", include_in_schema=False)
def metrics_endpoint() -> Response:
    """Prometheus scrape endpoint."""
    return Response(content=prometheus_metrics.get_metrics(), media_type=prometheus_metrics.get_content_type())
