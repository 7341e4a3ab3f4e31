"""
leadflow FastAPI application: CRM routes, the MCUBE webhook and health checks.

Run with: uvicorn leadflow.main:app
"""
import logging
import time
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from leadflow.api.router import api_router
from leadflow.config import Settings, get_settings
from leadflow.database import dispose_engine
from leadflow.errors import LifecycleError
from leadflow.utils.logging import (
    configure_structured_logging,
    generate_correlation_id,
    set_correlation_id,
)

logger = logging.getLogger("leadflow")

CORRELATION_HEADER = "X-Correlation-ID"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Tags the request context and the response with a correlation id."""

    async def dispatch(self, request: Request, call_next) -> Response:
        cid = request.headers.get(CORRELATION_HEADER) or generate_correlation_id()
        set_correlation_id(cid)
        started = time.perf_counter()
        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = cid
        logger.debug(
            "%s %s %d (%.1f ms)",
            request.method, request.url.path, response.status_code,
            (time.perf_counter() - started) * 1000,
        )
        return response


async def lifecycle_error_handler(request: Request, exc: LifecycleError) -> JSONResponse:
    """Every engine failure becomes {"detail", "error_code"} with its HTTP status."""
    level = logging.WARNING if exc.status_code >= 409 else logging.INFO
    logger.log(
        level,
        "%s %s → %d %s: %s",
        request.method, request.url.path, exc.status_code, exc.error_code, exc.detail,
        extra={"error_code": exc.error_code},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error_code": exc.error_code},
    )


def _warn_on_missing_secrets(settings: Settings) -> None:
    if not settings.jwt_secret:
        logger.warning(
            "JWT_SECRET not set - verifying tokens with APP_SECRET_KEY. "
            "Configure the identity service's signing secret in production."
        )
    if not settings.mcube_token:
        logger.warning("MCUBE_TOKEN not set - click-to-call requests will return 502.")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info("leadflow starting (env=%s)", settings.app_env)
    _warn_on_missing_secrets(settings)

    # Follow-up tasks are rows only; the reminder service polls them.
    yield

    await dispose_engine()
    logger.info("leadflow stopped")


def create_app() -> FastAPI:
    settings = get_settings()
    configure_structured_logging(settings.log_level)

    application = FastAPI(
        title="leadflow",
        description="Sales-pipeline CRM - lead lifecycle orchestration",
        version="1.0.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=[*settings.cors_origins, settings.app_base_url],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", CORRELATION_HEADER, "Accept", "Origin"],
        expose_headers=[CORRELATION_HEADER],
    )
    # Added last so it wraps CORS and sees every request
    application.add_middleware(CorrelationIdMiddleware)

    application.add_exception_handler(LifecycleError, lifecycle_error_handler)
    application.include_router(api_router)
    return application


app = create_app()
