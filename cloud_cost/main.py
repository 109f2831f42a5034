"""
FastAPI backend for Cloud Cost Manager
Main application entry point with middleware, routes, and startup configuration
"""

from contextlib import asynccontextmanager
import time
from typing import Any, Dict, Optional

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST, Counter, Histogram

from cloud_cost import __version__
from cloud_cost.api import health, reports
from cloud_cost.config.accounts import load_accounts_from_settings
from cloud_cost.config.settings import Settings, get_settings
from cloud_cost.services.report_service import ReportService
from cloud_cost.utils.errors import ErrorCode, create_error_response
from cloud_cost.utils.logging import setup_logging

logger = structlog.get_logger(__name__)

# Prometheus metrics
request_count = Counter('http_requests_total', 'Total HTTP requests', ['method', 'endpoint', 'status'])
request_duration = Histogram('http_request_duration_seconds', 'HTTP request duration')


def create_app(
    settings: Optional[Settings] = None,
    report_service: Optional[ReportService] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Settings to use (environment-derived by default)
        report_service: Pre-built report service; when omitted the lifespan
            loads the account configuration and wires the AWS pipeline
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager for startup and shutdown events"""
        setup_logging(settings.log_level, json_logs=settings.log_json or settings.is_production)
        logger.info(
            "cloud_cost_manager_starting",
            environment=settings.environment,
            bind_address=settings.bind_address,
        )

        for issue in settings.validate_configuration():
            logger.warning("configuration_issue", issue=issue)

        if getattr(app.state, "report_service", None) is None:
            # Invalid account configuration must stop startup, not yield empty reports
            accounts = load_accounts_from_settings(settings)
            app.state.report_service = ReportService.from_settings(settings, accounts)

        service = app.state.report_service
        logger.info(
            "cloud_cost_manager_started",
            accounts=len(service.accounts),
            auth_mode=service.authorizer.mode.value,
            cache_enabled=service.cache is not None,
        )

        yield

        logger.info("cloud_cost_manager_stopped")

    app = FastAPI(
        title="Cloud Cost Manager",
        description="Month-to-date AWS cost across multiple accounts",
        version=__version__,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.report_service = report_service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=False,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["content-type", "authorization", settings.auth_header],
    )

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        """Prometheus metrics collection middleware"""
        with request_duration.time():
            response = await call_next(request)

        request_count.labels(
            method=request.method,
            endpoint=request.url.path,
            status=response.status_code,
        ).inc()

        return response

    @app.middleware("http")
    async def logging_middleware(request: Request, call_next):
        """Request logging middleware"""
        started = time.perf_counter()
        response = await call_next(request)

        logger.info(
            "http_request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            client=request.client.host if request.client else None,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )

        return response

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler"""
        logger.error(
            "unhandled_exception",
            exc_info=exc,
            path=request.url.path,
            method=request.method,
        )

        if settings.is_production:
            return JSONResponse(
                status_code=500,
                content=create_error_response(ErrorCode.INTERNAL_ERROR),
            )
        return JSONResponse(
            status_code=500,
            content=create_error_response(
                ErrorCode.INTERNAL_ERROR,
                f"Internal server error: {exc}",
                {"type": exc.__class__.__name__},
            ),
        )

    app.include_router(health.router, prefix="/health", tags=["Health"])
    app.include_router(reports.router, prefix="/report", tags=["Reports"])

    @app.get("/metrics")
    async def metrics():
        """Prometheus metrics endpoint"""
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/")
    async def root() -> Dict[str, Any]:
        """Root endpoint with API information"""
        return {
            "message": "Cloud Cost Manager",
            "version": __version__,
            "report": "/report/aws",
            "health_check": "/health",
            "metrics": "/metrics",
        }

    return app


def run() -> None:
    """Console entry point: serve the API with uvicorn"""
    settings = get_settings()
    uvicorn.run(
        "cloud_cost.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
