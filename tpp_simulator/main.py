"""
Backbase TPP API Simulator

A curl-friendly FastAPI service for exercising UK Open Banking consent flows
against the SaltEdge Priora sandbox. There is no UI and no local state: every
endpoint discovers the provider's OIDC endpoints, signs the JWTs the sandbox
requires, makes one Open Banking call and reshapes the result.

Typical flow:
----------------------
1. POST /api/ais/consent (or /api/pis/consent) creates a consent and returns
   an authorization URL carrying a signed request object.
2. The PSU opens the URL and approves the consent at the sandbox bank.
3. GET /api/ais/consent/{consentId} shows the consent's new status.
"""
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from tpp_simulator import metrics
from tpp_simulator.api import accounts_router, ais_router, pis_router
from tpp_simulator.config import Settings, settings
from tpp_simulator.errors import SimulatorError
from tpp_simulator.logging import (
    clear_request_context,
    configure_logging,
    generate_request_id,
    get_logger,
    set_request_context,
)
from tpp_simulator.schemas import ErrorResponse, HealthResponse

# Configure structured logging
configure_logging(settings.log_level)
logger = get_logger(__name__)

UNTRACKED_PATHS = ("/health", "/api/health", "/metrics")


def _endpoint_directory(app_settings: Settings) -> dict:
    base = f"http://localhost:{app_settings.port}"
    endpoints = {
        "health": {
            "method": "GET",
            "path": "/health",
            "description": "Health check endpoint",
        },
        "createAISConsent": {
            "method": "POST",
            "path": "/api/ais/consent",
            "description": "Create AIS consent and get authorization URL",
            "example": f'curl -X POST {base}/api/ais/consent -H "Content-Type: application/json" -d "{{}}"',
        },
        "getAISConsent": {
            "method": "GET",
            "path": "/api/ais/consent/:consentId",
            "description": "Get AIS consent details by ID",
            "example": f'curl "{base}/api/ais/consent/CONSENT_ID"',
        },
        "revokeAISConsent": {
            "method": "DELETE",
            "path": "/api/ais/consent/:consentId",
            "description": "Revoke AIS consent by ID",
            "example": f'curl -X DELETE "{base}/api/ais/consent/CONSENT_ID"',
        },
        "createPISConsent": {
            "method": "POST",
            "path": "/api/pis/consent",
            "description": "Create PIS consent and get authorization URL",
            "example": f'curl -X POST {base}/api/pis/consent -H "Content-Type: application/json" -d "{{}}"',
        },
        "getPISConsent": {
            "method": "GET",
            "path": "/api/pis/consent/:consentId",
            "description": "Get PIS consent details by ID",
            "example": f'curl "{base}/api/pis/consent/CONSENT_ID?paymentProduct=domestic-payment-consents"',
        },
    }

    if app_settings.enable_account_routes:
        endpoints.update({
            "exchangeToken": {
                "method": "POST",
                "path": "/api/ais/token",
                "description": "Exchange authorization code for access token",
                "example": f'curl -X POST {base}/api/ais/token -H "Content-Type: application/json" -d \'{{"code":"YOUR_AUTH_CODE"}}\'',
            },
            "getAccounts": {
                "method": "GET",
                "path": "/api/ais/accounts",
                "description": "Fetch all accounts",
                "example": f'curl "{base}/api/ais/accounts?accessToken=Bearer%20YOUR_TOKEN"',
            },
            "getTransactions": {
                "method": "GET",
                "path": "/api/ais/accounts/:accountId/transactions",
                "description": "Fetch transactions for an account",
            },
            "getBalances": {
                "method": "GET",
                "path": "/api/ais/accounts/:accountId/balances",
                "description": "Fetch balances for an account",
            },
            "getStandingOrders": {
                "method": "GET",
                "path": "/api/ais/accounts/:accountId/standing-orders",
                "description": "Fetch standing orders for an account",
            },
            "refreshAccounts": {
                "method": "POST",
                "path": "/api/ais/accounts/refresh",
                "description": "Trigger account data refresh",
            },
            "getRefreshStatus": {
                "method": "GET",
                "path": "/api/ais/accounts/refresh/status",
                "description": "Check refresh status",
            },
        })

    return {
        "name": "BB TPP API Simulator",
        "description": "curl-friendly API simulator for UK Open Banking testing with SaltEdge",
        "version": app_settings.service_version,
        "endpoints": endpoints,
        "documentation": "See README.md for detailed examples and workflow",
    }


def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        app_settings: Settings to run with (defaults to the environment)
    """
    app_settings = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        logger.info(
            "service_starting",
            service_name=app_settings.service_name,
            sandbox_base_url=app_settings.base_url,
            provider_code=app_settings.ob_provider_code,
            redirect_uri=app_settings.redirect_uri,
            account_routes=app_settings.enable_account_routes,
        )
        if not app_settings.ob_software_id:
            logger.warning("client_id_not_configured", env_var="OB_SOFTWARE_ID")

        yield

        logger.info("service_stopping", service_name=app_settings.service_name)

    app = FastAPI(
        title="BB TPP API Simulator",
        description="curl-friendly UK Open Banking TPP simulator for the SaltEdge Priora sandbox",
        version=app_settings.service_version,
        lifespan=lifespan,
    )
    app.state.settings = app_settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        """
        Middleware for request tracing, logging, and metrics.

        Sets up request context with:
        - request_id: Unique identifier for tracing
        - Timing for duration_ms calculation
        - Prometheus metrics collection
        """
        method = request.method
        path = request.url.path

        # Skip logging/metrics for health and metrics endpoints
        if path in UNTRACKED_PATHS:
            return await call_next(request)

        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        set_request_context(request_id)
        request.state.request_id = request_id

        start_time = time.perf_counter()

        logger.info("request_received", method=method, path=path)

        try:
            response = await call_next(request)

            duration_seconds = time.perf_counter() - start_time

            logger.info(
                "request_completed",
                method=method,
                path=path,
                status_code=response.status_code,
                duration_ms=round(duration_seconds * 1000, 2),
            )
            metrics.record_http_request(method, path, response.status_code, duration_seconds)

            response.headers["X-Request-ID"] = request_id
            return response

        except Exception as e:
            duration_seconds = time.perf_counter() - start_time

            logger.error(
                "request_failed",
                method=method,
                path=path,
                duration_ms=round(duration_seconds * 1000, 2),
                error=str(e),
            )
            metrics.record_http_request(method, path, 500, duration_seconds)

            raise

        finally:
            clear_request_context()

    @app.exception_handler(SimulatorError)
    async def simulator_error_handler(request: Request, exc: SimulatorError):
        """Convert any simulator error into the uniform error body."""
        logger.error(
            "simulator_error",
            error_type=type(exc).__name__,
            status_code=exc.status_code,
            error=exc.message,
        )
        body = ErrorResponse(error=exc.message, details=exc.details)
        return JSONResponse(status_code=exc.status_code, content=body.model_dump())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """Malformed JSON and schema violations share the uniform error body."""
        logger.warning("request_validation_failed", error_count=len(exc.errors()))
        body = ErrorResponse(error="Invalid request", details=jsonable_encoder(exc.errors()))
        return JSONResponse(status_code=400, content=body.model_dump())

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return JSONResponse(
                status_code=404,
                content={
                    "error": "Not found",
                    "message": f"Endpoint {request.method} {request.url.path} does not exist",
                    "availableEndpoints": "Visit / for API documentation",
                },
            )
        body = ErrorResponse(error=str(exc.detail))
        return JSONResponse(status_code=exc.status_code, content=body.model_dump())

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("unhandled_error", error=str(exc))
        body = ErrorResponse(error=str(exc) or "Internal server error")
        return JSONResponse(status_code=500, content=body.model_dump())

    app.include_router(ais_router)
    app.include_router(pis_router)
    if app_settings.enable_account_routes:
        app.include_router(accounts_router)

    @app.get("/health", response_model=HealthResponse)
    @app.get("/api/health", response_model=HealthResponse, include_in_schema=False)
    async def health_check():
        """Health check endpoint for container orchestration."""
        return HealthResponse(
            status="ok",
            timestamp=datetime.now(timezone.utc).isoformat(),
            version=app_settings.service_version,
            service=app_settings.service_name,
        )

    @app.get("/")
    async def endpoint_directory():
        """Static directory of the available endpoints."""
        return _endpoint_directory(app_settings)

    @app.get("/metrics")
    async def prometheus_metrics():
        """Prometheus metrics endpoint."""
        return Response(
            content=generate_latest(),
            media_type=CONTENT_TYPE_LATEST
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
