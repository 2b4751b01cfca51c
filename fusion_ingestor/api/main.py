"""FastAPI application for Fusion_Ingestor service."""

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..exceptions import (
    AuthenticationError,
    ConnectorNotFoundError,
    FusionIngestorError,
    PermissionDeniedError,
    SignatureVerificationError,
    ValidationError,
)
from ..utils.config import ensure_runtime_configuration, get_settings
from ..utils.health_checks import register_all_health_checks
from ..utils.logging import setup_logger

logger = setup_logger(__name__, context={"service_name": "FastAPI"})


@asynccontextmanager
async def lifespan(app: FastAPI):  # type: ignore
    """Application lifespan context manager for startup/shutdown."""
    ensure_runtime_configuration(get_settings())
    register_all_health_checks()
    logger.info("Fusion_Ingestor API starting up...")
    yield
    logger.info("Fusion_Ingestor API shutting down...")


app = FastAPI(
    title="Fusion_Ingestor API",
    description="Integration ingestion, fusion scoring and learning-state service",
    version="0.1.0",
    lifespan=lifespan,
)


def _correlation_id(request: Request) -> str:
    return request.headers.get("x-correlation-id") or "-"


def _itemize(errors: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [
        {
            "loc": [str(part) for part in error.get("loc", ())],
            "msg": error.get("msg", ""),
            "type": error.get("type", "value_error"),
        }
        for error in errors
    ]


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies as 400 with one entry per problem."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid input", "errors": _itemize(list(exc.errors()))},
    )


@app.exception_handler(ValidationError)
async def validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": str(exc), "errors": _itemize(exc.errors)},
    )


@app.exception_handler(SignatureVerificationError)
async def signature_handler(request: Request, exc: SignatureVerificationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"error": "Invalid signature"},
    )


@app.exception_handler(AuthenticationError)
async def authentication_handler(request: Request, exc: AuthenticationError) -> JSONResponse:
    logger.warning(
        "Authentication failed: %s",
        exc,
        extra={"correlation_id": _correlation_id(request), "status": "unauthorized"},
    )
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"error": "Unauthorized"},
    )


@app.exception_handler(PermissionDeniedError)
async def permission_denied_handler(request: Request, exc: PermissionDeniedError) -> JSONResponse:
    logger.warning(
        "Permission denied: %s",
        exc,
        extra={"correlation_id": _correlation_id(request), "status": "forbidden"},
    )
    return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"error": "Forbidden"})


@app.exception_handler(ConnectorNotFoundError)
async def connector_not_found_handler(request: Request, exc: ConnectorNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"error": str(exc)})


@app.exception_handler(FusionIngestorError)
async def fusion_exception_handler(request: Request, exc: FusionIngestorError) -> JSONResponse:
    """Handle custom Fusion_Ingestor exceptions."""
    logger.error(
        "FusionIngestorError: %s",
        exc,
        extra={
            "correlation_id": _correlation_id(request),
            "status": "error",
        },
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": str(exc), "error_type": exc.__class__.__name__},
    )


from .routes import (  # noqa: E402
    engine,
    fusion,
    health,
    metrics,
    polling,
    reliability,
    system,
    webhooks,
)

app.include_router(health.router, tags=["health"])
app.include_router(metrics.router, tags=["monitoring"])
app.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
app.include_router(polling.router, prefix="/api/v1", tags=["polling"])
app.include_router(fusion.router, prefix="/api/v1", tags=["fusion"])
app.include_router(system.router, prefix="/api/v1", tags=["system"])
app.include_router(engine.router, prefix="/api/v1", tags=["engine"])
app.include_router(reliability.router, prefix="/api/v1", tags=["reliability"])
