"""FastAPI application factory and entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..core.config import get_settings
from ..core.exceptions import (
    AgentMemoryError,
    CategoryNotFoundError,
    ConfigurationError,
    SchemaValidationError,
    ServiceAlreadyExistsError,
    SessionNotFoundError,
    TenantNotFoundError,
    ValidationError,
)
from ..core.validation import FieldError
from ..memory.orchestrator import MemoryOrchestrator
from ..utils.logging_config import configure_logging
from .middleware import RequestLoggingMiddleware
from .routes import router
from .schemas import ApiResponse

logger = structlog.get_logger()

# Most specific first; the first isinstance match wins.
_STATUS_BY_ERROR: tuple[tuple[type[AgentMemoryError], int], ...] = (
    (SchemaValidationError, 400),
    (ValidationError, 400),
    (ConfigurationError, 400),
    (TenantNotFoundError, 404),
    (SessionNotFoundError, 404),
    (CategoryNotFoundError, 404),
    (ServiceAlreadyExistsError, 409),
)


def _envelope(status_code: int, error: str, errors: list[FieldError] | None = None) -> JSONResponse:
    body = ApiResponse(success=False, error=error, errors=errors)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", exclude_none=True))


def _request_field_errors(exc: RequestValidationError) -> list[FieldError]:
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        errors.append(FieldError(field=".".join(loc) or "body", message=err.get("msg", "invalid")))
    return errors


def _make_lifespan(orchestrator: MemoryOrchestrator | None):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator:
        """Application lifespan handler."""
        settings = get_settings()
        configure_logging(settings.logging.level, settings.logging.json_output)

        app.state.orchestrator = orchestrator or MemoryOrchestrator.create(settings)
        await app.state.orchestrator.start()
        logger.info(
            "app_started",
            dispatcher=settings.extraction.dispatcher.value,
            conflict_strategy=settings.extraction.conflict_strategy.value,
        )

        yield

        await app.state.orchestrator.close()

    return lifespan


def create_app(orchestrator: MemoryOrchestrator | None = None) -> FastAPI:
    """Create FastAPI application. Pass ``orchestrator`` to skip building one from settings."""
    app = FastAPI(
        title="Agent Memory Service",
        description="Short-term transcripts and LLM-consolidated long-term memory for agents",
        version="0.1.0",
        lifespan=_make_lifespan(orchestrator),
    )

    @app.exception_handler(AgentMemoryError)
    async def agent_memory_error_handler(_request: Request, exc: AgentMemoryError) -> JSONResponse:
        for error_type, status_code in _STATUS_BY_ERROR:
            if isinstance(exc, error_type):
                if isinstance(exc, SchemaValidationError):
                    return _envelope(status_code, str(exc), exc.errors)
                return _envelope(status_code, str(exc))
        return await unhandled_error_handler(_request, exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return _envelope(400, "Missing or invalid request fields", _request_field_errors(exc))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("request_unhandled_error", path=request.url.path, error=str(exc), exc_info=exc)
        detail = str(exc) if get_settings().debug else "Internal server error"
        return _envelope(500, detail)

    settings = get_settings()
    if settings.cors_origins is not None:
        origins = settings.cors_origins
    elif settings.debug:
        origins = ["*"]
    else:
        origins = ["http://localhost:3000", "http://localhost:8080"]

    # Credentials are incompatible with wildcard origins
    allow_credentials = "*" not in origins

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(router, prefix="/api/v1")

    # Prometheus metrics endpoint
    from prometheus_client import make_asgi_app

    metrics_app = make_asgi_app()
    app.mount("/metrics", metrics_app)

    return app


app = create_app()
