"""FastAPI application factory for the serverless functions.

Hosts ``detect-grips`` and ``get-secrets`` under ``/functions/v1`` plus the
health routes.

Usage: uvicorn boulderflow.functions.app:create_app --factory --reload
"""

from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from boulderflow.config import Settings, get_settings, get_settings_override
from boulderflow.functions.detect_grips import router as detect_grips_router
from boulderflow.functions.get_secrets import router as get_secrets_router
from boulderflow.functions.health import router as health_router
from boulderflow.functions.shared import FunctionError
from boulderflow.logging_config import configure_logging, get_logger

logger = get_logger(__name__)

# Paths that bypass API key authentication
_HEALTH_PATHS = {"/health"}

# Headers the client SDK sends with function calls
_ALLOWED_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info(
        "Functions service starting",
        extra={
            "app_name": app.state.settings.app_name,
            "version": app.state.settings.app_version,
            "detection_enabled": bool(app.state.settings.detection_weights_path),
        },
    )
    yield
    logger.info("Functions service shutting down")


def create_app(config_override: dict[str, Any] | None = None) -> FastAPI:
    """Create and configure the functions application.

    Args:
        config_override: Optional settings overrides, used by tests.

    Returns:
        Configured FastAPI application.

    Example:
        >>> app = create_app({"testing": True, "functions_api_key": ""})
    """
    if config_override:
        settings = get_settings_override(config_override)
    else:
        settings = get_settings()

    configure_logging(settings.log_level, json_output=not settings.debug)

    app = FastAPI(
        title=f"{settings.app_name} Functions",
        version=settings.app_version,
        description="Hold detection and configuration secrets for the client",
        docs_url="/docs" if settings.debug or settings.testing else None,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.debug or settings.testing else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    _configure_middleware(app, settings)
    _register_handlers(app)
    _register_routes(app)

    return app


def _configure_middleware(app: FastAPI, settings: Settings) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=_ALLOWED_HEADERS,
    )

    @app.middleware("http")
    async def add_request_id(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Propagate or assign an X-Request-ID for tracing."""
        request_id = request.headers.get("X-Request-ID", str(uuid4()))
        request.state.request_id = request_id

        response: Response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.middleware("http")
    async def api_key_auth(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Require the API key on non-health endpoints.

        Open mode when ``functions_api_key`` is empty. The key may come in
        ``X-API-Key`` or in the ``apikey`` header the client SDK sends.
        """
        path = request.url.path
        is_health = any(path == p or path.startswith(p + "/") for p in _HEALTH_PATHS)
        needs_key = not is_health and request.method != "OPTIONS"
        if settings.functions_api_key and needs_key:
            provided_key = request.headers.get("X-API-Key") or request.headers.get(
                "apikey", ""
            )
            if provided_key != settings.functions_api_key:
                return JSONResponse(
                    status_code=401,
                    content={"error": "Invalid or missing API key"},
                )
        return await call_next(request)


def _register_handlers(app: FastAPI) -> None:
    @app.exception_handler(FunctionError)
    async def function_error_handler(
        request: Request, exc: FunctionError
    ) -> JSONResponse:
        logger.warning(
            "Function request rejected: %s",
            exc.message,
            extra={"path": request.url.path},
        )
        return JSONResponse(status_code=400, content={"error": exc.message})


def _register_routes(app: FastAPI) -> None:
    app.include_router(health_router)
    app.include_router(detect_grips_router)
    app.include_router(get_secrets_router)
