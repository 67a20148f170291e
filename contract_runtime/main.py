# ============================================================================
# Contract Runtime - FastAPI Application Entry Point
# ============================================================================
"""
FastAPI application factory for the contract runtime.

create_app() loads every specification and behavioral contract from the
configured specs directories, then builds an application with:
- CORS middleware
- System endpoints (/health, /_manifest, /_events)
- One generated route per supported specification endpoint, plus RPC
  trigger routes for resources with a state machine
- Exception handlers rendering every error as an ErrorResponse

Usage:
    Direct: python -m contract_runtime.main
    CLI:    contract-runtime --specs specs --port 3000
    Uvicorn: uvicorn contract_runtime.main:create_app --factory --port 3000
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api import register_routes, system_router
from .config import Settings
from .config import settings as default_settings
from .core.errors import ContractRuntimeError
from .core.runtime import ContractRuntime
from .models import ErrorResponse

logger = logging.getLogger("contract_runtime.main")

HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
}


def _error(status_code: int, error: ErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=error.model_dump(exclude_none=True))


def create_app(settings: Optional[Settings] = None, runtime: Optional[ContractRuntime] = None) -> FastAPI:
    """Build the application for the given settings (or an already built runtime)."""
    settings = settings or (runtime.settings if runtime else default_settings)
    if runtime is None:
        runtime = ContractRuntime.bootstrap(settings)

    # ========================================================================
    # APPLICATION INITIALIZATION
    # ========================================================================

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description=(
            "Contract-driven API runtime\n\n"
            "Serves REST endpoints generated from OpenAPI specifications and RPC "
            "trigger endpoints driven by state-machine contracts."
        ),
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.runtime = runtime

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["Location"],
    )

    # ========================================================================
    # ROUTES
    # ========================================================================

    app.include_router(system_router)
    routes = register_routes(app, runtime)
    logger.info(f"Serving {len(runtime.specifications)} APIs with {len(routes)} generated routes")

    # ========================================================================
    # APPLICATION EVENTS
    # ========================================================================

    @app.on_event("shutdown")
    async def shutdown_event():
        """Close every resource database."""
        runtime.close()

    # ========================================================================
    # ERROR HANDLERS
    # ========================================================================

    @app.exception_handler(ContractRuntimeError)
    async def contract_error_handler(request: Request, exc: ContractRuntimeError) -> JSONResponse:
        """Domain errors carry their own status code and error code."""
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path}: {exc.message}")
        return _error(exc.status_code, ErrorResponse(**exc.to_dict()))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Unknown paths and methods get the same error envelope."""
        error = ErrorResponse(
            code=HTTP_ERROR_CODES.get(exc.status_code, f"HTTP_{exc.status_code}"),
            message=str(exc.detail),
        )
        return _error(exc.status_code, error)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = [
            {"field": ".".join(str(p) for p in e.get("loc", ())[1:]) or "query", "message": e.get("msg")}
            for e in exc.errors()
        ]
        return _error(400, ErrorResponse(code="BAD_REQUEST", message="Invalid request parameters", details=details))

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Anything else is an unexpected server error."""
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        error = ErrorResponse(code="INTERNAL_ERROR", message="An unexpected error occurred")
        if settings.debug:
            error.message = str(exc)
        return _error(500, error)

    return app


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=default_settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(
        "contract_runtime.main:create_app",
        factory=True,
        host=default_settings.host,
        port=default_settings.port,
        log_level="info",
    )
