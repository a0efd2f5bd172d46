"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from uniquote import __version__
from uniquote.config import Settings, get_settings
from uniquote.engine.quote_engine import QuoteEngine
from uniquote.errors import ErrorKind, InvalidRequestError, QuoteEngineError
from uniquote.factory import create_quote_engine, create_security_validator
from uniquote.security.validator import SecurityValidator

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ErrorKind.INVALID_REQUEST: 400,
    ErrorKind.SECURITY_BLOCKED: 403,
    ErrorKind.QUOTE_EXPIRED: 410,
    ErrorKind.RATE_LIMIT_EXCEEDED: 429,
    ErrorKind.TIMEOUT: 504,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    app.state.engine.start(app.state.settings.cache_sweep_interval)
    yield
    # Shutdown
    await app.state.engine.close()


async def quote_engine_error_handler(request: Request, exc: QuoteEngineError) -> JSONResponse:
    return JSONResponse(
        status_code=ERROR_STATUS.get(exc.kind, 502),
        content={"error": exc.to_dict()},
    )


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": [str(part) for part in error.get("loc", ())], "msg": error.get("msg", "")}
        for error in exc.errors()
    ]
    error = InvalidRequestError("Malformed request body", details={"errors": errors})
    return JSONResponse(status_code=400, content={"error": error.to_dict()})


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[QuoteEngine] = None,
    validator: Optional[SecurityValidator] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()
    if validator is None and engine is not None:
        validator = engine.validator
    if validator is None:
        validator = create_security_validator(settings)
    if engine is None:
        engine = create_quote_engine(settings, validator=validator)

    app = FastAPI(
        title="Unified Quote Engine API",
        description="Best-execution quotes for DEX swaps and cross-chain bridges",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.validator = validator

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(QuoteEngineError, quote_engine_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)

    # Register routes
    from uniquote.api.routes import health
    from uniquote.web.controllers import quotes_router, security_router

    app.include_router(health.router, tags=["Health"])
    app.include_router(quotes_router, prefix="/api/v1")
    app.include_router(security_router, prefix="/api/v1")

    return app
