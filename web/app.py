"""
FastAPI application exposing the marketplace entry points over HTTP.

Routes:
- GET  /health
- POST /init/{function}
- POST /query/{function}
- POST /invoke/{function}

Request body: {"args": ["...", ...]}
Response body: {"function": "...", "result": "<string>" | null}

Production deployment configuration via environment variables.
"""

import logging
import os
from typing import List, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from core.errors import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    MarketplaceError,
    NotFoundError,
    SerializationError,
    StorageError,
    UnauthenticatedError,
)
from core.marketplace.dispatch import Dispatcher, get_dispatcher
from core.marketplace.identity import CallerContext
from utils.config import Config
from web.caller_auth import caller_context_from_request


logger = logging.getLogger(__name__)

# =============================================================================
# Environment Configuration
# =============================================================================

IS_PRODUCTION = os.getenv("PRODUCTION", "").lower() == "true"

ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "").split(",") if os.getenv("ALLOWED_ORIGINS") else []
if not ALLOWED_ORIGINS and not IS_PRODUCTION:
    ALLOWED_ORIGINS = ["http://localhost:8000", "http://127.0.0.1:8000"]

# Most specific first
ERROR_STATUS: List[tuple] = [
    (ConflictError, 409),
    (StorageError, 500),
    (InvalidInputError, 400),
    (SerializationError, 400),
    (UnauthenticatedError, 401),
    (ForbiddenError, 403),
    (NotFoundError, 404),
]


def status_for(error: MarketplaceError) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(error, error_type):
            return status
    return 500


# =============================================================================
# Request / Response Models
# =============================================================================


class InvocationRequest(BaseModel):
    """Positional string arguments for a named operation."""

    args: List[str] = Field(default_factory=list)


class InvocationResponse(BaseModel):
    function: str
    result: Optional[str] = None


def _response(function: str, result: Optional[bytes]) -> InvocationResponse:
    return InvocationResponse(
        function=function,
        result=result.decode("utf-8") if result is not None else None,
    )


# =============================================================================
# Application
# =============================================================================


def create_app(dispatcher: Optional[Dispatcher] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        dispatcher: Dispatcher to serve; defaults to the shared one built
            from environment configuration on first request
    """
    app = FastAPI(
        title="Property Marketplace Ledger",
        description="Mortgage, appraisal and sales-contract workflow over a versioned ledger",
        version="0.1.0",
        docs_url=None if IS_PRODUCTION else "/docs",
        redoc_url=None if IS_PRODUCTION else "/redoc",
        openapi_url=None if IS_PRODUCTION else "/openapi.json",
    )
    app.state.dispatcher = dispatcher

    @app.get("/health", include_in_schema=False)
    def health():
        """Health endpoint. No dependencies, no IO."""
        return {"status": "healthy"}

    if ALLOWED_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=ALLOWED_ORIGINS,
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )

    @app.exception_handler(MarketplaceError)
    async def marketplace_error_handler(request: Request, exc: MarketplaceError):
        status = status_for(exc)
        if status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status,
            content={"error": exc.code, "detail": str(exc)},
        )

    def get_app_dispatcher(request: Request) -> Dispatcher:
        if request.app.state.dispatcher is None:
            config = Config.load()
            request.app.state.dispatcher = get_dispatcher(
                persist_path=config.ledger_path or None,
                max_retries=config.max_commit_retries,
            )
        return request.app.state.dispatcher

    def get_caller_context(request: Request) -> CallerContext:
        return caller_context_from_request(request)

    @app.post("/init/{function}", response_model=InvocationResponse)
    def init(
        function: str,
        body: InvocationRequest,
        dispatcher: Dispatcher = Depends(get_app_dispatcher),
    ):
        """Initialisation entry point (Setup)."""
        return _response(function, dispatcher.init(function, body.args))

    @app.post("/query/{function}", response_model=InvocationResponse)
    def query(
        function: str,
        body: InvocationRequest,
        dispatcher: Dispatcher = Depends(get_app_dispatcher),
        context: CallerContext = Depends(get_caller_context),
    ):
        """Read-only operations."""
        return _response(function, dispatcher.query(context, function, body.args))

    @app.post("/invoke/{function}", response_model=InvocationResponse)
    def invoke(
        function: str,
        body: InvocationRequest,
        dispatcher: Dispatcher = Depends(get_app_dispatcher),
        context: CallerContext = Depends(get_caller_context),
    ):
        """Mutating operations."""
        return _response(function, dispatcher.invoke(context, function, body.args))

    return app


app = create_app()
