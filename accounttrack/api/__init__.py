"""
AccountTrack API Application Factory
"""

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .accounts import router as accounts_router
from .transactions import router as transactions_router
from .approvals import router as approvals_router
from .notifications import router as notifications_router
from ..errors import (
    AccountTrackError, ConflictError, InvalidStateError, NotFoundError,
    ResourceExhaustedError, StoreError, ValidationError,
)
from ..logging_config import get_logger


logger = get_logger("accounttrack.api")

# Most specific first; DuplicateRecordError falls under StoreError
ERROR_STATUS_CODES = [
    (NotFoundError, 404),
    (ConflictError, 409),
    (InvalidStateError, 409),
    (ValidationError, 400),
    (ResourceExhaustedError, 503),
    (StoreError, 500),
]


def status_code_for(error: AccountTrackError) -> int:
    for error_class, status_code in ERROR_STATUS_CODES:
        if isinstance(error, error_class):
            return status_code
    return 500


async def handle_accounttrack_error(request: Request, exc: AccountTrackError) -> JSONResponse:
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=status_code,
        content={
            "detail": exc.message,
            "error": type(exc).__name__,
            "resource": exc.resource,
        },
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="AccountTrack API",
        description="Maker-checker approvals for accounts and high-value transactions",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AccountTrackError, handle_accounttrack_error)

    # Include routers
    app.include_router(accounts_router, prefix="/accounts", tags=["Accounts"])
    app.include_router(transactions_router, prefix="/transactions", tags=["Transactions"])
    app.include_router(approvals_router, prefix="/approvals", tags=["Approvals"])
    app.include_router(notifications_router, prefix="/notifications", tags=["Notifications"])

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "accounttrack_api",
            "version": "1.0.0"
        }

    # Root endpoint
    @app.get("/")
    async def get_api_info():
        """Get API information"""
        return {
            "name": "AccountTrack API",
            "version": "1.0.0",
            "endpoints": {
                "docs": "/docs",
                "health": "/health",
                "accounts": "/accounts",
                "transactions": "/transactions",
                "approvals": "/approvals",
                "notifications": "/notifications",
            }
        }

    return app


def run_server(host: str = "0.0.0.0", port: int = 8090, debug: bool = False, log_level: str = "info"):
    """Run the FastAPI server"""
    uvicorn.run(
        "accounttrack.api:create_app",
        factory=True,
        host=host,
        port=port,
        reload=debug,
        log_level=log_level.lower()
    )
