"""FastAPI application factory"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dealer_contracts import __version__
from dealer_contracts.api.dependencies import ContractServices
from dealer_contracts.api.routes.contract import router as contract_router
from dealer_contracts.api.routes.signature import router as signature_router
from dealer_contracts.api.schemas import HealthResponse
from dealer_contracts.exceptions import (
    AlreadyCompletedError,
    ContractError,
    ExpiredError,
    NotFoundError,
    RenderError,
    StorageError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Most specific first; subclasses are matched before ContractError
ERROR_STATUS = {
    ValidationError: 422,
    NotFoundError: 404,
    ExpiredError: 410,
    AlreadyCompletedError: 409,
    StorageError: 502,
    RenderError: 500,
}


def status_for(exc: ContractError) -> int:
    for error_type, status in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return status
    return 500


async def contract_error_handler(request: Request, exc: ContractError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=status,
        content={"detail": str(exc), "error": type(exc).__name__},
    )


def create_app(services: Optional[ContractServices] = None) -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="Dealer Contracts API",
        description="Koopcontracten opstellen, laten ondertekenen en archiveren",
        version=__version__,
    )
    app.state.services = services or ContractServices.build()

    # Signing page is served from another origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ContractError, contract_error_handler)
    app.include_router(contract_router)
    app.include_router(signature_router)

    @app.get("/health", response_model=HealthResponse)
    async def health():
        """Health check endpoint"""
        try:
            db_status = app.state.services.archive.db.get_status()
            status = "ok" if db_status.get("status") == "connected" else "error"
            db_mode = db_status.get("mode", "unknown")
        except Exception as e:
            logger.warning(f"Health check failed: {e}")
            status, db_mode = "error", "unknown"
        return HealthResponse(status=status, db_mode=db_mode, version=__version__)

    return app
