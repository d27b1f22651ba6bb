"""
FinPay API Application Factory
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from .users import router as users_router
from .payments import router as payments_router
from .. import __version__
from ..config import FinPayConfig, get_config
from ..errors import (
    LedgerError, MissingFields, DuplicateAccount, InvalidCredentials,
    InvalidToken, SelfTransfer, InvalidAmount, RecipientNotFound,
    InsufficientFunds, AccountNotFound
)
from ..ledger import LedgerService, build_ledger_service
from ..logging_config import setup_logging, get_logger, log_action


logger = get_logger("finpay.api")


ERROR_STATUS = {
    MissingFields: 400,
    DuplicateAccount: 400,
    SelfTransfer: 400,
    InvalidAmount: 400,
    InsufficientFunds: 400,
    InvalidCredentials: 401,
    InvalidToken: 401,
    RecipientNotFound: 404,
    AccountNotFound: 404,
}


def status_for(error: LedgerError) -> int:
    for error_type, status_code in ERROR_STATUS.items():
        if isinstance(error, error_type):
            return status_code
    return 400


def create_app(ledger: Optional[LedgerService] = None,
               config: Optional[FinPayConfig] = None) -> FastAPI:
    """Create and configure the FastAPI application around one ledger"""
    config = config or get_config()
    setup_logging(config.log_level, config.log_format)
    
    app = FastAPI(
        title="FinPay API",
        description="Demo payments ledger: register, log in, send money",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.state.ledger = ledger or build_ledger_service(config)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    
    app.include_router(users_router, tags=["Users"])
    app.include_router(payments_router, tags=["Payments"])
    
    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        if isinstance(exc, AccountNotFound):
            # An authenticated caller with no account breaks the ledger invariants
            log_action(
                logger, "error", "Authenticated account missing from store",
                user_id=exc.username, action="anomaly", resource=request.url.path
            )
        return JSONResponse(
            status_code=status_for(exc),
            content={"error": exc.message, "code": exc.code}
        )
    
    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = "Invalid request body"
        if errors:
            location = ".".join(str(part) for part in errors[0].get("loc", ()) if part != "body")
            message = f"Invalid {location}: {errors[0].get('msg')}" if location else errors[0].get("msg", message)
        return JSONResponse(status_code=400, content={"error": message, "code": "invalid_request"})
    
    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404 and exc.detail == "Not Found":
            return JSONResponse(status_code=404, content={"error": "Route not found"})
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    
    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        log_action(
            logger, "error", f"Unhandled error: {exc}",
            action="unhandled_error", resource=request.url.path, exc_info=True
        )
        return JSONResponse(status_code=500, content={"error": "Internal server error"})
    
    @app.get("/health")
    async def health_check():
        """Liveness check"""
        return {"status": "OK", "timestamp": datetime.now(timezone.utc).isoformat()}

    @app.get("/")
    async def get_api_info():
        """Get API information"""
        return {
            "name": "FinPay API",
            "version": __version__,
            "endpoints": {
                "docs": "/docs",
                "health": "/health",
                "register": "/register",
                "login": "/login",
                "balance": "/balance",
                "transactions": "/transactions",
                "pay": "/pay",
            }
        }
    
    return app


def run_server(host: str = "0.0.0.0", port: int = 3000, debug: bool = False):
    """Run the API server; the application is built inside the server process"""
    uvicorn.run(
        "finpay.api:create_app",
        factory=True,
        host=host,
        port=port,
        reload=debug,
        log_level="debug" if debug else "info"
    )


def main():
    config = get_config()
    run_server(host=config.api_host, port=config.api_port)
