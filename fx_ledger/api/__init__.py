"""
FX Ledger API Application Factory
"""

import asyncio
from typing import Optional

import uvicorn

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..errors import LedgerError, NotFoundError
from ..system import LedgerSystem
from .analytics import router as analytics_router
from .backup import router as backup_router
from .balances import router as balances_router
from .partners import router as partners_router
from .rates import router as rates_router
from .reports import router as reports_router
from .transactions import router as transactions_router


def create_app(system: Optional[LedgerSystem] = None) -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="FX Ledger API",
        description="Currency exchange ledger: partners, TZS/CNY/USDT deals, backups and reports",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.state.system = system or LedgerSystem()

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"detail": exc.message, "code": exc.code})

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        return JSONResponse(status_code=400, content={"detail": exc.message, "code": exc.code})

    # Include routers
    app.include_router(partners_router, prefix="/partners", tags=["Partners"])
    app.include_router(transactions_router, prefix="/transactions", tags=["Transactions"])
    app.include_router(rates_router, prefix="/rates", tags=["Exchange Rates"])
    app.include_router(analytics_router, prefix="/analytics", tags=["Analytics"])
    app.include_router(backup_router, prefix="/backup", tags=["Backup"])
    app.include_router(reports_router, prefix="/reports", tags=["Reports"])
    app.include_router(balances_router, prefix="/balances", tags=["Balances"])

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        migrations = await asyncio.to_thread(app.state.system.migration_manager.get_migration_status)
        return {
            "status": "healthy",
            "service": "fx_ledger_api",
            "version": __version__,
            "migrations": migrations
        }

    # Root endpoint
    @app.get("/")
    async def get_api_info():
        """Get API information"""
        return {
            "name": "FX Ledger API",
            "version": __version__,
            "description": "Currency exchange ledger",
            "endpoints": {
                "docs": "/docs",
                "health": "/health",
                "partners": "/partners",
                "transactions": "/transactions",
                "rates": "/rates",
                "analytics": "/analytics",
                "backup": "/backup",
                "reports": "/reports",
                "balances": "/balances",
            }
        }

    return app


def run_server(host: str = "127.0.0.1", port: int = 8090, debug: bool = False):
    """Run the FastAPI server"""
    uvicorn.run(
        "fx_ledger.api:create_app",
        factory=True,
        host=host,
        port=port,
        reload=debug,
        log_level="info"
    )
