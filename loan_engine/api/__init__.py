"""
Loan Engine API Application Factory
"""

from typing import Optional
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..service import LoanService
from ..storage import InMemoryStorage
from .assets import router as assets_router
from .loans import router as loans_router


def create_app(service: Optional[LoanService] = None) -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="Loan Engine API",
        description="Loan amortization and payment engine",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.state.loan_service = service or LoanService(InMemoryStorage())

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    
    app.include_router(loans_router, prefix="/loans", tags=["Loans"])
    app.include_router(assets_router, tags=["Assets"])
    
    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "loan_engine_api",
            "version": __version__
        }
    
    return app
