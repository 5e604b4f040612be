"""
Lending API Application Factory
"""

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .loans import router as loans_router
from .credit import router as credit_router
from .pools import router as pools_router, programs_router
from ..config import get_config
from ..logging_config import setup_logging
from .. import __version__


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    config = get_config()
    setup_logging(config.log_level, log_format=config.log_format, log_file=config.log_file)
    
    app = FastAPI(
        title="Lending Core API",
        description="Loan lifecycle, pool accounting and credit policy",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    
    app.include_router(loans_router, prefix="/loans", tags=["Loans"])
    app.include_router(credit_router, prefix="/credit-lines", tags=["Credit Lines"])
    app.include_router(pools_router, prefix="/pools", tags=["Pools"])
    app.include_router(programs_router, prefix="/programs", tags=["Programs"])
    
    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "lending_core_api",
            "version": __version__
        }
    
    return app


app = create_app()


def run_server(host: str = "0.0.0.0", port: int = 8090, debug: bool = False):
    """Run the FastAPI server"""
    uvicorn.run(
        "lending_core.api:app",
        host=host,
        port=port,
        reload=debug,
        log_level="info"
    )
