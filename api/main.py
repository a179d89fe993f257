"""
Bid Ledger API - Main Application.

FastAPI application exposing the negotiation service. Logging level and CORS
origins come from the environment (see services/config.py).
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import __version__
from api.dependencies import get_settings

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

app = FastAPI(
    title="Bid Ledger API",
    description=(
        "Place, counter and settle bids on marketplace produce listings. "
        "Callers identify themselves with the X-Actor-Id header."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Credentials cannot be combined with a wildcard origin.
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_allow_origins),
    allow_credentials="*" not in settings.cors_allow_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


@app.get("/health", tags=["Health"])
def health_check():
    """
    Health check endpoint.

    Returns the API status, version and the active bid store backend.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "service": "bid-ledger-api",
        "store_backend": settings.store_backend,
        "bid_ttl_hours": settings.bid_ttl.total_seconds() / 3600,
    }


@app.get("/", tags=["Root"])
def root():
    """
    Root endpoint with API information.
    """
    return {
        "message": "Bid Ledger API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
        "endpoints": [
            "POST /api/v1/bids",
            "GET /api/v1/bids/{bid_id}",
            "POST /api/v1/bids/{bid_id}/respond",
            "GET /api/v1/users/{user_id}/bids",
            "GET /api/v1/products/{product_id}/top-bid",
            "GET /api/v1/products/{product_id}/bids",
        ],
    }


# Import and include routers
from api.routers import bids, products

app.include_router(bids.router, prefix="/api/v1", tags=["Bids"])
app.include_router(products.router, prefix="/api/v1", tags=["Products"])
