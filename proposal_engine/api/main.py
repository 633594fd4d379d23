"""
FastAPI application for the proposal engine.

Provides REST API endpoints for proposal documents, their sections,
generation runs and exports.

Usage:
    uvicorn proposal_engine.api.main:app --reload --port 8000
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..config.settings import get_settings
from ..infra.logging_config import configure_logging
from .routes import (
    documents_router,
    sections_router,
    generate_router,
    export_router,
)

configure_logging()

app = FastAPI(
    title="Proposal Engine API",
    description="API for assembling funding proposals section by section",
    version="0.1.0",
    docs_url="/api/v1/docs",
    redoc_url="/api/v1/redoc",
    openapi_url="/api/v1/openapi.json",
)

# CORS middleware
default_origins = "http://localhost:5173,http://127.0.0.1:5173"
cors_origins = [
    origin.strip()
    for origin in (get_settings().CORS_ALLOW_ORIGINS or default_origins).split(",")
    if origin.strip()
]

# Browsers reject wildcard origins when credentials are enabled.
allow_credentials = "*" not in cors_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["Health"])
def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "healthy"}


# Include routers with /api/v1 prefix
app.include_router(documents_router, prefix="/api/v1")
app.include_router(sections_router, prefix="/api/v1")
app.include_router(generate_router, prefix="/api/v1")
app.include_router(export_router, prefix="/api/v1")
