"""Main entry point for the Commune application."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from commune.api.v1 import applications_router, members_router, profiles_router
from commune.api.v1.dependencies import commune_error_handler
from commune.core.settings import settings
from commune.errors import CommuneError

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Initialize FastAPI app
app = FastAPI(
    title="Commune API",
    description="Membership and application lifecycle for multi-tenant communities",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Domain errors render with their own status codes
app.add_exception_handler(CommuneError, commune_error_handler)

# Include API routers
app.include_router(applications_router, prefix="/api/v1")
app.include_router(members_router, prefix="/api/v1")
app.include_router(profiles_router, prefix="/api/v1")


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("commune.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
