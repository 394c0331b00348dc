"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from buildspace.config import get_settings
from buildspace.api.routes import get_manager, router


settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version} ({settings.mode} mode)")
    manager = app.dependency_overrides.get(get_manager, get_manager)()
    manager.registry.ensure_root()
    logger.info(f"Workspace root: {manager.registry.workspace_root}")

    yield

    # Shutdown; in-flight subprocesses are abandoned
    logger.info("Shutting down, releasing workspaces...")
    await manager.cleanup()
    await manager.close()


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Buildspace API - isolated workspaces and sandboxed command execution",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routes
app.include_router(router, prefix="/api/workspace")


@app.get("/health")
async def health() -> dict:
    """Health check endpoint."""
    return {
        "status": "ok",
        "version": settings.app_version,
        "mode": settings.mode,
    }


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "buildspace.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )
