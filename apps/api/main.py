"""
Social Connect - FastAPI Backend
Main application entry point for social account OAuth connections.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import settings, validate_connector_settings, validate_security_settings
from database import engine, Base
import models  # noqa: F401
from routers import health, auth


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    print("🚀 Starting Social Connect API...")
    validate_security_settings()
    oauth_config = validate_connector_settings()
    enabled = ", ".join(settings.ENABLED_CONNECTORS) or "none"
    print(f"🔌 Connectors enabled: {enabled} (redirect origin {oauth_config.app_origin})")
    if settings.AUTO_CREATE_DB_SCHEMA:
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            print("🗄️ Database schema verified.")
        except Exception as e:
            print(f"⚠️ Database bootstrap skipped: {e}")
    yield
    # Shutdown
    await engine.dispose()
    print("👋 Shutting down API...")


app = FastAPI(
    title="Social Connect API",
    description="Connect social media accounts through OAuth and store their credentials",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(auth.router, prefix="/auth", tags=["Authentication"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Social Connect API",
        "version": "0.1.0",
        "status": "running"
    }
