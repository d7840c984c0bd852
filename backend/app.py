import logging
import os
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from dotenv import load_dotenv
from contextlib import asynccontextmanager

from config import get_settings
from database import connect_to_mongo, close_mongo_connection, get_database
from dependencies import get_playback_registry
from middleware import SessionMiddleware
from routers import timeline_router, playback_router, export_router

load_dotenv()

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    # Startup
    if settings.timeline_store == "mongo":
        await connect_to_mongo()
    yield
    # Shutdown
    get_playback_registry().close()
    await close_mongo_connection()


app = FastAPI(
    title="AI CinemaStudio Timeline API",
    description="Timeline editing, preview playback and export for generated clips",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.frontend_url.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SessionMiddleware)

# Include routers
app.include_router(timeline_router)
app.include_router(playback_router)
app.include_router(export_router)

# Local exports when S3 is not configured
os.makedirs(settings.export_dir, exist_ok=True)
app.mount("/exports", StaticFiles(directory=settings.export_dir), name="exports")


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "message": "AI CinemaStudio Timeline API"}


@app.get("/health")
async def health():
    """Detailed health check."""
    if settings.timeline_store != "mongo":
        return {"status": "healthy", "database": "not used"}

    db = get_database()
    db_ok = db is not None
    return {
        "status": "healthy" if db_ok else "degraded",
        "database": "connected" if db_ok else "disconnected",
    }
