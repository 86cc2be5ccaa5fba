import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Dict

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

# Explicitly load .env files at startup
# Load order (later files override earlier):
# 1. project .env (project defaults)
# 2. project .env.local (local overrides)
project_root = Path(__file__).parent.parent
env_file = project_root / ".env"
env_local = project_root / ".env.local"

if env_file.exists():
    load_dotenv(env_file, override=False)

if env_local.exists():
    load_dotenv(env_local, override=True)

from .api import auth, health, notes, tasks, week_settings, weekly_summary
from .core.config import get_settings
from .core.database import close_database, init_database
from .middleware.error_handler import ErrorHandlerMiddleware, register_exception_handlers
from .middleware.request_id import RequestIdMiddleware
from .utils.logging import setup_logging
from .version import __version__

settings = get_settings()
setup_logging(log_level=settings.log_level, log_to_file=settings.log_to_file)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info("Weekly planner starting up...")
    health.set_start_time()

    try:
        await init_database()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    yield

    logger.info("Weekly planner shutting down...")
    await close_database()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Weekly Planner",
    description="Weekly task grid, notes, summaries and layout settings",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ErrorHandlerMiddleware, expose_tracebacks=settings.debug)
# Outermost, so the error handler sees the request id
app.add_middleware(RequestIdMiddleware)
register_exception_handlers(app)

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(tasks.router)
app.include_router(notes.router)
app.include_router(weekly_summary.router)
app.include_router(week_settings.router)

# Uploaded banner images live on local disk and are served from here
_uploads_dir = Path(settings.storage_dir).expanduser()
_uploads_dir.mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=_uploads_dir), name="uploads")


@app.get("/")
async def root() -> Dict[str, str]:
    """Root endpoint for API info"""
    return {"message": "Weekly Planner API", "version": __version__, "status": "running"}


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", "8000"))
    host = os.getenv("HOST", "0.0.0.0")

    logger.info(f"Starting server on {host}:{port}")
    uvicorn.run("planner.main:app", host=host, port=port, reload=True, log_level="info")
