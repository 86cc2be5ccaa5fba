"""
``/health``: liveness plus the two backing stores the planner writes to.

``status`` is ``ok`` when both the database and the upload directory are
usable, ``degraded`` otherwise. No authentication.
"""

import asyncio
import logging
import os
import time
from pathlib import Path
from typing import Any, Dict

from fastapi import APIRouter

from ..core.config import get_settings
from ..core.database import health_check
from ..version import __version__

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

_started_at: float = time.monotonic()


def set_start_time() -> None:
    global _started_at
    _started_at = time.monotonic()


def uptime_seconds() -> float:
    return time.monotonic() - _started_at


def _storage_writable(directory: Path) -> bool:
    return directory.is_dir() and os.access(directory, os.W_OK)


async def check_storage_health() -> bool:
    directory = Path(get_settings().storage_dir).expanduser()
    ok = await asyncio.to_thread(_storage_writable, directory)
    if not ok:
        logger.warning(f"Upload directory {directory} is missing or read-only")
    return ok


@router.get("/health")
async def health() -> Dict[str, Any]:
    database_ok, storage_ok = await asyncio.gather(health_check(), check_storage_health())
    return {
        "status": "ok" if database_ok and storage_ok else "degraded",
        "version": __version__,
        "uptime_seconds": round(uptime_seconds(), 1),
        "database": database_ok,
        "storage": storage_ok,
    }
