import logging
import logging.handlers
import os
import tempfile
import uuid
from pathlib import Path

import pytest

# Set test environment variables before any settings are read
_TEST_ROOT = Path(tempfile.mkdtemp(prefix="planner-tests-"))

os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["LOG_TO_FILE"] = "false"
os.environ["SESSION_SECRET"] = "test-session-secret"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_ROOT / 'planner.db'}"
os.environ["STORAGE_DIR"] = str(_TEST_ROOT / "uploads")
os.environ["STORAGE_PUBLIC_URL"] = "http://testserver/uploads"


@pytest.fixture(autouse=True)
def _strip_file_handlers():
    """Remove file handlers from root logger so tests never write to logs/app.log."""
    root = logging.getLogger()
    saved = [h for h in root.handlers if isinstance(h, logging.FileHandler)]
    for h in saved:
        root.removeHandler(h)
    yield
    # Restore any that were removed (and strip any new ones tests may have added)
    for h in list(root.handlers):
        if isinstance(h, logging.FileHandler):
            root.removeHandler(h)
    for h in saved:
        root.addHandler(h)


@pytest.fixture
def user_token():
    """Session token for a fresh user, so each test sees only its own rows."""
    from planner.core.security import issue_session_token

    return issue_session_token(f"user_{uuid.uuid4().hex[:12]}", name="Test User")


@pytest.fixture
def auth_headers(user_token):
    return {"Authorization": f"Bearer {user_token}"}
