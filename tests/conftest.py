"""Pytest configuration and shared fixtures."""

import logging
from collections.abc import AsyncIterator, Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from src.core import db_client
from src.core.config import settings
from src.core.scheduler_tracker import job_tracker
from src.main import app
from src.modules.tasks import sweeper


logger = logging.getLogger(__name__)


@pytest.fixture
async def sqlite_db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> AsyncIterator[Path]:
    """Point the engine at a fresh SQLite file with the schema applied."""
    db_path = tmp_path / "taskbourse_test.db"
    monkeypatch.setattr(settings, "sqlite_db_path", str(db_path))

    await db_client.init_db()
    yield db_path

    await db_client.close_connection()


@pytest.fixture(autouse=True)
def reset_process_state() -> Iterator[None]:
    """Clear job history and the sweep flag between tests."""
    job_tracker.reset()
    sweeper._sweep_in_progress = False
    yield
    job_tracker.reset()
    sweeper._sweep_in_progress = False


@pytest.fixture
def test_client() -> TestClient:
    """Provide FastAPI test client (lifespan is not run)."""
    return TestClient(app)
