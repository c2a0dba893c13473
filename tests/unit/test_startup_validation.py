"""Tests for startup validation and the application lifespan."""

from unittest.mock import AsyncMock, Mock, patch

import pytest
from fastapi.testclient import TestClient

from src.core.config import settings
from src.main import app, validate_startup_configuration


@pytest.mark.unit
def test_startup_validation_passes_with_defaults() -> None:
    """Test that the default calendar and pricing settings are accepted."""
    validate_startup_configuration()


@pytest.mark.unit
def test_startup_fails_with_inverted_workday(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that a workday ending before it starts stops the process."""
    monkeypatch.setattr(settings, "workday_start_hour", 19)
    monkeypatch.setattr(settings, "workday_end_hour", 18)

    with pytest.raises(SystemExit) as exc_info:
        validate_startup_configuration()

    assert exc_info.value.code == 1


@pytest.mark.unit
def test_startup_fails_with_shrinking_auction_range(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that a range multiplier below 1 stops the process."""
    monkeypatch.setattr(settings, "auction_range_multiplier", 0.5)

    with pytest.raises(SystemExit):
        validate_startup_configuration()


@pytest.mark.unit
def test_startup_fails_with_non_positive_review_window(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that a zero review window stops the process."""
    monkeypatch.setattr(settings, "review_working_hours", 0)

    with pytest.raises(SystemExit):
        validate_startup_configuration()


@pytest.mark.unit
def test_lifespan_initializes_db_and_runs_scheduler() -> None:
    """Test that the lifespan initializes the schema and starts and stops the sweeper."""
    with (
        patch("src.main.configure_logfire") as mock_configure,
        patch("src.main.init_db", new_callable=AsyncMock) as mock_init_db,
        patch("src.main.close_connection", new_callable=AsyncMock) as mock_close,
        patch("src.main.start_scheduler", new=Mock()) as mock_start,
        patch("src.main.stop_scheduler", new=Mock()) as mock_stop,
    ):
        with TestClient(app) as client:
            assert client.get("/health").status_code == 200
            mock_start.assert_called_once()
            mock_stop.assert_not_called()

        mock_configure.assert_called_once()
        mock_init_db.assert_awaited_once()
        mock_stop.assert_called_once()
        mock_close.assert_awaited_once()
