"""Configuration management for the task auction engine."""

from decimal import Decimal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage Configuration
    sqlite_db_path: str = Field(default="data/taskbourse.db", description="SQLite database file path")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")
    environment: str = Field(default="production", description="Deployment environment name reported to Logfire")

    # Organisation Calendar
    org_utc_offset_hours: float = Field(
        default=5.0, description="Fixed UTC offset of the organisation's local time (Asia/Tashkent is +5)"
    )
    workday_start_hour: int = Field(default=9, ge=0, le=23, description="Local hour the working day starts")
    workday_end_hour: int = Field(default=18, ge=1, le=24, description="Local hour the working day ends")

    # Review Policy
    review_working_hours: int = Field(
        default=48, description="Working hours a reviewer has before a submitted task is returned to work"
    )

    # Auction Policy
    no_bid_grace_hours: int = Field(
        default=3, description="Hours past the planned end an auction without bids waits before auto-assignment"
    )
    auction_range_multiplier: Decimal = Field(
        default=Decimal("1.5"), description="Ceiling of the auction value as a multiple of the base value"
    )
    auction_checkpoint_hours: tuple[int, ...] = Field(
        default=(0, 3, 6, 9, 12, 15, 18, 21),
        description="Local hours at which an auction without bids may step up its value",
    )
    auction_first_markup_checkpoint: int = Field(
        default=2, ge=1, description="Ordinal of the first checkpoint that raises the auction value"
    )

    # Sweeper Configuration
    sweep_interval_minutes: int = Field(default=5, ge=1, description="Interval between auction/review sweeps")

    # Points Policy
    penalty_points_per_hour: int = Field(default=1, description="Points deducted per late working hour")
    base_points_by_grade: dict[str, int] = Field(
        default_factory=lambda: {"D": 10, "C": 15, "B": 20, "A": 25},
        description="Points awarded on completion, keyed by the task's minimum grade",
    )


# Application Constants
class Constants:
    """Application-wide constants."""

    # HTTP Status Codes
    HTTP_OK: int = 200

    # Grade thresholds (minimum accumulated points per grade)
    GRADE_THRESHOLD_C: int = 55
    GRADE_THRESHOLD_B: int = 70
    GRADE_THRESHOLD_A: int = 85

    # Job Tracker Configuration
    TRACKER_DEAD_LETTER_QUEUE_MAXLEN: int = 100  # Max items in dead letter queue
    TRACKER_ERROR_MAX_LENGTH: int = 500  # Truncate stored job errors

    # Pagination Defaults
    DEFAULT_PER_PAGE_LIMIT: int = 500  # Default pagination limit for sweep queries


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
