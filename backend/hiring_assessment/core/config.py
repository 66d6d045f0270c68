"""
Application configuration settings.
"""

from dotenv import load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Dict, List, Self

# Export .env into the process environment for scripts and subprocesses
load_dotenv()

# Difficulty keys accepted in TEST_DIFFICULTY_DISTRIBUTION
DIFFICULTY_KEYS = ("easy", "moderate", "hard")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Hiring Assessment API"
    APP_VERSION: str = "0.1.0"
    ENV: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # API
    API_V1_PREFIX: str = "/v1"

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Database
    DATABASE_URL: str = "sqlite:///./hiring_assessment.db"
    DB_POOL_PRE_PING: bool = True
    DB_POOL_RECYCLE: int = 3600  # seconds

    # Test Composition
    # Snapshotted onto every session at creation; later changes never affect
    # sessions that already exist.
    TEST_TOTAL_QUESTIONS: int = Field(default=30, ge=1, le=200)
    TEST_DURATION_MINUTES: int = Field(default=30, ge=1, le=600)
    TEST_DIFFICULTY_DISTRIBUTION: Dict[str, int] = {
        "easy": 30,
        "moderate": 30,
        "hard": 40,
    }
    TEST_PASSING_PERCENTAGE: int = Field(default=65, ge=0, le=100)
    TEST_NEGATIVE_MARKING: bool = True
    # Empty list means every category is eligible
    TEST_CATEGORIES: List[str] = []
    # Skip questions the candidate already saw in an earlier session
    EXCLUDE_SEEN_QUESTIONS: bool = False
    # Hours a created session may wait before it has to be begun
    SESSION_START_WINDOW_HOURS: int = Field(default=24, ge=1)

    # Eligibility
    MAX_ATTEMPTS: int = Field(default=5, ge=1)
    ATTEMPT_COOLDOWN_HOURS: int = Field(default=24, ge=0)

    # Proctoring
    VIOLATION_THRESHOLD: int = Field(
        default=3,
        ge=1,
        description="Major violations that terminate a session",
    )
    CRITICAL_VIOLATION_LIMIT: int = Field(
        default=2,
        ge=1,
        description="Critical violations that terminate a session",
    )

    # Admin
    ADMIN_TOKEN: str = Field(
        default="",
        description="Admin API token for operational endpoints (sweep, stats, reports)",
    )

    # Sentry Error Tracking
    SENTRY_DSN: str = Field(
        default="",
        description="Sentry DSN for error tracking (leave empty to disable)",
    )
    SENTRY_TRACES_SAMPLE_RATE: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Sentry traces sample rate (0.0-1.0, 0.1 = 10% of transactions)",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra fields from .env not defined in Settings
    )

    @model_validator(mode="after")
    def validate_difficulty_distribution(self) -> Self:
        """Validate TEST_DIFFICULTY_DISTRIBUTION: known keys, non-negative, sum 100."""
        distribution = self.TEST_DIFFICULTY_DISTRIBUTION
        unknown = sorted(set(distribution) - set(DIFFICULTY_KEYS))
        if unknown:
            raise ValueError(
                f"TEST_DIFFICULTY_DISTRIBUTION has unknown difficulties: {unknown}. "
                f"Expected a subset of {list(DIFFICULTY_KEYS)}"
            )
        negative = [k for k, v in distribution.items() if v < 0]
        if negative:
            raise ValueError(
                f"Difficulty percentages must be non-negative, got negative: {negative}"
            )
        total = sum(distribution.values())
        if total != 100:
            raise ValueError(
                f"TEST_DIFFICULTY_DISTRIBUTION must sum to 100, got {total}"
            )
        return self


settings = Settings()
