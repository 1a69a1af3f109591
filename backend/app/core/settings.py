# backend/app/core/settings.py
"""
Cooperative Governance Engine - Configuration Management with pydantic-settings

- Loads from environment and root .env
- Validates and normalizes values
- Cached singleton via get_settings()
"""
from functools import lru_cache
from pathlib import Path
from typing import Optional, List
from decimal import Decimal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Calculate path to .env in project root (4 levels up from this file)
# backend/app/core/settings.py -> <repo>/.env
_ENV_FILE = Path(__file__).resolve().parent.parent.parent.parent / ".env"


class Settings(BaseSettings):
    """
    Application settings with validation.

    Environment variables take precedence over .env file values.
    Per-tenant governance policy is stored in the cooperative_settings
    table; the GOVERNANCE values below are only the fallbacks used when a
    tenant has not configured its own.
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ===================
    # Application Settings
    # ===================
    PROJECT_NAME: str = "Cooperative Governance Engine"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    DEBUG: bool = Field(default=False, description="Enable debug mode")
    ENVIRONMENT: str = Field(default="development", description="Deployment environment")

    # ===================
    # Database Settings
    # ===================
    DB_HOST: str = Field(default="localhost", description="PostgreSQL host")
    DB_PORT: int = Field(default=5432, description="PostgreSQL port")
    DB_NAME: str = Field(default="coop_governance", description="Database name")
    DB_USER: str = Field(default="postgres", description="Database user")
    DB_PASSWORD: str = Field(default="postgres", description="Database password")
    DATABASE_URL: Optional[str] = Field(
        default=None, description="Full database URL (overrides DB_* settings)"
    )

    @property
    def database_url(self) -> str:
        """Build PostgreSQL database URL from components or use explicit URL."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )

    # ===================
    # CORS Settings
    # ===================
    ALLOWED_ORIGINS: List[str] = Field(
        default=[
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ],
        description="Allowed CORS origins",
    )

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    # ===================
    # Logging
    # ===================
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # json or text
    LOG_FILE: Optional[str] = None

    @field_validator("LOG_FORMAT")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in ("json", "text"):
            raise ValueError("LOG_FORMAT must be 'json' or 'text'")
        return v

    # ===================
    # Governance Defaults
    # ===================
    DEFAULT_QUORUM_REQUIRED: Decimal = Field(
        default=Decimal("50"), description="Percent of eligible voters that must vote"
    )
    DEFAULT_APPROVAL_THRESHOLD: Decimal = Field(
        default=Decimal("50"), description="Percent of yes+no votes needed to pass"
    )
    DEFAULT_RESERVE_PERCENTAGE: Decimal = Field(
        default=Decimal("20"), description="Percent of profit kept as reserves"
    )
    DEFAULT_DISTRIBUTION_PERCENTAGE: Decimal = Field(
        default=Decimal("80"), description="Percent of profit distributed to members"
    )
    AUTO_COMPLETE_DISTRIBUTED_PERIODS: bool = Field(
        default=True,
        description="Move an approved period to 'distributed' once every row is paid",
    )
    MONEY_DECIMAL_PLACES: int = Field(default=2, ge=0, le=4)

    @field_validator(
        "DEFAULT_QUORUM_REQUIRED",
        "DEFAULT_APPROVAL_THRESHOLD",
        "DEFAULT_RESERVE_PERCENTAGE",
        "DEFAULT_DISTRIBUTION_PERCENTAGE",
    )
    @classmethod
    def validate_percentage(cls, v: Decimal) -> Decimal:
        if v < 0 or v > 100:
            raise ValueError("Percentage settings must be between 0 and 100")
        return v

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    """Singleton settings loader (cached)."""
    return Settings()


# Convenience alias so modules can `from app.core.settings import settings`
settings = get_settings()
