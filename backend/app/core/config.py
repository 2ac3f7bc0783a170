"""
Application configuration using Pydantic Settings.

Environment-based infrastructure switching is controlled by the ENVIRONMENT variable.
"""

from functools import lru_cache
from typing import List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ===========================================
    # Environment
    # ===========================================
    ENVIRONMENT: Literal["local", "test"] = "local"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # ===========================================
    # Database
    # ===========================================
    DATABASE_URL: str = "sqlite+aiosqlite:///./autoplan.db"

    # ===========================================
    # Server
    # ===========================================
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    ALLOWED_ORIGINS: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"]
    )

    # ===========================================
    # Scheduling
    # ===========================================
    # Gap kept before and after every already-scheduled task
    SCHEDULING_BUFFER_MINUTES: int = Field(15, ge=0)
    # Minutes at the end of the workday that auto-scheduling never uses
    END_OF_DAY_RESERVE_MINUTES: int = Field(0, ge=0)
    # Where LOW/MEDIUM tasks sit inside the latest viable gap
    LOW_PRIORITY_ALIGNMENT: Literal["gap_end", "gap_start"] = "gap_end"

    DEFAULT_WORKDAY_START_MIN: int = Field(540, ge=0, lt=1440)
    DEFAULT_WORKDAY_END_MIN: int = Field(1080, ge=0, lt=1440)
    DEFAULT_TASK_MINUTES: int = Field(30, ge=5, le=480)
    DEFAULT_TIMEZONE: str = "UTC"

    # Minimum free slot length reported by the availability endpoint
    AVAILABILITY_MIN_SLOT_MINUTES: int = 15

    # ===========================================
    # Calendar providers
    # ===========================================
    CALENDAR_PROVIDER_TIMEOUT_SECONDS: float = 10.0

    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""
    GOOGLE_TOKEN_URI: str = "https://oauth2.googleapis.com/token"
    GOOGLE_CALENDAR_ID: str = "primary"

    MS_CLIENT_ID: str = ""
    MS_CLIENT_SECRET: str = ""
    MS_TENANT: str = "common"
    MS_GRAPH_BASE_URL: str = "https://graph.microsoft.com/v1.0"
    MS_SCOPES: str = "openid email profile offline_access Calendars.ReadWrite"

    # ===========================================
    # Background jobs
    # ===========================================
    AUTO_SCHEDULE_INTERVAL_MINUTES: int = 30  # 0 disables
    DAILY_REPORT_HOUR: int = 18  # UTC hour, -1 disables

    # ===========================================
    # Auth
    # ===========================================
    # Mock bearer auth: the token is the user ID. Disabled = everyone is dev_user
    AUTH_ENABLED: bool = True

    # ===========================================
    # Reminders
    # ===========================================
    REMINDER_LEAD_MINUTES: int = 10

    @property
    def is_test(self) -> bool:
        """Check if running under the test environment."""
        return self.ENVIRONMENT == "test"

    @property
    def is_local(self) -> bool:
        """Check if running in local environment."""
        return self.ENVIRONMENT == "local"

    @property
    def ms_token_url(self) -> str:
        return f"https://login.microsoftonline.com/{self.MS_TENANT}/oauth2/v2.0/token"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures settings are loaded only once.
    """
    return Settings()
