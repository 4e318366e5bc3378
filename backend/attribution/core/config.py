from typing import Literal

from pydantic import computed_field
from pydantic_core import MultiHostUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Use top level .env file (one level above ./backend/)
        env_file="../.env",
        env_ignore_empty=True,
        extra="ignore",
    )
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Referral Attribution"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    FRONTEND_HOST: str = "http://localhost:5173"
    LOG_LEVEL: str = "INFO"

    # Server-to-server callers (signup flow, admin tools) send this in X-Service-Key
    SERVICE_API_KEY: str = "changethis"

    # Set DATABASE_URL to bypass the POSTGRES_* settings (e.g. sqlite for local runs)
    DATABASE_URL: str | None = None
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = ""

    @computed_field  # type: ignore[prop-decorator]
    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return str(
            MultiHostUrl.build(
                scheme="postgresql+psycopg",
                username=self.POSTGRES_USER,
                password=self.POSTGRES_PASSWORD,
                host=self.POSTGRES_SERVER,
                port=self.POSTGRES_PORT,
                path=self.POSTGRES_DB,
            )
        )

    # Attribution policy
    FINGERPRINT_SALT: str = ""
    REFERRAL_COOKIE_NAME: str = "ref_sid"
    REFERRAL_SESSION_TTL_DAYS: int = 30
    FINGERPRINT_WINDOW_MINUTES: int = 60
    CLICK_DEBOUNCE_MINUTES: int = 30
    STATS_MAX_WINDOW_DAYS: int = 365

    FIRST_AFFILIATE_CODE: str | None = None
    FIRST_AFFILIATE_OWNER_ID: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def REFERRAL_COOKIE_MAX_AGE(self) -> int:
        return self.REFERRAL_SESSION_TTL_DAYS * 24 * 60 * 60


settings = Settings()  # type: ignore
