from typing import Optional
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "CMMS Domain Verification"
    APP_ENV: str = "development"
    API_V1_STR: str = "/api/v1"

    # CORS
    BACKEND_CORS_ORIGINS: str = ""

    # Database
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "cmms"
    DATABASE_URL: Optional[str] = None  # overrides the POSTGRES_* settings when set

    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800
    DB_ECHO: bool = False
    SLOW_QUERY_THRESHOLD_MS: int = 500

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"

    # Domain verification
    DOMAIN_VERIFICATION_MAX_ATTEMPTS: int = 10
    DOMAIN_VERIFICATION_TIMEOUT_SECONDS: float = 5.0
    DOMAIN_VERIFICATION_MAX_REDIRECTS: int = 5
    DOMAIN_VERIFICATION_SWEEP_INTERVAL_HOURS: int = 4
    DOMAIN_VERIFICATION_SWEEP_WORKERS: int = 8
    DOMAIN_VERIFICATION_CNAME_TARGET: str = "verify.cmms.app"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    @field_validator(
        "DOMAIN_VERIFICATION_MAX_ATTEMPTS",
        "DOMAIN_VERIFICATION_SWEEP_INTERVAL_HOURS",
        "DOMAIN_VERIFICATION_SWEEP_WORKERS",
    )
    @classmethod
    def _positive_int(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be >= 1")
        return value

    @field_validator("DOMAIN_VERIFICATION_TIMEOUT_SECONDS")
    @classmethod
    def _positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeout must be positive")
        return value

    @model_validator(mode="after")
    def _validate_production_security(self) -> "Settings":
        """Block startup with default database credentials in production / staging."""
        if self.APP_ENV in ("production", "staging") and not self.DATABASE_URL:
            if self.POSTGRES_PASSWORD in ("postgres", ""):
                raise ValueError(
                    "POSTGRES_PASSWORD is set to default 'postgres'. "
                    "Set a strong password in .env or environment."
                )
        return self

    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_SERVER}/{self.POSTGRES_DB}"
        )

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    @property
    def is_staging(self) -> bool:
        return self.APP_ENV == "staging"

    @property
    def is_development(self) -> bool:
        return self.APP_ENV == "development"

settings = Settings()
