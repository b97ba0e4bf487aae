# bizflow/config.py

from functools import lru_cache
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings


class RateLimitRule(BaseModel):
    """Fixed-window budget for one limiter class."""

    max_requests: int = Field(gt=0)
    window_seconds: int = Field(gt=0)
    message: str = "Too many requests"


def _default_rate_limits() -> Dict[str, RateLimitRule]:
    return {
        "auth": RateLimitRule(max_requests=10, window_seconds=60, message="Too many auth attempts"),
        "api": RateLimitRule(max_requests=100, window_seconds=60, message="API rate limit exceeded"),
        "sync": RateLimitRule(max_requests=30, window_seconds=60, message="Sync rate limit exceeded"),
        "upload": RateLimitRule(max_requests=10, window_seconds=60, message="Upload rate limit exceeded"),
    }


class Settings(BaseSettings):
    """
    Central application settings (Pydantic v2).

    - Aliases match the .env keys:
      APP_NAME, ENV, JWT_ALG, JWT_ACCESS_SECRET, JWT_REFRESH_SECRET,
      ACCESS_TOKEN_EXPIRE_MINUTES, REFRESH_TOKEN_EXPIRE_DAYS
    - Rate-limit classes are a table so they can be tuned per deployment.
    """

    # ------------------------------------------------------------------------------------
    # App / API
    # ------------------------------------------------------------------------------------
    PROJECT_NAME: str = Field(default="bizflow-mobile-gateway", alias="APP_NAME")
    ENVIRONMENT: str = Field(default="dev", alias="ENV")  # dev|staging|prod
    PROJECT_VERSION: str = Field(default="1.0.0")
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: Optional[str] = Field(default=None, description="json|console; derived from ENV when unset")
    MOBILE_API_PREFIX: str = Field(default="/api/mobile")

    # ------------------------------------------------------------------------------------
    # JWT / Auth
    # ------------------------------------------------------------------------------------
    JWT_ACCESS_SECRET: str = Field(
        default="access-secret-change-me-please-32b",
        description="HS256 secret for access tokens (never commit real secrets)",
    )
    JWT_REFRESH_SECRET: str = Field(
        default="refresh-secret-change-me-please-32",
        description="HS256 secret for refresh tokens; must differ from the access secret",
    )
    JWT_ALGORITHM: str = Field(default="HS256", alias="JWT_ALG")
    JWT_ISSUER: str = Field(default="bizflow")
    JWT_AUDIENCE: str = Field(default="bizflow-mobile")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=15, gt=0)
    REFRESH_TOKEN_EXPIRE_DAYS: int = Field(default=30, gt=0)
    AUTH_CHECK_DEVICE_REVOCATION: bool = Field(default=True)

    # ------------------------------------------------------------------------------------
    # API versioning
    # ------------------------------------------------------------------------------------
    API_SUPPORTED_VERSIONS: List[str] = Field(default_factory=lambda: ["v1", "v2"])
    API_CURRENT_VERSION: str = Field(default="v1")
    API_MIN_VERSION: str = Field(default="v1")

    # ------------------------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------------------------
    ENABLE_RATE_LIMITING: bool = Field(default=True)
    RATE_LIMIT_BACKEND: str = Field(default="memory")  # memory|redis
    REDIS_URL: Optional[str] = Field(default="redis://localhost:6379/0")
    RATE_LIMITS: Dict[str, RateLimitRule] = Field(default_factory=_default_rate_limits)
    RATE_LIMIT_SWEEP_INTERVAL_SECONDS: int = Field(default=60, gt=0)
    RATE_LIMIT_GRACE_SECONDS: int = Field(default=0, ge=0)

    # ------------------------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------------------------
    SYNC_PAGE_SIZE: int = Field(default=100, gt=0)
    SYNC_MAX_BATCH_SIZE: int = Field(default=100, gt=0)
    SYNC_INTERVAL_SECONDS: int = Field(default=30, gt=0)
    MAX_UPLOAD_SIZE_BYTES: int = Field(default=10 * 1024 * 1024)

    # ------------------------------------------------------------------------------------
    # CORS / Misc
    # ------------------------------------------------------------------------------------
    CORS_ORIGINS: Union[List[str], str] = Field(default_factory=lambda: ["*"])
    SEED_DEMO_DATA: bool = Field(default=True)

    # ------------------------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------------------------
    @model_validator(mode="after")
    def _check_consistency(self) -> "Settings":
        if self.ACCESS_TOKEN_EXPIRE_MINUTES >= self.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60:
            raise ValueError("ACCESS_TOKEN_EXPIRE_MINUTES must be shorter than the refresh lifetime")
        if self.API_CURRENT_VERSION not in self.API_SUPPORTED_VERSIONS:
            raise ValueError("API_CURRENT_VERSION must be one of API_SUPPORTED_VERSIONS")
        if self.API_MIN_VERSION not in self.API_SUPPORTED_VERSIONS:
            raise ValueError("API_MIN_VERSION must be one of API_SUPPORTED_VERSIONS")
        if self.RATE_LIMIT_BACKEND not in {"memory", "redis"}:
            raise ValueError("RATE_LIMIT_BACKEND must be 'memory' or 'redis'")
        return self

    # ------------------------------------------------------------------------------------
    # Helper properties
    # ------------------------------------------------------------------------------------
    @property
    def is_dev(self) -> bool:
        return self.ENVIRONMENT.lower() in {"dev", "development", "local"}

    @property
    def is_staging(self) -> bool:
        return self.ENVIRONMENT.lower() in {"stage", "staging"}

    @property
    def is_prod(self) -> bool:
        return self.ENVIRONMENT.lower() in {"prod", "production"}

    @property
    def is_prod_like(self) -> bool:
        return self.is_prod or self.is_staging

    @property
    def access_token_lifetime_seconds(self) -> int:
        return self.ACCESS_TOKEN_EXPIRE_MINUTES * 60

    @property
    def refresh_token_lifetime_seconds(self) -> int:
        return self.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60

    def cors_origins(self) -> List[str]:
        if isinstance(self.CORS_ORIGINS, list):
            return self.CORS_ORIGINS
        if isinstance(self.CORS_ORIGINS, str):
            return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]
        return []

    # ------------------------------------------------------------------------------------
    # Pydantic v2 settings config
    # ------------------------------------------------------------------------------------
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "populate_by_name": True,   # enable aliases
        "extra": "ignore",          # don't crash on unrelated env keys
    }


@lru_cache()
def get_settings() -> Settings:
    return Settings()
