"""
Centralized application configuration implementing the 12-Factor App methodology.
Every tunable of the marketplace engine is read from the environment.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Immutable configuration schema backed by environment variables."""

    APP_NAME: str = "CotaMarket"
    VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Any SQLAlchemy URL works; PostgreSQL in production
    DATABASE_URL: str = "sqlite:///./cotamarket.db"

    SECRET_KEY: str = "your-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440

    LOG_LEVEL: str = "INFO"
    # "text" for local development, "json" for log aggregation
    LOG_FORMAT: str = "text"

    # Newton-Raphson parameters of the monthly rate solver
    RATE_SOLVER_MAX_ITERATIONS: int = 100
    RATE_SOLVER_TOLERANCE: float = 1e-7
    RATE_SOLVER_GUESS: float = 0.01

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)


settings = Settings()
