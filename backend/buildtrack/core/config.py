from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    ENV: str = Field(default="dev")  # dev|prod

    # DB
    DATABASE_URL: str = Field(default="postgresql+psycopg://app:app@db:5432/app")

    # CORS
    CORS_ORIGINS: str = Field(default="http://localhost:3000,http://localhost")

    # Celery / Redis
    REDIS_URL: str = Field(default="redis://redis:6379/0")

    # Files
    EXPORT_DIR: str = Field(default="/app/data/exports")

    # Phase sync
    SYNC_MAX_ATTEMPTS: int = Field(default=3)
    SYNC_IN_BACKGROUND: bool = Field(default=False)

    # Floor allocation defaults
    FLOOR_WEIGHT_BASEMENT: float = Field(default=1.2)
    FLOOR_WEIGHT_TYPICAL: float = Field(default=1.0)
    FLOOR_WEIGHT_PENTHOUSE: float = Field(default=1.3)
    PENTHOUSE_FROM_FLOOR: int = Field(default=10)
    SPLIT_MATERIALS: float = Field(default=0.65)
    SPLIT_LABOUR: float = Field(default=0.25)
    SPLIT_EQUIPMENT: float = Field(default=0.05)
    SPLIT_SUBCONTRACTORS: float = Field(default=0.03)

    # Budget status thresholds (percent)
    AT_RISK_UTILIZATION_PCT: float = Field(default=80.0)

    # Seed (dev)
    SEED_DEMO: bool = Field(default=True)


settings = Settings()
