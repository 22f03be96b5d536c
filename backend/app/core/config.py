from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    APP_NAME: str = "Culvert Crawlers Community Science Survey"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # "production" opens CORS to all origins
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str = "sqlite:///./culvert_surveys.db"

    # Only used outside production
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # Remote Submit API
    API_BASE_URL: str = "http://localhost:5000"
    SUBMIT_TIMEOUT: float = 30.0

    # Reachability probe policy (tunable, not protocol requirements)
    PROBE_MAX_ATTEMPTS: int = 5
    PROBE_DELAY_MS: int = 3000
    LINK_POLL_INTERVAL: float = 5.0

    # Device-local durable state
    STORAGE_DIR: str = "./.offline/storage"
    ATTACHMENT_DIR: str = "./.offline/attachments"
    OFFLINE_QUEUE_KEY: str = "offlineSurveyQueue"

    class Config:
        env_file = ".env"


settings = Settings()
