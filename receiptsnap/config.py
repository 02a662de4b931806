"""
Application settings.

Secrets have no default: a missing value fails ``Settings()`` at import time,
so the service never starts half-configured.
"""
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./data/receiptsnap.db"

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ORIGINS: List[str] = ["*"]

    # Object storage
    DATA_DIR: str = "./data"
    STORAGE_DIR: str = "./data/storage"
    RECEIPTS_BUCKET: str = "receipts"

    # Identity provider (bearer credential verification)
    AUTH_JWT_SECRET: str
    AUTH_JWT_ALGORITHM: str = "HS256"
    AUTH_JWT_AUDIENCE: str = "authenticated"

    # Vision LLM
    FIREWORKS_API_KEY: str
    FIREWORKS_API_URL: str = "https://api.fireworks.ai/inference/v1/chat/completions"
    FIREWORKS_MODEL: str = "accounts/fireworks/models/qwen3-vl-30b-a3b-instruct"
    # Must stay below the 60s budget of the calling request
    EXTRACTION_TIMEOUT_SECONDS: float = 45.0

    # Push notifications
    FIREBASE_PROJECT_ID: str
    FIREBASE_CLIENT_EMAIL: str
    FIREBASE_PRIVATE_KEY: str

    REVIEW_CONFIDENCE_THRESHOLD: float = 0.8

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
