"""
Process-wide collaborators, exposed as FastAPI dependencies so tests can
override them.
"""
from functools import lru_cache

from receiptsnap.clients import FcmClient, FireworksClient
from receiptsnap.config import settings
from receiptsnap.storage import LocalObjectStorage, ObjectStorage


@lru_cache
def get_storage() -> ObjectStorage:
    return LocalObjectStorage(settings.STORAGE_DIR, bucket=settings.RECEIPTS_BUCKET)


@lru_cache
def get_extractor() -> FireworksClient:
    return FireworksClient(
        settings.FIREWORKS_API_KEY,
        model=settings.FIREWORKS_MODEL,
        api_url=settings.FIREWORKS_API_URL,
        timeout=settings.EXTRACTION_TIMEOUT_SECONDS,
    )


@lru_cache
def get_dispatcher() -> FcmClient:
    # One instance per process, so its cached access token is reused
    return FcmClient(
        settings.FIREBASE_PROJECT_ID,
        settings.FIREBASE_CLIENT_EMAIL,
        settings.FIREBASE_PRIVATE_KEY,
    )
