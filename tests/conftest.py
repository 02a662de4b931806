"""
Shared pytest fixtures: in-memory SQLite, fake vendors, FastAPI TestClient.
"""
import os
import tempfile
import time

_DATA_DIR = tempfile.mkdtemp(prefix="receiptsnap-tests-")
os.environ.update(
    {
        "DATABASE_URL": "sqlite://",
        "DATA_DIR": _DATA_DIR,
        "STORAGE_DIR": os.path.join(_DATA_DIR, "storage"),
        "AUTH_JWT_SECRET": "test-secret",
        "FIREWORKS_API_KEY": "fw-test-key",
        "FIREBASE_PROJECT_ID": "receipt-snap-test",
        "FIREBASE_CLIENT_EMAIL": "push@receipt-snap-test.iam.gserviceaccount.com",
        "FIREBASE_PRIVATE_KEY": "not-used-in-tests",
    }
)

import jwt  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import receiptsnap.models  # noqa: E402,F401 register models
from receiptsnap.clients.fcm import build_renewal_message  # noqa: E402
from receiptsnap.clients.fireworks import ExtractionOutcome  # noqa: E402
from receiptsnap.database import Base, get_db  # noqa: E402
from receiptsnap.dependencies import get_dispatcher, get_extractor, get_storage  # noqa: E402
from receiptsnap.main import app  # noqa: E402
from receiptsnap.schemas import ExtractionResult, SendResult, TokenUsage  # noqa: E402
from receiptsnap.storage import LocalObjectStorage  # noqa: E402

# StaticPool ensures all connections share the same in-memory database
_ENGINE = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_Session = sessionmaker(autocommit=False, autoflush=False, bind=_ENGINE)

USER_ID = "6f1c2a7e-0000-4000-8000-000000000001"
MODEL = "accounts/fireworks/models/qwen3-vl-30b-a3b-instruct"


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeExtractor:
    """Stands in for FireworksClient; returns a canned outcome."""

    def __init__(self):
        self.calls = []
        self.outcome = ExtractionOutcome(
            model=MODEL,
            extraction=ExtractionResult(
                subscription_name="Netflix",
                billing_entity="Netflix, Inc.",
                amount=15.99,
                currency="USD",
                billing_cycle="monthly",
                start_date="2026-09-01",
                next_charge_date="2026-11-01",
                payment_method="Visa ****4242",
                renewal_terms="Renews monthly until cancelled",
                cancellation_policy="Cancel anytime",
                cancellation_deadline=None,
                confidence_score=0.95,
                raw_text="NETFLIX Standard plan $15.99/month",
            ),
            raw_response="{}",
            tokens_used=1300,
            token_usage=TokenUsage(prompt_tokens=1200, completion_tokens=100, total_tokens=1300),
        )

    def extract(self, image_bytes, mime_type="image/jpeg"):
        self.calls.append((image_bytes, mime_type))
        return self.outcome


class FakeDispatcher:
    """Stands in for FcmClient; records sends, fails for chosen tokens."""

    def __init__(self):
        self.sent = []
        self.fail_tokens = set()

    build_renewal_message = staticmethod(build_renewal_message)

    def send(self, device_token, title, body, data=None):
        self.sent.append({"token": device_token, "title": title, "body": body, "data": data})
        if device_token in self.fail_tokens:
            return SendResult(error="Requested entity was not found.", error_code=404)
        return SendResult(message_id=f"projects/receipt-snap-test/messages/{len(self.sent)}")


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _reset_tables():
    Base.metadata.create_all(bind=_ENGINE)
    yield
    Base.metadata.drop_all(bind=_ENGINE)


@pytest.fixture()
def db():
    session = _Session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def storage(tmp_path):
    return LocalObjectStorage(tmp_path, bucket="receipts")


@pytest.fixture()
def extractor():
    return FakeExtractor()


@pytest.fixture()
def dispatcher():
    return FakeDispatcher()


def make_token(user_id=USER_ID, email="user@example.com", secret="test-secret", expires_in=3600):
    now = int(time.time())
    claims = {"sub": user_id, "email": email, "aud": "authenticated", "iat": now, "exp": now + expires_in}
    return jwt.encode(claims, secret, algorithm="HS256")


@pytest.fixture()
def auth_headers():
    return {"Authorization": f"Bearer {make_token()}"}


@pytest.fixture()
def client(db, storage, extractor, dispatcher):
    def _override():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = _override
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_extractor] = lambda: extractor
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
