"""Shared fixtures: in-memory database, recorded fake blob storage, user factory."""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_stripe_test")
os.environ.setdefault("CLERK_WEBHOOK_SECRET", "whsec_dGVzdC1jbGVyay1zZWNyZXQ=")
os.environ.setdefault("INTERNAL_API_SECRET", "internal-test-secret")
os.environ.setdefault("ADMIN_API_KEY", "admin-test-key")

from datetime import datetime, timezone
from uuid import uuid4

import httpx
import pybreaker
import pytest
import redis
from sqlalchemy.pool import StaticPool

from app.core.errors import UpstreamUnavailable
from app.db.session import Database
from app.models.user import User
from app.services.circuit_breaker import RedisCircuitBreakerStorage
from app.storage.base import BlobInfo, BlobStorage
from app.storage.cloudinary import CloudinaryStorage


class FakeBlobStorage(BlobStorage):
    """Blob storage double: returns every blob it holds and records each call."""

    def __init__(self, blobs: dict[str, datetime | None] | None = None) -> None:
        self.blobs = dict(blobs or {})
        self.expressions: list[str] = []
        self.delete_calls: list[list[str]] = []
        self.fail_search = False
        self.fail_delete = False

    def search(self, expression: str) -> list[BlobInfo]:
        self.expressions.append(expression)
        if self.fail_search:
            raise UpstreamUnavailable("blob_storage", "search failed")
        return [BlobInfo(public_id, uploaded_at) for public_id, uploaded_at in self.blobs.items()]

    def delete_resources(self, public_ids: list[str]) -> dict[str, str]:
        self.delete_calls.append(list(public_ids))
        if self.fail_delete:
            raise UpstreamUnavailable("blob_storage", "delete failed")
        for public_id in public_ids:
            self.blobs.pop(public_id, None)
        return {public_id: "deleted" for public_id in public_ids}


class FakeRedis:
    """The Redis hash commands the circuit breaker storage uses; ``down`` makes every call fail."""

    def __init__(self) -> None:
        self.hashes: dict[str, dict[str, str]] = {}
        self.ttls: dict[str, int] = {}
        self.down = False

    def _check(self) -> None:
        if self.down:
            raise redis.ConnectionError("Error 111 connecting to localhost:6379. Connection refused.")

    def hget(self, key, field):
        self._check()
        return self.hashes.get(key, {}).get(field)

    def hset(self, key, field, value):
        self._check()
        self.hashes.setdefault(key, {})[field] = str(value)

    def hincrby(self, key, field, amount):
        self._check()
        bucket = self.hashes.setdefault(key, {})
        bucket[field] = str(int(bucket.get(field, 0)) + amount)
        return int(bucket[field])

    def hdel(self, key, field):
        self._check()
        self.hashes.get(key, {}).pop(field, None)

    def expire(self, key, seconds):
        self._check()
        self.ttls[key] = seconds


@pytest.fixture
def database():
    db = Database("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def db_session(database):
    session = database.session()
    yield session
    session.close()


@pytest.fixture
def storage():
    return FakeBlobStorage()


@pytest.fixture
def now():
    return datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_user(db_session):
    def _make_user(**kwargs) -> User:
        suffix = uuid4().hex[:8]
        user = User(
            external_id=kwargs.get("external_id", f"user_{suffix}"),
            email=kwargs.get("email", f"{suffix}@example.com"),
            username=kwargs.get("username", f"name_{suffix}"),
            photo=kwargs.get("photo", ""),
            credit_balance=kwargs.get("credit_balance", 10),
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def cloudinary_with_redis_down(fake_redis):
    """Cloudinary adapter whose shared breaker state store has become unreachable."""
    breaker = pybreaker.CircuitBreaker(
        fail_max=5,
        state_storage=RedisCircuitBreakerStorage("blob_storage", client=fake_redis),
    )
    fake_redis.down = True
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={"resources": [], "deleted": {}})

    storage = CloudinaryStorage(
        cloud_name="demo",
        api_key="key",
        api_secret="secret",
        client=httpx.Client(transport=httpx.MockTransport(handler)),
        breaker=breaker,
    )
    storage.http_calls = calls
    return storage
