"""
Circuit breaker implementation using pybreaker library.
Breaker state lives in one Redis hash per breaker so every API and worker
process sees the same open/closed state for a provider.
"""
import logging
from datetime import datetime, timezone
from typing import Any

import pybreaker
import redis

from app.core.config import settings
from app.utils.metrics import circuit_breaker_state


logger = logging.getLogger("circuit_breaker")


class RedisCircuitBreakerStorage(pybreaker.CircuitBreakerStorage):
    """Shared breaker state: hash ``cb:<name>`` with state, failures, successes, opened_at."""

    def __init__(self, name: str, client: redis.Redis | None = None) -> None:
        super().__init__(name)
        self._name = name
        self.client = client or redis.Redis.from_url(settings.redis_url, decode_responses=True)
        self._key = f"cb:{name}"

    def _get(self, field: str) -> str | None:
        return self.client.hget(self._key, field)

    def _set(self, field: str, value: str) -> None:
        self.client.hset(self._key, field, value)
        # Stale state from a dead deployment must not keep a provider blocked
        self.client.expire(self._key, settings.cb_open_seconds * 2)

    def _incr(self, field: str) -> None:
        self.client.hincrby(self._key, field, 1)
        self.client.expire(self._key, settings.cb_open_seconds * 2)

    @property
    def state(self) -> str:
        return self._get("state") or pybreaker.STATE_CLOSED

    @state.setter
    def state(self, value: str) -> None:
        self._set("state", value)
        circuit_breaker_state.labels(name=self._name).set(1 if value == pybreaker.STATE_OPEN else 0)

    @property
    def counter(self) -> int:
        return int(self._get("failures") or 0)

    def increment_counter(self) -> None:
        self._incr("failures")

    def reset_counter(self) -> None:
        self.client.hdel(self._key, "failures")

    @property
    def success_counter(self) -> int:
        return int(self._get("successes") or 0)

    def increment_success_counter(self) -> None:
        self._incr("successes")

    def reset_success_counter(self) -> None:
        self.client.hdel(self._key, "successes")

    @property
    def opened_at(self) -> datetime | None:
        raw = self._get("opened_at")
        return datetime.fromtimestamp(float(raw), tz=timezone.utc) if raw else None

    @opened_at.setter
    def opened_at(self, value: datetime) -> None:
        self._set("opened_at", str(value.timestamp()))


class CircuitBreakerListener(pybreaker.CircuitBreakerListener):
    """Logs breaker transitions and provider failures."""

    def __init__(self, name: str) -> None:
        self.name = name

    def state_change(self, cb: pybreaker.CircuitBreaker, old_state: Any, new_state: Any) -> None:
        logger.warning(
            "circuit_breaker_state_change",
            extra={
                "breaker_name": self.name,
                "old_state": getattr(old_state, "name", str(old_state)),
                "new_state": getattr(new_state, "name", str(new_state)),
            },
        )

    def failure(self, cb: pybreaker.CircuitBreaker, exc: BaseException) -> None:
        logger.warning("circuit_breaker_failure", extra={"breaker_name": self.name, "error": type(exc).__name__})


_breakers: dict[str, pybreaker.CircuitBreaker] = {}


def get_circuit_breaker(name: str, client: redis.Redis | None = None) -> pybreaker.CircuitBreaker:
    """Get or create a circuit breaker by name. Redis is touched on first call, not on import."""
    if name not in _breakers:
        _breakers[name] = pybreaker.CircuitBreaker(
            fail_max=settings.cb_failure_threshold,
            reset_timeout=settings.cb_open_seconds,
            state_storage=RedisCircuitBreakerStorage(name, client=client),
            listeners=[CircuitBreakerListener(name)],
            name=name,
        )
    return _breakers[name]
