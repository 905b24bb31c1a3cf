"""
Cloudinary Admin API client using httpx sync client.
Implements the Blob Listing Provider (search + bulk delete) for API and Celery workers.
"""
import logging
import time
from datetime import datetime

import httpx
import pybreaker
import redis

from app.core.config import settings
from app.core.errors import UpstreamUnavailable
from app.services.circuit_breaker import get_circuit_breaker
from app.storage.base import BlobInfo, BlobStorage
from app.utils.metrics import (
    blob_storage_request_duration_seconds,
    blob_storage_requests_total,
)


logger = logging.getLogger(__name__)

# Admin API accepts at most 100 public ids per delete request
DELETE_BATCH_SIZE = 100


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("cloudinary_bad_timestamp", extra={"error": value})
        return None


class CloudinaryStorage(BlobStorage):
    def __init__(
        self,
        cloud_name: str | None = None,
        api_key: str | None = None,
        api_secret: str | None = None,
        client: httpx.Client | None = None,
        breaker: pybreaker.CircuitBreaker | None = None,
    ) -> None:
        self._cloud_name = cloud_name or settings.cloudinary_cloud_name
        self._auth = (api_key or settings.cloudinary_api_key, api_secret or settings.cloudinary_api_secret)
        self._base_url = f"{settings.cloudinary_api_base}/{self._cloud_name}"
        self._client = client
        self._breaker = breaker

    @property
    def client(self) -> httpx.Client:
        """Lazy initialization of httpx client."""
        if self._client is None:
            self._client = httpx.Client(timeout=settings.http_client_timeout_long)
        return self._client

    @property
    def breaker(self) -> pybreaker.CircuitBreaker:
        if self._breaker is None:
            self._breaker = get_circuit_breaker("blob_storage")
        return self._breaker

    def _send(self, method: str, path: str, **kwargs) -> dict:
        resp = self.client.request(method, f"{self._base_url}{path}", auth=self._auth, **kwargs)
        resp.raise_for_status()
        return resp.json()

    def _api_call(self, name: str, method: str, path: str, **kwargs) -> dict:
        start = time.time()
        try:
            result = self.breaker.call(self._send, method, path, **kwargs)
        except pybreaker.CircuitBreakerError as exc:
            blob_storage_requests_total.labels(method=name, status="circuit_open").inc()
            raise UpstreamUnavailable("blob_storage", "circuit open") from exc
        except redis.RedisError as exc:
            # Breaker state is unreadable; treat the provider as unavailable
            blob_storage_requests_total.labels(method=name, status="breaker_unavailable").inc()
            logger.warning("cloudinary_breaker_state_failed", extra={"method": name, "error": str(exc)})
            raise UpstreamUnavailable("blob_storage", f"breaker state unavailable: {exc}") from exc
        except (httpx.HTTPError, ValueError) as exc:
            blob_storage_requests_total.labels(method=name, status="error").inc()
            blob_storage_request_duration_seconds.labels(method=name).observe(time.time() - start)
            logger.warning("cloudinary_request_failed", extra={"method": name, "error": str(exc)})
            raise UpstreamUnavailable("blob_storage", str(exc)) from exc
        blob_storage_requests_total.labels(method=name, status="success").inc()
        blob_storage_request_duration_seconds.labels(method=name).observe(time.time() - start)
        return result

    def search(self, expression: str) -> list[BlobInfo]:
        """Run a search expression and follow next_cursor until all pages are read."""
        blobs: list[BlobInfo] = []
        cursor: str | None = None
        while True:
            body: dict = {"expression": expression, "max_results": settings.cloudinary_search_page_size}
            if cursor:
                body["next_cursor"] = cursor
            result = self._api_call("search", "POST", "/resources/search", json=body)
            for resource in result.get("resources", []):
                blobs.append(
                    BlobInfo(
                        public_id=resource["public_id"],
                        uploaded_at=_parse_timestamp(resource.get("uploaded_at") or resource.get("created_at")),
                    )
                )
            cursor = result.get("next_cursor")
            if not cursor:
                return blobs

    def delete_resources(self, public_ids: list[str]) -> dict[str, str]:
        deleted: dict[str, str] = {}
        for i in range(0, len(public_ids), DELETE_BATCH_SIZE):
            batch = public_ids[i:i + DELETE_BATCH_SIZE]
            result = self._api_call(
                "delete_resources",
                "DELETE",
                "/resources/image/upload",
                params=[("public_ids[]", public_id) for public_id in batch],
            )
            deleted.update(result.get("deleted", {}))
        return deleted

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
