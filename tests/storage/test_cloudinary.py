"""Tests for CloudinaryStorage: cursor paging, chunked deletes, breaker and error mapping."""
import json
from datetime import datetime, timedelta, timezone

import httpx
import pybreaker
import pytest

from app.core.errors import UpstreamUnavailable
from app.storage.cloudinary import DELETE_BATCH_SIZE, CloudinaryStorage


def _storage(handler, breaker=None) -> CloudinaryStorage:
    return CloudinaryStorage(
        cloud_name="demo",
        api_key="key",
        api_secret="secret",
        client=httpx.Client(transport=httpx.MockTransport(handler)),
        breaker=breaker or pybreaker.CircuitBreaker(fail_max=5),
    )


class TestSearch:
    def test_follows_next_cursor(self):
        bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            bodies.append(body)
            if "next_cursor" not in body:
                return httpx.Response(200, json={
                    "resources": [{"public_id": "imaginify/a", "uploaded_at": "2024-05-01T10:00:00Z"}],
                    "next_cursor": "page2",
                })
            return httpx.Response(200, json={"resources": [{"public_id": "imaginify/b", "created_at": None}]})

        blobs = _storage(handler).search("folder=imaginify")

        assert [b.public_id for b in blobs] == ["imaginify/a", "imaginify/b"]
        assert blobs[0].uploaded_at == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
        assert blobs[1].uploaded_at is None
        assert bodies[1]["next_cursor"] == "page2"
        assert all(b["expression"] == "folder=imaginify" for b in bodies)

    def test_list_folder_builds_expression(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content)["expression"])
            return httpx.Response(200, json={"resources": []})

        cutoff = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc) - timedelta(minutes=5)
        _storage(handler).list_folder("imaginify", uploaded_before=cutoff)

        assert seen == [f"folder=imaginify AND uploaded_at<{int(cutoff.timestamp())}"]

    def test_auth_and_url(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/v1_1/demo/resources/search"
            assert request.headers["authorization"].startswith("Basic ")
            return httpx.Response(200, json={"resources": []})

        assert _storage(handler).search("folder=x") == []


class TestDelete:
    def test_deletes_are_chunked(self):
        batches = []

        def handler(request: httpx.Request) -> httpx.Response:
            ids = request.url.params.get_list("public_ids[]")
            batches.append(ids)
            return httpx.Response(200, json={"deleted": {i: "deleted" for i in ids}})

        ids = [f"imaginify/{i}" for i in range(DELETE_BATCH_SIZE + 5)]
        result = _storage(handler).delete_resources(ids)

        assert [len(b) for b in batches] == [DELETE_BATCH_SIZE, 5]
        assert len(result) == DELETE_BATCH_SIZE + 5


class TestFailures:
    def test_http_error_maps_to_upstream_unavailable(self):
        storage = _storage(lambda request: httpx.Response(500, json={"error": {"message": "boom"}}))

        with pytest.raises(UpstreamUnavailable):
            storage.search("folder=x")

    def test_open_breaker_short_circuits(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(503)

        storage = _storage(handler, breaker=pybreaker.CircuitBreaker(fail_max=2, reset_timeout=60))
        for _ in range(3):
            with pytest.raises(UpstreamUnavailable):
                storage.delete_resources(["imaginify/a"])

        assert len(calls) == 2

    def test_unreachable_breaker_store_is_upstream_unavailable(self, cloudinary_with_redis_down):
        with pytest.raises(UpstreamUnavailable):
            cloudinary_with_redis_down.delete_resources(["imaginify/a"])
        with pytest.raises(UpstreamUnavailable):
            cloudinary_with_redis_down.search("folder=imaginify")
        assert cloudinary_with_redis_down.http_calls == []
