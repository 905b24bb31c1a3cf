"""
Clerk Backend API client using httpx sync client.
Used to push the internal user id into the identity provider's public metadata.
"""
import logging

import httpx

from app.core.config import settings
from app.core.errors import UpstreamUnavailable


logger = logging.getLogger(__name__)


class ClerkClient:
    def __init__(self, secret_key: str | None = None, client: httpx.Client | None = None) -> None:
        self._secret_key = secret_key or settings.clerk_secret_key
        self._base_url = settings.clerk_api_base
        self._client = client

    @property
    def client(self) -> httpx.Client:
        """Lazy initialization of httpx client."""
        if self._client is None:
            self._client = httpx.Client(timeout=settings.http_client_timeout)
        return self._client

    def update_public_metadata(self, external_id: str, public_metadata: dict) -> dict:
        try:
            resp = self.client.patch(
                f"{self._base_url}/users/{external_id}/metadata",
                json={"public_metadata": public_metadata},
                headers={"Authorization": f"Bearer {self._secret_key}"},
            )
            resp.raise_for_status()
            return resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise UpstreamUnavailable("clerk", str(exc)) from exc

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
