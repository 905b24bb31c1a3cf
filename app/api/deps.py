from fastapi import Header, HTTPException, Request

from app.core.config import settings
from app.db.session import get_db
from app.services.clerk.client import ClerkClient
from app.services.stripe.client import StripeClient
from app.storage.base import BlobStorage

__all__ = [
    "get_db",
    "get_blob_storage",
    "get_stripe_client",
    "get_clerk_client",
    "raw_body",
    "require_admin",
    "require_internal",
]


def get_blob_storage(request: Request) -> BlobStorage:
    return request.app.state.blob_storage


def get_stripe_client(request: Request) -> StripeClient:
    return request.app.state.stripe


def get_clerk_client(request: Request) -> ClerkClient:
    return request.app.state.clerk


async def raw_body(request: Request) -> bytes:
    """Signed webhooks must be verified against the exact bytes received."""
    return await request.body()


def require_admin(x_admin_key: str | None = Header(default=None)) -> None:
    if settings.admin_api_key and x_admin_key != settings.admin_api_key:
        raise HTTPException(status_code=401, detail="unauthorized")


def require_internal(x_internal_secret: str | None = Header(default=None)) -> None:
    if not settings.internal_api_secret or x_internal_secret != settings.internal_api_secret:
        raise HTTPException(status_code=401, detail="Missing a significant header")
