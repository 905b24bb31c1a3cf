"""
Process-scoped resources for the FastAPI apps.

The database handle and provider clients are built when the app starts and
released when it stops; request handlers reach them through ``app.state``.
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.core.config import settings
from app.core.logging import configure_logging
from app.db.session import Database
from app.services.clerk.client import ClerkClient
from app.services.stripe.client import StripeClient
from app.storage.cloudinary import CloudinaryStorage

logger = logging.getLogger(__name__)


def open_resources(app: FastAPI) -> None:
    app.state.database = Database(settings.database_url)
    app.state.blob_storage = CloudinaryStorage()
    app.state.stripe = StripeClient()
    app.state.clerk = ClerkClient()


def close_resources(app: FastAPI) -> None:
    for name in ("blob_storage", "clerk"):
        resource = getattr(app.state, name, None)
        if resource is not None:
            resource.close()
    database = getattr(app.state, "database", None)
    if database is not None:
        database.dispose()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    configure_logging()
    open_resources(app)
    logger.info("app_started")
    try:
        yield
    finally:
        close_resources(app)
        logger.info("app_stopped")
