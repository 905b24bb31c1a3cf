"""
Per-process resources for Celery workers.

Each forked worker process opens its own database handle on start and
disposes of it on shutdown; connections are never shared across a fork.
"""
import logging

from celery.signals import worker_process_init, worker_process_shutdown

from app.core.config import settings
from app.core.logging import configure_logging
from app.db.session import Database

logger = logging.getLogger(__name__)

_database: Database | None = None


@worker_process_init.connect
def init_worker_process(**kwargs) -> None:
    global _database
    configure_logging()
    _database = Database(settings.database_url)
    logger.info("worker_process_started")


@worker_process_shutdown.connect
def shutdown_worker_process(**kwargs) -> None:
    global _database
    if _database is not None:
        _database.dispose()
        _database = None
    logger.info("worker_process_stopped")


def get_database() -> Database:
    """Database for the current worker process (opened lazily outside a prefork pool)."""
    global _database
    if _database is None:
        _database = Database(settings.database_url)
    return _database
