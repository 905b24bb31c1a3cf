"""
Celery task: reconcile the image folder in blob storage against Image rows.
Scheduled by beat; also callable manually via the cleanup service.
"""
import logging

from app.core.celery_app import celery_app
from app.services.reconciliation.service import ReconciliationService
from app.storage.cloudinary import CloudinaryStorage
from app.workers.runtime import get_database

logger = logging.getLogger(__name__)


@celery_app.task(
    name="app.workers.tasks.reconcile_blobs.reconcile_orphaned_blobs",
    time_limit=300,
    soft_time_limit=280,
)
def reconcile_orphaned_blobs() -> dict:
    """Delete aged, unreferenced blobs. A failed run is retried by the next tick."""
    db = get_database().session()
    storage = CloudinaryStorage()
    try:
        return ReconciliationService(db, storage).sweep().as_dict()
    except Exception as e:
        logger.exception("reconcile_orphaned_blobs_error", extra={"error": str(e)})
        return {"ok": False, "status": "failed", "error": str(e)}
    finally:
        storage.close()
        db.close()
