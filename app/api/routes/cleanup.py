from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_blob_storage, get_db, require_admin
from app.services.reconciliation.service import ReconciliationService
from app.storage.base import BlobStorage

router = APIRouter(prefix="/cleanup", tags=["cleanup"], dependencies=[Depends(require_admin)])


@router.post("/run")
def run_cleanup(
    db: Session = Depends(get_db),
    storage: BlobStorage = Depends(get_blob_storage),
) -> dict:
    """
    Delete blobs in the image folder that are older than the grace window
    and not referenced by any image row. Same job the beat schedule runs.
    """
    return ReconciliationService(db, storage).sweep().as_dict()


@router.get("/preview")
def preview_cleanup(
    db: Session = Depends(get_db),
    storage: BlobStorage = Depends(get_blob_storage),
) -> dict:
    """Dry run: list what /cleanup/run would delete, delete nothing."""
    return ReconciliationService(db, storage).preview()
