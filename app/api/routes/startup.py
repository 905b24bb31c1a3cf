"""Reads used by the frontend while it renders the first page."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_blob_storage, get_db, require_internal
from app.schemas.images import ImagePage
from app.schemas.users import UserOut
from app.services.images.service import ImageService
from app.services.users.service import UserService
from app.storage.base import BlobStorage

router = APIRouter(prefix="/startup", tags=["startup"], dependencies=[Depends(require_internal)])


@router.get("/images", response_model=ImagePage)
def startup_images(
    db: Session = Depends(get_db),
    storage: BlobStorage = Depends(get_blob_storage),
) -> dict:
    return ImageService(db, storage).list_public_images(page=1)


@router.get("/users/{external_id}", response_model=UserOut)
def startup_user(external_id: str, db: Session = Depends(get_db)):
    return UserService(db).require_by_external_id(external_id)
