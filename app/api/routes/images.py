from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_blob_storage, get_db, require_internal
from app.schemas.images import ImageOut, ImagePage, ImageSave
from app.services.images.service import ImageService
from app.storage.base import BlobStorage

router = APIRouter(prefix="/images", tags=["images"], dependencies=[Depends(require_internal)])


@router.get("", response_model=ImagePage)
def list_images(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=6, ge=1, le=50),
    search_query: str = "",
    db: Session = Depends(get_db),
    storage: BlobStorage = Depends(get_blob_storage),
) -> dict:
    return ImageService(db, storage).list_public_images(limit=limit, page=page, search_query=search_query)


@router.get("/by-user/{user_id}", response_model=ImagePage)
def list_user_images(
    user_id: str,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=9, ge=1, le=50),
    db: Session = Depends(get_db),
) -> dict:
    return ImageService(db).list_user_images(user_id, limit=limit, page=page)


@router.get("/by-user/{user_id}/count")
def count_user_images(user_id: str, db: Session = Depends(get_db)) -> dict:
    return {"user_id": user_id, "count": ImageService(db).count_user_images(user_id)}


@router.get("/{image_id}", response_model=ImageOut)
def get_image(image_id: str, db: Session = Depends(get_db)):
    return ImageService(db).get_image(image_id)


@router.post("", response_model=ImageOut, status_code=201)
def add_image(payload: ImageSave, db: Session = Depends(get_db)):
    return ImageService(db).add_image(payload.user_id, payload.image)


@router.put("/{image_id}", response_model=ImageOut)
def update_image(image_id: str, payload: ImageSave, db: Session = Depends(get_db)):
    return ImageService(db).update_image(image_id, payload.user_id, payload.image)


@router.delete("/{image_id}")
def delete_image(
    image_id: str,
    user_id: str = Query(...),
    db: Session = Depends(get_db),
    storage: BlobStorage = Depends(get_blob_storage),
) -> dict:
    image = ImageService(db, storage).delete_image(image_id, user_id)
    return {"message": "OK", "id": image_id, "public_id": image.public_id}
