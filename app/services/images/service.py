import logging
import math
from typing import Any

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import ImageNotFound, Unauthorized, UpstreamUnavailable, UserNotFound
from app.models.image import Image
from app.models.user import User
from app.schemas.images import ImageIn
from app.storage.base import BlobStorage

logger = logging.getLogger(__name__)


class ImageService:
    def __init__(self, db: Session, storage: BlobStorage | None = None) -> None:
        self.db = db
        self.storage = storage

    def get_image(self, image_id: str) -> Image:
        image = self.db.query(Image).filter(Image.id == image_id).one_or_none()
        if not image:
            raise ImageNotFound(image_id)
        return image

    def add_image(self, user_id: str, data: ImageIn) -> Image:
        author = self.db.query(User).filter(User.id == user_id).one_or_none()
        if not author:
            raise UserNotFound(user_id)
        image = Image(**data.model_dump(mode="json"), author_id=author.id)
        self.db.add(image)
        self._commit()
        self.db.refresh(image)
        logger.info("image_saved", extra={"image_id": image.id, "user_id": user_id, "public_id": image.public_id})
        return image

    def update_image(self, image_id: str, user_id: str, data: ImageIn) -> Image:
        image = self._get_owned(image_id, user_id)
        for key, value in data.model_dump(mode="json").items():
            setattr(image, key, value)
        self.db.add(image)
        self._commit()
        self.db.refresh(image)
        return image

    def delete_image(self, image_id: str, user_id: str) -> Image:
        """Remove the row, then the blob. A failed blob delete leaves an orphan for the sweeper."""
        image = self._get_owned(image_id, user_id)
        public_id = image.public_id
        self.db.delete(image)
        self._commit()
        logger.info("image_deleted", extra={"image_id": image_id, "user_id": user_id, "public_id": public_id})

        if self.storage is not None:
            try:
                self.storage.delete_resources([public_id])
            except UpstreamUnavailable as exc:
                logger.warning("image_blob_delete_deferred", extra={"public_id": public_id, "error": str(exc)})
        return image

    def list_public_images(self, limit: int = 6, page: int = 1, search_query: str = "") -> dict[str, Any]:
        query = self.db.query(Image).filter(Image.is_private.is_(False))
        if search_query:
            if self.storage is None:
                raise UpstreamUnavailable("blob_storage", "search requires a storage provider")
            term = search_query.replace('"', "").strip()
            matches = self.storage.search(f'folder={settings.cloudinary_image_folder} AND "{term}"')
            query = query.filter(Image.public_id.in_([blob.public_id for blob in matches]))

        total = query.count()
        images = (
            query.order_by(Image.updated_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        saved_images = self.db.query(func.count(Image.id)).scalar() or 0
        return {
            "data": images,
            "total_pages": math.ceil(total / limit),
            "saved_images": saved_images,
        }

    def list_user_images(self, user_id: str, limit: int = 9, page: int = 1) -> dict[str, Any]:
        query = self.db.query(Image).filter(Image.author_id == user_id)
        total = query.count()
        images = (
            query.order_by(Image.updated_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return {"data": images, "total_pages": math.ceil(total / limit)}

    def count_user_images(self, user_id: str) -> int:
        return self.db.query(func.count(Image.id)).filter(Image.author_id == user_id).scalar() or 0

    def _get_owned(self, image_id: str, user_id: str) -> Image:
        image = self.get_image(image_id)
        if image.author_id != user_id:
            raise Unauthorized("not allowed to modify this image")
        return image

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise UpstreamUnavailable("durable_store", str(exc)) from exc
