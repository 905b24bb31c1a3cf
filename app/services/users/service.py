import logging
from dataclasses import dataclass, field

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import Conflict, UpstreamUnavailable, UserNotFound
from app.models.image import Image
from app.models.user import User
from app.schemas.users import UserCreate, UserUpdate
from app.services.clerk.client import ClerkClient
from app.services.ledger.service import LedgerService
from app.storage.base import BlobStorage

logger = logging.getLogger(__name__)


@dataclass
class DeletedUser:
    id: str
    external_id: str
    image_public_ids: list[str] = field(default_factory=list)
    blobs_deleted: bool = False


class UserService:
    def __init__(
        self,
        db: Session,
        storage: BlobStorage | None = None,
        clerk: ClerkClient | None = None,
    ):
        self.db = db
        self.storage = storage
        self.clerk = clerk

    def get_by_external_id(self, external_id: str) -> User | None:
        return self.db.query(User).filter(User.external_id == external_id).one_or_none()

    def require_by_external_id(self, external_id: str) -> User:
        user = self.get_by_external_id(external_id)
        if not user:
            raise UserNotFound(external_id)
        return user

    def create_user(self, data: UserCreate) -> User:
        """
        Create the local account for a new identity and grant signup credits.
        A replayed user.created event returns the existing account unchanged.
        """
        existing = self.get_by_external_id(data.external_id)
        if existing:
            logger.info("user_already_exists", extra={"external_id": data.external_id})
            return existing

        user = User(
            external_id=data.external_id,
            email=data.email,
            username=data.username,
            photo=data.photo,
            first_name=data.first_name,
            last_name=data.last_name,
        )
        try:
            self.db.add(user)
            LedgerService(self.db).grant_signup_credits(user)
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise Conflict(f"user already exists: {data.email}") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise UpstreamUnavailable("durable_store", str(exc)) from exc
        self.db.refresh(user)
        logger.info("user_created", extra={"user_id": user.id, "external_id": user.external_id})

        self._sync_identity_metadata(user)
        return user

    def update_user(self, external_id: str, data: UserUpdate) -> User:
        user = self.require_by_external_id(external_id)
        for key, value in data.model_dump(exclude_unset=True).items():
            setattr(user, key, value)
        try:
            self.db.add(user)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise UpstreamUnavailable("durable_store", str(exc)) from exc
        self.db.refresh(user)
        return user

    def delete_user(self, external_id: str) -> DeletedUser:
        """
        Delete the user and every Image they own in one store transaction,
        then best-effort delete their blobs. Blobs left behind are reclaimed
        by the reconciliation sweeper once they age past the grace window.
        """
        user = self.require_by_external_id(external_id)
        deleted = DeletedUser(id=user.id, external_id=user.external_id)
        try:
            deleted.image_public_ids = [
                public_id
                for (public_id,) in self.db.query(Image.public_id).filter(Image.author_id == user.id).all()
            ]
            # Images first: if the user row survives a failure, re-running is safe
            self.db.query(Image).filter(Image.author_id == user.id).delete(synchronize_session=False)
            self._delete_user_row(user)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("user_delete_rolled_back", extra={"external_id": external_id})
            raise UpstreamUnavailable("durable_store", str(exc)) from exc

        logger.info(
            "user_deleted",
            extra={
                "user_id": deleted.id,
                "external_id": external_id,
                "deleted_count": len(deleted.image_public_ids),
            },
        )
        deleted.blobs_deleted = self._delete_blobs(deleted)
        return deleted

    def _delete_user_row(self, user: User) -> None:
        self.db.delete(user)
        self.db.flush()

    def _delete_blobs(self, deleted: DeletedUser) -> bool:
        if not deleted.image_public_ids:
            return True
        if self.storage is None:
            logger.warning("user_blobs_delete_deferred", extra={"user_id": deleted.id, "error": "no_storage"})
            return False
        try:
            self.storage.delete_resources(deleted.image_public_ids)
            return True
        except UpstreamUnavailable as exc:
            logger.warning(
                "user_blobs_delete_deferred",
                extra={"user_id": deleted.id, "public_ids": deleted.image_public_ids, "error": str(exc)},
            )
            return False

    def _sync_identity_metadata(self, user: User) -> None:
        if self.clerk is None:
            return
        try:
            self.clerk.update_public_metadata(user.external_id, {"userId": user.id})
        except UpstreamUnavailable as exc:
            logger.warning(
                "identity_metadata_sync_failed",
                extra={"user_id": user.id, "external_id": user.external_id, "error": str(exc)},
            )
