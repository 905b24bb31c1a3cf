"""
ReconciliationService: reclaims blobs that never became an Image row.

Uploads reach blob storage before the Image row is written, so a blob is only
garbage once it is older than the grace window and still unreferenced.
Each sweep recomputes the garbage set from scratch; nothing is persisted
between runs, and a failed run is simply repeated on the next tick.
"""
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import UpstreamUnavailable
from app.models.image import Image
from app.storage.base import BlobStorage
from app.utils.metrics import sweeper_deleted_blobs_total, sweeper_runs_total

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    ok: bool
    status: str  # noop / deleted / failed
    deleted: list[str] = field(default_factory=list)
    listed_count: int = 0
    referenced_count: int = 0
    error: str | None = None

    def as_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["deleted_count"] = len(self.deleted)
        return data


class ReconciliationService:
    def __init__(
        self,
        db: Session,
        storage: BlobStorage,
        folder: str | None = None,
        grace_minutes: int | None = None,
    ) -> None:
        self.db = db
        self.storage = storage
        self.folder = folder or settings.cloudinary_image_folder
        self.grace = timedelta(
            minutes=grace_minutes if grace_minutes is not None else settings.cleanup_grace_minutes
        )

    def referenced_public_ids(self) -> set[str]:
        try:
            return {public_id for (public_id,) in self.db.query(Image.public_id).all()}
        except SQLAlchemyError as exc:
            raise UpstreamUnavailable("durable_store", str(exc)) from exc

    def find_garbage(self, now: datetime | None = None) -> tuple[list[str], int, int]:
        """Return (garbage ids, listed count, referenced count)."""
        cutoff = (now or datetime.now(timezone.utc)) - self.grace
        referenced = self.referenced_public_ids()
        listed = self.storage.list_folder(self.folder, uploaded_before=cutoff)
        # The provider filter is trusted only as far as the timestamps it reports
        undated = sorted(blob.public_id for blob in listed if blob.uploaded_at is None)
        if undated:
            logger.warning("sweep_blob_without_timestamp", extra={"public_ids": undated})
        aged = [
            blob for blob in listed
            if blob.uploaded_at is not None and blob.uploaded_at < cutoff
        ]
        garbage = sorted({blob.public_id for blob in aged} - referenced)
        return garbage, len(listed), len(referenced)

    def preview(self, now: datetime | None = None) -> dict[str, Any]:
        """Dry-run: the blobs a sweep would delete right now."""
        garbage, listed_count, referenced_count = self.find_garbage(now)
        return {
            "public_ids": garbage,
            "count": len(garbage),
            "listed_count": listed_count,
            "referenced_count": referenced_count,
            "grace_minutes": int(self.grace.total_seconds() // 60),
        }

    def sweep(self, now: datetime | None = None) -> SweepResult:
        try:
            garbage, listed_count, referenced_count = self.find_garbage(now)
            if not garbage:
                sweeper_runs_total.labels(status="noop").inc()
                logger.info(
                    "sweep_noop",
                    extra={"listed_count": listed_count, "referenced_count": referenced_count},
                )
                return SweepResult(
                    ok=True,
                    status="noop",
                    listed_count=listed_count,
                    referenced_count=referenced_count,
                )

            self.storage.delete_resources(garbage)
        except (UpstreamUnavailable, SQLAlchemyError) as exc:
            sweeper_runs_total.labels(status="failed").inc()
            logger.exception("sweep_failed", extra={"error": str(exc)})
            return SweepResult(ok=False, status="failed", error=str(exc))

        sweeper_runs_total.labels(status="deleted").inc()
        sweeper_deleted_blobs_total.inc(len(garbage))
        logger.info(
            "sweep_completed",
            extra={
                "listed_count": listed_count,
                "referenced_count": referenced_count,
                "deleted_count": len(garbage),
                "public_ids": garbage,
            },
        )
        return SweepResult(
            ok=True,
            status="deleted",
            deleted=garbage,
            listed_count=listed_count,
            referenced_count=referenced_count,
        )
