"""Tests for ReconciliationService: garbage set, grace window, failure handling."""
from datetime import timedelta
from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from app.models.image import Image
from app.services.reconciliation.service import ReconciliationService


def _add_image(db, author_id: str, public_id: str) -> Image:
    image = Image(
        title=public_id,
        transformation_type="restore",
        public_id=public_id,
        secure_url=f"https://res.cloudinary.com/demo/{public_id}",
        author_id=author_id,
    )
    db.add(image)
    db.commit()
    return image


class TestSweep:
    def test_deletes_only_unreferenced_blobs(self, db_session, make_user, storage, now):
        user = make_user()
        _add_image(db_session, user.id, "imaginify/A")
        _add_image(db_session, user.id, "imaginify/B")
        old = now - timedelta(minutes=30)
        storage.blobs = {"imaginify/A": old, "imaginify/C": old, "imaginify/D": old}

        result = ReconciliationService(db_session, storage).sweep(now=now)

        assert result.ok is True
        assert result.status == "deleted"
        assert storage.delete_calls == [["imaginify/C", "imaginify/D"]]
        assert result.as_dict()["deleted_count"] == 2

    def test_no_delete_call_when_everything_is_referenced(self, db_session, make_user, storage, now):
        user = make_user()
        _add_image(db_session, user.id, "imaginify/A")
        _add_image(db_session, user.id, "imaginify/B")
        storage.blobs = {"imaginify/A": now - timedelta(hours=1)}

        result = ReconciliationService(db_session, storage).sweep(now=now)

        assert result.ok is True
        assert result.status == "noop"
        assert storage.delete_calls == []

    def test_recent_upload_survives_grace_window(self, db_session, storage, now):
        storage.blobs = {
            "imaginify/fresh": now - timedelta(minutes=2),
            "imaginify/stale": now - timedelta(minutes=6),
        }

        result = ReconciliationService(db_session, storage).sweep(now=now)

        assert result.deleted == ["imaginify/stale"]
        assert "imaginify/fresh" in storage.blobs

    def test_listing_is_scoped_to_folder_and_cutoff(self, db_session, storage, now):
        ReconciliationService(db_session, storage, folder="imaginify", grace_minutes=5).sweep(now=now)

        cutoff = int((now - timedelta(minutes=5)).timestamp())
        assert storage.expressions == [f"folder=imaginify AND uploaded_at<{cutoff}"]

    def test_storage_failure_is_reported_not_raised(self, db_session, storage, now):
        storage.blobs = {"imaginify/orphan": now - timedelta(hours=1)}
        storage.fail_delete = True

        result = ReconciliationService(db_session, storage).sweep(now=now)

        assert result.ok is False
        assert result.status == "failed"
        assert "blob_storage" in result.error

    def test_database_failure_deletes_nothing(self, db_session, storage, now):
        storage.blobs = {"imaginify/orphan": now - timedelta(hours=1)}
        service = ReconciliationService(db_session, storage)

        with patch.object(db_session, "query", side_effect=OperationalError("SELECT", {}, Exception("down"))):
            result = service.sweep(now=now)

        assert result.ok is False
        assert storage.expressions == []
        assert storage.delete_calls == []

    def test_blob_without_timestamp_is_kept(self, db_session, storage, now):
        storage.blobs = {"imaginify/undated": None, "imaginify/stale": now - timedelta(hours=1)}

        result = ReconciliationService(db_session, storage).sweep(now=now)

        assert result.deleted == ["imaginify/stale"]
        assert "imaginify/undated" in storage.blobs

    def test_breaker_store_outage_fails_the_run(self, db_session, cloudinary_with_redis_down, now):
        result = ReconciliationService(db_session, cloudinary_with_redis_down).sweep(now=now)

        assert result.ok is False
        assert result.status == "failed"
        assert "blob_storage" in result.error
        assert cloudinary_with_redis_down.http_calls == []


class TestPreview:
    def test_preview_lists_garbage_without_deleting(self, db_session, storage, now):
        storage.blobs = {"imaginify/orphan": now - timedelta(hours=1)}

        preview = ReconciliationService(db_session, storage).preview(now=now)

        assert preview["public_ids"] == ["imaginify/orphan"]
        assert preview["grace_minutes"] == 5
        assert storage.delete_calls == []
