"""Tests for ImageService: ownership checks, pagination, search via blob storage."""
from datetime import datetime, timedelta, timezone

import pytest

from app.core.errors import ImageNotFound, Unauthorized, UserNotFound
from app.models.image import Image
from app.schemas.images import ImageIn
from app.services.images.service import ImageService


def _image_in(public_id: str, **kwargs) -> ImageIn:
    return ImageIn(
        title=kwargs.get("title", public_id),
        public_id=public_id,
        transformation_type=kwargs.get("transformation_type", "restore"),
        secure_url=f"https://res.cloudinary.com/demo/{public_id}",
        width=800,
        height=600,
        config=kwargs.get("config", {"restore": True}),
        is_private=kwargs.get("is_private", False),
    )


def _seed(db, author_id: str, count: int, private: bool = False) -> list[Image]:
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    images = []
    for i in range(count):
        image = Image(
            title=f"img {i}",
            transformation_type="restore",
            public_id=f"imaginify/{'p' if private else 'i'}{i}",
            secure_url="https://res.cloudinary.com/demo/x",
            author_id=author_id,
            is_private=private,
            updated_at=base + timedelta(minutes=i),
        )
        db.add(image)
        images.append(image)
    db.commit()
    return images


class TestAddAndUpdate:
    def test_add_image_for_existing_user(self, db_session, make_user):
        user = make_user()
        image = ImageService(db_session).add_image(user.id, _image_in("imaginify/new"))

        assert image.author_id == user.id
        assert image.transformation_type == "restore"
        assert image.config == {"restore": True}

    def test_add_image_for_unknown_user(self, db_session):
        with pytest.raises(UserNotFound):
            ImageService(db_session).add_image("missing", _image_in("imaginify/new"))

    def test_only_author_can_update(self, db_session, make_user):
        author = make_user()
        stranger = make_user()
        image = ImageService(db_session).add_image(author.id, _image_in("imaginify/own"))

        with pytest.raises(Unauthorized):
            ImageService(db_session).update_image(image.id, stranger.id, _image_in("imaginify/own", title="x"))

        updated = ImageService(db_session).update_image(image.id, author.id, _image_in("imaginify/own", title="y"))
        assert updated.title == "y"


class TestDelete:
    def test_author_delete_removes_row_and_blob(self, db_session, make_user, storage):
        author = make_user()
        image = ImageService(db_session).add_image(author.id, _image_in("imaginify/gone"))
        image_id = image.id

        ImageService(db_session, storage).delete_image(image_id, author.id)

        assert storage.delete_calls == [["imaginify/gone"]]
        with pytest.raises(ImageNotFound):
            ImageService(db_session).get_image(image_id)

    def test_blob_failure_does_not_restore_row(self, db_session, make_user, storage):
        author = make_user()
        image_id = ImageService(db_session).add_image(author.id, _image_in("imaginify/stuck")).id
        storage.fail_delete = True

        ImageService(db_session, storage).delete_image(image_id, author.id)

        assert db_session.query(Image).count() == 0

    def test_breaker_store_outage_still_deletes_row(self, db_session, make_user, cloudinary_with_redis_down):
        author = make_user()
        image_id = ImageService(db_session).add_image(author.id, _image_in("imaginify/rd")).id

        ImageService(db_session, cloudinary_with_redis_down).delete_image(image_id, author.id)

        assert db_session.query(Image).count() == 0

    def test_stranger_cannot_delete(self, db_session, make_user, storage):
        author = make_user()
        stranger = make_user()
        image_id = ImageService(db_session).add_image(author.id, _image_in("imaginify/kept")).id

        with pytest.raises(Unauthorized):
            ImageService(db_session, storage).delete_image(image_id, stranger.id)
        assert storage.delete_calls == []


class TestListing:
    def test_public_listing_hides_private_images(self, db_session, make_user):
        user = make_user()
        _seed(db_session, user.id, 8)
        _seed(db_session, user.id, 2, private=True)

        page = ImageService(db_session).list_public_images(limit=6, page=1)

        assert len(page["data"]) == 6
        assert all(not image.is_private for image in page["data"])
        assert page["total_pages"] == 2
        assert page["saved_images"] == 10

    def test_public_listing_newest_first(self, db_session, make_user):
        user = make_user()
        _seed(db_session, user.id, 3)

        page = ImageService(db_session).list_public_images()

        assert [image.public_id for image in page["data"]] == ["imaginify/i2", "imaginify/i1", "imaginify/i0"]

    def test_search_filters_by_storage_matches(self, db_session, make_user, storage):
        user = make_user()
        _seed(db_session, user.id, 4)
        storage.blobs = {"imaginify/i1": None, "imaginify/i3": None}

        page = ImageService(db_session, storage).list_public_images(search_query='cat "photo"')

        assert sorted(image.public_id for image in page["data"]) == ["imaginify/i1", "imaginify/i3"]
        assert page["total_pages"] == 1
        assert storage.expressions == ['folder=imaginify AND "cat photo"']

    def test_user_listing_and_count(self, db_session, make_user):
        user = make_user()
        other = make_user()
        _seed(db_session, user.id, 10)

        service = ImageService(db_session)
        page = service.list_user_images(user.id, limit=9, page=2)

        assert len(page["data"]) == 1
        assert page["total_pages"] == 2
        assert service.count_user_images(user.id) == 10
        assert service.count_user_images(other.id) == 0
