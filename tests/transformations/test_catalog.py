"""Tests for the transformation catalog helpers and TransformationService."""
import pytest

from app.core.errors import Conflict, InsufficientCredits
from app.services.transformations.catalog import (
    TransformationType,
    deep_equal,
    deep_merge,
    default_config,
    get_image_size,
)
from app.services.transformations.service import TransformationService


class TestDeepMerge:
    def test_primary_wins_and_nested_keys_merge(self):
        merged = deep_merge(
            {"recolor": {"prompt": "car", "to": "red"}},
            {"recolor": {"prompt": "", "to": "", "multiple": True}, "restore": True},
        )
        assert merged == {"recolor": {"prompt": "car", "to": "red", "multiple": True}, "restore": True}

    def test_inputs_are_not_mutated(self):
        fallback = {"remove": {"prompt": ""}}
        deep_merge({"remove": {"prompt": "x"}}, fallback)
        assert fallback == {"remove": {"prompt": ""}}

    def test_missing_fallback_copies_primary(self):
        assert deep_merge({"restore": True}, None) == {"restore": True}


class TestDeepEqual:
    def test_nested_equality(self):
        assert deep_equal({"a": {"b": 1}}, {"a": {"b": 1}})
        assert not deep_equal({"a": {"b": 1}}, {"a": {"b": 2}})
        assert not deep_equal({"a": 1}, None)


class TestImageSize:
    def test_fill_uses_aspect_ratio(self):
        assert get_image_size(TransformationType.FILL, 10, 10, "9:16", "height") == 1778
        assert get_image_size(TransformationType.FILL, 10, 10, None, "width") == 1000

    def test_other_types_keep_stored_size(self):
        assert get_image_size(TransformationType.RESTORE, 640, 480, None, "height") == 480
        assert get_image_size(TransformationType.RESTORE, None, None, None, "width") == 1000

    def test_unknown_dimension(self):
        with pytest.raises(ValueError):
            get_image_size(TransformationType.FILL, None, None, "1:1", "depth")

    def test_default_config_is_a_copy(self):
        config = default_config(TransformationType.REMOVE)
        config["remove"]["prompt"] = "dog"
        assert default_config(TransformationType.REMOVE)["remove"]["prompt"] == ""


class TestApply:
    def test_apply_charges_one_credit(self, db_session, make_user):
        user = make_user(credit_balance=3)

        result = TransformationService(db_session).apply(
            user.id,
            TransformationType.FILL,
            {"fillBackground": True},
            aspect_ratio="3:4",
        )

        assert result["credit_balance"] == 2
        assert (result["width"], result["height"]) == (1000, 1334)

    def test_unchanged_config_is_rejected_without_charge(self, db_session, make_user):
        user = make_user(credit_balance=3)

        with pytest.raises(Conflict):
            TransformationService(db_session).apply(
                user.id, TransformationType.RESTORE, {"restore": True}, current_config={"restore": True}
            )
        db_session.refresh(user)
        assert user.credit_balance == 3

    def test_empty_balance_is_rejected(self, db_session, make_user):
        user = make_user(credit_balance=0)

        with pytest.raises(InsufficientCredits):
            TransformationService(db_session).apply(user.id, TransformationType.RESTORE, {"restore": True})
