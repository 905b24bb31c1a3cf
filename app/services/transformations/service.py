import logging
from typing import Any

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import Conflict
from app.services.ledger.service import LedgerService
from app.services.transformations.catalog import (
    TransformationType,
    deep_equal,
    deep_merge,
    get_image_size,
)

logger = logging.getLogger(__name__)


class TransformationService:
    def __init__(self, db: Session) -> None:
        self.ledger = LedgerService(db)

    def apply(
        self,
        user_id: str,
        transformation_type: TransformationType,
        new_config: dict[str, Any],
        current_config: dict[str, Any] | None = None,
        aspect_ratio: str | None = None,
    ) -> dict[str, Any]:
        """
        Charge the transformation fee and return the merged config to render.
        The fee is not refunded if the provider later fails to render.
        """
        if not new_config or deep_equal(new_config, current_config):
            raise Conflict("Please make some changes before applying transformations")

        merged = deep_merge(new_config, current_config)
        width = height = None
        if transformation_type == TransformationType.FILL:
            width = get_image_size(transformation_type, None, None, aspect_ratio, "width")
            height = get_image_size(transformation_type, None, None, aspect_ratio, "height")

        balance = self.ledger.try_debit(user_id, abs(settings.transformation_credit_fee))
        logger.info("transformation_applied", extra={"user_id": user_id, "new_balance": balance})
        return {"config": merged, "width": width, "height": height, "credit_balance": balance}
