"""
Provider webhooks: payment confirmations (Stripe) and identity lifecycle (Clerk).

Signatures are verified against the raw body before any field is trusted.
Errors surface as non-2xx so the provider re-delivers; handlers are idempotent.
"""
import logging
from decimal import Decimal

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from app.api.deps import get_blob_storage, get_clerk_client, get_db, raw_body
from app.core.config import settings
from app.core.errors import AppError, Conflict
from app.schemas.credits import TransactionOut
from app.schemas.users import UserCreate, UserOut, UserUpdate
from app.schemas.webhooks import ClerkEvent, ClerkUserData, StripeCheckoutSession, StripeEvent
from app.services.clerk.client import ClerkClient
from app.services.ledger.service import LedgerService, Purchase
from app.services.users.service import UserService
from app.storage.base import BlobStorage
from app.utils.metrics import webhook_events_total
from app.webhooks.signatures import verify_stripe_signature, verify_svix_signature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

CHECKOUT_COMPLETED = "checkout.session.completed"


def _parse_credits(session: StripeCheckoutSession) -> int:
    """Credits from session metadata; unparseable values become 0, which the ledger refuses."""
    raw = session.metadata.get("credits")
    try:
        return int(raw or "")
    except ValueError:
        logger.warning("purchase_credits_unparseable", extra={"payment_id": session.id, "error": repr(raw)})
        return 0


def _parse(model: type[BaseModel], payload: bytes):
    try:
        return model.model_validate_json(payload)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail="malformed event payload") from exc


def _purchase_from_session(session: StripeCheckoutSession) -> Purchase:
    return Purchase(
        payment_id=session.id,
        amount=(Decimal(session.amount_total or 0) / 100).quantize(Decimal("0.01")),
        plan=session.metadata.get("plan", ""),
        credits=_parse_credits(session),
        buyer_id=session.metadata.get("buyerId", ""),
    )


@router.post("/stripe")
def stripe_webhook(
    payload: bytes = Depends(raw_body),
    stripe_signature: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> dict:
    verify_stripe_signature(
        payload,
        stripe_signature,
        settings.stripe_webhook_secret,
        tolerance_seconds=settings.webhook_tolerance_seconds,
    )
    event = _parse(StripeEvent, payload)
    if event.type != CHECKOUT_COMPLETED:
        webhook_events_total.labels(source="stripe", event_type=event.type, status="ignored").inc()
        return {"message": f'Webhook does not handle "{event.type}" event'}

    try:
        session = StripeCheckoutSession.model_validate(event.data.get("object") or {})
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail="malformed checkout session") from exc
    try:
        result = LedgerService(db).record_purchase(_purchase_from_session(session))
    except AppError:
        webhook_events_total.labels(source="stripe", event_type=event.type, status="failed").inc()
        raise

    webhook_events_total.labels(
        source="stripe",
        event_type=event.type,
        status="duplicate" if result.replayed else "processed",
    ).inc()
    return {
        "message": "OK",
        "state": result.state.value,
        "replayed": result.replayed,
        "transaction": TransactionOut.model_validate(result.transaction).model_dump(mode="json"),
    }


@router.post("/clerk")
def clerk_webhook(
    payload: bytes = Depends(raw_body),
    svix_id: str | None = Header(default=None),
    svix_timestamp: str | None = Header(default=None),
    svix_signature: str | None = Header(default=None),
    db: Session = Depends(get_db),
    storage: BlobStorage = Depends(get_blob_storage),
    clerk: ClerkClient = Depends(get_clerk_client),
) -> dict:
    verify_svix_signature(
        payload,
        svix_id,
        svix_timestamp,
        svix_signature,
        settings.clerk_webhook_secret,
        tolerance_seconds=settings.webhook_tolerance_seconds,
    )
    event = _parse(ClerkEvent, payload)
    service = UserService(db, storage=storage, clerk=clerk)

    try:
        if event.type == "user.created":
            data = ClerkUserData.model_validate(event.data)
            if not data.email_addresses:
                raise Conflict(f"identity {data.id} has no email address")
            user = service.create_user(
                UserCreate(
                    external_id=data.id,
                    email=data.email_addresses[0].email_address,
                    username=data.username or data.id,
                    photo=data.image_url or "",
                    first_name=data.first_name,
                    last_name=data.last_name,
                )
            )
            body = {"message": "OK", "user": UserOut.model_validate(user).model_dump(mode="json")}
        elif event.type == "user.updated":
            data = ClerkUserData.model_validate(event.data)
            changes = {"first_name": data.first_name, "last_name": data.last_name}
            if data.username:
                changes["username"] = data.username
            if data.image_url:
                changes["photo"] = data.image_url
            user = service.update_user(data.id, UserUpdate(**changes))
            body = {"message": "OK", "user": UserOut.model_validate(user).model_dump(mode="json")}
        elif event.type == "user.deleted":
            deleted = service.delete_user(str(event.data.get("id") or ""))
            body = {
                "message": "OK",
                "user": {"id": deleted.id, "external_id": deleted.external_id},
                "deleted_images": len(deleted.image_public_ids),
                "blobs_deleted": deleted.blobs_deleted,
            }
        else:
            webhook_events_total.labels(source="clerk", event_type=event.type, status="ignored").inc()
            return {"message": f'Webhook does not handle "{event.type}" event'}
    except AppError:
        webhook_events_total.labels(source="clerk", event_type=event.type, status="failed").inc()
        raise
    except ValidationError as exc:
        webhook_events_total.labels(source="clerk", event_type=event.type, status="failed").inc()
        raise HTTPException(status_code=400, detail="malformed user payload") from exc

    webhook_events_total.labels(source="clerk", event_type=event.type, status="processed").inc()
    logger.info("identity_event_processed", extra={"event_type": event.type})
    return body
