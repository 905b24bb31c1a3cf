from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_stripe_client, require_internal
from app.schemas.credits import CheckoutIn, CheckoutOut, TransformationApplyIn, TransformationApplyOut
from app.schemas.users import BalanceOut
from app.services.checkout.service import CheckoutService
from app.services.ledger.service import LedgerService
from app.services.stripe.client import StripeClient
from app.services.transformations.service import TransformationService

router = APIRouter(tags=["credits"], dependencies=[Depends(require_internal)])


@router.post("/credits/checkout", response_model=CheckoutOut)
def checkout(payload: CheckoutIn, stripe: StripeClient = Depends(get_stripe_client)) -> dict:
    return CheckoutService(stripe).create_session(
        plan=payload.plan,
        credits=payload.credits,
        amount=payload.amount,
        buyer_id=payload.buyer_id,
        success_url=payload.success_url,
        cancel_url=payload.cancel_url,
    )


@router.get("/credits/{user_id}", response_model=BalanceOut)
def get_balance(user_id: str, db: Session = Depends(get_db)) -> dict:
    return {"user_id": user_id, "credit_balance": LedgerService(db).get_balance(user_id)}


@router.post("/transformations/apply", response_model=TransformationApplyOut)
def apply_transformation(payload: TransformationApplyIn, db: Session = Depends(get_db)) -> dict:
    """Charge the transformation fee and return the config the client should render."""
    return TransformationService(db).apply(
        payload.user_id,
        payload.transformation_type,
        payload.new_config,
        current_config=payload.current_config,
        aspect_ratio=payload.aspect_ratio,
    )
