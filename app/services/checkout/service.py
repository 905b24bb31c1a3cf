import logging
from decimal import Decimal

from app.core.config import settings
from app.services.stripe.client import StripeClient

logger = logging.getLogger(__name__)


class CheckoutService:
    """Starts a credit purchase (INITIATED). Nothing is stored until the provider confirms it."""

    def __init__(self, stripe: StripeClient):
        self.stripe = stripe

    def create_session(
        self,
        plan: str,
        credits: int,
        amount: Decimal,
        buyer_id: str,
        success_url: str,
        cancel_url: str,
    ) -> dict[str, str]:
        session = self.stripe.create_checkout_session(
            product_name=plan,
            amount=amount,
            currency=settings.stripe_currency,
            metadata={"plan": plan, "credits": str(credits), "buyerId": buyer_id},
            success_url=success_url,
            cancel_url=cancel_url,
        )
        logger.info("checkout_session_created", extra={"user_id": buyer_id, "credits": credits})
        return {"session_id": session.id, "url": session.url}
