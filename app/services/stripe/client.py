"""
Stripe client built on the official SDK.
Only the Checkout Session call is needed; webhook verification lives in app.webhooks.signatures.
"""
import logging
from decimal import ROUND_HALF_UP, Decimal

import stripe

from app.core.config import settings
from app.core.errors import UpstreamUnavailable


logger = logging.getLogger(__name__)


def to_minor_units(amount: Decimal) -> int:
    """Major currency units to the integer minor units Stripe charges (half-up)."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class StripeClient:
    def __init__(self, secret_key: str | None = None) -> None:
        self._secret_key = secret_key or settings.stripe_secret_key

    def create_checkout_session(
        self,
        *,
        product_name: str,
        amount: Decimal,
        currency: str,
        metadata: dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> stripe.checkout.Session:
        """Create a one-off payment session; amount is in major units and sent in minor units."""
        line_item = {
            "price_data": {
                "currency": currency.lower(),
                "unit_amount": to_minor_units(amount),
                "product_data": {"name": product_name},
            },
            "quantity": 1,
        }
        try:
            return stripe.checkout.Session.create(
                api_key=self._secret_key,
                mode="payment",
                line_items=[line_item],
                metadata=metadata,
                success_url=success_url,
                cancel_url=cancel_url,
            )
        except stripe.StripeError as exc:
            logger.warning("stripe_request_failed", extra={"path": "/checkout/sessions", "error": str(exc)})
            raise UpstreamUnavailable("stripe", str(exc)) from exc
