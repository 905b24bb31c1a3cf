"""
Webhook signature verification for the payment (Stripe) and identity (Clerk/Svix) providers.

Stripe headers are checked by the Stripe SDK, Svix headers here; both fail closed
when the secret is not configured. Failures raise Unauthorized.
"""
import base64
import binascii
import hashlib
import hmac
import logging
import time

import stripe

from app.core.errors import Unauthorized

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE_SECONDS = 300


def _check_timestamp(timestamp: int, tolerance_seconds: int, now: float | None) -> None:
    current = int(now if now is not None else time.time())
    if abs(current - timestamp) > tolerance_seconds:
        logger.warning("webhook_timestamp_out_of_tolerance", extra={"error": f"delta={abs(current - timestamp)}s"})
        raise Unauthorized("webhook timestamp outside tolerance")


def verify_stripe_signature(
    payload: bytes,
    signature_header: str | None,
    secret: str,
    tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
) -> None:
    """
    Verify a ``Stripe-Signature`` header with the Stripe SDK. The SDK rejects
    signatures older than ``tolerance_seconds``.
    """
    if not secret:
        logger.error("stripe_webhook_secret_missing")
        raise Unauthorized("stripe webhook secret not configured")
    if not signature_header:
        raise Unauthorized("missing stripe-signature")
    try:
        stripe.WebhookSignature.verify_header(
            payload.decode("utf-8"), signature_header, secret, tolerance=tolerance_seconds
        )
    except UnicodeDecodeError:
        raise Unauthorized("stripe payload is not utf-8") from None
    except stripe.SignatureVerificationError as exc:
        logger.warning("stripe_signature_rejected", extra={"error": str(exc)})
        raise Unauthorized("stripe signature verification failed") from exc


def _svix_key(secret: str) -> bytes:
    raw = secret[len("whsec_"):] if secret.startswith("whsec_") else secret
    try:
        return base64.b64decode(raw)
    except (binascii.Error, ValueError):
        raise Unauthorized("invalid svix secret") from None


def verify_svix_signature(
    payload: bytes,
    msg_id: str | None,
    msg_timestamp: str | None,
    signature_header: str | None,
    secret: str,
    tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
    now: float | None = None,
) -> None:
    """
    Verify Svix headers (used by Clerk). ``svix-signature`` is a space separated
    list of ``v1,<base64 hmac>`` over ``"<id>.<timestamp>." + body``.
    """
    if not secret:
        logger.error("clerk_webhook_secret_missing")
        raise Unauthorized("clerk webhook secret not configured")
    if not msg_id or not msg_timestamp or not signature_header:
        raise Unauthorized("missing svix headers")
    try:
        timestamp = int(msg_timestamp)
    except ValueError:
        raise Unauthorized("malformed svix-timestamp") from None

    _check_timestamp(timestamp, tolerance_seconds, now)

    signed = f"{msg_id}.{timestamp}.".encode("utf-8") + payload
    expected = base64.b64encode(hmac.new(_svix_key(secret), signed, hashlib.sha256).digest()).decode()
    for versioned in signature_header.split(" "):
        version, _, signature = versioned.partition(",")
        if version == "v1" and hmac.compare_digest(expected, signature):
            return
    raise Unauthorized("svix signature mismatch")


def sign_stripe_payload(payload: bytes, secret: str, timestamp: int) -> str:
    """Build a Stripe-Signature header value (used for local replays and tests)."""
    signature = hmac.new(
        secret.encode("utf-8"), f"{timestamp}.".encode("utf-8") + payload, hashlib.sha256
    ).hexdigest()
    return f"t={timestamp},v1={signature}"


def sign_svix_payload(payload: bytes, secret: str, msg_id: str, timestamp: int) -> str:
    """Build an svix-signature header value (used for local replays and tests)."""
    signed = f"{msg_id}.{timestamp}.".encode("utf-8") + payload
    return "v1," + base64.b64encode(hmac.new(_svix_key(secret), signed, hashlib.sha256).digest()).decode()
