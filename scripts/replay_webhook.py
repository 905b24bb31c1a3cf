#!/usr/bin/env python3
"""
Replay a provider webhook against a running API with a valid signature.
Useful to re-deliver a stuck payment confirmation or identity event by hand.

Run from the project root:
    python -m scripts.replay_webhook stripe event.json --url http://localhost:8000
    PYTHONPATH=. python scripts/replay_webhook.py clerk event.json
"""
import argparse
import os
import sys
import time
import uuid

# project root on PYTHONPATH
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import httpx

from app.core.config import settings
from app.webhooks.signatures import sign_stripe_payload, sign_svix_payload


def build_headers(provider: str, payload: bytes) -> dict[str, str]:
    timestamp = int(time.time())
    if provider == "stripe":
        return {"Stripe-Signature": sign_stripe_payload(payload, settings.stripe_webhook_secret, timestamp)}
    msg_id = f"msg_{uuid.uuid4().hex}"
    return {
        "svix-id": msg_id,
        "svix-timestamp": str(timestamp),
        "svix-signature": sign_svix_payload(payload, settings.clerk_webhook_secret, msg_id, timestamp),
    }


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("provider", choices=["stripe", "clerk"])
    parser.add_argument("event_file", help="JSON body exactly as the provider sent it")
    parser.add_argument("--url", default="http://localhost:8000")
    args = parser.parse_args(argv)

    with open(args.event_file, "rb") as fh:
        payload = fh.read()

    headers = build_headers(args.provider, payload)
    headers["Content-Type"] = "application/json"
    resp = httpx.post(
        f"{args.url.rstrip('/')}/webhooks/{args.provider}",
        content=payload,
        headers=headers,
        timeout=settings.http_client_timeout,
    )
    print(f"{resp.status_code} {resp.text}")
    return 0 if resp.is_success else 1


if __name__ == "__main__":
    sys.exit(main())
