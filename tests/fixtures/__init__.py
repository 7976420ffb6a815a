# Test data and fixtures
import hashlib
import hmac
import json
import time
from typing import Any, Optional

TEST_WEBHOOK_SECRET = "whsec_test_secret"


def stripe_event(
    event_type: str,
    obj: dict[str, Any],
    created: int = 1767225600,
    event_id: str = "evt_test123",
) -> dict[str, Any]:
    """Build a Stripe event envelope."""
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "created": created,
        "livemode": False,
        "data": {"object": obj},
    }


def invoice_object(
    subscription_id: Optional[str] = "sub_test123",
    period_start: Optional[int] = None,
    period_end: Optional[int] = None,
) -> dict[str, Any]:
    invoice: dict[str, Any] = {"id": "in_test123", "object": "invoice"}
    if subscription_id is not None:
        invoice["subscription"] = subscription_id
    if period_start is not None and period_end is not None:
        invoice["lines"] = {
            "data": [{"period": {"start": period_start, "end": period_end}}]
        }
    return invoice


def subscription_object(
    subscription_id: str = "sub_test123", status: str = "active"
) -> dict[str, Any]:
    return {"id": subscription_id, "object": "subscription", "status": status}


def sign_payload(
    payload: bytes,
    secret: str = TEST_WEBHOOK_SECRET,
    timestamp: Optional[int] = None,
) -> str:
    """Produce a stripe-signature header value for a payload."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload.decode('utf-8')}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def encode_event(event: dict[str, Any]) -> bytes:
    return json.dumps(event).encode("utf-8")
