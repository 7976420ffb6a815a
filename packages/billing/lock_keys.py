"""Lock key generators for billing package."""


def webhook_lock_key(external_subscription_id: str) -> str:
    """Serializes webhook processing per provider subscription."""
    return f"billing_webhook:{external_subscription_id}"
