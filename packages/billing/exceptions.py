"""
Billing error taxonomy.

Each error carries the HTTP status it maps to; the app-level handler in
common.core.error_handlers renders them.
"""

from typing import Any, Dict, Optional

from common.core.exceptions import AppException, ConflictError, NotFoundError


class PlanNotFoundError(NotFoundError):
    """Unknown plan."""

    def __init__(self, plan_id: str):
        self.plan_id = plan_id
        super().__init__(f"Plan not found: {plan_id}")


class AccountNotFoundError(NotFoundError):
    """Unknown account."""

    def __init__(self, account_id: int):
        self.account_id = account_id
        super().__init__(f"Account not found: {account_id}")


class SubscriptionNotFoundError(NotFoundError):
    """No paid subscription for the account."""

    def __init__(self, account_id: int):
        self.account_id = account_id
        super().__init__(f"No active subscription for account {account_id}")


class CustomerNotFoundError(NotFoundError):
    """No billing provider customer for the account."""

    def __init__(self, account_id: int):
        self.account_id = account_id
        super().__init__(f"No billing customer for account {account_id}")


class ActiveSubscriptionConflictError(ConflictError):
    """The account already has a live paid subscription."""

    def __init__(self, account_id: int, plan_id: str):
        self.account_id = account_id
        self.plan_id = plan_id
        super().__init__(
            f"Account {account_id} already has an active {plan_id} subscription; "
            "cancel it before changing plans"
        )


class InvalidWebhookSignatureError(AppException):
    """Webhook signature missing or invalid."""

    status_code = 400


class InvalidWebhookPayloadError(AppException):
    """Webhook body is not a valid event envelope."""

    status_code = 400


class QuotaExceededError(AppException):
    """Plan limit reached for an action."""

    status_code = 429

    def __init__(self, reason: str, current: int, limit: int, action: str):
        self.reason = reason
        self.current = current
        self.limit = limit
        self.action = action
        super().__init__(reason)

    def to_response_body(self) -> Dict[str, Any]:
        return {
            "detail": self.reason,
            "current": self.current,
            "limit": self.limit,
            "action": self.action,
        }


class PaymentProviderError(AppException):
    """The billing provider rejected or failed a call."""

    status_code = 502

    def __init__(self, message: str, operation: Optional[str] = None):
        self.operation = operation
        super().__init__(message)


class PaymentProviderTimeoutError(PaymentProviderError):
    """The billing provider did not answer in time; the outcome is unknown."""

    status_code = 504


class WebhookProcessingError(AppException):
    """Transient failure while applying a webhook; the provider will retry."""

    status_code = 500
