"""
Billing package - subscriptions, plan quotas and payment provider state.

This package integrates with:
- Stripe: customers, subscriptions, billing portal and webhooks

Local subscription rows mirror Stripe through webhooks; quotas are enforced
against live usage via QuotaService and UsageService.
"""
