"""Signed webhook verification and event application."""

from datetime import datetime

import stripe
import structlog
from pydantic import ValidationError

from flaim.billing.events import (
    HANDLED_EVENT_TYPES,
    EventEnvelope,
    InvoiceEvent,
    SubscriptionEvent,
    parse_lifecycle_event,
)
from flaim.billing.subscription_cache import (
    SubscriptionCache,
    SubscriptionStatus,
    normalize_status,
)

logger = structlog.get_logger(__name__)


class WebhookSignatureError(Exception):
    """Missing, stale, or non-matching provider signature."""


class WebhookPayloadError(Exception):
    """Signed payload does not have the shape its event type requires."""


def verify_webhook(
    payload: bytes, signature: str | None, secret: str, tolerance: int
) -> None:
    """Check the provider HMAC over ``{timestamp}.{payload}``.

    Delegates to the Stripe SDK, which compares in constant time and
    rejects timestamps older than ``tolerance`` seconds.
    """
    if not signature:
        raise WebhookSignatureError("Missing Stripe signature")
    if not secret:
        raise WebhookSignatureError("Webhook secret is not configured")
    try:
        stripe.WebhookSignature.verify_header(
            payload.decode("utf-8"), signature, secret, tolerance
        )
    except (stripe.SignatureVerificationError, UnicodeDecodeError) as exc:
        raise WebhookSignatureError(str(exc)) from exc


def parse_webhook_event(
    payload: bytes,
) -> SubscriptionEvent | InvoiceEvent | None:
    """Typed event for handled types; None for types we ignore."""
    try:
        envelope = EventEnvelope.model_validate_json(payload)
        if envelope.type not in HANDLED_EVENT_TYPES:
            logger.info(
                "webhook.event_ignored", event_id=envelope.id, event_type=envelope.type
            )
            return None
        return parse_lifecycle_event(payload)
    except ValidationError as exc:
        raise WebhookPayloadError(str(exc)) from exc


async def apply_event(
    cache: SubscriptionCache,
    event: SubscriptionEvent | InvoiceEvent,
    now: datetime,
) -> None:
    """Translate a lifecycle event into subscription cache updates."""
    if isinstance(event, SubscriptionEvent):
        await _apply_subscription_event(cache, event, now)
    else:
        await _apply_invoice_event(cache, event, now)
    logger.info("webhook.event_applied", event_id=event.id, event_type=event.type)


async def _apply_subscription_event(
    cache: SubscriptionCache, event: SubscriptionEvent, now: datetime
) -> None:
    subscription = event.data.object
    period_end = subscription.period_end
    if period_end is None:
        raise WebhookPayloadError("Subscription has no current period end")

    if event.type == "customer.subscription.deleted":
        status = SubscriptionStatus.CANCELED
    else:
        status = normalize_status(subscription.status)

    await cache.upsert(
        subscription.customer,
        status,
        period_end,
        now,
        plan_id=subscription.plan_id,
        cancel_at_period_end=subscription.cancel_at_period_end,
    )


async def _apply_invoice_event(
    cache: SubscriptionCache, event: InvoiceEvent, now: datetime
) -> None:
    customer = event.data.object.customer
    if not customer:
        logger.info("webhook.invoice_without_customer", event_id=event.id)
        return
    if event.type == "invoice.payment_failed":
        await cache.mark_past_due(customer, now)
    else:
        await cache.mark_active(customer, now)
