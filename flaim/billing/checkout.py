"""Checkout completion lookups against the payment provider."""

import asyncio
from datetime import UTC, datetime
from typing import Any, Protocol

import stripe
import structlog
from pydantic import BaseModel

from flaim.core.errors import UpstreamUnavailable
from flaim.core.settings import StripeSettings

logger = structlog.get_logger(__name__)


class CheckoutSummary(BaseModel):
    """What the callback needs from a completed checkout session."""

    customer_id: str
    email: str | None
    payment_status: str
    subscription_status: str | None
    current_period_end: datetime | None
    plan_id: str | None = None
    cancel_at_period_end: bool = False


class CheckoutGateway(Protocol):
    async def get_checkout_summary(self, session_id: str) -> CheckoutSummary: ...


def _attr(obj: Any, name: str) -> Any:
    """Item access first: ``items`` would otherwise resolve to dict.items."""
    if obj is None:
        return None
    try:
        return obj[name]
    except (KeyError, TypeError, IndexError):
        return getattr(obj, name, None)


def _first_item(subscription: Any) -> Any:
    items = _attr(_attr(subscription, "items"), "data")
    return items[0] if items else None


class StripeCheckoutGateway:
    """Retrieves checkout sessions with a bounded timeout and no retries."""

    def __init__(self, settings: StripeSettings) -> None:
        self._api_key = settings.api_key
        self._timeout = settings.timeout_seconds

    async def get_checkout_summary(self, session_id: str) -> CheckoutSummary:
        try:
            async with asyncio.timeout(self._timeout):
                session = await stripe.checkout.Session.retrieve_async(
                    session_id,
                    api_key=self._api_key,
                    expand=["subscription", "customer"],
                )
        except TimeoutError as exc:
            logger.error("checkout.lookup_timeout", session_id=session_id)
            raise UpstreamUnavailable("Payment provider timed out") from exc
        except stripe.StripeError as exc:
            logger.error("checkout.lookup_failed", session_id=session_id, error=str(exc))
            raise UpstreamUnavailable("Payment provider unavailable") from exc
        return self._summarize(session)

    @staticmethod
    def _summarize(session: Any) -> CheckoutSummary:
        customer = _attr(session, "customer")
        customer_id = customer if isinstance(customer, str) else _attr(customer, "id")
        subscription = _attr(session, "subscription")
        if isinstance(subscription, str):
            subscription = None

        item = _first_item(subscription)
        period_end = _attr(subscription, "current_period_end") or _attr(
            item, "current_period_end"
        )
        email = _attr(_attr(session, "customer_details"), "email") or _attr(
            customer, "email"
        )
        return CheckoutSummary(
            customer_id=customer_id or "",
            email=email,
            payment_status=_attr(session, "payment_status") or "",
            subscription_status=_attr(subscription, "status"),
            current_period_end=(
                datetime.fromtimestamp(period_end, UTC) if period_end else None
            ),
            plan_id=_attr(_attr(item, "price"), "id"),
            cancel_at_period_end=bool(_attr(subscription, "cancel_at_period_end")),
        )
