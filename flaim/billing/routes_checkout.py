"""Checkout completion callback: cache the subscription and mint a token."""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Query, Response

from flaim.api.deps import (
    Issuer,
    Now,
    Settings,
    Subscriptions,
    get_checkout_gateway,
)
from flaim.api.schemas import TokenResponse
from flaim.billing.checkout import CheckoutGateway
from flaim.billing.subscription_cache import ENTITLED_STATUSES, normalize_status
from flaim.core.errors import SubscriptionInactive
from flaim.crypto.types import PaidPlan
from flaim.tokens.request import set_auth_cookie

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["billing"])

Gateway = Annotated[CheckoutGateway, Depends(get_checkout_gateway)]


@router.get("/callback")
async def checkout_callback(
    session_id: Annotated[str, Query(min_length=1)],
    response: Response,
    gateway: Gateway,
    subscriptions: Subscriptions,
    issuer: Issuer,
    settings: Settings,
    now: Now,
) -> TokenResponse:
    """GET /callback?session_id=... -- redeem a paid checkout session."""
    summary = await gateway.get_checkout_summary(session_id)
    if summary.payment_status != "paid" or not summary.customer_id:
        logger.info(
            "checkout.not_paid",
            session_id=session_id,
            payment_status=summary.payment_status,
        )
        raise SubscriptionInactive("Checkout session is not paid")

    status = normalize_status(summary.subscription_status or "")
    if status not in ENTITLED_STATUSES or summary.current_period_end is None:
        logger.info(
            "checkout.subscription_inactive",
            session_id=session_id,
            subscription_status=summary.subscription_status,
        )
        raise SubscriptionInactive()

    await subscriptions.upsert(
        summary.customer_id,
        status,
        summary.current_period_end,
        now,
        plan_id=summary.plan_id,
        cancel_at_period_end=summary.cancel_at_period_end,
    )
    token = await issuer.mint(
        summary.customer_id, summary.email or "", PaidPlan.PRO, now
    )
    set_auth_cookie(response, settings.cookie_name, token, issuer.ttl_seconds)
    logger.info("checkout.completed", subscriber_id=summary.customer_id)
    return TokenResponse(access_token=token, expires_in=issuer.ttl_seconds)
