"""Payment-provider webhook receiver."""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Header, Request
from starlette.responses import JSONResponse

from flaim.api.deps import Now, Subscriptions, load_stripe_settings
from flaim.billing.webhook import (
    WebhookPayloadError,
    WebhookSignatureError,
    apply_event,
    parse_webhook_event,
    verify_webhook,
)
from flaim.core.settings import StripeSettings

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/webhook", tags=["billing"])

HTTP_BAD_REQUEST = 400


@router.post("/stripe", response_model=None)
async def stripe_webhook(
    request: Request,
    subscriptions: Subscriptions,
    stripe_settings: Annotated[StripeSettings, Depends(load_stripe_settings)],
    now: Now,
    stripe_signature: Annotated[str | None, Header()] = None,
) -> dict[str, bool] | JSONResponse:
    """POST /webhook/stripe -- verify, parse and apply a lifecycle event."""
    payload = await request.body()
    try:
        verify_webhook(
            payload,
            stripe_signature,
            stripe_settings.webhook_secret,
            stripe_settings.webhook_tolerance,
        )
        event = parse_webhook_event(payload)
    except WebhookSignatureError as exc:
        logger.warning("webhook.signature_rejected", error=str(exc))
        return JSONResponse(
            {"error": "Invalid signature", "code": "INVALID_SIGNATURE"},
            status_code=HTTP_BAD_REQUEST,
        )
    except WebhookPayloadError as exc:
        logger.warning("webhook.payload_rejected", error=str(exc))
        return JSONResponse(
            {"error": "Malformed event payload", "code": "INVALID_PAYLOAD"},
            status_code=HTTP_BAD_REQUEST,
        )

    if event is not None:
        try:
            await apply_event(subscriptions, event, now)
        except WebhookPayloadError as exc:
            logger.warning(
                "webhook.payload_rejected", event_id=event.id, error=str(exc)
            )
            return JSONResponse(
                {"error": "Malformed event payload", "code": "INVALID_PAYLOAD"},
                status_code=HTTP_BAD_REQUEST,
            )
    return {"received": True}
