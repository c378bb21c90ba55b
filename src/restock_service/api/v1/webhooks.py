"""Inbound webhook endpoints: storefront inventory, WhatsApp replies, billing."""

from typing import Any

import orjson
import structlog
from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from restock_service.api.dependencies import (
    get_billing_handler,
    get_confirmation_flow,
    get_ingestor,
)
from restock_service.config import Settings, get_settings
from restock_service.exceptions import AuthenticationError, RestockError
from restock_service.services.billing import BillingWebhookHandler, verify_billing_event
from restock_service.services.confirmation_flow import ConfirmationFlow
from restock_service.services.webhook_ingestion import WebhookIngestor

logger = structlog.get_logger()

router = APIRouter()

EMPTY_TWIML = '<?xml version="1.0" encoding="UTF-8"?><Response></Response>'


@router.post("/inventory")
async def inventory_webhook(
    request: Request,
    ingestor: WebhookIngestor = Depends(get_ingestor),
) -> dict[str, Any]:
    """
    Storefront webhook receiver (inventory, product and uninstall topics).

    Answers 401 when the signature does not verify. Every verified
    delivery is acknowledged with 200, including duplicates and deliveries
    whose processing failed, so the storefront does not retry them.
    """
    raw_body = await request.body()
    outcome = await ingestor.ingest(raw_body, request.headers)
    return {
        "success": True,
        "status": outcome.status.value,
        "summary": outcome.summary.to_dict() if outcome.summary else None,
    }


async def _inbound_fields(request: Request) -> tuple[str | None, str | None]:
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            data = orjson.loads(await request.body())
        except orjson.JSONDecodeError:
            return None, None
        if not isinstance(data, dict):
            return None, None
    else:
        data = await request.form()
    return data.get("From"), data.get("Body")


@router.post("/inbound")
async def inbound_message(
    request: Request,
    flow: ConfirmationFlow = Depends(get_confirmation_flow),
) -> Response:
    """
    Inbound WhatsApp message (Twilio form post, JSON also accepted).

    Always answers 200 with an empty TwiML document.
    """
    from_address, body = await _inbound_fields(request)
    try:
        outcome = await flow.handle_inbound(from_address, body)
        logger.info("Inbound message handled", status=outcome.status.value)
    except RestockError as e:
        logger.error("Inbound message failed", error=str(e), error_type=type(e).__name__)
    return Response(content=EMPTY_TWIML, media_type="application/xml")


@router.post("/billing")
async def billing_webhook(
    request: Request,
    handler: BillingWebhookHandler = Depends(get_billing_handler),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    """
    Stripe webhook receiver.

    A bad signature is answered with 400 as the provider expects; verified
    events are acknowledged with 200 even when they change nothing.
    """
    payload = await request.body()
    try:
        event = verify_billing_event(
            payload, request.headers.get("Stripe-Signature"), settings.stripe_webhook_secret
        )
    except AuthenticationError as e:
        logger.warning("Billing webhook rejected", error=str(e))
        return JSONResponse(status_code=400, content={"success": False, "message": str(e)})

    try:
        outcome = await handler.handle(event)
    except RestockError as e:
        logger.error("Billing webhook processing failed", error=str(e))
        return JSONResponse(content={"success": True, "handled": False})

    return JSONResponse(
        content={"success": True, "handled": outcome.handled, "duplicate": outcome.duplicate}
    )
