"""Billing callback: Stripe checkout completion changes the account's plan."""

from dataclasses import dataclass
from typing import Any

import orjson
import stripe
import structlog

from restock_service.exceptions import AuthenticationError, ValidationError
from restock_service.services.account_store import AccountStore
from restock_service.services.webhook_ingestion import WebhookReceiptStore

logger = structlog.get_logger()

CHECKOUT_COMPLETED = "checkout.session.completed"


def verify_billing_event(payload: bytes, signature: str | None, secret: str | None) -> dict[str, Any]:
    """
    Verify the Stripe-Signature header and return the event as a dict.

    Raises:
        AuthenticationError: missing secret or header, bad payload, or bad signature
    """
    if not secret or not signature:
        raise AuthenticationError("missing billing signature or secret")
    try:
        stripe.Webhook.construct_event(payload, signature, secret)
        return orjson.loads(payload)
    except ValueError as e:
        raise AuthenticationError(f"invalid billing payload: {e}") from e
    except stripe.SignatureVerificationError as e:
        raise AuthenticationError(f"invalid billing signature: {e}") from e


@dataclass(frozen=True)
class BillingOutcome:
    handled: bool
    duplicate: bool = False
    account_id: str | None = None
    plan: str | None = None


class BillingWebhookHandler:
    def __init__(self, accounts: AccountStore, receipts: WebhookReceiptStore):
        self.accounts = accounts
        self.receipts = receipts

    async def handle(self, event: dict[str, Any]) -> BillingOutcome:
        """Apply a completed checkout to the account. Other event types are acknowledged."""
        event_id = event.get("id")
        event_type = event.get("type")
        log = logger.bind(event_id=event_id, event_type=event_type)

        if event_id and not await self.receipts.record_once(f"stripe:{event_id}", event_type):
            log.info("Duplicate billing event ignored")
            return BillingOutcome(handled=False, duplicate=True)

        if event_type != CHECKOUT_COMPLETED:
            log.debug("Billing event ignored")
            return BillingOutcome(handled=False)

        session = (event.get("data") or {}).get("object") or {}
        metadata = session.get("metadata") or {}
        account_id = metadata.get("shop")
        plan = metadata.get("plan")
        if not account_id or not plan:
            log.warning("Checkout completed without shop or plan metadata", metadata=metadata)
            return BillingOutcome(handled=False)

        try:
            changed = await self.accounts.apply_plan_change(
                account_id, plan, billing_customer_id=session.get("customer")
            )
        except ValidationError as e:
            log.warning("Checkout completed with unknown plan", account_id=account_id, plan=plan, error=str(e))
            return BillingOutcome(handled=False, account_id=account_id, plan=plan)

        return BillingOutcome(handled=changed, account_id=account_id, plan=plan)
