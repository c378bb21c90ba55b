"""Unit tests for the Stripe billing callback."""

from typing import Any

import orjson
import pytest

from restock_service.exceptions import AuthenticationError
from restock_service.infrastructure.database import Account
from restock_service.services.account_store import AccountStore
from restock_service.services.billing import BillingWebhookHandler, verify_billing_event
from restock_service.services.webhook_ingestion import WebhookReceiptStore

from tests.fakes import ACCOUNT, BILLING_SECRET, sign_billing_event


def checkout_event(event_id: str = "evt_1", plan: str = "pro", **metadata: Any) -> dict[str, Any]:
    return {
        "id": event_id,
        "object": "event",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": "cs_test_1",
                "object": "checkout.session",
                "customer": "cus_123",
                "metadata": {"shop": ACCOUNT, "plan": plan, **metadata},
            }
        },
    }


@pytest.fixture
def handler(session, accounts: AccountStore) -> BillingWebhookHandler:
    return BillingWebhookHandler(accounts, WebhookReceiptStore(session))


class TestVerifyBillingEvent:
    def test_valid_signature_returns_event(self) -> None:
        payload = orjson.dumps(checkout_event())
        event = verify_billing_event(payload, sign_billing_event(payload), BILLING_SECRET)
        assert event["type"] == "checkout.session.completed"
        assert event["data"]["object"]["metadata"]["plan"] == "pro"

    def test_wrong_secret_rejected(self) -> None:
        payload = orjson.dumps(checkout_event())
        with pytest.raises(AuthenticationError):
            verify_billing_event(payload, sign_billing_event(payload, "whsec_other"), BILLING_SECRET)

    def test_missing_header_rejected(self) -> None:
        with pytest.raises(AuthenticationError):
            verify_billing_event(b"{}", None, BILLING_SECRET)


class TestBillingWebhookHandler:
    @pytest.mark.asyncio
    async def test_checkout_applies_plan(
        self, handler: BillingWebhookHandler, accounts: AccountStore, installed_account: Account
    ) -> None:
        await accounts.record_send(ACCOUNT)

        outcome = await handler.handle(checkout_event(plan="basic"))

        assert outcome.handled is True
        account = await accounts.get(ACCOUNT)
        assert account.plan == "basic"
        assert account.alerts_used_this_month == 0
        assert account.billing_customer_id == "cus_123"

    @pytest.mark.asyncio
    async def test_replayed_event_is_duplicate(
        self, handler: BillingWebhookHandler, installed_account: Account
    ) -> None:
        await handler.handle(checkout_event())
        again = await handler.handle(checkout_event())

        assert again.duplicate is True
        assert again.handled is False

    @pytest.mark.asyncio
    async def test_unknown_plan_not_applied(
        self, handler: BillingWebhookHandler, accounts: AccountStore, installed_account: Account
    ) -> None:
        outcome = await handler.handle(checkout_event(plan="platinum"))

        assert outcome.handled is False
        assert (await accounts.get(ACCOUNT)).plan == "trial"

    @pytest.mark.asyncio
    async def test_unknown_account_not_handled(self, handler: BillingWebhookHandler) -> None:
        outcome = await handler.handle(checkout_event())
        assert outcome.handled is False

    @pytest.mark.asyncio
    async def test_other_event_types_acknowledged(self, handler: BillingWebhookHandler) -> None:
        outcome = await handler.handle({"id": "evt_2", "type": "invoice.paid", "data": {"object": {}}})
        assert outcome.handled is False
        assert outcome.duplicate is False
