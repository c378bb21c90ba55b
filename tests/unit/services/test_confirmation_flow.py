"""Unit tests for the inbound reply handling."""

import pytest

from restock_service.services.confirmation_flow import (
    ConfirmationFlow,
    InboundStatus,
    is_affirmative,
)
from restock_service.services.subscription_store import SubscriptionStore
from shared.clock import utcnow

from tests.fakes import ACCOUNT, CONTACT, FakeSender


@pytest.fixture
def flow(subscriptions: SubscriptionStore, sender: FakeSender) -> ConfirmationFlow:
    return ConfirmationFlow(subscriptions, sender)


async def pinged_subscription(subscriptions: SubscriptionStore, **kwargs):
    sub = await subscriptions.upsert_subscription(
        ACCOUNT, CONTACT, variant_id="v1", product_id="p1", inventory_item_id="i1", **kwargs
    )
    await subscriptions.mark_awaiting_reply(sub.id, utcnow())
    return sub


@pytest.mark.parametrize("body", ["YES", " yes ", "Yes", "y", "send", "OK"])
def test_affirmative_replies(body: str) -> None:
    assert is_affirmative(body)


@pytest.mark.parametrize("body", ["no", "stop", "yes please", "", None])
def test_non_affirmative_replies(body: str | None) -> None:
    assert not is_affirmative(body)


class TestHandleInbound:
    @pytest.mark.asyncio
    async def test_yes_sends_link_and_fulfils(
        self, flow: ConfirmationFlow, subscriptions: SubscriptionStore, sender: FakeSender
    ) -> None:
        sub = await pinged_subscription(subscriptions, product_title="Blue Hoodie")

        outcome = await flow.handle_inbound(f"whatsapp:{CONTACT}", "YES")

        assert outcome.status == InboundStatus.FULFILLED
        assert outcome.subscription_id == sub.id
        assert await subscriptions.get(sub.id) is None
        assert sender.bodies_for(CONTACT) == [
            "Here is your link to Blue Hoodie: https://shop1/products/p1?variant=v1"
        ]

    @pytest.mark.asyncio
    async def test_captured_product_url_preferred(
        self, flow: ConfirmationFlow, subscriptions: SubscriptionStore, sender: FakeSender
    ) -> None:
        await pinged_subscription(
            subscriptions, product_url="https%3A%2F%2Fshop1%2Fproducts%2Fhoodie"
        )

        await flow.handle_inbound(CONTACT, "yes")

        assert sender.bodies_for(CONTACT)[0].endswith("https://shop1/products/hoodie")

    @pytest.mark.asyncio
    async def test_yes_with_nothing_pending_changes_nothing(
        self, flow: ConfirmationFlow, subscriptions: SubscriptionStore, sender: FakeSender
    ) -> None:
        idle = await subscriptions.upsert_subscription(ACCOUNT, CONTACT, variant_id="v1")

        outcome = await flow.handle_inbound(CONTACT, "YES")

        assert outcome.status == InboundStatus.NO_PENDING
        assert sender.sent == []
        refreshed = await subscriptions.get(idle.id)
        assert refreshed is not None
        assert refreshed.last_inbound_at is not None

    @pytest.mark.asyncio
    async def test_other_text_only_refreshes_session(
        self, flow: ConfirmationFlow, subscriptions: SubscriptionStore, sender: FakeSender
    ) -> None:
        sub = await pinged_subscription(subscriptions)

        outcome = await flow.handle_inbound(CONTACT, "what is this?")

        assert outcome.status == InboundStatus.NOT_AFFIRMATIVE
        refreshed = await subscriptions.get(sub.id)
        assert refreshed.awaiting_reply is True
        assert refreshed.last_inbound_at is not None
        assert sender.sent == []

    @pytest.mark.asyncio
    async def test_send_failure_keeps_subscription_awaiting(
        self, flow: ConfirmationFlow, subscriptions: SubscriptionStore, sender: FakeSender
    ) -> None:
        sub = await pinged_subscription(subscriptions)
        sender.fail_for(CONTACT)

        outcome = await flow.handle_inbound(CONTACT, "YES")

        assert outcome.status == InboundStatus.SEND_FAILED
        assert (await subscriptions.get(sub.id)).awaiting_reply is True

    @pytest.mark.asyncio
    async def test_missing_sender_ignored(self, flow: ConfirmationFlow) -> None:
        outcome = await flow.handle_inbound(None, "YES")
        assert outcome.status == InboundStatus.IGNORED
