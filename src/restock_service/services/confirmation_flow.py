"""Conversational confirmation flow.

After a restock ping the subscription waits for the subscriber to answer.
An affirmative reply gets the product link and fulfils the subscription;
any other text only refreshes the contact's session timestamp.
"""

from dataclasses import dataclass
from enum import Enum

import structlog

from restock_service.exceptions import SendError
from restock_service.infrastructure.messaging import normalize_contact
from restock_service.services.messages import render_follow_up_link
from restock_service.services.restock_dispatcher import MessageSender
from restock_service.services.subscription_store import SubscriptionStore
from shared.clock import utcnow
from shared.constants import AFFIRMATIVE_REPLIES

logger = structlog.get_logger()


class InboundStatus(str, Enum):
    IGNORED = "ignored"  # no sender address
    NOT_AFFIRMATIVE = "not_affirmative"
    NO_PENDING = "no_pending"
    FULFILLED = "fulfilled"
    SEND_FAILED = "send_failed"


@dataclass(frozen=True)
class InboundOutcome:
    status: InboundStatus
    subscription_id: int | None = None


def is_affirmative(body: str | None) -> bool:
    return (body or "").strip().casefold() in AFFIRMATIVE_REPLIES


class ConfirmationFlow:
    def __init__(self, subscriptions: SubscriptionStore, sender: MessageSender):
        self.subscriptions = subscriptions
        self.sender = sender

    async def handle_inbound(self, from_address: str | None, body: str | None) -> InboundOutcome:
        """
        Handle one inbound WhatsApp message.

        Never raises for expected conditions; the webhook answers 200 in
        every case. A failed link send leaves the subscription awaiting so
        the subscriber can reply again.
        """
        contact = normalize_contact(from_address)
        if not contact:
            logger.info("Inbound message without sender ignored")
            return InboundOutcome(InboundStatus.IGNORED)

        now = utcnow()
        await self.subscriptions.record_inbound_reply(contact, now)

        if not is_affirmative(body):
            logger.info("Inbound reply not affirmative", contact=contact)
            return InboundOutcome(InboundStatus.NOT_AFFIRMATIVE)

        subscription = await self.subscriptions.latest_awaiting_for_contact(contact)
        if subscription is None:
            logger.info("Affirmative reply with nothing pending", contact=contact)
            return InboundOutcome(InboundStatus.NO_PENDING)

        link = render_follow_up_link(
            subscription.account_id,
            subscription.product_id,
            subscription.variant_id,
            title=subscription.product_title,
            product_url=subscription.product_url,
        )
        try:
            await self.sender.send(contact, link)
        except SendError as e:
            logger.warning(
                "Follow-up link send failed",
                subscription_id=subscription.id,
                permanent=e.permanent,
                error=str(e),
            )
            return InboundOutcome(InboundStatus.SEND_FAILED, subscription.id)

        await self.subscriptions.delete_fulfilled(subscription.id)
        logger.info("Subscription fulfilled", subscription_id=subscription.id, contact=contact)
        return InboundOutcome(InboundStatus.FULFILLED, subscription.id)
