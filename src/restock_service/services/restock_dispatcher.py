"""Restock matcher and dispatcher.

Turns a verified inventory webhook into outbound WhatsApp messages for the
pending subscriptions (and legacy alerts) of the restocked item.

Every send follows the same sequence: quota gate, dispatch claim, send,
then the state transition and the usage increment. A failed send releases
the claim and leaves the record untouched for the next restock.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

import structlog

from restock_service.exceptions import SendError
from restock_service.infrastructure.database.models import Alert, Subscription
from restock_service.infrastructure.messaging import SentMessage
from restock_service.services.alert_store import AlertStore
from restock_service.services.messages import (
    DEFAULT_TITLE,
    render_restock_link,
    render_restock_ping,
)
from restock_service.services.quota_gate import GateDecision, QuotaGate
from restock_service.services.subscription_store import SubscriptionStore
from shared.clock import utcnow
from shared.constants import TOPIC_INVENTORY_LEVELS_UPDATE, TOPIC_PRODUCTS_UPDATE

logger = structlog.get_logger()


class RestockChannel(str, Enum):
    """How a restock reaches the subscriber."""

    PING = "ping"  # templated ping, link after an affirmative reply
    DIRECT = "direct"  # link right away


class DispatchPolicy(str, Enum):
    """Which pending records a single restock notifies."""

    ALL = "all"
    OLDEST = "oldest"


class MessageSender(Protocol):
    async def send(self, contact: str, body: str) -> SentMessage: ...

    async def send_template(
        self, contact: str, content_sid: str, variables: dict[str, str]
    ) -> SentMessage: ...


@dataclass(frozen=True)
class RestockEvent:
    """One inventory item reported back in stock (or not) by a webhook."""

    account_id: str
    inventory_item_id: str
    available: int | None
    variant_id: str | None = None
    product_id: str | None = None
    title: str | None = None

    @property
    def is_restock(self) -> bool:
        return self.available is not None and self.available > 0


@dataclass
class DispatchSummary:
    matched: int = 0
    sent: int = 0
    failed: int = 0
    suppressed: int = 0
    skipped: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "matched": self.matched,
            "sent": self.sent,
            "failed": self.failed,
            "suppressed": self.suppressed,
            "skipped": self.skipped,
        }


def _as_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_id(value: Any) -> str | None:
    return str(value) if value not in (None, "") else None


def extract_restock_events(topic: str, account_id: str, payload: dict[str, Any]) -> list[RestockEvent]:
    """
    Pull inventory changes out of a storefront webhook payload.

    ``inventory_levels/update`` carries one item and its ``available``
    count; ``products/update`` carries every variant with its
    ``inventory_quantity``. Variants without an inventory item are dropped.
    """
    if topic == TOPIC_INVENTORY_LEVELS_UPDATE:
        inventory_item_id = _as_id(payload.get("inventory_item_id"))
        if not inventory_item_id:
            return []
        return [
            RestockEvent(
                account_id=account_id,
                inventory_item_id=inventory_item_id,
                available=_as_int(payload.get("available")),
            )
        ]

    if topic == TOPIC_PRODUCTS_UPDATE:
        product_id = _as_id(payload.get("id"))
        title = payload.get("title")
        events = []
        for variant in payload.get("variants") or []:
            inventory_item_id = _as_id(variant.get("inventory_item_id"))
            if not inventory_item_id:
                continue
            events.append(
                RestockEvent(
                    account_id=account_id,
                    inventory_item_id=inventory_item_id,
                    available=_as_int(variant.get("inventory_quantity")),
                    variant_id=_as_id(variant.get("id")),
                    product_id=product_id,
                    title=title,
                )
            )
        return events

    return []


class RestockDispatcher:
    """Matches restock events to pending records and sends the messages."""

    def __init__(
        self,
        subscriptions: SubscriptionStore,
        alerts: AlertStore,
        gate: QuotaGate,
        sender: MessageSender,
        *,
        channel: RestockChannel = RestockChannel.PING,
        policy: DispatchPolicy = DispatchPolicy.ALL,
        batch_limit: int = 100,
        ping_content_sid: str | None = None,
    ):
        self.subscriptions = subscriptions
        self.alerts = alerts
        self.gate = gate
        self.sender = sender
        self.channel = RestockChannel(channel)
        self.policy = DispatchPolicy(policy)
        self.batch_limit = batch_limit
        self.ping_content_sid = ping_content_sid

    @property
    def _selection_limit(self) -> int:
        return 1 if self.policy == DispatchPolicy.OLDEST else self.batch_limit

    async def dispatch(self, events: list[RestockEvent]) -> DispatchSummary:
        """
        Notify pending records for every restocked item in ``events``.

        A contact receives at most one message per call, even when several
        of its records match. Once the quota gate suppresses, nothing else
        is sent for the account.
        """
        summary = DispatchSummary()
        notified: set[str] = set()

        for event in events:
            if not event.is_restock:
                logger.debug(
                    "Inventory change is not a restock",
                    account_id=event.account_id,
                    inventory_item_id=event.inventory_item_id,
                    available=event.available,
                )
                continue

            if not await self._dispatch_event(event, summary, notified):
                break

        logger.info("Restock dispatch finished", **summary.to_dict())
        return summary

    async def _dispatch_event(
        self, event: RestockEvent, summary: DispatchSummary, notified: set[str]
    ) -> bool:
        """Returns False when the quota gate suppressed further sends."""
        subscriptions = await self.subscriptions.find_pending_by_inventory_item(
            event.account_id,
            event.inventory_item_id,
            variant_id=event.variant_id,
            product_id=event.product_id,
            limit=self._selection_limit,
        )
        alerts = await self.alerts.find_pending(
            event.account_id,
            event.inventory_item_id,
            variant_id=event.variant_id,
            limit=self._selection_limit,
        )
        candidates: list[Subscription | Alert] = [*subscriptions, *alerts]
        summary.matched += len(candidates)
        if not candidates:
            return True

        logger.info(
            "Restock matched pending records",
            account_id=event.account_id,
            inventory_item_id=event.inventory_item_id,
            subscriptions=len(subscriptions),
            alerts=len(alerts),
        )

        for index, record in enumerate(candidates):
            if record.contact in notified:
                summary.skipped += 1
                continue

            if await self.gate.check(event.account_id) == GateDecision.SUPPRESSED:
                summary.suppressed += len(candidates) - index
                logger.info(
                    "Restock dispatch suppressed",
                    account_id=event.account_id,
                    inventory_item_id=event.inventory_item_id,
                )
                return False

            if isinstance(record, Alert):
                delivered = await self._dispatch_alert(record, event)
            else:
                delivered = await self._dispatch_subscription(record, event)

            if delivered is None:
                summary.skipped += 1
            elif delivered:
                await self.gate.record_send(event.account_id)
                notified.add(record.contact)
                summary.sent += 1
            else:
                summary.failed += 1

        return True

    async def _dispatch_subscription(
        self, subscription: Subscription, event: RestockEvent
    ) -> bool | None:
        token = await self.subscriptions.claim(subscription)
        if token is None:
            logger.info("Subscription already in flight", subscription_id=subscription.id)
            return None

        try:
            await self._send_restock(subscription, event)
        except SendError as e:
            await self.subscriptions.release(subscription.id, token)
            logger.warning(
                "Restock send failed",
                subscription_id=subscription.id,
                permanent=e.permanent,
                code=e.code,
                error=str(e),
            )
            return False

        if self.channel == RestockChannel.DIRECT:
            recorded = await self.subscriptions.delete_fulfilled(subscription.id, token=token)
        else:
            recorded = await self.subscriptions.mark_awaiting_reply(
                subscription.id, utcnow(), token=token
            )
        if not recorded:
            logger.warning("Subscription claim lost before recording", subscription_id=subscription.id)
            return None
        return True

    async def _dispatch_alert(self, alert: Alert, event: RestockEvent) -> bool | None:
        token = await self.alerts.claim(alert.id)
        if token is None:
            logger.info("Alert already in flight", alert_id=alert.id)
            return None

        body = render_restock_link(
            alert.account_id,
            alert.product_id,
            alert.variant_id,
            title=event.title,
        )
        try:
            message = await self.sender.send(alert.contact, body)
        except SendError as e:
            await self.alerts.release(alert.id, token)
            logger.warning(
                "Alert send failed",
                alert_id=alert.id,
                permanent=e.permanent,
                code=e.code,
                error=str(e),
            )
            return False

        if not await self.alerts.mark_sent(alert.id, token, message.delivery_id):
            logger.warning("Alert claim lost before recording", alert_id=alert.id)
            return None
        return True

    async def _send_restock(self, subscription: Subscription, event: RestockEvent) -> SentMessage:
        title = subscription.product_title or event.title
        if self.channel == RestockChannel.DIRECT:
            body = render_restock_link(
                subscription.account_id,
                subscription.product_id or event.product_id,
                subscription.variant_id or event.variant_id,
                title=title,
                product_url=subscription.product_url,
            )
            return await self.sender.send(subscription.contact, body)

        if self.ping_content_sid:
            return await self.sender.send_template(
                subscription.contact,
                self.ping_content_sid,
                {"1": subscription.account_id, "2": title or DEFAULT_TITLE},
            )
        return await self.sender.send(
            subscription.contact, render_restock_ping(subscription.account_id, title=title)
        )
