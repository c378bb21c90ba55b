"""Storefront webhook ingestion.

Order matters: the signature is verified over the raw bytes before any
parsing, then the delivery is de-duplicated, then routed by topic.
"""

import base64
import hashlib
import hmac
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

import orjson
import structlog
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from restock_service.exceptions import AuthenticationError, RestockError
from restock_service.infrastructure.database.models import WebhookReceipt
from restock_service.infrastructure.database.statements import storage_errors, upsert_insert
from restock_service.services.account_store import AccountStore
from restock_service.services.restock_dispatcher import (
    DispatchSummary,
    RestockDispatcher,
    extract_restock_events,
)
from shared.clock import utcnow
from shared.constants import (
    ACCOUNT_HEADER,
    DELIVERY_ID_HEADER,
    HMAC_HEADER,
    RESTOCK_TOPICS,
    TOPIC_APP_UNINSTALLED,
    TOPIC_HEADER,
)

logger = structlog.get_logger()


def verify_webhook_signature(raw_body: bytes, signature_header: str | None, secret: str | None) -> None:
    """
    Check the base64 HMAC-SHA256 of ``raw_body`` against the header.

    Raises:
        AuthenticationError: missing header, missing secret, or mismatch
    """
    if not signature_header or not secret:
        raise AuthenticationError("missing webhook signature or secret")

    digest = hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).digest()
    expected = base64.b64encode(digest).decode("ascii")
    if not hmac.compare_digest(expected, signature_header.strip()):
        raise AuthenticationError("webhook signature mismatch")


class WebhookReceiptStore:
    """Delivery ids already processed, kept for ``retention_hours``."""

    def __init__(self, session: AsyncSession, retention_hours: int = 24):
        self.session = session
        self.retention = timedelta(hours=retention_hours)

    async def record_once(
        self,
        delivery_id: str,
        topic: str | None = None,
        account_id: str | None = None,
        now: datetime | None = None,
    ) -> bool:
        """
        Record a delivery id; False when it was already seen.

        A receipt older than the retention window counts as absent and is
        overwritten.
        """
        now = now or utcnow()
        stmt = upsert_insert(self.session, WebhookReceipt).values(
            delivery_id=delivery_id,
            topic=topic,
            account_id=account_id,
            received_at=now,
        )
        excluded = stmt.excluded
        stmt = stmt.on_conflict_do_update(
            index_elements=["delivery_id"],
            set_={
                "topic": excluded.topic,
                "account_id": excluded.account_id,
                "received_at": excluded.received_at,
            },
            where=WebhookReceipt.received_at < now - self.retention,
        )
        async with storage_errors(self.session, "record_webhook_receipt"):
            result = await self.session.execute(stmt)
            await self.session.commit()
        return result.rowcount == 1

    async def prune_expired(self, now: datetime | None = None) -> int:
        cutoff = (now or utcnow()) - self.retention
        stmt = (
            delete(WebhookReceipt)
            .where(WebhookReceipt.received_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        async with storage_errors(self.session, "prune_webhook_receipts"):
            result = await self.session.execute(stmt)
            await self.session.commit()
        return result.rowcount


class IngestStatus(str, Enum):
    PROCESSED = "processed"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    FAILED = "failed"


@dataclass(frozen=True)
class IngestOutcome:
    status: IngestStatus
    topic: str | None = None
    summary: DispatchSummary | None = None


class WebhookIngestor:
    """Verify, de-duplicate and route storefront webhooks."""

    def __init__(
        self,
        secret: str | None,
        receipts: WebhookReceiptStore,
        dispatcher: RestockDispatcher,
        accounts: AccountStore,
    ):
        self.secret = secret
        self.receipts = receipts
        self.dispatcher = dispatcher
        self.accounts = accounts

    async def ingest(self, raw_body: bytes, headers: Mapping[str, str]) -> IngestOutcome:
        """
        Process one webhook delivery.

        Only a bad signature raises. Anything that goes wrong after
        verification is logged and reported as ``FAILED`` so the caller
        still acknowledges the delivery.

        Raises:
            AuthenticationError: signature missing or invalid
        """
        verify_webhook_signature(raw_body, headers.get(HMAC_HEADER), self.secret)

        topic = headers.get(TOPIC_HEADER)
        account_id = headers.get(ACCOUNT_HEADER)
        delivery_id = headers.get(DELIVERY_ID_HEADER)
        log = logger.bind(topic=topic, account_id=account_id, delivery_id=delivery_id)

        try:
            if delivery_id:
                if not await self.receipts.record_once(delivery_id, topic, account_id):
                    log.info("Duplicate webhook delivery ignored")
                    return IngestOutcome(IngestStatus.DUPLICATE, topic)
            else:
                log.warning("Webhook without delivery id, deduplication skipped")

            try:
                payload = orjson.loads(raw_body)
            except orjson.JSONDecodeError:
                log.warning("Webhook body is not valid JSON")
                return IngestOutcome(IngestStatus.FAILED, topic)
            if not isinstance(payload, dict):
                log.warning("Webhook body is not a JSON object")
                return IngestOutcome(IngestStatus.FAILED, topic)

            return await self._route(topic, account_id, payload, log)
        except RestockError as e:
            log.error("Webhook processing failed", error=str(e), error_type=type(e).__name__)
            return IngestOutcome(IngestStatus.FAILED, topic)

    async def _route(
        self, topic: str | None, account_id: str | None, payload: dict[str, Any], log: Any
    ) -> IngestOutcome:
        if topic == TOPIC_APP_UNINSTALLED:
            account_id = account_id or payload.get("myshopify_domain") or payload.get("domain")
            if not account_id:
                log.warning("Uninstall webhook without account")
                return IngestOutcome(IngestStatus.IGNORED, topic)
            await self.accounts.mark_uninstalled(account_id)
            log.info("Account uninstalled")
            return IngestOutcome(IngestStatus.PROCESSED, topic)

        if topic in RESTOCK_TOPICS:
            if not account_id:
                log.warning("Inventory webhook without account")
                return IngestOutcome(IngestStatus.IGNORED, topic)
            events = extract_restock_events(topic, account_id, payload)
            summary = await self.dispatcher.dispatch(events)
            return IngestOutcome(IngestStatus.PROCESSED, topic, summary)

        log.info("Webhook topic ignored")
        return IngestOutcome(IngestStatus.IGNORED, topic)
