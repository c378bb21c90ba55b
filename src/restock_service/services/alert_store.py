"""Legacy one-shot alerts.

The older registration path: one WhatsApp message with the product link,
after which ``sent`` flips to true. Dispatched alongside subscriptions by
the restock dispatcher.
"""

from datetime import datetime, timedelta

import structlog
from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from restock_service.exceptions import ValidationError
from restock_service.infrastructure.database.models import Alert
from restock_service.infrastructure.database.statements import (
    claim_row,
    release_row,
    storage_errors,
    upsert_insert,
)
from restock_service.infrastructure.messaging import is_phone_number
from shared.clock import utcnow

logger = structlog.get_logger()


class AlertStore:
    """Data-access helpers for :class:`Alert`."""

    def __init__(self, session: AsyncSession, claim_ttl_seconds: int = 120):
        self.session = session
        self.claim_ttl = timedelta(seconds=claim_ttl_seconds)

    async def register_alert(
        self,
        account_id: str,
        contact: str,
        *,
        product_id: str,
        variant_id: str,
        inventory_item_id: str | None = None,
    ) -> Alert:
        """
        Register (or re-arm) an alert.

        Registering again after the alert was sent resets ``sent`` so the
        contact is notified on the next restock.

        Raises:
            ValidationError: missing fields, or a contact that is not a phone number
        """
        if not account_id or not contact or not product_id or not variant_id:
            raise ValidationError("account, contact, productId and variantId are required")
        if not is_phone_number(contact):
            raise ValidationError("contact must be a phone number")

        now = utcnow()
        stmt = upsert_insert(self.session, Alert).values(
            account_id=account_id,
            contact=contact,
            product_id=product_id,
            variant_id=variant_id,
            inventory_item_id=inventory_item_id,
            sent=False,
            created_at=now,
            updated_at=now,
        )
        excluded = stmt.excluded
        stmt = stmt.on_conflict_do_update(
            index_elements=["account_id", "product_id", "variant_id", "contact"],
            set_={
                "inventory_item_id": func.coalesce(
                    excluded.inventory_item_id, Alert.inventory_item_id
                ),
                "sent": False,
                "sent_at": None,
                "updated_at": excluded.updated_at,
            },
        )
        async with storage_errors(self.session, "register_alert"):
            result = await self.session.scalars(
                stmt.returning(Alert), execution_options={"populate_existing": True}
            )
            alert = result.one()
            await self.session.commit()

        logger.info(
            "Alert saved",
            alert_id=alert.id,
            account_id=account_id,
            variant_id=variant_id,
            inventory_item_id=alert.inventory_item_id,
        )
        return alert

    async def find_pending(
        self,
        account_id: str,
        inventory_item_id: str | None,
        *,
        variant_id: str | None = None,
        limit: int | None = None,
    ) -> list[Alert]:
        """Unsent alerts for the item or variant, oldest first."""
        matches = []
        if inventory_item_id:
            matches.append(Alert.inventory_item_id == inventory_item_id)
        if variant_id:
            matches.append(and_(Alert.inventory_item_id.is_(None), Alert.variant_id == variant_id))
        if not matches:
            return []

        stmt = (
            select(Alert)
            .where(Alert.account_id == account_id, Alert.sent.is_(False), or_(*matches))
            .order_by(Alert.created_at.asc(), Alert.id.asc())
            .execution_options(populate_existing=True)
        )
        if limit is not None:
            stmt = stmt.limit(limit)

        async with storage_errors(self.session, "find_pending_alerts"):
            result = await self.session.scalars(stmt)
            return list(result.all())

    async def claim(self, alert_id: int, now: datetime | None = None) -> str | None:
        """Claim an unsent alert; None once it is sent or claimed elsewhere."""
        return await claim_row(
            self.session, Alert, alert_id, self.claim_ttl, now or utcnow(), Alert.sent.is_(False)
        )

    async def release(self, alert_id: int, token: str) -> None:
        await release_row(self.session, Alert, alert_id, token)

    async def mark_sent(self, alert_id: int, token: str, delivery_id: str | None = None) -> bool:
        """Flip ``sent`` for the claim holder; a second caller gets False."""
        now = utcnow()
        stmt = (
            update(Alert)
            .where(Alert.id == alert_id, Alert.dispatch_token == token, Alert.sent.is_(False))
            .values(
                sent=True,
                sent_at=now,
                last_delivery_id=delivery_id,
                dispatch_token=None,
                dispatch_claimed_at=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        async with storage_errors(self.session, "mark_alert_sent"):
            result = await self.session.execute(stmt)
            await self.session.commit()
        return result.rowcount == 1
