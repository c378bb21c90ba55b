"""Subscription store.

Durable record of "notify this contact when this product/variant is back".
All mutation of subscriptions goes through this class.
"""

from datetime import datetime, timedelta

import structlog
from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from restock_service.exceptions import ValidationError
from restock_service.infrastructure.database.models import Subscription
from restock_service.infrastructure.database.statements import (
    claim_row,
    release_row,
    storage_errors,
    upsert_insert,
)
from restock_service.infrastructure.messaging import is_phone_number
from shared.clock import utcnow

logger = structlog.get_logger()


class SubscriptionStore:
    """Data-access helpers for :class:`Subscription`."""

    def __init__(self, session: AsyncSession, claim_ttl_seconds: int = 120):
        self.session = session
        self.claim_ttl = timedelta(seconds=claim_ttl_seconds)

    async def upsert_subscription(
        self,
        account_id: str,
        contact: str,
        *,
        product_id: str | None = None,
        variant_id: str | None = None,
        inventory_item_id: str | None = None,
        product_title: str | None = None,
        product_url: str | None = None,
    ) -> Subscription:
        """
        Create or update the subscription for (account, contact, variant/product).

        Runs as a single INSERT ... ON CONFLICT DO UPDATE so concurrent
        identical requests cannot produce two rows. The conflict target is
        the variant when one is given, otherwise the product.

        Raises:
            ValidationError: account, contact, or both product and variant
                missing, or a contact that is not a phone number
        """
        if not account_id or not contact or not (product_id or variant_id):
            raise ValidationError("account, contact and productId or variantId are required")
        if not is_phone_number(contact):
            raise ValidationError("contact must be a phone number")

        now = utcnow()
        stmt = upsert_insert(self.session, Subscription).values(
            account_id=account_id,
            contact=contact,
            product_id=product_id,
            variant_id=variant_id,
            inventory_item_id=inventory_item_id,
            product_title=product_title,
            product_url=product_url,
            awaiting_reply=False,
            created_at=now,
            updated_at=now,
        )
        excluded = stmt.excluded
        # A resubmission whose lookup failed must not wipe ids resolved earlier
        set_ = {
            "product_id": func.coalesce(excluded.product_id, Subscription.product_id),
            "variant_id": excluded.variant_id,
            "inventory_item_id": func.coalesce(
                excluded.inventory_item_id, Subscription.inventory_item_id
            ),
            "product_title": func.coalesce(excluded.product_title, Subscription.product_title),
            "product_url": func.coalesce(excluded.product_url, Subscription.product_url),
            "updated_at": excluded.updated_at,
        }
        if variant_id:
            stmt = stmt.on_conflict_do_update(
                index_elements=["account_id", "contact", "variant_id"],
                set_=set_,
            )
        else:
            stmt = stmt.on_conflict_do_update(
                index_elements=["account_id", "contact", "product_id"],
                index_where=Subscription.variant_id.is_(None),
                set_=set_,
            )

        async with storage_errors(self.session, "upsert_subscription"):
            result = await self.session.scalars(
                stmt.returning(Subscription),
                execution_options={"populate_existing": True},
            )
            subscription = result.one()
            await self.session.commit()

        logger.info(
            "Subscription saved",
            subscription_id=subscription.id,
            account_id=account_id,
            variant_id=variant_id,
            product_id=subscription.product_id,
            inventory_item_id=subscription.inventory_item_id,
        )
        return subscription

    async def find_pending_by_inventory_item(
        self,
        account_id: str,
        inventory_item_id: str,
        *,
        variant_id: str | None = None,
        product_id: str | None = None,
        limit: int | None = None,
    ) -> list[Subscription]:
        """
        Pending subscriptions for an inventory item.

        When ``variant_id`` is given, rows whose inventory item was never
        resolved but whose variant matches are included as well. When
        ``product_id`` is given, product-level rows (no variant) for that
        product are included too.

        Rows not yet waiting for a reply come first, each group oldest
        first, so a single-recipient dispatch works through the backlog
        before pinging anyone a second time.
        """
        matches = [Subscription.inventory_item_id == inventory_item_id]
        if variant_id:
            matches.append(
                and_(
                    Subscription.inventory_item_id.is_(None),
                    Subscription.variant_id == variant_id,
                )
            )
        if product_id:
            matches.append(
                and_(Subscription.variant_id.is_(None), Subscription.product_id == product_id)
            )

        stmt = (
            select(Subscription)
            .where(Subscription.account_id == account_id, or_(*matches))
            .order_by(
                Subscription.awaiting_reply.asc(),
                Subscription.created_at.asc(),
                Subscription.id.asc(),
            )
            .execution_options(populate_existing=True)
        )
        if limit is not None:
            stmt = stmt.limit(limit)

        async with storage_errors(self.session, "find_pending_by_inventory_item"):
            result = await self.session.scalars(stmt)
            return list(result.all())

    async def get(self, subscription_id: int) -> Subscription | None:
        async with storage_errors(self.session, "get_subscription"):
            result = await self.session.scalars(
                select(Subscription)
                .where(Subscription.id == subscription_id)
                .execution_options(populate_existing=True)
            )
            return result.one_or_none()

    async def claim(self, subscription: Subscription, now: datetime | None = None) -> str | None:
        """
        Mark a send in flight for this subscription.

        The claim only succeeds while the row still carries the ping
        timestamp it was read with, so a dispatcher holding a stale read
        cannot ping again for a restock another dispatcher already handled.

        Returns the claim token, or None when another dispatcher holds an
        unexpired claim, the row was pinged since it was read, or it no
        longer exists.
        """
        if subscription.template_sent_at is None:
            unchanged = Subscription.template_sent_at.is_(None)
        else:
            unchanged = Subscription.template_sent_at == subscription.template_sent_at
        return await claim_row(
            self.session,
            Subscription,
            subscription.id,
            self.claim_ttl,
            now or utcnow(),
            unchanged,
        )

    async def release(self, subscription_id: int, token: str) -> None:
        await release_row(self.session, Subscription, subscription_id, token)

    async def mark_awaiting_reply(
        self, subscription_id: int, ping_at: datetime, *, token: str | None = None
    ) -> bool:
        """Enter (or re-arm) the awaiting-reply state after a restock ping."""
        conditions = [Subscription.id == subscription_id]
        if token is not None:
            conditions.append(Subscription.dispatch_token == token)
        stmt = (
            update(Subscription)
            .where(*conditions)
            .values(
                awaiting_reply=True,
                template_sent_at=ping_at,
                dispatch_token=None,
                dispatch_claimed_at=None,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        async with storage_errors(self.session, "mark_awaiting_reply"):
            result = await self.session.execute(stmt)
            await self.session.commit()
        return result.rowcount == 1

    async def record_inbound_reply(self, contact: str, reply_at: datetime) -> int:
        """Stamp ``last_inbound_at`` on every subscription of the contact."""
        stmt = (
            update(Subscription)
            .where(Subscription.contact == contact)
            .values(last_inbound_at=reply_at)
            .execution_options(synchronize_session=False)
        )
        async with storage_errors(self.session, "record_inbound_reply"):
            result = await self.session.execute(stmt)
            await self.session.commit()
        return result.rowcount

    async def latest_awaiting_for_contact(self, contact: str) -> Subscription | None:
        """The most recently pinged subscription still waiting for a reply."""
        stmt = (
            select(Subscription)
            .where(Subscription.contact == contact, Subscription.awaiting_reply.is_(True))
            .order_by(Subscription.template_sent_at.desc().nulls_last(), Subscription.id.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        async with storage_errors(self.session, "latest_awaiting_for_contact"):
            result = await self.session.scalars(stmt)
            return result.first()

    async def delete_fulfilled(self, subscription_id: int, *, token: str | None = None) -> bool:
        conditions = [Subscription.id == subscription_id]
        if token is not None:
            conditions.append(Subscription.dispatch_token == token)
        stmt = (
            delete(Subscription)
            .where(*conditions)
            .execution_options(synchronize_session=False)
        )
        async with storage_errors(self.session, "delete_fulfilled"):
            result = await self.session.execute(stmt)
            await self.session.commit()
        return result.rowcount == 1

    async def list_recent(self, account_id: str, limit: int) -> list[Subscription]:
        stmt = (
            select(Subscription)
            .where(Subscription.account_id == account_id)
            .order_by(Subscription.created_at.desc(), Subscription.id.desc())
            .limit(limit)
        )
        async with storage_errors(self.session, "list_recent_subscriptions"):
            result = await self.session.scalars(stmt)
            return list(result.all())
