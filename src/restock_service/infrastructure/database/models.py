"""SQLAlchemy models for the restock relay.

These models are stored in the 'restock' schema, separate from any other
tables living in the same database.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from shared.clock import utcnow
from shared.constants import TRIAL_PLAN

# Schema for all restock tables
SCHEMA = "restock"


class Base(DeclarativeBase):
    """Base class for all models."""

    __table_args__ = {"schema": SCHEMA}


# =============================================================================
# Subscriptions (two-step restock flow)
# =============================================================================


class Subscription(Base):
    """A contact's interest in a product or variant coming back in stock.

    Conversational state is either idle (``awaiting_reply`` false) or
    awaiting a reply to the last restock ping. ``dispatch_token`` marks a
    send in flight so racing dispatchers cannot both notify the same row.
    """

    __tablename__ = "subscriptions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    contact: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    product_id: Mapped[Optional[str]] = mapped_column(String(64))
    variant_id: Mapped[Optional[str]] = mapped_column(String(64))
    inventory_item_id: Mapped[Optional[str]] = mapped_column(String(64))

    # Snapshot used to render messages
    product_title: Mapped[Optional[str]] = mapped_column(String(500))
    product_url: Mapped[Optional[str]] = mapped_column(String(2048))

    # Conversational state
    awaiting_reply: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    template_sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    last_inbound_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # In-flight send claim
    dispatch_token: Mapped[Optional[str]] = mapped_column(String(36))
    dispatch_claimed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "product_id IS NOT NULL OR variant_id IS NOT NULL",
            name="ck_subscriptions_product_or_variant",
        ),
        UniqueConstraint(
            "account_id", "contact", "variant_id", name="uq_subscriptions_account_contact_variant"
        ),
        Index(
            "uq_subscriptions_account_contact_product",
            "account_id",
            "contact",
            "product_id",
            unique=True,
            postgresql_where=text("variant_id IS NULL"),
            sqlite_where=text("variant_id IS NULL"),
        ),
        Index("ix_subscriptions_inventory_item", "account_id", "inventory_item_id", "created_at"),
        Index("ix_subscriptions_awaiting", "contact", "awaiting_reply", "template_sent_at"),
        {"schema": SCHEMA},
    )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Subscription {self.id} account={self.account_id} contact={self.contact}>"


# =============================================================================
# Accounts and plans
# =============================================================================


class Account(Base):
    """A storefront using the relay, with its plan and monthly usage.

    ``alert_limit_reached`` is sticky: the quota gate only ever sets it, a
    plan change or an explicit reset clears it.
    """

    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    access_token: Mapped[Optional[str]] = mapped_column(String(255))
    contact_email: Mapped[Optional[str]] = mapped_column(String(320))

    plan: Mapped[str] = mapped_column(String(32), default=TRIAL_PLAN, nullable=False)
    trial_started_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    trial_ends_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    alerts_used_this_month: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    alert_limit_reached: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    billing_customer_id: Mapped[Optional[str]] = mapped_column(String(255))

    uninstalled_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    __table_args__ = ({"schema": SCHEMA},)

    @property
    def is_installed(self) -> bool:
        return self.uninstalled_at is None

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Account {self.account_id} plan={self.plan}>"


# =============================================================================
# Legacy one-shot alerts
# =============================================================================


class Alert(Base):
    """Simple restock alert: one message, then ``sent`` flips to true once."""

    __tablename__ = "alerts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    product_id: Mapped[str] = mapped_column(String(64), nullable=False)
    variant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    inventory_item_id: Mapped[Optional[str]] = mapped_column(String(64))
    contact: Mapped[str] = mapped_column(String(32), nullable=False, index=True)

    sent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    last_delivery_id: Mapped[Optional[str]] = mapped_column(String(64))

    dispatch_token: Mapped[Optional[str]] = mapped_column(String(36))
    dispatch_claimed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "account_id", "product_id", "variant_id", "contact", name="uq_alerts_account_product_variant_contact"
        ),
        Index("ix_alerts_pending_variant", "account_id", "variant_id", "sent", "created_at"),
        Index("ix_alerts_pending_inventory_item", "account_id", "inventory_item_id", "sent"),
        {"schema": SCHEMA},
    )


# =============================================================================
# Webhook receipts (delivery deduplication)
# =============================================================================


class WebhookReceipt(Base):
    """Provider delivery id seen at most once within the retention window."""

    __tablename__ = "webhook_receipts"

    delivery_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    topic: Mapped[Optional[str]] = mapped_column(String(255))
    account_id: Mapped[Optional[str]] = mapped_column(String(255))
    received_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_webhook_receipts_received_at", "received_at"),
        {"schema": SCHEMA},
    )
