"""Persistence: models, connection handle and migrations."""

from restock_service.infrastructure.database.connection import Database
from restock_service.infrastructure.database.models import (
    SCHEMA,
    Account,
    Alert,
    Base,
    Subscription,
    WebhookReceipt,
)

__all__ = [
    "SCHEMA",
    "Account",
    "Alert",
    "Base",
    "Database",
    "Subscription",
    "WebhookReceipt",
]
