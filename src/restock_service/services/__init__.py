"""Business logic services."""

from restock_service.services.account_store import AccountStore
from restock_service.services.alert_store import AlertStore
from restock_service.services.confirmation_flow import ConfirmationFlow
from restock_service.services.identifier_resolver import IdentifierResolver
from restock_service.services.quota_gate import GateDecision, QuotaGate
from restock_service.services.restock_dispatcher import RestockDispatcher
from restock_service.services.subscription_store import SubscriptionStore
from restock_service.services.webhook_ingestion import WebhookIngestor, WebhookReceiptStore

__all__ = [
    "AccountStore",
    "AlertStore",
    "ConfirmationFlow",
    "GateDecision",
    "IdentifierResolver",
    "QuotaGate",
    "RestockDispatcher",
    "SubscriptionStore",
    "WebhookIngestor",
    "WebhookReceiptStore",
]
