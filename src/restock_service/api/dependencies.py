"""FastAPI dependencies.

Long-lived clients are created in the application lifespan and kept on
``app.state``; per-request services are built around one session.
"""

import hmac
from collections.abc import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from restock_service.config import Settings, get_settings
from restock_service.exceptions import AuthenticationError
from restock_service.infrastructure.database import Database
from restock_service.infrastructure.redis import CacheService
from restock_service.services.account_store import AccountStore
from restock_service.services.alert_store import AlertStore
from restock_service.services.billing import BillingWebhookHandler
from restock_service.services.confirmation_flow import ConfirmationFlow
from restock_service.services.identifier_resolver import CatalogClient, IdentifierResolver
from restock_service.services.quota_gate import LimitNotifier, QuotaGate
from restock_service.services.restock_dispatcher import MessageSender, RestockDispatcher
from restock_service.services.subscription_store import SubscriptionStore
from restock_service.services.webhook_ingestion import WebhookIngestor, WebhookReceiptStore


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_cache(request: Request) -> CacheService:
    return request.app.state.cache


def get_catalog(request: Request) -> CatalogClient:
    return request.app.state.catalog


def get_sender(request: Request) -> MessageSender:
    return request.app.state.sender


def get_notifier(request: Request) -> LimitNotifier:
    return request.app.state.notifier


async def get_session(
    database: Database = Depends(get_database),
) -> AsyncGenerator[AsyncSession, None]:
    """Get database session for dependency injection."""
    async with database.session() as session:
        yield session


def get_account_store(session: AsyncSession = Depends(get_session)) -> AccountStore:
    return AccountStore(session)


def get_subscription_store(
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> SubscriptionStore:
    return SubscriptionStore(session, settings.dispatch_claim_ttl_seconds)


def get_alert_store(
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> AlertStore:
    return AlertStore(session, settings.dispatch_claim_ttl_seconds)


def get_receipt_store(
    session: AsyncSession = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> WebhookReceiptStore:
    return WebhookReceiptStore(session, settings.webhook_receipt_retention_hours)


def get_resolver(
    accounts: AccountStore = Depends(get_account_store),
    catalog: CatalogClient = Depends(get_catalog),
    cache: CacheService = Depends(get_cache),
    settings: Settings = Depends(get_settings),
) -> IdentifierResolver:
    return IdentifierResolver(
        accounts,
        catalog,
        cache,
        timeout_seconds=settings.catalog_timeout_seconds,
        cache_ttl_seconds=settings.catalog_cache_ttl_seconds,
    )


def get_quota_gate(
    accounts: AccountStore = Depends(get_account_store),
    notifier: LimitNotifier = Depends(get_notifier),
    settings: Settings = Depends(get_settings),
) -> QuotaGate:
    return QuotaGate(accounts, notifier, trial_ceiling=settings.trial_monthly_ceiling)


def get_dispatcher(
    subscriptions: SubscriptionStore = Depends(get_subscription_store),
    alerts: AlertStore = Depends(get_alert_store),
    gate: QuotaGate = Depends(get_quota_gate),
    sender: MessageSender = Depends(get_sender),
    settings: Settings = Depends(get_settings),
) -> RestockDispatcher:
    return RestockDispatcher(
        subscriptions,
        alerts,
        gate,
        sender,
        channel=settings.restock_channel,
        policy=settings.restock_dispatch_policy,
        batch_limit=settings.dispatch_batch_limit,
        ping_content_sid=settings.whatsapp_ping_content_sid or None,
    )


def get_ingestor(
    receipts: WebhookReceiptStore = Depends(get_receipt_store),
    dispatcher: RestockDispatcher = Depends(get_dispatcher),
    accounts: AccountStore = Depends(get_account_store),
    settings: Settings = Depends(get_settings),
) -> WebhookIngestor:
    return WebhookIngestor(settings.shopify_api_secret, receipts, dispatcher, accounts)


def get_confirmation_flow(
    subscriptions: SubscriptionStore = Depends(get_subscription_store),
    sender: MessageSender = Depends(get_sender),
) -> ConfirmationFlow:
    return ConfirmationFlow(subscriptions, sender)


def require_api_key(request: Request, settings: Settings = Depends(get_settings)) -> None:
    """Guard for operator endpoints; an unset key disables them."""
    supplied = request.headers.get(settings.api_key_header, "")
    if not settings.admin_api_key or not hmac.compare_digest(
        supplied.encode(), settings.admin_api_key.encode()
    ):
        raise AuthenticationError("invalid API key")


def get_billing_handler(
    accounts: AccountStore = Depends(get_account_store),
    receipts: WebhookReceiptStore = Depends(get_receipt_store),
) -> BillingWebhookHandler:
    return BillingWebhookHandler(accounts, receipts)
