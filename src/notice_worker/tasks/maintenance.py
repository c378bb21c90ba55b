"""Periodic housekeeping tasks."""

import asyncio

import structlog
from celery import shared_task

from restock_service.config import get_settings
from restock_service.infrastructure.database import Database
from restock_service.services.webhook_ingestion import WebhookReceiptStore

logger = structlog.get_logger()


async def _prune_receipts() -> int:
    settings = get_settings()
    database = Database.from_settings(settings)
    try:
        async with database.session() as session:
            store = WebhookReceiptStore(session, settings.webhook_receipt_retention_hours)
            return await store.prune_expired()
    finally:
        await database.dispose()


@shared_task
def prune_webhook_receipts() -> dict:
    """Delete webhook receipts older than the retention window."""
    deleted = asyncio.run(_prune_receipts())
    logger.info("Pruned webhook receipts", deleted=deleted)
    return {"deleted": deleted}
