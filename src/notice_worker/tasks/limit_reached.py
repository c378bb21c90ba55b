"""Limit-reached notice task."""

import asyncio

import structlog
from celery import shared_task

from notice_worker.services.mock_email_sender import MockEmailSender
from restock_service.config import Settings, get_settings
from restock_service.exceptions import StorageError
from restock_service.infrastructure.database import Database
from restock_service.services.account_store import AccountStore
from restock_service.services.messages import render_limit_notice

logger = structlog.get_logger()


async def deliver_limit_notice(
    account_id: str, database: Database, sender: MockEmailSender, settings: Settings
) -> dict:
    async with database.session() as session:
        account = await AccountStore(session).get(account_id)

    if account is None:
        logger.warning("Limit notice for unknown account", account_id=account_id)
        return {"success": False, "account_id": account_id, "reason": "unknown_account"}
    if not account.contact_email:
        logger.warning("Limit notice skipped, no contact email", account_id=account_id)
        return {"success": False, "account_id": account_id, "reason": "no_contact_email"}

    subject, html = render_limit_notice(account.account_id, account.plan, settings.upgrade_url)
    result = await sender.send_email(
        to_email=account.contact_email,
        subject=subject,
        html_content=html,
        from_email=settings.email_from_address,
        from_name=settings.email_from_name,
        metadata={"account_id": account_id, "plan": account.plan, "type": "limit_reached"},
    )
    return {"success": True, "account_id": account_id, "message_id": result["message_id"]}


async def _send_notice(account_id: str, sender: MockEmailSender) -> dict:
    settings = get_settings()
    database = Database.from_settings(settings)
    try:
        return await deliver_limit_notice(account_id, database, sender, settings)
    finally:
        await database.dispose()


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def send_limit_reached_notice(self, account_id: str) -> dict:
    """
    Email the account owner that the monthly alert limit was reached.

    The sticky flag is already persisted when this runs; a failed notice
    is retried but never touches the flag.

    Args:
        account_id: Storefront domain of the account

    Returns:
        dict: Send result
    """
    logger.info("Sending limit reached notice", account_id=account_id)
    sender = MockEmailSender(get_settings().mock_email_storage_path)
    try:
        return asyncio.run(_send_notice(account_id, sender))
    except StorageError as e:
        logger.warning("Limit notice deferred", account_id=account_id, error=str(e))
        raise self.retry(exc=e)
