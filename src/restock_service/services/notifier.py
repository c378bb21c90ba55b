"""Limit-reached notice dispatch.

The notice itself is rendered and delivered by the notice worker; the API
process only enqueues it.
"""

import asyncio

import structlog

from restock_service.infrastructure.database.models import Account

logger = structlog.get_logger()

LIMIT_NOTICE_TASK = "notice_worker.tasks.limit_reached.send_limit_reached_notice"


class CeleryLimitNotifier:
    """Fire-and-forget: enqueue the notice task and never raise."""

    async def notify_limit_reached(self, account: Account) -> None:
        from notice_worker.main import app as celery_app

        try:
            await asyncio.to_thread(
                celery_app.send_task, LIMIT_NOTICE_TASK, args=[account.account_id]
            )
            logger.info("Limit notice enqueued", account_id=account.account_id)
        except Exception as e:
            logger.warning(
                "Could not enqueue limit notice",
                account_id=account.account_id,
                error=str(e),
            )
