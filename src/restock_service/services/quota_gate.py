"""Quota gate.

Evaluated before every outbound restock send. Over-limit is an expected
steady state, not a fault: callers stop quietly and answer with a neutral
outcome.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Protocol

import structlog

from restock_service.infrastructure.database.models import Account
from restock_service.services.account_store import AccountStore
from shared.clock import utcnow
from shared.constants import PLAN_MONTHLY_CEILINGS, TRIAL_PLAN

logger = structlog.get_logger()


class GateDecision(str, Enum):
    """Outcome of a quota check."""

    PROCEED = "proceed"
    SUPPRESSED = "suppressed"


class LimitNotifier(Protocol):
    """Sends the one-time "limit reached" notice to the account's contact."""

    async def notify_limit_reached(self, account: Account) -> None: ...


def plan_ceiling(plan: str, trial_ceiling: int) -> int | None:
    """Monthly ceiling for a plan tier; None means unbounded, unknown tiers get 0."""
    if plan == TRIAL_PLAN:
        return trial_ceiling
    return PLAN_MONTHLY_CEILINGS.get(plan, 0)


@dataclass
class QuotaGate:
    accounts: AccountStore
    notifier: LimitNotifier
    trial_ceiling: int = 50

    def is_over_limit(self, account: Account, now: datetime) -> bool:
        if account.plan == TRIAL_PLAN and account.trial_ends_at and now > account.trial_ends_at:
            return True
        ceiling = plan_ceiling(account.plan, self.trial_ceiling)
        return ceiling is not None and account.alerts_used_this_month >= ceiling

    async def check(self, account_id: str, now: datetime | None = None) -> GateDecision:
        """
        Decide whether a send for this account may go ahead.

        On the first over-limit check the sticky flag is persisted and only
        then is the limit notice fired. Later checks stay suppressed without
        notifying again.
        """
        now = now or utcnow()
        account = await self.accounts.get(account_id)
        if account is None or not account.is_installed:
            logger.info("Send suppressed, account not installed", account_id=account_id)
            return GateDecision.SUPPRESSED

        # The flag holds until a plan change or usage reset clears it
        if account.alert_limit_reached:
            return GateDecision.SUPPRESSED

        if not self.is_over_limit(account, now):
            return GateDecision.PROCEED

        if await self.accounts.flag_limit_reached(account_id):
            logger.info(
                "Alert limit reached",
                account_id=account_id,
                plan=account.plan,
                used=account.alerts_used_this_month,
            )
            try:
                await self.notifier.notify_limit_reached(account)
            except Exception as e:
                logger.warning("Limit notice failed", account_id=account_id, error=str(e))

        return GateDecision.SUPPRESSED

    async def record_send(self, account_id: str) -> None:
        await self.accounts.record_send(account_id)
