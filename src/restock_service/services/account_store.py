"""Account and plan records.

Narrow operations over :class:`Account`; the quota gate and the billing
callback never write account fields directly.
"""

from datetime import datetime, timedelta

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from restock_service.exceptions import ValidationError
from restock_service.infrastructure.database.models import Account
from restock_service.infrastructure.database.statements import storage_errors, upsert_insert
from shared.clock import utcnow
from shared.constants import PAID_PLANS, TRIAL_PLAN

logger = structlog.get_logger()


class AccountStore:
    """Data-access helpers for :class:`Account`."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, account_id: str) -> Account | None:
        async with storage_errors(self.session, "get_account"):
            result = await self.session.scalars(
                select(Account)
                .where(Account.account_id == account_id)
                .execution_options(populate_existing=True)
            )
            return result.one_or_none()

    async def install(
        self,
        account_id: str,
        *,
        access_token: str | None = None,
        contact_email: str | None = None,
        trial_days: int = 14,
        now: datetime | None = None,
    ) -> Account:
        """
        Create the account on install, or refresh credentials on reinstall.

        New accounts start on the trial plan. A reinstall keeps plan and
        usage and only clears the uninstalled marker.
        """
        if not account_id:
            raise ValidationError("account is required")

        now = now or utcnow()
        stmt = upsert_insert(self.session, Account).values(
            account_id=account_id,
            access_token=access_token,
            contact_email=contact_email,
            plan=TRIAL_PLAN,
            trial_started_at=now,
            trial_ends_at=now + timedelta(days=trial_days),
            alerts_used_this_month=0,
            alert_limit_reached=False,
            created_at=now,
            updated_at=now,
        )
        excluded = stmt.excluded
        stmt = stmt.on_conflict_do_update(
            index_elements=["account_id"],
            set_={
                "access_token": excluded.access_token,
                "contact_email": excluded.contact_email,
                "uninstalled_at": None,
                "updated_at": excluded.updated_at,
            },
        )
        async with storage_errors(self.session, "install_account"):
            result = await self.session.scalars(
                stmt.returning(Account), execution_options={"populate_existing": True}
            )
            account = result.one()
            await self.session.commit()

        logger.info("Account installed", account_id=account_id, plan=account.plan)
        return account

    async def mark_uninstalled(self, account_id: str) -> bool:
        """Accounts are never deleted, only marked uninstalled."""
        stmt = (
            update(Account)
            .where(Account.account_id == account_id, Account.uninstalled_at.is_(None))
            .values(uninstalled_at=utcnow(), access_token=None, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        async with storage_errors(self.session, "mark_uninstalled"):
            result = await self.session.execute(stmt)
            await self.session.commit()
        return result.rowcount == 1

    async def record_send(self, account_id: str) -> None:
        """Atomically count one delivered notification against the plan."""
        stmt = (
            update(Account)
            .where(Account.account_id == account_id)
            .values(alerts_used_this_month=Account.alerts_used_this_month + 1)
            .execution_options(synchronize_session=False)
        )
        async with storage_errors(self.session, "record_send"):
            await self.session.execute(stmt)
            await self.session.commit()

    async def flag_limit_reached(self, account_id: str) -> bool:
        """
        Set the sticky limit flag.

        Returns True only for the caller that actually flipped it, so the
        limit notice is sent once per transition.
        """
        stmt = (
            update(Account)
            .where(Account.account_id == account_id, Account.alert_limit_reached.is_(False))
            .values(alert_limit_reached=True, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        async with storage_errors(self.session, "flag_limit_reached"):
            result = await self.session.execute(stmt)
            await self.session.commit()
        return result.rowcount == 1

    async def apply_plan_change(
        self,
        account_id: str,
        plan: str,
        *,
        billing_customer_id: str | None = None,
    ) -> bool:
        """
        Apply a plan change reported by the billing provider.

        Clears the limit flag, the usage counter and the trial end.

        Raises:
            ValidationError: unknown plan tier
        """
        if plan not in PAID_PLANS:
            raise ValidationError(f"unknown plan {plan!r}")

        values = {
            "plan": plan,
            "alert_limit_reached": False,
            "alerts_used_this_month": 0,
            "trial_ends_at": None,
            "updated_at": utcnow(),
        }
        if billing_customer_id:
            values["billing_customer_id"] = billing_customer_id

        stmt = (
            update(Account)
            .where(Account.account_id == account_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        async with storage_errors(self.session, "apply_plan_change"):
            result = await self.session.execute(stmt)
            await self.session.commit()

        changed = result.rowcount == 1
        if changed:
            logger.info("Plan changed", account_id=account_id, plan=plan)
        else:
            logger.warning("Plan change for unknown account", account_id=account_id, plan=plan)
        return changed

    async def reset_usage(self, account_id: str) -> None:
        """Explicit reset for an external monthly scheduler or an operator."""
        stmt = (
            update(Account)
            .where(Account.account_id == account_id)
            .values(alerts_used_this_month=0, alert_limit_reached=False, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        async with storage_errors(self.session, "reset_usage"):
            await self.session.execute(stmt)
            await self.session.commit()
