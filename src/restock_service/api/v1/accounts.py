"""Account install hook, called by the storefront install flow."""

from fastapi import APIRouter, Depends

from restock_service.api.dependencies import get_account_store, require_api_key
from restock_service.api.schemas import CamelModel
from restock_service.config import Settings, get_settings
from restock_service.services.account_store import AccountStore

router = APIRouter(dependencies=[Depends(require_api_key)])


class InstallRequest(CamelModel):
    account: str
    access_token: str
    contact_email: str | None = None


class AccountResponse(CamelModel):
    account: str
    plan: str
    installed: bool
    alerts_used_this_month: int
    alert_limit_reached: bool


@router.post("", response_model=AccountResponse)
async def install_account(
    request: InstallRequest,
    accounts: AccountStore = Depends(get_account_store),
    settings: Settings = Depends(get_settings),
) -> AccountResponse:
    """Create the account on first install (trial plan) or refresh its credentials."""
    account = await accounts.install(
        request.account,
        access_token=request.access_token,
        contact_email=request.contact_email,
        trial_days=settings.trial_days,
    )
    return AccountResponse(
        account=account.account_id,
        plan=account.plan,
        installed=account.is_installed,
        alerts_used_this_month=account.alerts_used_this_month,
        alert_limit_reached=account.alert_limit_reached,
    )
