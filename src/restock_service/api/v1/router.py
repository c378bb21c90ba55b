"""API v1 router that aggregates all endpoint routers."""

from fastapi import APIRouter

from restock_service.api.v1 import accounts, health, subscriptions, webhooks

api_router = APIRouter()

api_router.include_router(
    health.router,
    tags=["Health"],
)

api_router.include_router(
    subscriptions.router,
    tags=["Subscriptions"],
)

api_router.include_router(
    webhooks.router,
    prefix="/webhooks",
    tags=["Webhooks"],
)

api_router.include_router(
    accounts.router,
    prefix="/accounts",
    tags=["Accounts"],
)
