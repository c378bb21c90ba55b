"""Subscription and legacy alert registration endpoints."""

from datetime import datetime

import structlog
from fastapi import APIRouter, Depends, Query
from pydantic import Field

from restock_service.api.dependencies import (
    get_alert_store,
    get_resolver,
    get_subscription_store,
    require_api_key,
)
from restock_service.api.schemas import CamelModel
from restock_service.exceptions import CatalogLookupError, ValidationError
from restock_service.infrastructure.catalog import ResolvedVariant
from restock_service.infrastructure.messaging import is_phone_number, normalize_contact
from restock_service.services.alert_store import AlertStore
from restock_service.services.identifier_resolver import IdentifierResolver
from restock_service.services.subscription_store import SubscriptionStore
from shared.constants import DEFAULT_LISTING_LIMIT, MAX_LISTING_LIMIT

logger = structlog.get_logger()

router = APIRouter()


# =============================================================================
# Models
# =============================================================================


class SubscribeRequest(CamelModel):
    """Widget subscribe request."""

    account: str = Field(..., description="Storefront domain, e.g. shop1.myshopify.com")
    contact: str = Field(..., description="WhatsApp phone number")
    product_id: str | None = None
    variant_id: str | None = None
    product_title: str | None = Field(None, max_length=500)
    product_url: str | None = Field(None, max_length=2048)


class SubscribeResponse(CamelModel):
    success: bool
    message: str
    subscription_id: int
    product_id: str | None = None
    variant_id: str | None = None
    inventory_item_id: str | None = None


class SubscriptionView(CamelModel):
    id: int
    contact: str
    product_id: str | None
    variant_id: str | None
    inventory_item_id: str | None
    awaiting_reply: bool
    template_sent_at: datetime | None
    last_inbound_at: datetime | None
    created_at: datetime


class SubscriptionListResponse(CamelModel):
    account: str
    count: int
    subscriptions: list[SubscriptionView]


class AlertRequest(CamelModel):
    """Legacy alert registration."""

    account: str
    contact: str
    variant_id: str
    product_id: str | None = None


class AlertResponse(CamelModel):
    success: bool
    alert_id: int
    inventory_item_id: str | None = None


async def _resolve_best_effort(
    resolver: IdentifierResolver, account_id: str, variant_id: str | None
) -> ResolvedVariant | None:
    if not variant_id:
        return None
    try:
        return await resolver.resolve_variant(account_id, variant_id)
    except CatalogLookupError as e:
        logger.warning(
            "Variant lookup failed, saving without resolved ids",
            account_id=account_id,
            variant_id=variant_id,
            error=str(e),
        )
        return None


# =============================================================================
# Endpoints
# =============================================================================


@router.post("/subscriptions", response_model=SubscribeResponse)
async def subscribe(
    request: SubscribeRequest,
    store: SubscriptionStore = Depends(get_subscription_store),
    resolver: IdentifierResolver = Depends(get_resolver),
) -> SubscribeResponse:
    """
    Subscribe a contact to restock notifications for a product or variant.

    The variant is resolved to its product and inventory item when the
    catalog answers; a failed lookup still stores the subscription and the
    dispatcher falls back to matching on the variant id.
    """
    contact = normalize_contact(request.contact)
    if not request.account or not contact or not (request.product_id or request.variant_id):
        raise ValidationError("account, contact and productId or variantId are required")
    if not is_phone_number(contact):
        raise ValidationError("contact must be a phone number")

    resolved = await _resolve_best_effort(resolver, request.account, request.variant_id)
    subscription = await store.upsert_subscription(
        request.account,
        contact,
        product_id=resolved.product_id if resolved else request.product_id,
        variant_id=request.variant_id,
        inventory_item_id=resolved.inventory_item_id if resolved else None,
        product_title=request.product_title,
        product_url=request.product_url,
    )

    return SubscribeResponse(
        success=True,
        message="You'll get a WhatsApp message when this item is back in stock.",
        subscription_id=subscription.id,
        product_id=subscription.product_id,
        variant_id=subscription.variant_id,
        inventory_item_id=subscription.inventory_item_id,
    )


@router.get(
    "/subscriptions",
    response_model=SubscriptionListResponse,
    dependencies=[Depends(require_api_key)],
)
async def list_subscriptions(
    account: str = Query(..., description="Storefront domain"),
    limit: int = Query(DEFAULT_LISTING_LIMIT, ge=1, le=MAX_LISTING_LIMIT),
    store: SubscriptionStore = Depends(get_subscription_store),
) -> SubscriptionListResponse:
    """Most recent subscriptions of an account, newest first."""
    subscriptions = await store.list_recent(account, limit)
    return SubscriptionListResponse(
        account=account,
        count=len(subscriptions),
        subscriptions=[
            SubscriptionView.model_validate(s, from_attributes=True) for s in subscriptions
        ],
    )


@router.post("/alerts", response_model=AlertResponse)
async def register_alert(
    request: AlertRequest,
    store: AlertStore = Depends(get_alert_store),
    resolver: IdentifierResolver = Depends(get_resolver),
) -> AlertResponse:
    """Register a one-shot restock alert for a variant."""
    resolved = await _resolve_best_effort(resolver, request.account, request.variant_id)
    product_id = request.product_id or (resolved.product_id if resolved else None)
    if not product_id:
        raise ValidationError("productId is required when the variant cannot be resolved")

    alert = await store.register_alert(
        request.account,
        normalize_contact(request.contact),
        product_id=product_id,
        variant_id=request.variant_id,
        inventory_item_id=resolved.inventory_item_id if resolved else None,
    )
    return AlertResponse(success=True, alert_id=alert.id, inventory_item_id=alert.inventory_item_id)
