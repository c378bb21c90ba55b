"""API tests for subscription and alert registration."""

import pytest
from httpx import AsyncClient

from restock_service.infrastructure.database import Account
from restock_service.services.alert_store import AlertStore
from restock_service.services.subscription_store import SubscriptionStore

from tests.fakes import ACCOUNT, API_KEY, CONTACT, FakeCatalog


@pytest.mark.asyncio
async def test_subscribe_resolves_and_stores(
    async_client: AsyncClient, subscriptions: SubscriptionStore, installed_account: Account
) -> None:
    response = await async_client.post(
        "/api/v1/subscriptions",
        json={"account": ACCOUNT, "contact": f"whatsapp:{CONTACT}", "variantId": "v1"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["productId"] == "p1"
    assert data["inventoryItemId"] == "i1"

    stored = await subscriptions.get(data["subscriptionId"])
    assert stored.contact == CONTACT
    assert stored.inventory_item_id == "i1"


@pytest.mark.asyncio
async def test_subscribe_twice_returns_same_subscription(
    async_client: AsyncClient, installed_account: Account
) -> None:
    payload = {"account": ACCOUNT, "contact": CONTACT, "variantId": "v1"}

    first = await async_client.post("/api/v1/subscriptions", json=payload)
    second = await async_client.post("/api/v1/subscriptions", json=payload)

    assert first.json()["subscriptionId"] == second.json()["subscriptionId"]


@pytest.mark.asyncio
async def test_failed_lookup_still_subscribes(
    async_client: AsyncClient, catalog: FakeCatalog, installed_account: Account
) -> None:
    response = await async_client.post(
        "/api/v1/subscriptions",
        json={"account": ACCOUNT, "contact": CONTACT, "variantId": "unknown", "productId": "p9"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["productId"] == "p9"
    assert data["inventoryItemId"] is None
    assert catalog.calls == [(ACCOUNT, "unknown")]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"contact": CONTACT, "variantId": "v1"},
        {"account": ACCOUNT, "variantId": "v1"},
        {"account": ACCOUNT, "contact": CONTACT},
        {"account": ACCOUNT, "contact": "  ", "variantId": "v1"},
    ],
)
async def test_missing_fields_answer_400(async_client: AsyncClient, payload: dict) -> None:
    response = await async_client.post("/api/v1/subscriptions", json=payload)

    assert response.status_code == 400
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_non_phone_contact_answers_400(
    async_client: AsyncClient, subscriptions: SubscriptionStore
) -> None:
    response = await async_client.post(
        "/api/v1/subscriptions",
        json={"account": ACCOUNT, "contact": "shopper@example.com", "variantId": "v1"},
    )

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert await subscriptions.list_recent(ACCOUNT, 10) == []


@pytest.mark.asyncio
async def test_listing_requires_api_key(async_client: AsyncClient) -> None:
    response = await async_client.get("/api/v1/subscriptions", params={"account": ACCOUNT})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_listing_newest_first(
    async_client: AsyncClient, subscriptions: SubscriptionStore
) -> None:
    await subscriptions.upsert_subscription(ACCOUNT, CONTACT, variant_id="v1")
    await subscriptions.upsert_subscription(ACCOUNT, CONTACT, variant_id="v2")

    response = await async_client.get(
        "/api/v1/subscriptions",
        params={"account": ACCOUNT, "limit": 1},
        headers={"X-API-Key": API_KEY},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["count"] == 1
    assert data["subscriptions"][0]["variantId"] == "v2"
    assert data["subscriptions"][0]["awaitingReply"] is False


@pytest.mark.asyncio
async def test_register_alert(
    async_client: AsyncClient, alerts: AlertStore, installed_account: Account
) -> None:
    response = await async_client.post(
        "/api/v1/alerts", json={"account": ACCOUNT, "contact": CONTACT, "variantId": "v1"}
    )

    assert response.status_code == 200
    assert response.json()["inventoryItemId"] == "i1"
    assert len(await alerts.find_pending(ACCOUNT, "i1")) == 1


@pytest.mark.asyncio
async def test_alert_with_email_contact_rejected(
    async_client: AsyncClient, installed_account: Account
) -> None:
    response = await async_client.post(
        "/api/v1/alerts",
        json={"account": ACCOUNT, "contact": "shopper@example.com", "variantId": "v1"},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_alert_without_resolvable_product_rejected(async_client: AsyncClient) -> None:
    response = await async_client.post(
        "/api/v1/alerts", json={"account": ACCOUNT, "contact": CONTACT, "variantId": "v1"}
    )
    assert response.status_code == 400
