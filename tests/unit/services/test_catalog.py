"""Unit tests for the storefront catalog client."""

import httpx
import pytest

from restock_service.exceptions import CatalogLookupError
from restock_service.infrastructure.catalog import ShopifyCatalogClient


def client_for(handler) -> ShopifyCatalogClient:
    return ShopifyCatalogClient(httpx.AsyncClient(transport=httpx.MockTransport(handler)), "2024-07")


class TestShopifyCatalogClient:
    @pytest.mark.asyncio
    async def test_variant_resolved(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200, json={"variant": {"id": 1, "product_id": 632910392, "inventory_item_id": 808950810}}
            )

        resolved = await client_for(handler).resolve_variant("shop1.myshopify.com", "shpat_x", "1")

        assert resolved.product_id == "632910392"
        assert resolved.inventory_item_id == "808950810"
        assert str(seen[0].url) == "https://shop1.myshopify.com/admin/api/2024-07/variants/1.json"
        assert seen[0].headers["X-Shopify-Access-Token"] == "shpat_x"

    @pytest.mark.asyncio
    async def test_missing_inventory_item_is_none(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"variant": {"product_id": 7}})

        resolved = await client_for(handler).resolve_variant("shop1", "tok", "1")
        assert resolved.inventory_item_id is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(404, json={"errors": "Not Found"}),
            httpx.Response(200, json={"variant": {}}),
            httpx.Response(200, content=b"<html>"),
        ],
    )
    async def test_bad_answers_raise(self, response: httpx.Response) -> None:
        with pytest.raises(CatalogLookupError):
            await client_for(lambda request: response).resolve_variant("shop1", "tok", "1")

    @pytest.mark.asyncio
    async def test_transport_errors_raise(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(CatalogLookupError):
            await client_for(handler).resolve_variant("shop1", "tok", "1")
