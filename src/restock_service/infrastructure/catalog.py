"""Storefront catalog client (Shopify Admin REST API)."""

from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from restock_service.exceptions import CatalogLookupError

logger = structlog.get_logger()


@dataclass(frozen=True)
class ResolvedVariant:
    """Canonical identifiers for a variant."""

    product_id: str
    inventory_item_id: str | None


class ShopifyCatalogClient:
    """Looks up variants through the storefront's Admin API."""

    def __init__(self, http_client: httpx.AsyncClient, api_version: str = "2024-07"):
        self.http = http_client
        self.api_version = api_version

    async def resolve_variant(
        self, account_id: str, access_token: str, variant_id: str
    ) -> ResolvedVariant:
        """
        Fetch a variant and return its product and inventory-item ids.

        Raises:
            CatalogLookupError: transport failure, timeout, non-2xx answer,
                or a payload without a product id
        """
        url = f"https://{account_id}/admin/api/{self.api_version}/variants/{variant_id}.json"
        try:
            response = await self.http.get(
                url,
                headers={
                    "X-Shopify-Access-Token": access_token,
                    "Accept": "application/json",
                },
            )
        except httpx.TimeoutException as e:
            raise CatalogLookupError(f"variant lookup timed out for {variant_id}") from e
        except httpx.HTTPError as e:
            raise CatalogLookupError(f"variant lookup failed for {variant_id}: {e}") from e

        if response.status_code != 200:
            raise CatalogLookupError(
                f"variant lookup failed for {variant_id}: HTTP {response.status_code}"
            )

        try:
            data: dict[str, Any] = response.json()
        except ValueError as e:
            raise CatalogLookupError(f"variant lookup returned invalid JSON for {variant_id}") from e

        variant = data.get("variant") or {}
        product_id = variant.get("product_id")
        if not product_id:
            raise CatalogLookupError(f"variant {variant_id} has no product_id")

        inventory_item_id = variant.get("inventory_item_id")
        return ResolvedVariant(
            product_id=str(product_id),
            inventory_item_id=str(inventory_item_id) if inventory_item_id else None,
        )
