"""Identifier resolver.

Resolves a variant to its product and inventory-item ids. Best effort:
callers treat CatalogLookupError as non-fatal and keep a partially
populated record.
"""

import asyncio
from typing import Protocol

import structlog

from restock_service.exceptions import CatalogLookupError
from restock_service.infrastructure.catalog import ResolvedVariant
from restock_service.infrastructure.redis import CacheService
from restock_service.services.account_store import AccountStore

logger = structlog.get_logger()


class CatalogClient(Protocol):
    async def resolve_variant(
        self, account_id: str, access_token: str, variant_id: str
    ) -> ResolvedVariant: ...


class IdentifierResolver:
    """Variant lookups with a Redis cache in front of the catalog."""

    def __init__(
        self,
        accounts: AccountStore,
        catalog: CatalogClient,
        cache: CacheService,
        timeout_seconds: float = 5.0,
        cache_ttl_seconds: int = 3600,
    ):
        self.accounts = accounts
        self.catalog = catalog
        self.cache = cache
        self.timeout_seconds = timeout_seconds
        self.cache_ttl_seconds = cache_ttl_seconds

    @staticmethod
    def _cache_key(account_id: str, variant_id: str) -> str:
        return f"variant:{account_id}:{variant_id}"

    async def resolve_variant(self, account_id: str, variant_id: str) -> ResolvedVariant:
        cached = await self.cache.get(self._cache_key(account_id, variant_id))
        if cached:
            return ResolvedVariant(
                product_id=cached["product_id"],
                inventory_item_id=cached.get("inventory_item_id"),
            )

        account = await self.accounts.get(account_id)
        if account is None or not account.access_token:
            raise CatalogLookupError(f"no access token on file for {account_id}")

        try:
            resolved = await asyncio.wait_for(
                self.catalog.resolve_variant(account_id, account.access_token, variant_id),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise CatalogLookupError(f"variant lookup timed out for {variant_id}") from e

        await self.cache.set(
            self._cache_key(account_id, variant_id),
            {
                "product_id": resolved.product_id,
                "inventory_item_id": resolved.inventory_item_id,
            },
            ttl_seconds=self.cache_ttl_seconds,
        )
        return resolved

    async def resolve_product_id(self, account_id: str, variant_id: str) -> str:
        resolved = await self.resolve_variant(account_id, variant_id)
        return resolved.product_id

    async def resolve_inventory_item_id(self, account_id: str, variant_id: str) -> str:
        resolved = await self.resolve_variant(account_id, variant_id)
        if not resolved.inventory_item_id:
            raise CatalogLookupError(f"variant {variant_id} has no inventory_item_id")
        return resolved.inventory_item_id
