"""Test doubles for the relay's external collaborators."""

import base64
import hashlib
import hmac
import time
from typing import Any

from restock_service.exceptions import CatalogLookupError, SendError
from restock_service.infrastructure.catalog import ResolvedVariant
from restock_service.infrastructure.database import Account
from restock_service.infrastructure.messaging import SentMessage

WEBHOOK_SECRET = "test-webhook-secret"
BILLING_SECRET = "whsec_test"
API_KEY = "test-api-key"
ACCOUNT = "shop1"
CONTACT = "+15551234567"


class FakeSender:
    """Records messages instead of calling Twilio."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.failing: dict[str, SendError] = {}

    def fail_for(self, contact: str, *, permanent: bool = False) -> None:
        self.failing[contact] = SendError("provider rejected", permanent=permanent, code=63016)

    def _deliver(self, contact: str, **fields: Any) -> SentMessage:
        if contact in self.failing:
            raise self.failing[contact]
        self.sent.append({"contact": contact, **fields})
        return SentMessage(delivery_id=f"SM{len(self.sent):04d}")

    async def send(self, contact: str, body: str) -> SentMessage:
        return self._deliver(contact, body=body)

    async def send_template(
        self, contact: str, content_sid: str, variables: dict[str, str]
    ) -> SentMessage:
        return self._deliver(contact, content_sid=content_sid, variables=variables)

    def bodies_for(self, contact: str) -> list[str]:
        return [m["body"] for m in self.sent if m["contact"] == contact and "body" in m]


class FakeCatalog:
    """Variant lookups answered from a dict."""

    def __init__(self, variants: dict[str, ResolvedVariant] | None = None) -> None:
        self.variants = variants or {}
        self.calls: list[tuple[str, str]] = []

    async def resolve_variant(
        self, account_id: str, access_token: str, variant_id: str
    ) -> ResolvedVariant:
        self.calls.append((account_id, variant_id))
        if variant_id not in self.variants:
            raise CatalogLookupError(f"variant {variant_id} not found")
        return self.variants[variant_id]


class FakeNotifier:
    def __init__(self, fail: bool = False) -> None:
        self.notified: list[str] = []
        self.fail = fail

    async def notify_limit_reached(self, account: Account) -> None:
        self.notified.append(account.account_id)
        if self.fail:
            raise RuntimeError("broker down")


class FakeRedis:
    """Just enough of redis.asyncio.Redis for CacheService."""

    def __init__(self) -> None:
        self.store: dict[str, bytes] = {}

    async def get(self, key: str) -> bytes | None:
        return self.store.get(key)

    async def set(self, key: str, value: bytes, ex: int | None = None) -> None:
        self.store[key] = value

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        pass


def sign_webhook(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    digest = hmac.new(secret.encode(), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode()


def sign_billing_event(payload: bytes, secret: str = BILLING_SECRET) -> str:
    """Stripe-Signature header value for ``payload``."""
    timestamp = int(time.time())
    signed = f"{timestamp}.{payload.decode()}".encode()
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"
