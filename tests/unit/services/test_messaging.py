"""Unit tests for the WhatsApp sender and contact helpers."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import orjson
import pytest
from twilio.base.exceptions import TwilioRestException

from restock_service.exceptions import SendError
from restock_service.infrastructure.messaging import (
    WhatsAppSender,
    is_phone_number,
    normalize_contact,
    whatsapp_address,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("whatsapp:+15551234567", "+15551234567"),
        ("  +15551234567 ", "+15551234567"),
        ("whatsapp: +15551234567", "+15551234567"),
        (None, ""),
    ],
)
def test_normalize_contact(raw: str | None, expected: str) -> None:
    assert normalize_contact(raw) == expected


@pytest.mark.parametrize("value", ["+15551234567", "447700900123", "+4915112345678"])
def test_phone_numbers_accepted(value: str) -> None:
    assert is_phone_number(value)


@pytest.mark.parametrize("value", ["shopper@example.com", "+0123456789", "12345", "+1 555 123 4567"])
def test_non_phone_numbers_rejected(value: str) -> None:
    assert not is_phone_number(value)


def test_whatsapp_address_is_idempotent() -> None:
    assert whatsapp_address("+15551234567") == "whatsapp:+15551234567"
    assert whatsapp_address("whatsapp:+15551234567") == "whatsapp:+15551234567"


class TestWhatsAppSender:
    @pytest.fixture
    def client(self) -> MagicMock:
        client = MagicMock()
        client.messages.create.return_value = SimpleNamespace(sid="SM123")
        return client

    @pytest.fixture
    def sender(self, client: MagicMock) -> WhatsAppSender:
        sender = WhatsAppSender("AC123", "token", "+14155238886", timeout_seconds=2)
        sender._client = client
        return sender

    @pytest.mark.asyncio
    async def test_send_uses_whatsapp_addresses(
        self, sender: WhatsAppSender, client: MagicMock
    ) -> None:
        message = await sender.send("+15551234567", "hello")

        assert message.delivery_id == "SM123"
        client.messages.create.assert_called_once_with(
            to="whatsapp:+15551234567", body="hello", from_="whatsapp:+14155238886"
        )

    @pytest.mark.asyncio
    async def test_send_template_serializes_variables(
        self, sender: WhatsAppSender, client: MagicMock
    ) -> None:
        await sender.send_template("+15551234567", "HX1", {"1": "shop1", "2": "Hoodie"})

        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["content_sid"] == "HX1"
        assert orjson.loads(kwargs["content_variables"]) == {"1": "shop1", "2": "Hoodie"}

    @pytest.mark.asyncio
    async def test_client_error_is_permanent(self, sender: WhatsAppSender, client: MagicMock) -> None:
        client.messages.create.side_effect = TwilioRestException(
            400, "/Messages", msg="invalid number", code=21211
        )

        with pytest.raises(SendError) as exc_info:
            await sender.send("+15551234567", "hello")

        assert exc_info.value.permanent is True
        assert exc_info.value.code == 21211

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [429, 503])
    async def test_throttling_and_server_errors_are_transient(
        self, sender: WhatsAppSender, client: MagicMock, status: int
    ) -> None:
        client.messages.create.side_effect = TwilioRestException(status, "/Messages", msg="busy")

        with pytest.raises(SendError) as exc_info:
            await sender.send("+15551234567", "hello")

        assert exc_info.value.permanent is False

    @pytest.mark.asyncio
    async def test_unconfigured_sender_fails(self) -> None:
        sender = WhatsAppSender("", "", "+14155238886")

        assert sender.configured is False
        with pytest.raises(SendError):
            await sender.send("+15551234567", "hello")
