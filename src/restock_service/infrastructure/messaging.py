"""Outbound WhatsApp messages over the Twilio REST API."""

import asyncio
import re
from dataclasses import dataclass
from typing import Any

import orjson
import structlog
from twilio.base.exceptions import TwilioException, TwilioRestException
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client

from restock_service.exceptions import SendError
from shared.constants import WHATSAPP_PREFIX

logger = structlog.get_logger()

PHONE_PATTERN = re.compile(r"\+?[1-9]\d{6,14}")


def normalize_contact(value: str | None) -> str:
    """Bare phone number: no ``whatsapp:`` prefix, no surrounding whitespace."""
    value = (value or "").strip()
    if value.startswith(WHATSAPP_PREFIX):
        value = value[len(WHATSAPP_PREFIX):]
    return value.strip()


def is_phone_number(value: str) -> bool:
    """E.164-ish: optional leading +, 7 to 15 digits."""
    return bool(PHONE_PATTERN.fullmatch(value))


def whatsapp_address(number: str) -> str:
    number = number.strip()
    return number if number.startswith(WHATSAPP_PREFIX) else f"{WHATSAPP_PREFIX}{number}"


@dataclass(frozen=True)
class SentMessage:
    delivery_id: str


class WhatsAppSender:
    """
    Sends WhatsApp messages through Twilio.

    The Twilio client is synchronous, so calls run in a worker thread and
    are bounded by ``timeout_seconds``. Failures surface as SendError with
    ``permanent`` set for errors a retry cannot fix (4xx other than 429).
    """

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        sender: str,
        timeout_seconds: float = 10.0,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.sender = sender
        self.timeout_seconds = timeout_seconds
        self._client: Client | None = None

    @property
    def configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.account_sid.startswith("AC"))

    def _get_client(self) -> Client:
        if not self.configured:
            raise SendError("WhatsApp sender not configured")
        if self._client is None:
            self._client = Client(
                self.account_sid,
                self.auth_token,
                http_client=TwilioHttpClient(timeout=self.timeout_seconds),
            )
        return self._client

    async def send(self, contact: str, body: str) -> SentMessage:
        return await self._create(to=whatsapp_address(contact), body=body)

    async def send_template(
        self, contact: str, content_sid: str, variables: dict[str, str]
    ) -> SentMessage:
        """Send a pre-approved content template (required for first contact)."""
        return await self._create(
            to=whatsapp_address(contact),
            content_sid=content_sid,
            content_variables=orjson.dumps(variables).decode(),
        )

    async def _create(self, **message_kwargs: Any) -> SentMessage:
        client = self._get_client()
        message_kwargs["from_"] = whatsapp_address(self.sender)
        try:
            message = await asyncio.wait_for(
                asyncio.to_thread(client.messages.create, **message_kwargs),
                timeout=self.timeout_seconds + 1,
            )
        except asyncio.TimeoutError as e:
            raise SendError("WhatsApp send timed out") from e
        except TwilioRestException as e:
            permanent = 400 <= (e.status or 0) < 500 and e.status != 429
            raise SendError(
                f"WhatsApp send failed: {e.msg}", permanent=permanent, code=e.code
            ) from e
        except (TwilioException, OSError) as e:
            # requests' transport errors are OSError subclasses
            raise SendError(f"WhatsApp send failed: {e}") from e

        logger.info("WhatsApp sent", sid=message.sid, to=message_kwargs["to"])
        return SentMessage(delivery_id=message.sid)
