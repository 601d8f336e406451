"""WhatsApp clients — send messages via Twilio or the Meta Cloud API."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Optional

import httpx
import structlog

from src.config import settings

logger = structlog.get_logger()

# Lazy singleton
_client: Optional["MessageSender"] = None


class DeliveryError(Exception):
    """Raised when the provider did not accept an outbound message."""


class MessageSender(ABC):
    """Outbound messaging collaborator used by the coordinator."""

    @abstractmethod
    async def send_message(self, to_phone: str, text: str) -> str:
        """Send a text message and return the provider message id.

        Args:
            to_phone: Canonical recipient number (digits only)
            text: Message body

        Raises:
            DeliveryError: the provider rejected or never received the message
        """
        ...

    async def aclose(self) -> None:
        return None


class TwilioWhatsAppClient(MessageSender):
    """Async wrapper around Twilio's synchronous SDK for WhatsApp messaging."""

    def __init__(self, account_sid: str, auth_token: str, from_number: str):
        from twilio.rest import Client as TwilioClient

        self.twilio = TwilioClient(account_sid, auth_token)
        self.from_number = from_number  # e.g. "+14155238886" (sandbox)

    async def send_message(self, to_phone: str, text: str) -> str:
        from twilio.base.exceptions import TwilioException

        # Twilio SDK is synchronous, run in thread pool
        try:
            msg = await asyncio.to_thread(
                self.twilio.messages.create,
                body=text,
                from_=f"whatsapp:{self.from_number}",
                to=f"whatsapp:+{to_phone}",
            )
        except TwilioException as e:
            raise DeliveryError(str(e)) from e

        logger.info(
            "whatsapp_message_sent",
            provider="twilio",
            to=to_phone,
            sid=msg.sid,
            text_len=len(text),
        )
        return msg.sid


class CloudApiWhatsAppClient(MessageSender):
    """WhatsApp Business Cloud API (graph.facebook.com) text sender."""

    BASE_URL = "https://graph.facebook.com"

    def __init__(
        self,
        token: str,
        phone_number_id: str,
        api_version: str = "v21.0",
        http: Optional[httpx.AsyncClient] = None,
    ):
        self.phone_number_id = phone_number_id
        self.api_version = api_version
        self.http = http or httpx.AsyncClient(timeout=10)
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    @property
    def url(self) -> str:
        return f"{self.BASE_URL}/{self.api_version}/{self.phone_number_id}/messages"

    async def send_message(self, to_phone: str, text: str) -> str:
        payload = {
            "messaging_product": "whatsapp",
            "to": to_phone,
            "type": "text",
            "text": {"body": text},
        }
        try:
            response = await self.http.post(self.url, json=payload, headers=self._headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise DeliveryError(
                f"{e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise DeliveryError(str(e) or type(e).__name__) from e

        messages = response.json().get("messages") or [{}]
        message_id = messages[0].get("id", "")
        logger.info(
            "whatsapp_message_sent",
            provider="cloud_api",
            to=to_phone,
            message_id=message_id,
            text_len=len(text),
        )
        return message_id

    async def aclose(self) -> None:
        await self.http.aclose()


def get_whatsapp_client() -> Optional[MessageSender]:
    """Get or create the singleton WhatsApp client.

    Returns None if the selected provider's credentials are not configured.
    """
    global _client

    if _client is not None:
        return _client

    if settings.whatsapp_provider == "twilio":
        if not settings.twilio_account_sid or not settings.twilio_auth_token:
            logger.debug("whatsapp_client_not_configured", provider="twilio")
            return None
        _client = TwilioWhatsAppClient(
            account_sid=settings.twilio_account_sid,
            auth_token=settings.twilio_auth_token,
            from_number=settings.twilio_whatsapp_number,
        )
    else:
        if not settings.whatsapp_token or not settings.whatsapp_phone_number_id:
            logger.debug("whatsapp_client_not_configured", provider="cloud_api")
            return None
        _client = CloudApiWhatsAppClient(
            token=settings.whatsapp_token,
            phone_number_id=settings.whatsapp_phone_number_id,
            api_version=settings.whatsapp_api_version,
        )

    logger.info("whatsapp_client_initialized", provider=settings.whatsapp_provider)
    return _client
