"""
SMS delivery.

The engine only needs "send this text to this number". `SmsSender` is
that capability; `CellcastClient` implements it against the CellCast REST
API. Send failures come back as a SendResult and are never raised, since
delivery must not unwind a conversation step that is already committed.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx

from app.config import get_settings

logger = logging.getLogger(__name__)


@dataclass
class OutboundMessage:
    """Text to send to a caller."""

    to_phone: str
    body: str
    from_number: Optional[str] = None


@dataclass
class SendResult:
    """Result of a send attempt."""

    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class SmsSender(Protocol):
    """Message-send capability consumed by the engine."""

    async def send(self, message: OutboundMessage) -> SendResult:
        ...


def normalize_phone_number(phone: Optional[str]) -> Optional[str]:
    """
    Normalize a phone number to E.164, assuming Australia without a country code.

    Examples:
        0412 345 678  -> +61412345678
        61412345678   -> +61412345678
        412345678     -> +61412345678
    """
    if not phone:
        return phone

    cleaned = re.sub(r"[^\d+]", "", phone)

    if cleaned.startswith("+"):
        return cleaned
    if cleaned.startswith("0") and len(cleaned) == 10:
        return "+61" + cleaned[1:]
    if cleaned.startswith("61"):
        return "+" + cleaned
    if len(cleaned) == 9:
        return "+61" + cleaned
    return cleaned


class CellcastClient:
    """
    HTTP client for the CellCast SMS API.

    CellCast exposes:
    - POST /send-sms - Queue an SMS ({"sms_text", "numbers", "from"})
    - GET /get-balance - Account balance
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        from_number: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize client.

        Args:
            api_key: CellCast APPKEY (defaults to settings)
            base_url: API base URL (defaults to settings)
            from_number: Default sender id or number
            timeout: Request timeout in seconds
        """
        settings = get_settings()
        self.api_key = api_key or settings.cellcast_api_key
        self.base_url = base_url or settings.cellcast_api_url
        self.from_number = from_number or settings.sms_from_number
        self.timeout = timeout or settings.sms_timeout_seconds
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={
                    "APPKEY": self.api_key or "",
                    "Accept": "application/json",
                },
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def send(self, message: OutboundMessage) -> SendResult:
        """Send one SMS.

        Args:
            message: Recipient, body and optional sender

        Returns:
            SendResult with the provider message id on success
        """
        if not self.api_key:
            return SendResult(success=False, error="CellCast API key not configured")
        if not message.to_phone or not message.body:
            return SendResult(success=False, error="Missing recipient or message")

        to_phone = normalize_phone_number(message.to_phone)
        payload: dict = {
            "sms_text": message.body,
            "numbers": [to_phone],
        }
        sender = message.from_number or self.from_number
        if sender:
            payload["from"] = sender

        client = await self._get_client()

        try:
            response = await client.post("/send-sms", json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            logger.error(f"Failed to send SMS to {to_phone}: {e}")
            return SendResult(success=False, error=str(e))
        except ValueError as e:
            logger.error(f"Invalid CellCast response for {to_phone}: {e}")
            return SendResult(success=False, error="Invalid provider response")

        meta = data.get("meta") or {}
        if meta.get("status") == "SUCCESS" or meta.get("code") == 200:
            messages = (data.get("data") or {}).get("messages") or [{}]
            message_id = messages[0].get("message_id", "sent")
            logger.info(f"SMS queued to {to_phone} ({message_id})")
            return SendResult(success=True, message_id=str(message_id))

        error = data.get("msg") or meta.get("status") or "Failed to send SMS"
        logger.error(f"CellCast rejected SMS to {to_phone}: {error}")
        return SendResult(success=False, error=error)


# Singleton
_sender: Optional[CellcastClient] = None


def get_sms_sender() -> CellcastClient:
    """Get singleton CellcastClient."""
    global _sender
    if _sender is None:
        _sender = CellcastClient()
    return _sender
