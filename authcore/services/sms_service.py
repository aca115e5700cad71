"""SMS transports for delivering one-time passcodes."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Protocol

import httpx
import structlog

from authcore.config import Settings, get_settings
from authcore.errors import ConfigurationError
from authcore.services.logging_service import mask_mobile_number

logger = structlog.get_logger(__name__)

TWILIO_API_BASE_URL = "https://api.twilio.com/2010-04-01"


class SMSSender(Protocol):
    """Anything that can deliver a code to a phone. Raises on failure."""

    async def send_otp(self, mobile_number: str, code: str) -> None: ...


class SMSDeliveryError(Exception):
    """The transport could not deliver the message."""


@dataclass
class SentMessage:
    mobile_number: str
    code: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class MockSMSProvider:
    """Development and test transport: records messages instead of sending."""

    def __init__(self):
        self.sent_messages: list[SentMessage] = []

    async def send_otp(self, mobile_number: str, code: str) -> None:
        self.sent_messages.append(SentMessage(mobile_number=mobile_number, code=code))
        logger.info("mock_sms_sent", to=mask_mobile_number(mobile_number))

    def get_last_message(self) -> Optional[SentMessage]:
        return self.sent_messages[-1] if self.sent_messages else None

    def was_otp_sent(self, mobile_number: str, code: str) -> bool:
        return any(
            m.mobile_number == mobile_number and m.code == code
            for m in self.sent_messages
        )

    def clear(self) -> None:
        self.sent_messages.clear()


class TwilioSMSProvider:
    """Sends codes through the Twilio Messages API."""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        timeout_seconds: int = 10,
        expiry_minutes: int = 5,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not account_sid or not auth_token or not from_number:
            raise ConfigurationError("Twilio credentials are required")
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.timeout_seconds = timeout_seconds
        self.expiry_minutes = expiry_minutes
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds)
            )
        return self._client

    async def close(self):
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def send_otp(self, mobile_number: str, code: str) -> None:
        """Deliver a code; any non-2xx response or transport error raises.

        Raises:
            SMSDeliveryError: If Twilio rejects the message or is unreachable
        """
        url = f"{TWILIO_API_BASE_URL}/Accounts/{self.account_sid}/Messages.json"
        body = (
            f"Your verification code is: {code}. "
            f"This code will expire in {self.expiry_minutes} minutes."
        )

        client = await self._get_client()

        try:
            response = await client.post(
                url,
                data={"To": mobile_number, "From": self.from_number, "Body": body},
                auth=(self.account_sid, self.auth_token),
            )
        except httpx.HTTPError as e:
            logger.error(
                "twilio_request_failed",
                to=mask_mobile_number(mobile_number),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise SMSDeliveryError("Failed to send OTP. Please try again later.") from e

        if response.is_error:
            logger.error(
                "twilio_api_error",
                to=mask_mobile_number(mobile_number),
                status_code=response.status_code,
                detail=response.text[:200],
            )
            raise SMSDeliveryError("Failed to send OTP. Please try again later.")

        logger.info("twilio_sms_sent", to=mask_mobile_number(mobile_number))


def create_sms_service(settings: Optional[Settings] = None) -> SMSSender:
    """Build the transport selected by ``settings.sms_provider``.

    Raises:
        ConfigurationError: If Twilio is selected without full credentials
    """
    settings = settings or get_settings()

    if settings.sms_provider == "twilio":
        missing = [
            name
            for name in ("twilio_account_sid", "twilio_auth_token", "twilio_phone_number")
            if not getattr(settings, name)
        ]
        if missing:
            raise ConfigurationError(
                f"Twilio configuration missing. Required: {', '.join(n.upper() for n in missing)}"
            )
        return TwilioSMSProvider(
            settings.twilio_account_sid,
            settings.twilio_auth_token,
            settings.twilio_phone_number,
            timeout_seconds=settings.sms_timeout_seconds,
            expiry_minutes=settings.otp_expiry_minutes,
        )

    return MockSMSProvider()
