"""WhatsApp Business messaging for complaint notifications.

Sends plain-text complaint notifications to citizens through the Meta
Cloud API.  Proactive (non-session) messages may name a registered
template; when template delivery fails the text body is sent instead.

Architecture:
    * ``WhatsAppService.send`` is the single transport entry point.
    * ``render_*`` helpers build the message bodies, one per event kind.
    * Phone numbers are normalised to E.164 (``+91XXXXXXXXXX``) first.
    * Without credentials the service runs in mock mode and only logs.
"""

from __future__ import annotations

import asyncio
import re
from typing import Any, Final
from uuid import uuid4

import httpx
import structlog

from src.models.results import SendResult

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

WHATSAPP_API_BASE: Final[str] = "https://graph.facebook.com/v18.0"

_INDIAN_MOBILE_RE: Final[re.Pattern[str]] = re.compile(
    r"^(?:\+?91)?([6-9]\d{9})$",
)

# Retry configuration
_MAX_RETRIES: Final[int] = 3
_RETRY_BACKOFF_SECONDS: Final[tuple[float, ...]] = (0.5, 1.0, 2.0)

_WHATSAPP_MAX: Final[int] = 4096

# Registered Cloud API template names, keyed by event kind.
TEMPLATES: Final[dict[str, str]] = {
    "complaint_update": "complaint_update",
    "welcome": "welcome",
    "resolution": "resolution",
    "urgent": "urgent",
    "reminder": "reminder",
}

_STATUS_EMOJI: Final[dict[str, str]] = {
    "pending": "⏳",
    "under review": "\U0001f50d",
    "in progress": "\U0001f6a7",
    "resolved": "✅",
    "closed": "\U0001f512",
    "rejected": "❌",
}
_DEFAULT_STATUS_EMOJI: Final[str] = "\U0001f4cb"


# ---------------------------------------------------------------------------
# Phone number utilities
# ---------------------------------------------------------------------------


def sanitize_phone(number: str) -> str:
    """Normalise an Indian mobile number to E.164 format (``+91XXXXXXXXXX``).

    Accepts ``+91XXXXXXXXXX``, ``91XXXXXXXXXX``, or plain 10-digit
    formats.  Strips spaces, dashes, and parentheses before matching.

    Raises
    ------
    ValueError
        If the number cannot be parsed as a valid Indian mobile.
    """
    cleaned = re.sub(r"[\s\-\(\)]+", "", number.strip())
    match = _INDIAN_MOBILE_RE.match(cleaned)
    if not match:
        raise ValueError(
            f"Invalid Indian mobile number: {number!r}. "
            "Expected +91XXXXXXXXXX, 91XXXXXXXXXX, or 10-digit format."
        )
    return f"+91{match.group(1)}"


def status_emoji(status: str) -> str:
    return _STATUS_EMOJI.get(status.strip().lower(), _DEFAULT_STATUS_EMOJI)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class WhatsAppService:
    """Meta Cloud API sender with message renderers for each event kind.

    Usage::

        service = WhatsAppService(
            phone_number_id="your_phone_number_id",
            access_token="your_meta_token",
            app_url="https://grievance.example.gov.in",
        )
        text = service.render_resolution("Asha", "GRV/2024/000042", 42, "Fixed pothole")
        result = await service.send("+919876543210", text, template="resolution")
    """

    __slots__ = ("_access_token", "_app_url", "_phone_number_id")

    def __init__(
        self,
        phone_number_id: str = "",
        access_token: str = "",
        *,
        app_url: str = "http://localhost:3000",
    ) -> None:
        self._phone_number_id = phone_number_id
        self._access_token = access_token
        self._app_url = app_url.rstrip("/")

        logger.info(
            "whatsapp_service.initialised",
            phone_number_id=(phone_number_id[:6] + "..." if phone_number_id else "<empty>"),
            mock_mode=self.mock_mode,
        )

    @property
    def mock_mode(self) -> bool:
        return (
            not self._phone_number_id
            or not self._access_token
            or self._phone_number_id.startswith("mock")
        )

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    async def send(self, to: str, message: str, template: str | None = None) -> SendResult:
        """Send *message* to *to*.  Never raises.

        Parameters
        ----------
        to:
            Recipient phone number in any Indian format.
        message:
            Plain-text body (truncated to the Cloud API limit).
        template:
            Event kind whose registered template is tried first.  On
            template failure the plain text body is sent instead.
        """
        try:
            phone = sanitize_phone(to)
        except ValueError as exc:
            return SendResult(success=False, error=str(exc))

        log = logger.bind(channel="whatsapp", to=phone, template=template)

        if self.mock_mode:
            log.info("mock_whatsapp.sent", message_preview=message[:80])
            return SendResult(success=True, provider_message_id=f"mock_{uuid4().hex[:12]}")

        try:
            if template and template in TEMPLATES:
                result = await self._send_template(phone, TEMPLATES[template])
                if result.success:
                    return result
                log.warning("whatsapp.template_fallback_to_text", error=result.error)

            return await self._send_text(phone, message, log)

        except Exception as exc:
            log.error("whatsapp.send_failed", error=str(exc), exc_info=True)
            return SendResult(success=False, error=str(exc))

    async def _send_text(self, phone: str, message: str, log: Any) -> SendResult:
        payload: dict[str, Any] = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": phone.lstrip("+"),
            "type": "text",
            "text": {"preview_url": False, "body": message[:_WHATSAPP_MAX]},
        }
        result = await self._post_message(payload)
        if result.success:
            log.info("whatsapp.text_sent", wa_message_id=result.provider_message_id)
        else:
            log.error("whatsapp.api_error", error=result.error)
        return result

    async def _send_template(self, phone: str, template_name: str) -> SendResult:
        payload: dict[str, Any] = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": phone.lstrip("+"),
            "type": "template",
            "template": {"name": template_name, "language": {"code": "en_US"}},
        }
        try:
            return await self._post_message(payload)
        except ConnectionError as exc:
            return SendResult(success=False, error=str(exc))

    async def _post_message(self, payload: dict[str, Any]) -> SendResult:
        url = f"{WHATSAPP_API_BASE}/{self._phone_number_id}/messages"
        headers = {
            "Authorization": f"Bearer {self._access_token}",
            "Content-Type": "application/json",
        }
        response = await self._request_with_retry("POST", url, headers=headers, json_body=payload)
        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code == 200 and "messages" in data:
            return SendResult(success=True, provider_message_id=data["messages"][0].get("id", ""))

        error = data.get("error", {}).get("message") if isinstance(data.get("error"), dict) else None
        return SendResult(success=False, error=error or f"WhatsApp API returned HTTP {response.status_code}")

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Execute an HTTP request with exponential-backoff retry.

        Retries on 5xx, 429, and transient connection errors up to
        ``_MAX_RETRIES`` times.
        """
        last_exc: BaseException | None = None

        for attempt in range(_MAX_RETRIES):
            try:
                async with httpx.AsyncClient(timeout=15.0) as client:
                    response = await client.request(method, url, headers=headers, json=json_body)
                if response.status_code >= 500 or response.status_code == 429:
                    logger.warning(
                        "whatsapp.retryable_status",
                        status=response.status_code,
                        attempt=attempt + 1,
                    )
                    if attempt < _MAX_RETRIES - 1:
                        await asyncio.sleep(_RETRY_BACKOFF_SECONDS[attempt])
                        continue
                return response

            except httpx.HTTPError as exc:
                last_exc = exc
                logger.warning("whatsapp.request_error", error=str(exc), attempt=attempt + 1)
                if attempt < _MAX_RETRIES - 1:
                    await asyncio.sleep(_RETRY_BACKOFF_SECONDS[attempt])

        raise ConnectionError(f"All {_MAX_RETRIES} attempts failed for {url}") from last_exc

    # ------------------------------------------------------------------
    # Message bodies
    # ------------------------------------------------------------------

    def _complaint_url(self, complaint_id: int | str) -> str:
        return f"{self._app_url}/dashboard/complaint/{complaint_id}"

    def render_complaint_update(
        self,
        user_name: str,
        registration_number: str,
        complaint_id: int | str,
        status: str,
        message: str | None = None,
    ) -> str:
        lines = [
            f"Hello {user_name}! \U0001f4e2",
            "",
            "Your complaint has been updated:",
            "",
            f"\U0001f194 Complaint ID: {registration_number}",
            f"{status_emoji(status)} New Status: {status}",
        ]
        if message:
            lines.append(f"\U0001f4ac Message: {message}")
        lines += [
            "",
            f"View full details: {self._complaint_url(complaint_id)}",
            "",
            "Thank you for using our service! \U0001f64f",
        ]
        return "\n".join(lines)

    @staticmethod
    def render_welcome(user_name: str) -> str:
        return (
            f"Hello {user_name}! \U0001f44b\n\n"
            "Welcome to our Grievance Management System!\n\n"
            "You can now:\n"
            "\U0001f4dd File new complaints\n"
            "\U0001f4ca Track complaint status\n"
            "\U0001f514 Receive real-time updates\n"
            "\U0001f4f1 Get support via our chatbot\n\n"
            "Thank you for choosing our service! \U0001f389"
        )

    def render_resolution(
        self, user_name: str, registration_number: str, complaint_id: int | str, resolution: str
    ) -> str:
        return (
            f"\U0001f389 Great news, {user_name}!\n\n"
            f"Your complaint (ID: {registration_number}) has been successfully resolved!\n\n"
            f"Resolution: {resolution}\n\n"
            "Thank you for your patience. We hope this resolution meets your expectations! \U0001f64f\n\n"
            f"View details: {self._complaint_url(complaint_id)}"
        )

    def render_urgent(
        self, user_name: str, registration_number: str, complaint_id: int | str, urgency: str
    ) -> str:
        return (
            f"\U0001f6a8 URGENT UPDATE - {user_name}!\n\n"
            f"Your complaint (ID: {registration_number}) requires immediate attention!\n\n"
            f"Priority: {urgency}\n\n"
            f"Please check your dashboard for more details: {self._complaint_url(complaint_id)}\n\n"
            "This is an automated urgent notification."
        )

    def render_reminder(
        self, user_name: str, registration_number: str, complaint_id: int | str, days_pending: int
    ) -> str:
        return (
            f"⏰ Reminder - {user_name}\n\n"
            f"Your complaint (ID: {registration_number}) has been pending for {days_pending} days.\n\n"
            "We're working on it and will update you soon!\n\n"
            f"View status: {self._complaint_url(complaint_id)}\n\n"
            "Thank you for your patience! \U0001f64f"
        )
