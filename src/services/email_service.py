"""Transactional email for complaint updates.

Renders HTML bodies for the three messages the portal sends by email
(status update, welcome, resolution) and hands them to a serverless
email function over HTTP.  The function's contract is a JSON
``{"to", "subject", "html"}`` POST answered with 2xx on acceptance.

When no function URL is configured the service runs in mock mode: it
logs the message and reports success, so local development and tests
never touch the network.
"""

from __future__ import annotations

import html
from datetime import UTC, datetime
from typing import Final
from uuid import uuid4

import httpx
import structlog

from src.models.results import SendResult

logger = structlog.get_logger(__name__)

_BRAND: Final[str] = "Grievance Management System"
_PRIMARY_COLOR: Final[str] = "#1e40af"
_SUCCESS_COLOR: Final[str] = "#10b981"

_STYLE: Final[str] = """
      body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
      .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
      .header {{ background: {accent}; color: white; padding: 20px; text-align: center; }}
      .content {{ padding: 20px; background: #f9fafb; }}
      .status {{ background: #10b981; color: white; padding: 10px; border-radius: 5px; display: inline-block; }}
      .footer {{ text-align: center; padding: 20px; color: #6b7280; font-size: 14px; }}
      .button {{ background: {accent}; color: white; padding: 12px 24px; text-decoration: none;
                 border-radius: 5px; display: inline-block; }}
"""


def _page(title: str, heading: str, content: str, *, accent: str = _PRIMARY_COLOR, automated: bool = True) -> str:
    """Wrap *content* (already escaped) in the shared email layout."""
    notice = "<p>This is an automated message. Please do not reply to this email.</p>" if automated else ""
    year = datetime.now(UTC).year
    return f"""<!DOCTYPE html>
<html>
  <head>
    <meta charset="utf-8">
    <title>{title}</title>
    <style>{_STYLE.format(accent=accent)}</style>
  </head>
  <body>
    <div class="container">
      <div class="header"><h1>{heading}</h1></div>
      <div class="content">
{content}
      </div>
      <div class="footer">
        {notice}
        <p>&copy; {year} {_BRAND}. All rights reserved.</p>
      </div>
    </div>
  </body>
</html>
"""


class EmailService:
    """HTML email sender backed by a serverless HTTP function.

    Parameters
    ----------
    function_url:
        Endpoint of the email function.  Empty enables mock mode.
    function_key:
        Bearer token sent with each request, if the function needs one.
    app_url:
        Public base URL of the portal, used for links in the emails.
    """

    __slots__ = ("_app_url", "_function_key", "_function_url", "_sender_name", "_timeout")

    def __init__(
        self,
        function_url: str = "",
        function_key: str = "",
        *,
        app_url: str = "http://localhost:3000",
        sender_name: str = _BRAND,
        timeout: float = 15.0,
    ) -> None:
        self._function_url = function_url
        self._function_key = function_key
        self._app_url = app_url.rstrip("/")
        self._sender_name = sender_name
        self._timeout = timeout

        logger.info("email_service.initialised", mock_mode=self.mock_mode)

    @property
    def mock_mode(self) -> bool:
        return not self._function_url

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    async def send(self, to: str, subject: str, html_body: str) -> SendResult:
        """Hand one message to the email function.  Never raises."""
        log = logger.bind(channel="email", subject=subject)

        if self.mock_mode:
            log.info("mock_email.sent", to=to, size=len(html_body))
            return SendResult(success=True, provider_message_id=f"mock_{uuid4().hex[:12]}")

        headers = {"Content-Type": "application/json"}
        if self._function_key:
            headers["Authorization"] = f"Bearer {self._function_key}"
        payload = {"to": to, "subject": subject, "html": html_body, "from_name": self._sender_name}

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(self._function_url, headers=headers, json=payload)
        except httpx.HTTPError as exc:
            log.error("email.send_failed", error=str(exc), exc_info=True)
            return SendResult(success=False, error=str(exc))

        if response.is_success:
            message_id = None
            try:
                message_id = response.json().get("id")
            except ValueError:
                pass
            log.info("email.sent", status=response.status_code)
            return SendResult(success=True, provider_message_id=message_id)

        log.error("email.api_error", status=response.status_code, body=response.text[:500])
        return SendResult(success=False, error=f"Email function returned HTTP {response.status_code}")

    async def send_complaint_update_email(
        self,
        to: str,
        user_name: str,
        registration_number: str,
        complaint_id: int | str,
        status: str,
        message: str | None = None,
    ) -> SendResult:
        subject = f"Complaint Update - Status: {status}"
        body = self.render_complaint_update(user_name, registration_number, complaint_id, status, message)
        return await self.send(to, subject, body)

    async def send_welcome_email(self, to: str, user_name: str) -> SendResult:
        return await self.send(to, f"Welcome to {_BRAND}", self.render_welcome(user_name))

    async def send_resolution_email(
        self,
        to: str,
        user_name: str,
        registration_number: str,
        complaint_id: int | str,
        resolution: str,
    ) -> SendResult:
        body = self.render_resolution(user_name, registration_number, complaint_id, resolution)
        return await self.send(to, "Your Complaint Has Been Resolved", body)

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    def _complaint_link(self, complaint_id: int | str) -> str:
        return html.escape(f"{self._app_url}/dashboard/complaint/{complaint_id}")

    def render_complaint_update(
        self,
        user_name: str,
        registration_number: str,
        complaint_id: int | str,
        status: str,
        message: str | None = None,
    ) -> str:
        message_block = f"<p><strong>Message:</strong> {html.escape(message)}</p>" if message else ""
        content = f"""        <h2>Hello {html.escape(user_name)},</h2>
        <p>Your complaint has been updated with a new status.</p>
        <div style="margin: 20px 0;">
          <strong>Complaint ID:</strong> {html.escape(registration_number)}<br>
          <strong>New Status:</strong> <span class="status">{html.escape(status)}</span>
        </div>
        {message_block}
        <p>You can view the full details of your complaint by clicking the button below:</p>
        <div style="text-align: center; margin: 30px 0;">
          <a href="{self._complaint_link(complaint_id)}" class="button">View Complaint Details</a>
        </div>
        <p>Thank you for using our grievance management system.</p>"""
        return _page("Complaint Update", _BRAND, content)

    def render_welcome(self, user_name: str) -> str:
        dashboard = html.escape(f"{self._app_url}/dashboard")
        content = f"""        <h2>Hello {html.escape(user_name)},</h2>
        <p>Welcome to our {_BRAND}! We're excited to have you on board.</p>
        <h3>What you can do:</h3>
        <ul>
          <li>File new complaints and grievances</li>
          <li>Track the status of your complaints</li>
          <li>Receive real-time updates</li>
          <li>View complaint history</li>
          <li>Get support through our chatbot</li>
        </ul>
        <div style="text-align: center; margin: 30px 0;">
          <a href="{dashboard}" class="button">Go to Dashboard</a>
        </div>
        <p>If you have any questions, feel free to contact our support team.</p>"""
        return _page("Welcome", f"Welcome to {_BRAND}", content, automated=False)

    def render_resolution(
        self,
        user_name: str,
        registration_number: str,
        complaint_id: int | str,
        resolution: str,
    ) -> str:
        content = f"""        <h2>Hello {html.escape(user_name)},</h2>
        <p>Great news! Your complaint has been successfully resolved.</p>
        <div style="margin: 20px 0;">
          <strong>Complaint ID:</strong> {html.escape(registration_number)}<br>
          <strong>Resolution:</strong> {html.escape(resolution)}
        </div>
        <p>We appreciate your patience and hope this resolution meets your expectations.</p>
        <div style="text-align: center; margin: 30px 0;">
          <a href="{self._complaint_link(complaint_id)}" class="button">View Details</a>
        </div>
        <p>Thank you for using our grievance management system.</p>"""
        return _page("Complaint Resolved", "\U0001f389 Complaint Resolved!", content, accent=_SUCCESS_COLOR)
