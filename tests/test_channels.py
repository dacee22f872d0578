"""Tests for the email and WhatsApp channel services."""

from __future__ import annotations

import json

import httpx
import pytest

from src.services import email_service, whatsapp
from src.services.email_service import EmailService
from src.services.whatsapp import WhatsAppService, sanitize_phone, status_emoji

_RealAsyncClient = httpx.AsyncClient


def _route_httpx(monkeypatch: pytest.MonkeyPatch, module, handler) -> list[httpx.Request]:
    """Send every AsyncClient request made by *module* to *handler*."""
    seen: list[httpx.Request] = []

    def recording(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    transport = httpx.MockTransport(recording)
    monkeypatch.setattr(module.httpx, "AsyncClient", lambda **kw: _RealAsyncClient(transport=transport, **kw))
    return seen


# ---------------------------------------------------------------------------
# Phone numbers
# ---------------------------------------------------------------------------


class TestSanitizePhone:
    @pytest.mark.parametrize(
        "raw",
        ["9876543210", "+919876543210", "919876543210", "+91 98765-43210", "(987) 654 3210"],
    )
    def test_accepted_formats(self, raw: str) -> None:
        assert sanitize_phone(raw) == "+919876543210"

    @pytest.mark.parametrize("raw", ["12345", "5876543210", "+14155550100", ""])
    def test_rejected_formats(self, raw: str) -> None:
        with pytest.raises(ValueError, match="Invalid Indian mobile number"):
            sanitize_phone(raw)

    def test_status_emoji_fallback(self) -> None:
        assert status_emoji("Resolved") == "✅"
        assert status_emoji("Escalated") == "\U0001f4cb"


# ---------------------------------------------------------------------------
# Email
# ---------------------------------------------------------------------------


class TestEmail:
    async def test_mock_mode_succeeds_without_network(self) -> None:
        service = EmailService()
        assert service.mock_mode
        result = await service.send_welcome_email("asha@example.in", "Asha")
        assert result.success
        assert result.provider_message_id is not None
        assert result.provider_message_id.startswith("mock_")

    def test_templates_escape_user_text(self) -> None:
        service = EmailService(app_url="https://portal.example.in/")
        body = service.render_complaint_update(
            "<script>alert(1)</script>", "GRV/2024/000042", 42, "In Progress", "Crew & tools dispatched"
        )
        assert "<script>" not in body
        assert "&lt;script&gt;" in body
        assert "Crew &amp; tools dispatched" in body
        assert "https://portal.example.in/dashboard/complaint/42" in body

    def test_update_without_message_has_no_message_block(self) -> None:
        body = EmailService().render_complaint_update("Asha", "GRV/2024/000042", 42, "Pending")
        assert "Message:" not in body

    def test_resolution_template(self) -> None:
        body = EmailService().render_resolution("Asha", "GRV/2024/000042", 42, "Pipeline repaired")
        assert "Pipeline repaired" in body
        assert "GRV/2024/000042" in body

    async def test_posts_to_function(self, monkeypatch: pytest.MonkeyPatch) -> None:
        seen = _route_httpx(monkeypatch, email_service, lambda _: httpx.Response(200, json={"id": "em-1"}))
        service = EmailService("https://functions.example.in/send-email", "secret")

        result = await service.send_complaint_update_email(
            "asha@example.in", "Asha", "GRV/2024/000042", 42, "Resolved"
        )

        assert result.success
        assert result.provider_message_id == "em-1"
        assert seen[0].headers["Authorization"] == "Bearer secret"
        payload = json.loads(seen[0].content)
        assert payload["to"] == "asha@example.in"
        assert payload["subject"] == "Complaint Update - Status: Resolved"

    async def test_function_error_is_reported(self, monkeypatch: pytest.MonkeyPatch) -> None:
        _route_httpx(monkeypatch, email_service, lambda _: httpx.Response(502, text="bad gateway"))
        result = await EmailService("https://functions.example.in/send-email").send("a@b.in", "s", "<p>x</p>")
        assert result.success is False
        assert result.error == "Email function returned HTTP 502"

    async def test_transport_error_is_reported(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        _route_httpx(monkeypatch, email_service, refuse)
        result = await EmailService("https://functions.example.in/send-email").send("a@b.in", "s", "<p>x</p>")
        assert result.success is False
        assert "connection refused" in (result.error or "")


# ---------------------------------------------------------------------------
# WhatsApp
# ---------------------------------------------------------------------------


class TestWhatsApp:
    async def test_invalid_number_fails_before_sending(self) -> None:
        result = await WhatsAppService().send("12345", "hello")
        assert result.success is False
        assert "Invalid Indian mobile number" in (result.error or "")

    async def test_mock_mode(self) -> None:
        service = WhatsAppService("mock-phone-id", "token")
        assert service.mock_mode
        result = await service.send("9876543210", "hello", template="welcome")
        assert result.success

    def test_renderers(self) -> None:
        service = WhatsAppService(app_url="https://portal.example.in")
        update = service.render_complaint_update("Asha", "GRV/2024/000042", 42, "In Progress", "Crew dispatched")
        assert "\U0001f6a7 New Status: In Progress" in update
        assert "Crew dispatched" in update
        assert update.endswith("Thank you for using our service! \U0001f64f")
        assert "https://portal.example.in/dashboard/complaint/42" in service.render_urgent(
            "Asha", "GRV/2024/000042", 42, "High"
        )
        assert "pending for 12 days" in service.render_reminder("Asha", "GRV/2024/000042", 42, 12)
        assert "Asha" in WhatsAppService.render_welcome("Asha")

    async def test_template_falls_back_to_text(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            if body["type"] == "template":
                return httpx.Response(400, json={"error": {"message": "Template not approved"}})
            return httpx.Response(200, json={"messages": [{"id": "wamid.1"}]})

        seen = _route_httpx(monkeypatch, whatsapp, handler)
        service = WhatsAppService("1234567890", "token")

        result = await service.send("+91 98765 43210", "Your complaint was resolved", template="resolution")

        assert result.success
        assert result.provider_message_id == "wamid.1"
        assert [json.loads(r.content)["type"] for r in seen] == ["template", "text"]
        assert json.loads(seen[1].content)["to"] == "919876543210"

    async def test_api_error_message_surfaces(self, monkeypatch: pytest.MonkeyPatch) -> None:
        _route_httpx(
            monkeypatch, whatsapp, lambda _: httpx.Response(401, json={"error": {"message": "Invalid token"}})
        )
        result = await WhatsAppService("1234567890", "bad").send("9876543210", "hello")
        assert result.success is False
        assert result.error == "Invalid token"
