"""
Tests for the Resend-backed email service and the provider switch.
"""

from types import SimpleNamespace
from unittest.mock import patch

import pytest

from settlement.core.exceptions import ServiceException
from settlement.services.email import ConsoleEmailService, EmailService, build_email_service


class TestEmailService:
    def test_requires_api_key(self):
        with pytest.raises(ServiceException):
            EmailService(api_key="", from_email="no-reply@example.com")

    @patch("resend.Emails.send")
    def test_send_email_payload(self, mock_send):
        mock_send.return_value = {"id": "email_123"}
        service = EmailService(api_key="re_test", from_email="Nabostylisten <no-reply@example.com>")

        response = service.send_email(
            to_email="kari@example.com",
            subject="Betaling bekreftet - Hårklipp",
            html_content="<p>Hei <strong>Kari</strong></p>",
        )

        assert response == {"id": "email_123"}
        payload = mock_send.call_args.args[0]
        assert payload["from"] == "Nabostylisten <no-reply@example.com>"
        assert payload["to"] == ["kari@example.com"]
        assert payload["subject"] == "Betaling bekreftet - Hårklipp"
        assert payload["text"] == "Hei Kari"

    @patch("resend.Emails.send")
    def test_provider_failure_raises_service_exception(self, mock_send):
        mock_send.side_effect = RuntimeError("rate limited")
        service = EmailService(api_key="re_test", from_email="no-reply@example.com")

        with pytest.raises(ServiceException) as exc_info:
            service.send_email("kari@example.com", "Hei", "<p>Hei</p>")
        assert "rate limited" in exc_info.value.message


def test_console_service_does_not_call_resend():
    with patch("resend.Emails.send") as mock_send:
        response = ConsoleEmailService().send_email("kari@example.com", "Hei", "<p>Hei</p>")

    assert response == {"id": "console"}
    mock_send.assert_not_called()


def test_build_email_service_follows_provider():
    console = build_email_service(
        SimpleNamespace(email_provider="console", resend_api_key=None, from_email="a@example.com")
    )
    resend_service = build_email_service(
        SimpleNamespace(email_provider="resend", resend_api_key="re_test", from_email="a@example.com")
    )

    assert isinstance(console, ConsoleEmailService)
    assert isinstance(resend_service, EmailService)
