"""
Tests for the mailer module.
"""

import smtplib
import socket
from unittest.mock import MagicMock, patch

import pytest

from src.agency_crm.config import Settings
from src.agency_crm.errors import TransportFailure
from src.agency_crm.mailer import MailSender, MailTransport, SmtpTransport


def _settings(**overrides) -> Settings:
    values = {
        "smtp_host": "smtp.example.com",
        "smtp_port": 465,
        "smtp_user": "support@example.com",
        "smtp_password": "secret",
        "smtp_timeout_seconds": 10.0,
        "app_name": "Test CRM",
        "app_base_url": "https://crm.example.com",
        "mail_dry_run": False,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def _text_part(message) -> str:
    return message.get_payload()[0].get_payload(decode=True).decode("utf-8")


def _html_part(message) -> str:
    return message.get_payload()[1].get_payload(decode=True).decode("utf-8")


@pytest.fixture
def transport():
    return MagicMock()


@pytest.fixture
def sender(transport):
    return MailSender(_settings(), transport=transport)


class TestSendInvitation:
    """Tests for invitation emails."""

    def test_success_names_recipient(self, sender, transport):
        result = sender.send_invitation(
            to="ana@example.com", name="Ana", password="Tmp12345", role="Client"
        )

        assert result.success is True
        assert "ana@example.com" in result.message
        transport.send.assert_called_once()

        message = transport.send.call_args[0][0]
        assert message["To"] == "ana@example.com"
        assert message["Subject"] == "Invitation to access Test CRM"
        assert "support@example.com" in message["From"]

        text = _text_part(message)
        assert "Hello, Ana!" in text
        assert "Tmp12345" in text
        assert "Client" in text
        assert "https://crm.example.com/login" in text

    def test_explicit_login_url_is_used(self, sender, transport):
        sender.send_invitation(
            to="ana@example.com", name="Ana", password="x", login_url="https://app.example.com/in"
        )

        message = transport.send.call_args[0][0]
        assert "https://app.example.com/in" in _text_part(message)

    def test_html_escapes_user_input(self, sender, transport):
        sender.send_invitation(to="ana@example.com", name="<script>Ana</script>", password="x")

        html = _html_part(transport.send.call_args[0][0])
        assert "<script>" not in html
        assert "&lt;script&gt;" in html

    @pytest.mark.parametrize(
        "to,name,missing",
        [("", "Ana", "to"), ("ana@example.com", "", "name"), ("", "", "to, name")],
    )
    def test_missing_parameters_fail_before_sending(self, sender, transport, to, name, missing):
        result = sender.send_invitation(to=to, name=name, password="x")

        assert result.success is False
        assert f"Missing required parameter(s): {missing}" in result.message
        transport.send.assert_not_called()

    def test_transport_timeout_is_reported_as_failure(self, sender, transport):
        transport.send.side_effect = TransportFailure(
            "Timed out after 10s talking to SMTP server smtp.example.com:465"
        )

        result = sender.send_invitation(to="ana@example.com", name="Ana", password="x")

        assert result.success is False
        assert result.message.startswith("Failed to send invitation:")
        assert "Timed out" in result.message

    def test_unexpected_error_is_reported_as_failure(self, sender, transport):
        transport.send.side_effect = RuntimeError("boom")

        result = sender.send_invitation(to="ana@example.com", name="Ana", password="x")

        assert result.success is False
        assert "boom" in result.message

    def test_dry_run_does_not_touch_transport(self, transport):
        sender = MailSender(_settings(mail_dry_run=True), transport=transport)

        result = sender.send_invitation(to="ana@example.com", name="Ana", password="x")

        assert result.success is True
        assert result.message.startswith("[DRY RUN]")
        transport.send.assert_not_called()


class TestSendPasswordReset:
    """Tests for password reset emails."""

    def test_success(self, sender, transport):
        result = sender.send_password_reset("ana@example.com", "https://crm.example.com/reset/abc")

        assert result.success is True
        assert result.message == "Password reset email sent successfully to ana@example.com"

        message = transport.send.call_args[0][0]
        assert message["Subject"] == "Password reset - Test CRM"
        assert "https://crm.example.com/reset/abc" in _text_part(message)

    def test_missing_link(self, sender, transport):
        result = sender.send_password_reset("ana@example.com", "")

        assert result.success is False
        assert "reset_link" in result.message
        transport.send.assert_not_called()

    def test_transport_failure(self, sender, transport):
        transport.send.side_effect = TransportFailure("SMTP error 550: mailbox unavailable")

        result = sender.send_password_reset("ana@example.com", "https://x")

        assert result.success is False
        assert "550" in result.message


class TestVerifyConnection:
    """Tests for the connection check."""

    def test_success(self, sender, transport):
        result = sender.verify_connection()

        assert result.success is True
        transport.verify.assert_called_once()

    def test_rejected_credentials_report_error_text(self, sender, transport):
        transport.verify.side_effect = TransportFailure("SMTP error 535: authentication failed")

        result = sender.verify_connection()

        assert result.success is False
        assert result.message == "Connection failed: SMTP error 535: authentication failed"


class TestSmtpTransport:
    """Tests for the SMTP transport against a mocked smtplib."""

    def test_send_over_ssl_logs_in_and_quits(self):
        server = MagicMock()
        with patch("src.agency_crm.mailer.smtplib.SMTP_SSL", return_value=server) as smtp_ssl:
            SmtpTransport(_settings()).send(MagicMock())

        args, kwargs = smtp_ssl.call_args
        assert args == ("smtp.example.com", 465)
        assert kwargs["timeout"] == 10.0
        server.login.assert_called_once_with("support@example.com", "secret")
        server.send_message.assert_called_once()
        server.quit.assert_called_once()

    def test_starttls_path(self):
        server = MagicMock()
        settings = _settings(smtp_port=587, smtp_use_ssl=False, smtp_use_starttls=True)
        with patch("src.agency_crm.mailer.smtplib.SMTP", return_value=server):
            SmtpTransport(settings).verify()

        server.starttls.assert_called_once()
        server.login.assert_called_once()
        server.quit.assert_called_once()

    def test_missing_host_raises(self):
        with pytest.raises(TransportFailure, match="SMTP_HOST"):
            SmtpTransport(_settings(smtp_host="")).verify()

    def test_timeout_is_described(self):
        with patch(
            "src.agency_crm.mailer.smtplib.SMTP_SSL", side_effect=socket.timeout("timed out")
        ):
            with pytest.raises(TransportFailure, match="Timed out after 10s"):
                SmtpTransport(_settings()).send(MagicMock())

    def test_authentication_error_closes_connection(self):
        server = MagicMock()
        server.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")
        with patch("src.agency_crm.mailer.smtplib.SMTP_SSL", return_value=server):
            with pytest.raises(TransportFailure, match="SMTP error 535: bad credentials"):
                SmtpTransport(_settings()).verify()

        server.close.assert_called_once()

    def test_send_failure_still_quits(self):
        server = MagicMock()
        server.send_message.side_effect = smtplib.SMTPRecipientsRefused({})
        with patch("src.agency_crm.mailer.smtplib.SMTP_SSL", return_value=server):
            with pytest.raises(TransportFailure):
                SmtpTransport(_settings()).send(MagicMock())

        server.quit.assert_called_once()


class TestMailTransportInterface:
    """Tests for the transport contract."""

    def test_interface_cannot_be_instantiated(self):
        with pytest.raises(TypeError):
            MailTransport()

    def test_incomplete_transport_is_rejected(self):
        class SendOnly(MailTransport):
            def send(self, message):
                pass

        with pytest.raises(TypeError):
            SendOnly()

    def test_custom_transport_plugs_into_sender(self):
        class RecordingTransport(MailTransport):
            def __init__(self):
                self.sent = []

            def send(self, message):
                self.sent.append(message)

            def verify(self):
                pass

        transport = RecordingTransport()
        sender = MailSender(_settings(), transport=transport)

        assert sender.send_password_reset("ana@example.com", "https://x").success is True
        assert sender.verify_connection().success is True
        assert [m["To"] for m in transport.sent] == ["ana@example.com"]
