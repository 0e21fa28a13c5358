"""Transactional email: invitations and password resets.

Objective:
    Provide one mail sender for the whole application. Message content is
    rendered from Jinja2 templates and handed to a transport; the transport
    is swappable so that tests (or another provider) can replace SMTP.

Responsibilities:
    - Validate required inputs before any network call.
    - Render HTML and plain-text alternatives for each email.
    - Send through :class:`SmtpTransport` (implicit TLS or STARTTLS, login,
      bounded socket timeout).
    - Convert every failure into an :class:`OperationResult` with
      ``success=False`` and the underlying error text.

High-level call tree:
    - :class:`MailSender`
        - :meth:`MailSender.send_invitation`
            - :meth:`MailSender.build_invitation`
            - :meth:`MailSender._dispatch`
                - :meth:`MailTransport.send`
        - :meth:`MailSender.send_password_reset`
            - :meth:`MailSender.build_password_reset`
            - :meth:`MailSender._dispatch`
        - :meth:`MailSender.verify_connection`
            - :meth:`MailTransport.verify`

Operational notes:
    - Timeout policy: ``SMTP_TIMEOUT_SECONDS`` bounds every socket operation.
      A timeout is a failed send (``success=False``).
    - ``MAIL_DRY_RUN=true`` renders and logs messages without contacting the
      transport. The result message is tagged ``[DRY RUN]``.
"""

import logging
import smtplib
import socket
import ssl
from abc import ABC, abstractmethod
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid
from pathlib import Path
from typing import Any, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .config import Settings
from .errors import CrmError, MissingParameter, TransportFailure
from .models import InvitationRequest, OperationResult, PasswordResetRequest

logger = logging.getLogger(__name__)

EMAIL_TEMPLATE_DIR = Path(__file__).resolve().parent / "templates" / "email"


class MailTransport(ABC):
    """Interface for objects able to deliver a rendered message."""

    @abstractmethod
    def send(self, message: MIMEMultipart) -> None:
        """Deliver one message.

        Raises:
            TransportFailure: If delivery fails.
        """
        raise NotImplementedError

    @abstractmethod
    def verify(self) -> None:
        """Check that the server is reachable and accepts our credentials.

        Raises:
            TransportFailure: If the check fails.
        """
        raise NotImplementedError


class SmtpTransport(MailTransport):
    """
    SMTP transport built from settings.

    A new connection is opened for each operation and closed afterwards.

    Attributes:
        settings: Application settings with SMTP host/port/credentials.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    @property
    def address(self) -> str:
        return f"{self.settings.smtp_host}:{self.settings.smtp_port}"

    def _describe_error(self, error: Exception) -> str:
        """Turn an SMTP/socket exception into a readable message.

        Args:
            error: Exception raised by ``smtplib`` or the socket layer.

        Returns:
            str: Message suitable for API responses.
        """
        if isinstance(error, socket.timeout):
            return (
                f"Timed out after {self.settings.smtp_timeout_seconds:g}s "
                f"talking to SMTP server {self.address}"
            )
        if isinstance(error, smtplib.SMTPResponseException):
            detail = error.smtp_error
            if isinstance(detail, bytes):
                detail = detail.decode("utf-8", errors="replace")
            return f"SMTP error {error.smtp_code}: {detail}"
        return str(error) or error.__class__.__name__

    def _connect(self) -> smtplib.SMTP:
        """Open an authenticated SMTP connection.

        Returns:
            smtplib.SMTP: Connected (and logged-in, when a user is set) client.

        Raises:
            TransportFailure: If the host is not configured, the connection
                fails, TLS negotiation fails, or login is rejected.
        """
        settings = self.settings
        if not settings.smtp_host:
            raise TransportFailure("SMTP host is not configured (set SMTP_HOST)")

        context = ssl.create_default_context()
        server: Optional[smtplib.SMTP] = None
        try:
            if settings.smtp_use_ssl:
                server = smtplib.SMTP_SSL(
                    settings.smtp_host,
                    settings.smtp_port,
                    timeout=settings.smtp_timeout_seconds,
                    context=context,
                )
            else:
                server = smtplib.SMTP(
                    settings.smtp_host,
                    settings.smtp_port,
                    timeout=settings.smtp_timeout_seconds,
                )
                if settings.smtp_use_starttls:
                    server.starttls(context=context)

            if settings.smtp_user:
                server.login(settings.smtp_user, settings.smtp_password or "")
        except (smtplib.SMTPException, OSError) as e:
            if server is not None:
                server.close()
            message = self._describe_error(e)
            logger.error(f"SMTP connection to {self.address} failed: {message}")
            raise TransportFailure(message) from e

        return server

    def _quit(self, server: smtplib.SMTP) -> None:
        try:
            server.quit()
        except (smtplib.SMTPException, OSError) as e:
            logger.debug(f"SMTP QUIT failed, closing socket: {e}")
            server.close()

    def send(self, message: MIMEMultipart) -> None:
        server = self._connect()
        try:
            server.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            detail = self._describe_error(e)
            logger.error(f"SMTP send via {self.address} failed: {detail}")
            raise TransportFailure(detail) from e
        finally:
            self._quit(server)

    def verify(self) -> None:
        server = self._connect()
        self._quit(server)


class MailSender:
    """
    Sends invitation and password-reset emails.

    All public methods return :class:`OperationResult` and never raise.

    Attributes:
        settings: Application settings.
        transport: Delivery transport (SMTP by default).
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[MailTransport] = None,
    ) -> None:
        """
        Initialize the mail sender.

        Args:
            settings: Application settings.
            transport: Delivery transport; defaults to :class:`SmtpTransport`.
        """
        self.settings = settings
        self.transport = transport or SmtpTransport(settings)
        self._templates = Environment(
            loader=FileSystemLoader(str(EMAIL_TEMPLATE_DIR)),
            autoescape=select_autoescape(["html"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def _render(self, template_name: str, context: dict[str, Any]) -> tuple[str, str]:
        """Render the HTML and text variants of a template.

        Args:
            template_name: Base name (``invitation`` -> ``invitation.html`` /
                ``invitation.txt``).
            context: Template variables.

        Returns:
            tuple[str, str]: ``(html, text)``.
        """
        context = {"app_name": self.settings.app_name, **context}
        html = self._templates.get_template(f"{template_name}.html").render(**context)
        text = self._templates.get_template(f"{template_name}.txt").render(**context)
        return html, text

    def _build_message(self, to: str, subject: str, html: str, text: str) -> MIMEMultipart:
        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = formataddr((self.settings.mail_from_name, self.settings.sender_address))
        message["To"] = to
        message["Message-ID"] = make_msgid()
        message.attach(MIMEText(text, "plain", "utf-8"))
        message.attach(MIMEText(html, "html", "utf-8"))
        return message

    def build_invitation(self, request: InvitationRequest) -> MIMEMultipart:
        """Render an invitation email.

        Args:
            request: Invitation data.

        Returns:
            MIMEMultipart: Message ready for the transport.
        """
        html, text = self._render(
            "invitation",
            {
                "name": request.recipient_name,
                "email": request.recipient_email,
                "password": request.temporary_password,
                "role": request.role,
                "login_url": request.login_url or self.settings.login_url,
            },
        )
        subject = f"Invitation to access {self.settings.app_name}"
        return self._build_message(request.recipient_email, subject, html, text)

    def build_password_reset(self, request: PasswordResetRequest) -> MIMEMultipart:
        """Render a password-reset email.

        Args:
            request: Reset data.

        Returns:
            MIMEMultipart: Message ready for the transport.
        """
        html, text = self._render("password_reset", {"reset_link": request.reset_link})
        subject = f"Password reset - {self.settings.app_name}"
        return self._build_message(request.recipient_email, subject, html, text)

    def _dispatch(self, message: MIMEMultipart) -> bool:
        """Hand a message to the transport, or log it in dry-run mode.

        Returns:
            bool: True if the message was actually sent, False for a dry run.

        Raises:
            TransportFailure: If the transport fails.
        """
        if self.settings.mail_dry_run:
            text_part = message.get_payload()[0].get_payload(decode=True)
            logger.info(
                "[DRY RUN] Email not sent\nTo: %s\nSubject: %s\n\n%s",
                message["To"],
                message["Subject"],
                text_part.decode("utf-8", errors="replace") if text_part else "",
            )
            return False

        self.transport.send(message)
        return True

    def send_invitation(
        self,
        to: str,
        name: str,
        password: str = "",
        role: str = "User",
        login_url: Optional[str] = None,
    ) -> OperationResult:
        """
        Send an invitation email with temporary credentials.

        Args:
            to: Recipient email address (required).
            name: Recipient name (required).
            password: Temporary password shown in the email.
            role: Role label shown in the email.
            login_url: Login link; defaults to ``settings.login_url``.

        Returns:
            OperationResult: ``success=True`` with a message naming the
            recipient, or ``success=False`` with the error text.
        """
        try:
            missing = [n for n, v in (("to", to), ("name", name)) if not v]
            if missing:
                raise MissingParameter(*missing)

            request = InvitationRequest(
                recipient_email=to,
                recipient_name=name,
                temporary_password=password or "",
                role=role or "User",
                login_url=login_url or "",
            )
            sent = self._dispatch(self.build_invitation(request))
        except CrmError as e:
            logger.error(f"Failed to send invitation to {to!r}: {e}")
            return OperationResult(success=False, message=f"Failed to send invitation: {e}")
        except Exception as e:
            logger.exception(f"Unexpected error while sending invitation to {to!r}")
            return OperationResult(success=False, message=f"Failed to send invitation: {e}")

        if not sent:
            return OperationResult(success=True, message=f"[DRY RUN] Invitation rendered for {to}")
        logger.info(f"Invitation sent to {to}")
        return OperationResult(success=True, message=f"Invitation sent successfully to {to}")

    def send_password_reset(self, to: str, reset_link: str) -> OperationResult:
        """
        Send a password-reset email.

        Args:
            to: Recipient email address (required).
            reset_link: Reset URL (required).

        Returns:
            OperationResult: Outcome of the send.
        """
        try:
            missing = [n for n, v in (("to", to), ("reset_link", reset_link)) if not v]
            if missing:
                raise MissingParameter(*missing)

            request = PasswordResetRequest(recipient_email=to, reset_link=reset_link)
            sent = self._dispatch(self.build_password_reset(request))
        except CrmError as e:
            logger.error(f"Failed to send password reset to {to!r}: {e}")
            return OperationResult(
                success=False, message=f"Failed to send password reset email: {e}"
            )
        except Exception as e:
            logger.exception(f"Unexpected error while sending password reset to {to!r}")
            return OperationResult(
                success=False, message=f"Failed to send password reset email: {e}"
            )

        if not sent:
            return OperationResult(
                success=True, message=f"[DRY RUN] Password reset email rendered for {to}"
            )
        logger.info(f"Password reset email sent to {to}")
        return OperationResult(
            success=True, message=f"Password reset email sent successfully to {to}"
        )

    def verify_connection(self) -> OperationResult:
        """
        Check connectivity and credentials against the mail server.

        Returns:
            OperationResult: ``success=False`` carries the underlying error.
        """
        try:
            self.transport.verify()
        except CrmError as e:
            logger.error(f"Mail server verification failed: {e}")
            return OperationResult(success=False, message=f"Connection failed: {e}")
        except Exception as e:
            logger.exception("Unexpected error while verifying the mail server")
            return OperationResult(success=False, message=f"Connection failed: {e}")

        return OperationResult(
            success=True, message="Connection to the mail server established successfully"
        )
