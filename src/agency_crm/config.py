"""Application configuration and settings.

Objective:
    Provide a single source of truth for runtime configuration used across the
    application (SMTP transport, Google service account, Drive layout and
    application links).

Responsibilities:
    - Define the fixed client folder tree (:class:`ClientFolder`,
      :data:`CREATIVE_SUBFOLDERS`).
    - Load environment-driven settings via :class:`Settings` (Pydantic
      BaseSettings).
    - Provide small derived helpers (login URL, normalized private key).

High-level call tree:
    - :func:`get_settings` -> returns :class:`Settings`
    - :class:`Settings`
        - :attr:`Settings.login_url`
        - :attr:`Settings.normalized_private_key`

Operational notes:
    - ``Settings`` loads from ``.env`` by default via ``pydantic-settings``.
    - Every component accepts a ``Settings`` object explicitly to enable
      testing; entrypoints fall back to :func:`get_settings`.
"""

from enum import Enum
from typing import Optional
import logging

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DRIVE_FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"


class ClientFolder(str, Enum):
    """Top-level folders created inside every client folder.

    Declaration order is creation order. The numeric prefixes keep the
    folders sorted the same way in the Drive UI.
    """

    BRIEFING = "01 - Briefing"
    CLIENT_MATERIALS = "02 - Client Materials"
    SOCIAL_MEDIA = "03 - Social Media"
    PAID_TRAFFIC = "04 - Paid Traffic"
    SITES_AND_LANDING_PAGES = "05 - Sites and Landing Pages"
    CREATIVES = "06 - Creatives"
    DOCUMENTS_AND_CONTRACTS = "07 - Documents and Contracts"
    REPORTS = "08 - Reports"


# Nested under ClientFolder.CREATIVES only
CREATIVE_SUBFOLDERS = ("Photos", "Videos")


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    The settings model is flat and human-editable via `.env`. Most fields map
    directly to environment variables (case-insensitive).

    Attributes:
        smtp_host: SMTP server hostname.
        smtp_port: SMTP server port.
        smtp_use_ssl: Connect with implicit TLS (port 465 style).
        smtp_use_starttls: Upgrade a plain connection with STARTTLS.
        smtp_user: SMTP login user.
        smtp_password: SMTP login password.
        smtp_timeout_seconds: Socket timeout applied to every SMTP operation.
        mail_from_name: Display name of the sender.
        mail_from_address: Sender address (defaults to smtp_user).
        mail_dry_run: Render and log emails without sending them.
        google_service_account_email: Service account email.
        google_private_key: Service account private key (PEM).
        google_client_id: Service account client id.
        google_credentials_file: Key file used when env values are incomplete.
        drive_clients_folder_id: Parent container for every client folder.
        drive_share_role: Permission role granted when sharing client folders.
        app_name: Product name used in email copy.
        app_base_url: Base URL for links embedded in emails.
        log_level: Logging level.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # SMTP transport
    smtp_host: str = Field(default="", description="SMTP server hostname")
    smtp_port: int = Field(default=465, ge=1, le=65535, description="SMTP server port")
    smtp_use_ssl: bool = Field(
        default=True, description="Use implicit TLS (SMTP over SSL, usually port 465)"
    )
    smtp_use_starttls: bool = Field(
        default=False,
        description="Upgrade a plain SMTP connection with STARTTLS (usually port 587)",
    )
    smtp_user: Optional[str] = Field(default=None, description="SMTP login user")
    smtp_password: Optional[str] = Field(default=None, description="SMTP login password")
    smtp_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description=(
            "Socket timeout for SMTP connect/send/verify. "
            "A timeout is reported as a failed send."
        ),
    )

    mail_from_name: str = Field(default="Agency CRM", description="Sender display name")
    mail_from_address: Optional[str] = Field(
        default=None, description="Sender address; defaults to SMTP_USER"
    )
    mail_dry_run: bool = Field(
        default=False,
        description=(
            "Render and log emails instead of sending them. "
            "Intended for local development only."
        ),
    )

    # Google service account
    google_service_account_email: Optional[str] = Field(
        default=None, description="Service account client email"
    )
    google_private_key: Optional[str] = Field(
        default=None, description="Service account private key (PEM, '\\n' escapes allowed)"
    )
    google_client_id: Optional[str] = Field(
        default=None, description="Service account client id"
    )
    google_credentials_file: str = Field(
        default="google-credentials.json",
        description="Service account JSON key file read when env credentials are incomplete",
    )

    # Drive layout
    drive_clients_folder_id: str = Field(
        default="root",
        description="ID of the Drive folder that contains one folder per client",
    )
    drive_share_role: str = Field(
        default="writer", description="Role granted to clients on their folder"
    )

    # Application
    app_name: str = Field(default="Agency CRM", description="Product name used in emails")
    app_base_url: str = Field(
        default="http://localhost:8000", description="Base URL for links embedded in emails"
    )
    log_level: str = Field(default="INFO", description="Logging level")

    @property
    def sender_address(self) -> str:
        """Return the envelope sender address.

        Returns:
            str: ``mail_from_address`` if set, otherwise ``smtp_user``.
        """
        return self.mail_from_address or self.smtp_user or ""

    @property
    def login_url(self) -> str:
        """Login page linked from invitation emails.

        Returns:
            str: ``app_base_url`` with ``/login`` appended.
        """
        return f"{self.app_base_url.rstrip('/')}/login"

    @property
    def normalized_private_key(self) -> Optional[str]:
        """Private key with literal ``\\n`` sequences turned into newlines.

        Keys pasted into a single-line env var usually arrive escaped.

        Returns:
            Optional[str]: PEM text, or None when not configured.
        """
        if not self.google_private_key:
            return None
        return self.google_private_key.replace("\\n", "\n")


def get_settings() -> Settings:
    """
    Load and return application settings.

    For tests, construct a :class:`Settings` instance directly or pass a
    mocked settings object.

    Returns:
        Settings: Application settings instance.

    Raises:
        ValidationError: If an environment variable has an invalid value.
    """
    return Settings()
