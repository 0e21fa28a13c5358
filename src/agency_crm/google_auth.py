"""Google service-account authentication.

Objective:
    Provide a small, reusable authentication layer for Google Drive API
    requests. This module resolves a service-account credential and
    authorizes it so that it can be handed to ``googleapiclient``.

Responsibilities:
    - Resolve service-account key material through a prioritized chain:
        1. Environment settings (``GOOGLE_SERVICE_ACCOUNT_EMAIL`` +
           ``GOOGLE_PRIVATE_KEY``).
        2. The local JSON key file (``GOOGLE_CREDENTIALS_FILE``).
    - Build ``google.oauth2.service_account.Credentials`` scoped to Drive.
    - Exchange the signed JWT for an access token (``authorize``).

High-level call tree:
    - :class:`ServiceAccountAuthenticator`
        - :meth:`ServiceAccountAuthenticator.authorize`
            - :meth:`ServiceAccountAuthenticator.get_credentials`
                - :meth:`ServiceAccountAuthenticator.resolve_service_account_info`
                    - :meth:`ServiceAccountAuthenticator._info_from_settings`
                    - :meth:`ServiceAccountAuthenticator._info_from_file`

Operational notes:
    - The key file is only read when the environment values are incomplete.
    - Token exchange uses ``google.auth.transport.requests`` (``requests``
      under the hood).
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional

import google.auth.exceptions
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from .config import Settings
from .errors import CredentialsNotFound, RemoteApiFailure

logger = logging.getLogger(__name__)

DRIVE_SCOPE = "https://www.googleapis.com/auth/drive"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"


class ServiceAccountAuthenticator:
    """
    Resolves and authorizes a Google service-account credential.

    Attributes:
        settings: Application settings containing Google credentials.
        scopes: OAuth scopes requested for the credential.
        _credentials: Cached credential, built on first use.
    """

    def __init__(self, settings: Settings, scopes: Optional[list[str]] = None) -> None:
        """
        Initialize the authenticator.

        Args:
            settings: Application settings.
            scopes: OAuth scopes (defaults to full Drive access).
        """
        self.settings = settings
        self.scopes = scopes or [DRIVE_SCOPE]
        self._credentials: Optional[service_account.Credentials] = None

    def _info_from_settings(self) -> Optional[dict[str, Any]]:
        """Build service-account info from environment settings.

        Returns:
            Optional[dict[str, Any]]: Info dict, or None when the client email
            or the private key is missing.
        """
        client_email = (self.settings.google_service_account_email or "").strip()
        private_key = self.settings.normalized_private_key
        if not client_email or not private_key:
            return None

        info: dict[str, Any] = {
            "type": "service_account",
            "client_email": client_email,
            "private_key": private_key,
            "token_uri": GOOGLE_TOKEN_URI,
        }
        if self.settings.google_client_id:
            info["client_id"] = self.settings.google_client_id
        return info

    def _info_from_file(self) -> Optional[dict[str, Any]]:
        """Load service-account info from the configured key file.

        Returns:
            Optional[dict[str, Any]]: Info dict, or None when the file is
            absent, unreadable, or lacks ``client_email``/``private_key``.
        """
        path = Path(self.settings.google_credentials_file).expanduser()
        if not path.is_file():
            logger.debug(f"No service account key file at {path}")
            return None

        try:
            info = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to read service account key file {path}: {e}")
            return None

        if not isinstance(info, dict):
            logger.warning(f"Service account key file {path} is not a JSON object")
            return None
        if not info.get("client_email") or not info.get("private_key"):
            logger.warning(f"Service account key file {path} is incomplete")
            return None

        info.setdefault("token_uri", GOOGLE_TOKEN_URI)
        return info

    def resolve_service_account_info(self) -> dict[str, Any]:
        """
        Resolve service-account key material.

        Strategy:
            1. Environment settings, when both email and key are set.
            2. The JSON key file.

        Returns:
            dict[str, Any]: Service-account info suitable for
            ``Credentials.from_service_account_info``.

        Raises:
            CredentialsNotFound: If neither source yields complete credentials.
        """
        info = self._info_from_settings()
        if info is not None:
            logger.debug("Using service account credentials from environment")
            return info

        logger.debug("Environment credentials incomplete; trying key file")
        info = self._info_from_file()
        if info is not None:
            logger.debug("Using service account credentials from key file")
            return info

        raise CredentialsNotFound(
            "No Google service account credentials found. Set "
            "GOOGLE_SERVICE_ACCOUNT_EMAIL and GOOGLE_PRIVATE_KEY, or provide "
            f"a key file at {self.settings.google_credentials_file!r}."
        )

    def get_credentials(self) -> service_account.Credentials:
        """
        Get (and cache) the scoped service-account credential.

        Returns:
            service_account.Credentials: Credential object.

        Raises:
            CredentialsNotFound: If no usable credential can be built.
        """
        if self._credentials is None:
            info = self.resolve_service_account_info()
            try:
                self._credentials = service_account.Credentials.from_service_account_info(
                    info, scopes=self.scopes
                )
            except (ValueError, KeyError) as e:
                raise CredentialsNotFound(f"Invalid service account credentials: {e}") from e
            logger.debug(
                f"Built service account credentials for {info.get('client_email')}"
            )
        return self._credentials

    def authorize(self) -> service_account.Credentials:
        """
        Exchange the signed JWT for an access token.

        Returns:
            service_account.Credentials: Authorized credential.

        Raises:
            CredentialsNotFound: If no usable credential can be built.
            RemoteApiFailure: If the token endpoint rejects the credential or
                cannot be reached.
        """
        credentials = self.get_credentials()
        try:
            credentials.refresh(Request())
        except google.auth.exceptions.GoogleAuthError as e:
            logger.error(f"Google service account authorization failed: {e}")
            raise RemoteApiFailure(f"Google authorization failed: {e}") from e

        logger.debug("Authorized Google service account")
        return credentials
