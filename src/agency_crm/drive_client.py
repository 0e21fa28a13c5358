"""Google Drive API client for folder operations.

Objective:
    Provide a thin wrapper around the Drive v3 endpoints used by this
    project. This module centralizes query construction, request execution,
    error conversion, and Pydantic validation of responses.

Responsibilities:
    - Build the Drive service from an authorized service-account credential.
    - Look up a folder by ``(name, parent)``.
    - Create a folder under a parent.
    - Share a folder with a user and build browser URLs.

High-level call tree:
    - Public API:
        - :meth:`DriveClient.connect`
        - :meth:`DriveClient.find_folder` -> :class:`src.agency_crm.models.DriveFolder`
        - :meth:`DriveClient.create_folder` -> :class:`src.agency_crm.models.DriveFolder`
        - :meth:`DriveClient.share_folder`
        - :meth:`DriveClient.folder_url`
    - Internal helpers:
        - :meth:`DriveClient._execute` (error conversion)
        - :func:`escape_query_value`

Drive endpoints used:
    - ``files.list`` with a ``q`` filter (lookup)
    - ``files.create`` with the folder MIME type (create)
    - ``permissions.create`` (share)

Error handling:
    - ``HttpError`` is logged and re-raised as
      :class:`src.agency_crm.errors.RemoteApiFailure` from :meth:`_execute`.
"""

import logging
from typing import Any, Optional

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .config import DRIVE_FOLDER_MIME_TYPE, Settings
from .errors import RemoteApiFailure
from .google_auth import ServiceAccountAuthenticator
from .models import DriveFolder, FolderNode

logger = logging.getLogger(__name__)

FOLDER_URL_TEMPLATE = "https://drive.google.com/drive/folders/{folder_id}"


def escape_query_value(value: str) -> str:
    """Escape a literal for use inside single quotes in a Drive ``q`` string.

    Args:
        value: Raw value (e.g. a folder name).

    Returns:
        str: Value with backslashes and single quotes escaped.
    """
    return value.replace("\\", "\\\\").replace("'", "\\'")


class DriveClient:
    """
    Client for interacting with the Google Drive v3 API.

    The underlying ``googleapiclient`` resource is built lazily on
    :meth:`connect` so that authentication failures surface before the first
    folder request.

    Attributes:
        settings: Application settings.
        auth: Service-account authenticator.
    """

    def __init__(
        self,
        settings: Settings,
        auth: ServiceAccountAuthenticator,
        service: Optional[Any] = None,
    ) -> None:
        """
        Initialize Drive client.

        Args:
            settings: Application settings.
            auth: Service-account authenticator.
            service: Pre-built Drive resource (tests inject a mock here).
        """
        self.settings = settings
        self.auth = auth
        self._service = service

    def connect(self) -> Any:
        """Authorize and build the Drive resource if not done already.

        Returns:
            Any: ``googleapiclient`` Drive v3 resource.

        Raises:
            CredentialsNotFound: If no credential can be resolved.
            RemoteApiFailure: If authorization fails.
        """
        if self._service is None:
            credentials = self.auth.authorize()
            self._service = build("drive", "v3", credentials=credentials, cache_discovery=False)
            logger.debug("Built Drive v3 service")
        return self._service

    @property
    def service(self) -> Any:
        return self.connect()

    def _execute(self, request: Any, action: str) -> dict:
        """Execute a Drive request and convert API errors.

        Args:
            request: ``googleapiclient`` request object.
            action: Short description used in logs and error messages.

        Returns:
            dict: Decoded response body.

        Raises:
            RemoteApiFailure: If the request fails.
        """
        try:
            return request.execute()
        except HttpError as e:
            status = getattr(getattr(e, "resp", None), "status", None)
            logger.error(f"Drive API error while trying to {action}: {status} - {e}")
            raise RemoteApiFailure(f"Failed to {action}: {e}") from e

    def find_folder(self, name: str, parent_id: str) -> Optional[DriveFolder]:
        """Look up a non-trashed folder by exact name under a parent.

        Drive allows several files with the same name under one parent; when
        that happens the first match is returned and a warning is logged.

        Args:
            name: Folder name.
            parent_id: Parent folder ID.

        Returns:
            Optional[DriveFolder]: Existing folder, or None.

        Raises:
            RemoteApiFailure: If the list request fails.
        """
        query = (
            f"name = '{escape_query_value(name)}'"
            f" and '{escape_query_value(parent_id)}' in parents"
            f" and mimeType = '{DRIVE_FOLDER_MIME_TYPE}'"
            " and trashed = false"
        )
        request = self.service.files().list(
            q=query,
            fields="files(id, name, parents)",
            spaces="drive",
            pageSize=10,
            supportsAllDrives=True,
            includeItemsFromAllDrives=True,
        )
        response = self._execute(request, f"look up folder {name!r}")

        files = response.get("files", [])
        if not files:
            return None
        if len(files) > 1:
            logger.warning(
                "Found %d folders named %r under %s; reusing the first one",
                len(files),
                name,
                parent_id,
            )
        return DriveFolder.model_validate(files[0])

    def create_folder(self, node: FolderNode) -> DriveFolder:
        """Create a folder.

        Args:
            node: Folder name and parent. A missing parent places the folder
                at the Drive root.

        Returns:
            DriveFolder: Created folder.

        Raises:
            RemoteApiFailure: If the create request fails.
        """
        body: dict[str, Any] = {"name": node.name, "mimeType": DRIVE_FOLDER_MIME_TYPE}
        if node.parent_id:
            body["parents"] = [node.parent_id]

        request = self.service.files().create(
            body=body,
            fields="id, name, parents",
            supportsAllDrives=True,
        )
        response = self._execute(request, f"create folder {node.name!r}")
        folder = DriveFolder.model_validate(response)
        logger.debug(f"Created folder {folder.name!r} ({folder.id}) under {node.parent_id}")
        return folder

    def share_folder(
        self,
        folder_id: str,
        email: str,
        role: Optional[str] = None,
        email_message: Optional[str] = None,
    ) -> str:
        """Grant a user access to a folder.

        Google sends its own notification email to the user.

        Args:
            folder_id: Folder to share.
            email: User email address.
            role: Drive permission role (``reader``, ``commenter``,
                ``writer``); defaults to ``settings.drive_share_role``.
            email_message: Optional text included in Google's notification.

        Returns:
            str: Created permission ID.

        Raises:
            RemoteApiFailure: If the permission request fails.
        """
        permission = {
            "type": "user",
            "role": role or self.settings.drive_share_role,
            "emailAddress": email,
        }
        kwargs: dict[str, Any] = {
            "fileId": folder_id,
            "body": permission,
            "fields": "id",
            "sendNotificationEmail": True,
            "supportsAllDrives": True,
        }
        if email_message:
            kwargs["emailMessage"] = email_message

        request = self.service.permissions().create(**kwargs)
        response = self._execute(request, f"share folder {folder_id} with {email}")
        logger.debug(f"Shared folder {folder_id} with {email}")
        return str(response.get("id", ""))

    @staticmethod
    def folder_url(folder_id: str) -> str:
        """Browser URL of a folder.

        Args:
            folder_id: Folder ID.

        Returns:
            str: ``https://drive.google.com/drive/folders/<id>``.
        """
        return FOLDER_URL_TEMPLATE.format(folder_id=folder_id)
