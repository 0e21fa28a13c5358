"""Pydantic data models used across the application.

Objective:
    Centralize the strongly-typed data structures representing:
    - Email requests handled by the mail sender
    - Results returned by public operations
    - Drive folder metadata returned by the Google Drive API
    - Client records held by the client registry

Design notes:
    - Models use Pydantic aliases to match external field names (Drive's
      ``webViewLink``, the web UI's ``companyName``).
    - ``model_config = ConfigDict(populate_by_name=True)`` allows constructing
      models with either alias names or pythonic field names.

High-level structure:
    - Mail primitives:
        - :class:`InvitationRequest`
        - :class:`PasswordResetRequest`
        - :class:`OperationResult`
    - Drive primitives:
        - :class:`ClientFolderSpec`
        - :class:`FolderNode`
        - :class:`DriveFolder`
    - Client primitives:
        - :class:`ClientCreate`
        - :class:`ClientUpdate`
        - :class:`Client`
        - :class:`OnboardingResult`
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class InvitationRequest(BaseModel):
    """
    One invitation email to a newly created user.

    Created per invite action and discarded after the send.

    Attributes:
        recipient_email: Address the invitation is sent to.
        recipient_name: Name used in the greeting.
        temporary_password: One-time password shown in the email.
        role: Role label shown in the email.
        login_url: Link to the login page.
    """

    recipient_email: str = ""
    recipient_name: str = ""
    temporary_password: str = ""
    role: str = "User"
    login_url: str = ""


class PasswordResetRequest(BaseModel):
    """Password-reset email request."""

    recipient_email: str = ""
    reset_link: str = ""


class OperationResult(BaseModel):
    """
    Outcome of a mail operation.

    This is the shape returned to HTTP callers (``{"success": ..., "message": ...}``).

    Attributes:
        success: Whether the operation succeeded.
        message: Human-readable confirmation or the underlying error text.
    """

    success: bool
    message: str = ""


class ClientFolderSpec(BaseModel):
    """Input to folder provisioning: the client whose tree is needed."""

    client_display_name: str = Field(min_length=1)


class FolderNode(BaseModel):
    """A single folder request against the storage API.

    ``parent_id`` is None only for folders placed at the Drive root.
    """

    name: str
    parent_id: Optional[str] = None


class DriveFolder(BaseModel):
    """
    Google Drive folder metadata.

    Attributes:
        id: Drive file ID.
        name: Folder name.
        parents: Parent folder IDs.
        web_view_link: Browser URL, when requested in ``fields``.
    """

    id: str
    name: str = ""
    parents: list[str] = Field(default_factory=list)
    web_view_link: Optional[str] = Field(default=None, alias="webViewLink")

    model_config = ConfigDict(populate_by_name=True)


class ClientCreate(BaseModel):
    """Payload accepted by ``POST /api/clients``.

    Strings are stripped before length checks, so blank names are rejected.
    """

    company_name: str = Field(alias="companyName", min_length=1)
    contact_name: str = Field(alias="contactName", min_length=1)
    email: str = Field(min_length=3)
    phone: str = ""
    status: str = "active"

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class ClientUpdate(BaseModel):
    """Partial payload accepted by ``PATCH /api/clients/{id}``.

    Omitted (or null) fields are left unchanged.
    """

    company_name: Optional[str] = Field(default=None, alias="companyName", min_length=1)
    contact_name: Optional[str] = Field(default=None, alias="contactName", min_length=1)
    email: Optional[str] = Field(default=None, min_length=3)
    phone: Optional[str] = None
    status: Optional[str] = Field(default=None, min_length=1)

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    def changes(self) -> dict[str, str]:
        """Return the fields that were actually provided, by pythonic name."""
        return self.model_dump(exclude_unset=True, exclude_none=True)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Client(BaseModel):
    """
    A CRM client record.

    Serialized with camelCase aliases for the web UI
    (``model_dump(by_alias=True)``).

    Attributes:
        id: Registry-assigned identifier.
        company_name: Company name; also the Drive root folder name.
        contact_name: Person who receives the invitation.
        email: Contact email (unique in the registry).
        phone: Contact phone.
        status: Client status label.
        google_drive_folder_id: Root Drive folder id, once provisioned.
        google_drive_folder_url: Shareable folder URL, once known.
        created_at: Creation timestamp (UTC).
    """

    id: str
    company_name: str = Field(alias="companyName")
    contact_name: str = Field(alias="contactName")
    email: str
    phone: str = ""
    status: str = "active"
    google_drive_folder_id: Optional[str] = Field(default=None, alias="googleDriveFolderId")
    google_drive_folder_url: Optional[str] = Field(default=None, alias="googleDriveFolderUrl")
    created_at: datetime = Field(default_factory=_utcnow, alias="createdAt")

    model_config = ConfigDict(populate_by_name=True)


class OnboardingResult(BaseModel):
    """
    Result of the "create client" workflow.

    Provisioning and email failures do not abort client creation; they are
    reported here instead.

    Attributes:
        client: Stored client record.
        folder_provisioned: Whether the Drive folder tree was created.
        folder_shared: Whether the folder was shared with the client email.
        invitation: Result of the invitation email.
    """

    client: Client
    folder_provisioned: bool = False
    folder_shared: bool = False
    invitation: Optional[OperationResult] = None
