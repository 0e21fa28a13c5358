"""Client onboarding workflow.

Objective:
    Coordinate what happens when an operator creates a client:
    1) Store the client record (rejecting duplicate emails)
    2) Provision the client's Drive folder tree
    3) Share the root folder with the client's email
    4) Generate a temporary password and send the invitation email
    5) Return the stored client plus what succeeded

Responsibilities:
    - Compose the registry, folder provisioner and mail sender.
    - Keep going when Drive or email fail; the client record is the only
      step that must succeed.

High-level call tree:
    - :class:`ClientOnboarding`
        - :meth:`ClientOnboarding.create_client`
            - :meth:`ClientRegistry.add`
            - :meth:`ClientOnboarding.provision_folder`
                - :meth:`FolderProvisioner.create_client_folder_structure`
                - :meth:`FolderProvisioner.share_client_folder`
            - :func:`generate_temporary_password`
            - :meth:`MailSender.send_invitation`

Operational notes:
    - The temporary password only travels in the invitation email; it is not
      stored on the client record.
"""

import logging
import secrets
from typing import Optional

from .clients import ClientRegistry
from .config import Settings, get_settings
from .folder_provisioner import FolderProvisioner
from .mailer import MailSender
from .models import Client, ClientCreate, OnboardingResult

logger = logging.getLogger(__name__)

# No 0/O/1/l/I so passwords can be typed from a printed email
PASSWORD_ALPHABET = "abcdefghijkmnpqrstuvwxyzABCDEFGHJKLMNPQRSTUVWXYZ23456789"

CLIENT_ROLE = "Client"


def generate_temporary_password(length: int = 10) -> str:
    """Generate a random temporary password.

    Args:
        length: Number of characters.

    Returns:
        str: Password drawn from :data:`PASSWORD_ALPHABET`.
    """
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


class ClientOnboarding:
    """
    Orchestrates the "create client" workflow.

    This class is glue: it connects the registry, the Drive provisioner and
    the mail sender without embedding their rules.

    Attributes:
        settings: Application settings.
        registry: Client registry.
        mail_sender: Mail sender used for the invitation.
        provisioner: Drive folder provisioner.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        registry: Optional[ClientRegistry] = None,
        mail_sender: Optional[MailSender] = None,
        provisioner: Optional[FolderProvisioner] = None,
    ) -> None:
        """
        Initialize onboarding with all components.

        Args:
            settings: Application settings (loads from env if None).
            registry: Client registry (a fresh one if None).
            mail_sender: Mail sender (SMTP-backed if None).
            provisioner: Folder provisioner (Drive-backed if None).
        """
        self.settings = settings or get_settings()
        self.registry = registry if registry is not None else ClientRegistry()
        self.mail_sender = mail_sender or MailSender(self.settings)
        self.provisioner = provisioner or FolderProvisioner.from_settings(self.settings)

    def provision_folder(self, client: Client) -> tuple[Client, bool, bool]:
        """
        Provision and share the client's Drive folder.

        Args:
            client: Stored client.

        Returns:
            tuple[Client, bool, bool]: Updated client, whether the tree was
            provisioned, whether the folder was shared.
        """
        folder_id = self.provisioner.create_client_folder_structure(client.company_name)
        if not folder_id:
            logger.warning(f"Drive folders for client {client.company_name!r} were not created")
            return client, False, False

        client = self.registry.update(client.id, google_drive_folder_id=folder_id) or client

        folder_url = self.provisioner.share_client_folder(folder_id, client.email)
        shared = bool(folder_url)
        if not shared:
            logger.warning(
                f"Folder {folder_id} was created but could not be shared with {client.email}"
            )
            folder_url = FolderProvisioner.folder_url(folder_id)

        client = self.registry.update(client.id, google_drive_folder_url=folder_url) or client
        return client, True, shared

    def create_client(self, data: ClientCreate) -> OnboardingResult:
        """
        Run the full onboarding workflow for a new client.

        Args:
            data: Validated creation payload.

        Returns:
            OnboardingResult: Stored client and per-step outcome.

        Raises:
            ClientAlreadyExists: If the email is already registered.
        """
        client = self.registry.add(data)
        logger.info(f"Onboarding client {client.company_name!r} ({client.id})")

        client, provisioned, shared = self.provision_folder(client)

        invitation = self.mail_sender.send_invitation(
            to=client.email,
            name=client.contact_name,
            password=generate_temporary_password(),
            role=CLIENT_ROLE,
        )
        if not invitation.success:
            logger.warning(
                f"Invitation for client {client.company_name!r} failed: {invitation.message}"
            )

        return OnboardingResult(
            client=client,
            folder_provisioned=provisioned,
            folder_shared=shared,
            invitation=invitation,
        )
