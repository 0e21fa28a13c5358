"""Client folder provisioning on Google Drive.

Objective:
    Ensure that every client has the standard folder tree in Drive. This
    module maps a client name to a root folder under the configured parent
    container and makes sure the fixed subfolders exist inside it, reusing
    folders that already exist instead of duplicating them.

Responsibilities:
    - Look up each folder by ``(parent_id, name)`` before creating it.
    - Cache resolved folders for the lifetime of the provisioner.
    - Create the fixed subfolder list and the nested creative subfolders.
    - Convert any failure into a ``None`` result with the cause logged.
    - Share a provisioned folder with the client.

Resulting tree::

    <DRIVE_CLIENTS_FOLDER_ID>/
        <client name>/
            01 - Briefing/
            02 - Client Materials/
            03 - Social Media/
            04 - Paid Traffic/
            05 - Sites and Landing Pages/
            06 - Creatives/
                Photos/
                Videos/
            07 - Documents and Contracts/
            08 - Reports/

High-level call tree:
    - :class:`FolderProvisioner`
        - :meth:`create_client_folder_structure`
            - :meth:`DriveClient.connect` (authenticate)
            - :meth:`ensure_root_folder`
                - :meth:`ensure_folder`
            - :meth:`ensure_subfolders`
                - :meth:`ensure_folder` (per subfolder, sequential)
        - :meth:`share_client_folder`
            - :meth:`DriveClient.share_folder`

Operational notes:
    - Lookup-then-create is not atomic. Two concurrent runs for the same
      client name can both miss the lookup and create duplicate folders.
      Provisioning is triggered by a single operator, so no lock is taken.
    - Requests are strictly sequential; latency grows with folder count.
"""

import logging
from typing import Optional

from .config import CREATIVE_SUBFOLDERS, ClientFolder, Settings
from .drive_client import DriveClient
from .errors import CrmError, MissingParameter
from .google_auth import ServiceAccountAuthenticator
from .models import ClientFolderSpec, DriveFolder, FolderNode

logger = logging.getLogger(__name__)


class FolderProvisioner:
    """
    Provisions client folder trees in Google Drive.

    Attributes:
        drive_client: Drive client for API operations.
        settings: Application settings (parent container, share role).
        _child_folder_cache: Resolved folders keyed by ``(parent_id, name)``.
    """

    def __init__(self, drive_client: DriveClient, settings: Settings) -> None:
        """
        Initialize the provisioner.

        Args:
            drive_client: Drive client for folder operations.
            settings: Application settings.
        """
        self.drive_client = drive_client
        self.settings = settings
        self._child_folder_cache: dict[tuple[str, str], DriveFolder] = {}

    @classmethod
    def from_settings(cls, settings: Settings) -> "FolderProvisioner":
        """Build a provisioner wired to the real Drive API.

        Args:
            settings: Application settings.

        Returns:
            FolderProvisioner: Provisioner with a service-account Drive client.
        """
        auth = ServiceAccountAuthenticator(settings)
        return cls(DriveClient(settings, auth), settings)

    @property
    def parent_folder_id(self) -> str:
        return self.settings.drive_clients_folder_id

    def clear_cache(self) -> None:
        """Forget every folder resolved so far."""
        self._child_folder_cache.clear()

    def ensure_folder(self, name: str, parent_id: str) -> DriveFolder:
        """
        Ensure a folder named ``name`` exists under ``parent_id``.

        Lookup is scoped to the parent, so folders sharing a name elsewhere
        in Drive are never reused by mistake.

        Args:
            name: Folder name (exact match).
            parent_id: Parent folder ID.

        Returns:
            DriveFolder: Existing or newly created folder.

        Raises:
            RemoteApiFailure: If the lookup or the create request fails.
        """
        cache_key = (parent_id, name)
        cached = self._child_folder_cache.get(cache_key)
        if cached:
            return cached

        existing = self.drive_client.find_folder(name, parent_id)
        if existing:
            logger.debug(f"Folder {name!r} already exists ({existing.id}); reusing it")
            self._child_folder_cache[cache_key] = existing
            return existing

        logger.debug(f"Creating folder {name!r} under {parent_id}")
        created = self.drive_client.create_folder(FolderNode(name=name, parent_id=parent_id))
        self._child_folder_cache[cache_key] = created
        return created

    def ensure_root_folder(self, folder_spec: ClientFolderSpec) -> DriveFolder:
        """Ensure the client's root folder exists under the parent container.

        Args:
            folder_spec: Client whose display name is used verbatim as folder name.

        Returns:
            DriveFolder: Root client folder.
        """
        return self.ensure_folder(folder_spec.client_display_name, self.parent_folder_id)

    def ensure_subfolders(self, root: DriveFolder) -> dict[str, DriveFolder]:
        """
        Ensure the fixed subfolder tree exists under a client root folder.

        Subfolders are processed in :class:`ClientFolder` declaration order.
        The creative subfolders are handled right after
        ``ClientFolder.CREATIVES`` resolves.

        Args:
            root: Client root folder.

        Returns:
            dict[str, DriveFolder]: Folders keyed by name. Nested creative
            subfolders are keyed as ``"<creatives>/<name>"``.
        """
        folders: dict[str, DriveFolder] = {}

        for client_folder in ClientFolder:
            folder = self.ensure_folder(client_folder.value, root.id)
            folders[client_folder.value] = folder

            if client_folder is ClientFolder.CREATIVES:
                for subfolder_name in CREATIVE_SUBFOLDERS:
                    subfolder = self.ensure_folder(subfolder_name, folder.id)
                    folders[f"{client_folder.value}/{subfolder_name}"] = subfolder

        return folders

    def create_client_folder_structure(self, client_name: str) -> Optional[str]:
        """
        Provision the complete folder tree for a client.

        Steps (strictly sequential):
            1. Authenticate to Drive.
            2. Ensure the root client folder under the parent container.
            3. Ensure every fixed subfolder under the root.
            4. Ensure ``Photos``/``Videos`` under the creatives folder.

        Running this twice for the same name reuses every folder.

        Args:
            client_name: Client display name.

        Returns:
            Optional[str]: Root folder ID on full success. ``None`` when any
            step fails; callers must treat it as "provisioning incomplete".
        """
        name = (client_name or "").strip()
        try:
            if not name:
                raise MissingParameter("client_name")

            logger.info(f"Provisioning Drive folders for client {name!r}")
            self.drive_client.connect()

            root = self.ensure_root_folder(ClientFolderSpec(client_display_name=name))
            self.ensure_subfolders(root)
        except CrmError as e:
            logger.error(f"Folder provisioning failed for client {name!r}: {e}")
            return None
        except Exception:
            logger.exception(f"Unexpected error while provisioning folders for client {name!r}")
            return None

        logger.info(f"Folder structure for client {name!r} is ready ({root.id})")
        return root.id

    def share_client_folder(
        self, folder_id: str, email: str, role: Optional[str] = None
    ) -> Optional[str]:
        """Share a client folder and return its URL.

        Args:
            folder_id: Root client folder ID.
            email: Client email address.
            role: Drive role; defaults to ``settings.drive_share_role``.

        Returns:
            Optional[str]: Folder URL, or None when sharing failed.
        """
        try:
            missing = [n for n, v in (("folder_id", folder_id), ("email", email)) if not v]
            if missing:
                raise MissingParameter(*missing)
            self.drive_client.share_folder(
                folder_id,
                email,
                role=role,
                email_message=(
                    f"You now have access to your files in {self.settings.app_name}."
                ),
            )
        except CrmError as e:
            logger.warning(f"Failed to share folder {folder_id} with {email}: {e}")
            return None
        except Exception:
            logger.exception(f"Unexpected error while sharing folder {folder_id}")
            return None

        return self.folder_url(folder_id)

    @staticmethod
    def folder_url(folder_id: str) -> str:
        return DriveClient.folder_url(folder_id)
