"""
Tests for the onboarding module.
"""

from unittest.mock import MagicMock

import pytest

from src.agency_crm.clients import ClientRegistry
from src.agency_crm.config import Settings
from src.agency_crm.errors import ClientAlreadyExists
from src.agency_crm.models import ClientCreate, OperationResult
from src.agency_crm.onboarding import (
    CLIENT_ROLE,
    PASSWORD_ALPHABET,
    ClientOnboarding,
    generate_temporary_password,
)


@pytest.fixture
def provisioner():
    provisioner = MagicMock()
    provisioner.create_client_folder_structure.return_value = "root-1"
    provisioner.share_client_folder.return_value = "https://drive.google.com/drive/folders/root-1"
    return provisioner


@pytest.fixture
def mail_sender():
    mail_sender = MagicMock()
    mail_sender.send_invitation.return_value = OperationResult(
        success=True, message="Invitation sent successfully to owner@acme.com"
    )
    return mail_sender


@pytest.fixture
def onboarding(provisioner, mail_sender):
    return ClientOnboarding(
        settings=Settings(_env_file=None),
        registry=ClientRegistry(),
        mail_sender=mail_sender,
        provisioner=provisioner,
    )


def _payload() -> ClientCreate:
    return ClientCreate(companyName="Acme Ltd", contactName="Ana", email="owner@acme.com")


def test_generate_temporary_password() -> None:
    password = generate_temporary_password()

    assert len(password) == 10
    assert set(password) <= set(PASSWORD_ALPHABET)
    assert len(generate_temporary_password(16)) == 16


def test_create_client_runs_every_step(onboarding, provisioner, mail_sender) -> None:
    result = onboarding.create_client(_payload())

    assert result.folder_provisioned is True
    assert result.folder_shared is True
    assert result.invitation.success is True

    client = result.client
    assert client.google_drive_folder_id == "root-1"
    assert client.google_drive_folder_url == "https://drive.google.com/drive/folders/root-1"
    assert onboarding.registry.get(client.id) == client

    provisioner.create_client_folder_structure.assert_called_once_with("Acme Ltd")
    provisioner.share_client_folder.assert_called_once_with("root-1", "owner@acme.com")

    _, kwargs = mail_sender.send_invitation.call_args
    assert kwargs["to"] == "owner@acme.com"
    assert kwargs["name"] == "Ana"
    assert kwargs["role"] == CLIENT_ROLE
    assert len(kwargs["password"]) == 10


def test_provisioning_failure_still_creates_client_and_invites(
    onboarding, provisioner, mail_sender
) -> None:
    provisioner.create_client_folder_structure.return_value = None

    result = onboarding.create_client(_payload())

    assert result.folder_provisioned is False
    assert result.folder_shared is False
    assert result.client.google_drive_folder_id is None
    provisioner.share_client_folder.assert_not_called()
    mail_sender.send_invitation.assert_called_once()


def test_share_failure_falls_back_to_plain_folder_url(onboarding, provisioner) -> None:
    provisioner.share_client_folder.return_value = None

    result = onboarding.create_client(_payload())

    assert result.folder_provisioned is True
    assert result.folder_shared is False
    assert result.client.google_drive_folder_id == "root-1"
    assert result.client.google_drive_folder_url == "https://drive.google.com/drive/folders/root-1"


def test_invitation_failure_is_reported(onboarding, mail_sender) -> None:
    mail_sender.send_invitation.return_value = OperationResult(
        success=False, message="Failed to send invitation: SMTP error 535: bad credentials"
    )

    result = onboarding.create_client(_payload())

    assert result.invitation.success is False
    assert onboarding.registry.get(result.client.id) is not None


def test_duplicate_client_is_rejected_before_provisioning(onboarding, provisioner) -> None:
    onboarding.create_client(_payload())

    with pytest.raises(ClientAlreadyExists):
        onboarding.create_client(_payload())

    provisioner.create_client_folder_structure.assert_called_once()
