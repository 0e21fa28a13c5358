"""FastAPI web API for the CRM backend.

Objective:
    Expose the mail sender, the folder provisioner and the client onboarding
    workflow over HTTP for the CRM web UI. This module keeps business logic in
    those components and only handles request parsing and response shaping.

High-level call tree:
    - :func:`create_app`:
        - defines routes:
            - ``GET /health`` -> :func:`health`
            - ``GET /`` -> :func:`home`
            - ``POST /api/email/send-invitation`` -> :func:`send_invitation`
            - ``POST /api/email/send-password-reset`` -> :func:`send_password_reset`
            - ``GET /api/email/test`` -> :func:`test_email_connection`
            - ``POST /api/invite`` -> :func:`invite`
            - ``GET /api/smtp-test`` -> :func:`smtp_test`
            - ``GET /api/clients`` -> :func:`list_clients`
            - ``POST /api/clients`` -> :func:`create_client`
            - ``GET /api/clients/{client_id}`` -> :func:`get_client`
            - ``PATCH /api/clients/{client_id}`` -> :func:`update_client`
            - ``DELETE /api/clients/{client_id}`` -> :func:`delete_client`
            - ``GET /api/clients/{client_id}/drive-folder`` -> :func:`get_client_drive_folder`
        - wires templates via :class:`fastapi.templating.Jinja2Templates`
    - Dependency providers (overridden in tests via ``app.dependency_overrides``):
        - :func:`get_settings_dependency`
        - :func:`get_mail_sender`
        - :func:`get_provisioner`
        - :func:`get_client_registry`
        - :func:`get_onboarding`

Response shape:
    Mail endpoints return ``{"success": bool, "message": str}`` with status
    200 on success, 400 on missing input and 500 on failure.

Operational notes:
    - The client registry lives on ``app.state`` and is shared by all
      requests of one app instance.
    - Run with ``uvicorn src.agency_crm.webapp:app`` or ``agency-crm serve``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, Response
from fastapi.templating import Jinja2Templates

from .clients import ClientRegistry
from .config import Settings, get_settings
from .errors import ClientAlreadyExists
from .folder_provisioner import FolderProvisioner
from .mailer import MailSender
from .models import ClientCreate, ClientUpdate, OperationResult
from .onboarding import ClientOnboarding, generate_temporary_password

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"

ENDPOINTS = [
    ("GET", "/health", "Liveness check."),
    ("POST", "/api/email/send-invitation", "Send an invitation email: {email, name, password?, role?}."),
    ("POST", "/api/email/send-password-reset", "Send a password reset email: {email, resetLink}."),
    ("GET", "/api/email/test", "Verify the connection to the mail server."),
    ("POST", "/api/invite", "Send an invitation email: {name, email, password, link}."),
    ("GET", "/api/smtp-test", "Verify the SMTP connection and show the configured server."),
    ("GET", "/api/clients", "List clients."),
    ("POST", "/api/clients", "Create a client, provision its Drive folders and invite it."),
    ("GET", "/api/clients/{id}", "Get one client."),
    ("PATCH", "/api/clients/{id}", "Update client fields: {companyName?, contactName?, email?, phone?, status?}."),
    ("DELETE", "/api/clients/{id}", "Delete a client record (its Drive folder is kept)."),
    ("GET", "/api/clients/{id}/drive-folder", "Get the URL of the client's Drive folder."),
]


def get_settings_dependency() -> Settings:
    """Load settings for a request.

    Returns:
        Settings: Application settings.
    """

    return get_settings()


def get_mail_sender(settings: Settings = Depends(get_settings_dependency)) -> MailSender:
    """Create a :class:`~src.agency_crm.mailer.MailSender` backed by SMTP.

    Returns:
        MailSender: Mail sender.
    """

    return MailSender(settings)


def get_provisioner(settings: Settings = Depends(get_settings_dependency)) -> FolderProvisioner:
    """Create a Drive-backed :class:`~src.agency_crm.folder_provisioner.FolderProvisioner`.

    Returns:
        FolderProvisioner: Provisioner.
    """

    return FolderProvisioner.from_settings(settings)


def get_client_registry(request: Request) -> ClientRegistry:
    """Return the registry shared by the running app.

    Returns:
        ClientRegistry: Client registry stored on ``app.state``.
    """

    return request.app.state.client_registry


def get_onboarding(
    settings: Settings = Depends(get_settings_dependency),
    registry: ClientRegistry = Depends(get_client_registry),
    mail_sender: MailSender = Depends(get_mail_sender),
    provisioner: FolderProvisioner = Depends(get_provisioner),
) -> ClientOnboarding:
    """Compose the onboarding workflow from the request's dependencies.

    Returns:
        ClientOnboarding: Workflow instance.
    """

    return ClientOnboarding(
        settings=settings,
        registry=registry,
        mail_sender=mail_sender,
        provisioner=provisioner,
    )


def _result_response(result: OperationResult) -> JSONResponse:
    return JSONResponse(result.model_dump(), status_code=200 if result.success else 500)


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse({"success": False, "message": message}, status_code=400)


def _not_found(message: str) -> JSONResponse:
    return JSONResponse({"success": False, "message": message}, status_code=404)


def _mask_user(user: str | None) -> str:
    """Hide the mailbox part of an SMTP user for display.

    Args:
        user: SMTP login user.

    Returns:
        str: e.g. ``support@***``.
    """

    if not user:
        return ""
    local, _, _domain = user.partition("@")
    return f"{local}@***"


def _client_json(client: Any) -> dict[str, Any]:
    return client.model_dump(by_alias=True, mode="json")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        FastAPI: FastAPI app with a fresh client registry.
    """

    app = FastAPI(title="Agency CRM")
    app.state.client_registry = ClientRegistry()

    templates = Jinja2Templates(directory=str(TEMPLATE_DIR))

    @app.get("/health")
    def health() -> dict[str, str]:
        """Health check endpoint; performs no external calls."""

        return {"status": "ok"}

    @app.get("/", response_class=HTMLResponse)
    def home(
        request: Request,
        settings: Settings = Depends(get_settings_dependency),
    ) -> Any:
        """Render a page listing the available endpoints."""

        return templates.TemplateResponse(
            request,
            "index.html",
            {"app_name": settings.app_name, "endpoints": ENDPOINTS},
        )

    @app.post("/api/email/send-invitation")
    def send_invitation(
        payload: dict[str, Any],
        mail_sender: MailSender = Depends(get_mail_sender),
    ) -> Any:
        """Send an invitation email.

        Expected request body:
            ``{"email": "...", "name": "...", "password": "...", "role": "..."}``

        ``password`` defaults to a generated temporary password and ``role``
        to ``User``.

        Args:
            payload: JSON payload.
            mail_sender: Mail sender dependency.

        Returns:
            Any: ``{success, message}`` with status 200, 400 or 500.
        """

        email = payload.get("email")
        name = payload.get("name")
        if not email or not name:
            return _bad_request("Email and name are required.")

        result = mail_sender.send_invitation(
            to=email,
            name=name,
            password=payload.get("password") or generate_temporary_password(),
            role=payload.get("role") or "User",
        )
        return _result_response(result)

    @app.post("/api/email/send-password-reset")
    def send_password_reset(
        payload: dict[str, Any],
        mail_sender: MailSender = Depends(get_mail_sender),
    ) -> Any:
        """Send a password reset email.

        Expected request body: ``{"email": "...", "resetLink": "..."}``.
        """

        email = payload.get("email")
        reset_link = payload.get("resetLink") or payload.get("reset_link")
        if not email or not reset_link:
            return _bad_request("Email and reset link are required.")

        return _result_response(mail_sender.send_password_reset(email, reset_link))

    @app.get("/api/email/test")
    def test_email_connection(mail_sender: MailSender = Depends(get_mail_sender)) -> Any:
        """Verify the connection to the mail server."""

        return _result_response(mail_sender.verify_connection())

    @app.post("/api/invite")
    def invite(
        payload: dict[str, Any],
        mail_sender: MailSender = Depends(get_mail_sender),
    ) -> Any:
        """Send an invitation with an explicit login link.

        Expected request body:
            ``{"name": "...", "email": "...", "password": "...", "link": "..."}``

        All four fields are required.
        """

        required = ("name", "email", "password", "link")
        missing = [key for key in required if not payload.get(key)]
        if missing:
            return _bad_request(
                "Incomplete data. Provide name, email, password and link "
                f"(missing: {', '.join(missing)})."
            )

        result = mail_sender.send_invitation(
            to=payload["email"],
            name=payload["name"],
            password=payload["password"],
            role=payload.get("role") or "User",
            login_url=payload["link"],
        )
        return _result_response(result)

    @app.get("/api/smtp-test")
    def smtp_test(
        settings: Settings = Depends(get_settings_dependency),
        mail_sender: MailSender = Depends(get_mail_sender),
    ) -> Any:
        """Verify the SMTP connection and report the configured server."""

        result = mail_sender.verify_connection()
        if not result.success:
            return _result_response(result)

        return {
            "success": True,
            "message": result.message,
            "config": {
                "host": settings.smtp_host,
                "port": settings.smtp_port,
                "user": _mask_user(settings.smtp_user),
            },
        }

    @app.get("/api/clients")
    def list_clients(registry: ClientRegistry = Depends(get_client_registry)) -> Any:
        """List all clients."""

        return [_client_json(c) for c in registry.list_clients()]

    @app.post("/api/clients", status_code=201)
    def create_client(
        payload: ClientCreate,
        onboarding: ClientOnboarding = Depends(get_onboarding),
    ) -> Any:
        """Create a client, provision its Drive folders and send the invitation.

        Returns:
            Any: 201 with the client and per-step outcome, or 409 when the
            email is already registered.
        """

        try:
            result = onboarding.create_client(payload)
        except ClientAlreadyExists as e:
            return JSONResponse({"success": False, "message": str(e)}, status_code=409)

        return {
            "success": True,
            "client": _client_json(result.client),
            "folderProvisioned": result.folder_provisioned,
            "folderShared": result.folder_shared,
            "invitation": result.invitation.model_dump() if result.invitation else None,
        }

    @app.get("/api/clients/{client_id}")
    def get_client(
        client_id: str,
        registry: ClientRegistry = Depends(get_client_registry),
    ) -> Any:
        """Return one client."""

        client = registry.get(client_id)
        if client is None:
            return _not_found("Client not found")
        return _client_json(client)

    @app.patch("/api/clients/{client_id}")
    def update_client(
        client_id: str,
        payload: ClientUpdate,
        registry: ClientRegistry = Depends(get_client_registry),
    ) -> Any:
        """Update the provided fields of a client.

        Returns:
            Any: The updated client, 404 when unknown, or 409 when the new
            email belongs to another client.
        """

        try:
            client = registry.update(client_id, **payload.changes())
        except ClientAlreadyExists as e:
            return JSONResponse({"success": False, "message": str(e)}, status_code=409)

        if client is None:
            return _not_found("Client not found")
        return _client_json(client)

    @app.delete("/api/clients/{client_id}", status_code=204)
    def delete_client(
        client_id: str,
        registry: ClientRegistry = Depends(get_client_registry),
    ) -> Response:
        """Delete a client record."""

        if not registry.delete(client_id):
            return _not_found("Client not found")
        return Response(status_code=204)

    @app.get("/api/clients/{client_id}/drive-folder")
    def get_client_drive_folder(
        client_id: str,
        registry: ClientRegistry = Depends(get_client_registry),
    ) -> Any:
        """Return the URL of a client's Drive folder.

        When only the folder id is known, the URL is built and stored on the
        client for later requests.
        """

        client = registry.get(client_id)
        if client is None:
            return _not_found("Client not found")
        if not client.google_drive_folder_id:
            return _not_found("This client has no Google Drive folder")

        if client.google_drive_folder_url:
            return {"success": True, "folderUrl": client.google_drive_folder_url}

        folder_url = FolderProvisioner.folder_url(client.google_drive_folder_id)
        registry.update(client_id, google_drive_folder_url=folder_url)
        return {"success": True, "folderUrl": folder_url}

    return app


app = create_app()
