"""Command-line interface (CLI) entrypoint.

Objective:
    Provide an operator CLI around the mail sender and the folder provisioner,
    plus a ``serve`` command that runs the web API.

Responsibilities:
    - Parse arguments (subcommand, verbosity).
    - Configure logging (including suppressing noisy Google API request logs).
    - Invoke the component for the chosen subcommand and print its outcome.

High-level call tree:
    - :func:`main`
        - :func:`setup_logging`
            - installs :class:`_GoogleApiRequestInfoToDebugFilter`
        - ``provision`` -> :meth:`FolderProvisioner.create_client_folder_structure`
          (and :meth:`FolderProvisioner.share_client_folder` with ``--share-with``)
        - ``invite`` -> :meth:`MailSender.send_invitation`
        - ``reset-password`` -> :meth:`MailSender.send_password_reset`
        - ``smtp-test`` -> :meth:`MailSender.verify_connection`
        - ``serve`` -> :func:`uvicorn.run`

Operational notes:
    - Exit code is 0 when the operation succeeded and 1 otherwise.
"""

import argparse
import logging
import sys
from typing import Optional

import uvicorn

from .config import get_settings
from .folder_provisioner import FolderProvisioner
from .mailer import MailSender
from .models import OperationResult
from .onboarding import generate_temporary_password


class _GoogleApiRequestInfoToDebugFilter(logging.Filter):
    """Filter to suppress googleapiclient "URL being requested:" INFO logs.

    The discovery client logs every Drive request at INFO level. This filter
    hides those messages unless the root logger is in DEBUG mode.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        """Determine whether a log record should be emitted.

        Args:
            record: Log record emitted by the logging framework.

        Returns:
            bool: True to allow emission, False to suppress.
        """
        msg = record.getMessage()
        if record.name.startswith("googleapiclient") and msg.startswith("URL being requested"):
            return logging.getLogger().isEnabledFor(logging.DEBUG)
        return True


def setup_logging(level: str = "INFO") -> None:
    """
    Configure logging for the application.

    This sets the root logger level and installs the
    :class:`_GoogleApiRequestInfoToDebugFilter` on all root handlers.

    Unknown level names fall back to INFO with a warning.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR).
    """
    numeric_level = logging.getLevelName((level or "").upper())
    known_level = isinstance(numeric_level, int)

    logging.basicConfig(
        level=numeric_level if known_level else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )

    root_logger = logging.getLogger()
    downgrade_filter = _GoogleApiRequestInfoToDebugFilter()
    for handler in root_logger.handlers:
        handler.addFilter(downgrade_filter)

    if not known_level:
        logging.getLogger(__name__).warning(f"Unknown log level {level!r}; using INFO")


def print_result(result: OperationResult) -> int:
    """Print a mail operation result and map it to an exit code.

    Args:
        result: Operation outcome.

    Returns:
        int: 0 on success, 1 on failure.
    """
    status = "OK" if result.success else "FAILED"
    print(f"\n[{status}] {result.message}\n")
    return 0 if result.success else 1


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agency-crm",
        description="Agency CRM - client folders and transactional email",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s provision "Acme Ltd"                       Create the Drive folder tree
  %(prog)s provision "Acme Ltd" --share-with a@b.com  ...and share it
  %(prog)s invite --to a@b.com --name "Ana"           Send an invitation
  %(prog)s reset-password --to a@b.com --link URL     Send a password reset email
  %(prog)s smtp-test                                  Check the SMTP connection
  %(prog)s serve --port 8000                          Run the web API
        """,
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose output",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (defaults to LOG_LEVEL)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    provision = subparsers.add_parser("provision", help="Create a client's Drive folder tree")
    provision.add_argument("client_name", help="Client name (root folder name)")
    provision.add_argument(
        "--share-with",
        type=str,
        default=None,
        help="Email address to share the root folder with",
    )

    invite = subparsers.add_parser("invite", help="Send an invitation email")
    invite.add_argument("--to", required=True, help="Recipient email")
    invite.add_argument("--name", required=True, help="Recipient name")
    invite.add_argument(
        "--password",
        default=None,
        help="Temporary password (generated when omitted)",
    )
    invite.add_argument("--role", default="User", help="Role shown in the email")
    invite.add_argument("--login-url", default=None, help="Login link (defaults to APP_BASE_URL/login)")

    reset = subparsers.add_parser("reset-password", help="Send a password reset email")
    reset.add_argument("--to", required=True, help="Recipient email")
    reset.add_argument("--link", required=True, help="Password reset link")

    subparsers.add_parser("smtp-test", help="Verify the SMTP connection")

    serve = subparsers.add_parser("serve", help="Run the web API")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve.add_argument("--port", type=int, default=8000, help="Bind port")

    return parser


def main(args: Optional[list[str]] = None) -> int:
    """
    Main CLI entry point.

    This function is structured to be testable: pass an explicit ``args`` list
    instead of relying on ``sys.argv``.

    Args:
        args: Command line arguments (uses sys.argv if None).

    Returns:
        int: Exit code (0 for success, 1 for error).
    """
    parsed_args = _build_parser().parse_args(args)

    settings = get_settings()

    log_level = "DEBUG" if parsed_args.verbose else (parsed_args.log_level or settings.log_level)
    setup_logging(log_level)

    logger = logging.getLogger(__name__)

    try:
        if parsed_args.command == "serve":
            from .webapp import create_app

            uvicorn.run(create_app(), host=parsed_args.host, port=parsed_args.port)
            return 0

        if parsed_args.command == "provision":
            provisioner = FolderProvisioner.from_settings(settings)
            folder_id = provisioner.create_client_folder_structure(parsed_args.client_name)
            if not folder_id:
                print(f"\n[FAILED] Could not provision folders for {parsed_args.client_name!r}\n")
                return 1

            print(f"\n[OK] Folder tree ready: {FolderProvisioner.folder_url(folder_id)}")
            if parsed_args.share_with:
                folder_url = provisioner.share_client_folder(folder_id, parsed_args.share_with)
                if not folder_url:
                    print(f"[FAILED] Could not share the folder with {parsed_args.share_with}\n")
                    return 1
                print(f"[OK] Shared with {parsed_args.share_with}")
            print()
            return 0

        mail_sender = MailSender(settings)
        if settings.mail_dry_run:
            print("\nDRY RUN MODE - emails are logged, not sent")

        if parsed_args.command == "invite":
            password = parsed_args.password or generate_temporary_password()
            result = mail_sender.send_invitation(
                to=parsed_args.to,
                name=parsed_args.name,
                password=password,
                role=parsed_args.role,
                login_url=parsed_args.login_url,
            )
        elif parsed_args.command == "reset-password":
            result = mail_sender.send_password_reset(parsed_args.to, parsed_args.link)
        else:
            result = mail_sender.verify_connection()

        return print_result(result)

    except Exception as e:
        logger.exception("Fatal error")
        print(f"\nError: {e}\n")
        return 1


if __name__ == "__main__":
    sys.exit(main())
