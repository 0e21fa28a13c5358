"""Error taxonomy shared by the mail and Drive components.

Every public operation catches these at its boundary and turns them into a
result object (``OperationResult`` for mail, ``None`` for provisioning), so
they never reach HTTP or CLI callers directly.
"""


class CrmError(Exception):
    """Base class for all errors raised by this package."""


class MissingParameter(CrmError, ValueError):
    """Raised when a required input is empty or absent.

    Args:
        names: Names of the missing parameters.
    """

    def __init__(self, *names: str) -> None:
        self.names = names
        super().__init__(f"Missing required parameter(s): {', '.join(names)}")


class TransportFailure(CrmError):
    """SMTP or network failure while talking to the mail server."""


class CredentialsNotFound(CrmError):
    """No complete Google service-account credential could be resolved."""


class RemoteApiFailure(CrmError):
    """The Drive API (or its token endpoint) returned an error."""


class ClientAlreadyExists(CrmError):
    """A client with the same email is already registered."""
