"""
Exceptions raised by the portal automation engine.

Timeouts and navigation failures from Playwright are not wrapped; they
propagate as ordinary exceptions and are handled by the calling layer.
"""


class PortalError(Exception):
    """Base class for errors raised by the automation engine itself."""


class PreconditionError(PortalError):
    """Raised before any browser activity when an operation cannot start."""


class LoginError(PortalError):
    """The portal rejected the login form or never reached the home screen."""

    def __init__(self, message: str, invalid_credentials: bool = False) -> None:
        super().__init__(message)
        self.message = message
        self.invalid_credentials = invalid_credentials


class OperationCancelled(PortalError):
    """A caller-supplied cancellation token was set."""
