# dispatch_admin/admin/errors.py
"""
Typed errors for the workforce console.

The taxonomy follows how each failure is presented:

* ``ValidationError``    – local, field-scoped, rendered inline; never
  reaches the network and never becomes a dialog.
* ``TransportError``     – a backend call failed.  On reads the caller
  degrades to an empty result; on writes the caller shows an error
  dialog naming the attempted action.
* ``AuthorizationError`` – the admin check returned false; the console
  renders its access-denied state.
"""
from __future__ import annotations


class ConsoleError(Exception):
    """Base class for all console errors."""

    def __init__(self, detail: str = "Internal error"):
        self.detail = detail
        super().__init__(detail)


class ValidationError(ConsoleError):
    """One or more form fields are invalid."""

    def __init__(self, errors: dict[str, str]):
        self.errors = dict(errors)
        super().__init__(f"Invalid fields: {', '.join(sorted(self.errors))}")


class TransportError(ConsoleError):
    """A collaborator call failed (network error or non-2xx response).

    Attributes:
        status:    HTTP status code (0 for connection-level errors).
        retryable: Whether an idempotent call may be retried.
        action:    Human name of the attempted call, e.g. "fire driver".
    """

    def __init__(
        self,
        status: int,
        message: str,
        *,
        action: str = "",
        retryable: bool = False,
    ):
        self.status = status
        self.retryable = retryable
        self.action = action
        super().__init__(f"Backend error {status} ({action or 'request'}): {message}")


class AuthorizationError(ConsoleError):
    """The signed-in user is not an admin."""


class BusyError(ConsoleError):
    """A mutation is already in flight for this category."""


class FleetLockedError(ConsoleError):
    """Cars can only be changed while their owning driver is active."""


class WorkerInactiveError(ConsoleError):
    """The worker is not in the active list; fired records cannot change."""
