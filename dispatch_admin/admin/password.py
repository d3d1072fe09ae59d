# dispatch_admin/admin/password.py
"""
Password operations available from the console.

* ``change``  - the signed-in admin changes their own password
* ``reset``   - an admin sends a reset email to a dispatcher or driver
"""
from __future__ import annotations

from typing import Optional

from dispatch_admin.admin.errors import TransportError
from dispatch_admin.admin.models import WorkerRecord
from dispatch_admin.config import settings
from dispatch_admin.core.domain import Severity
from dispatch_admin.core.notifications import NotificationMediator
from dispatch_admin.core.ports import UserApi
from dispatch_admin.core.validators import validate_password_change
from dispatch_admin.infra.audit_log import audit_event
from dispatch_admin.infra.logging_config import get_logger, mask_email

logger = get_logger(__name__)


class PasswordService:
    def __init__(
        self,
        user: UserApi,
        notifications: NotificationMediator,
        *,
        min_length: int | None = None,
    ) -> None:
        self._user = user
        self._notifications = notifications
        self._min_length = settings.password_min_length if min_length is None else min_length

    async def change(
        self,
        user_id: int | str,
        old_password: str,
        new_password: str,
        confirm_password: str,
    ) -> Optional[str]:
        """
        Change the signed-in user's password.

        Returns None on success, otherwise the message to show inline in
        the form.  Local checks run before any network call.
        """
        if not old_password:
            return "Current password is required"
        error = validate_password_change(new_password, confirm_password, min_length=self._min_length)
        if error:
            return error

        try:
            result = await self._user.update_password(user_id, old_password, new_password)
        except TransportError as exc:
            logger.error(f"Password change failed for user {user_id}: {exc}")
            return "Failed to update password. Please try again."

        if not result.success:
            return result.message or "Failed to update password"

        audit_event("password.change", detail=f"user_id={user_id}")
        self._notifications.show_toast(result.message or "Password updated successfully", Severity.SUCCESS)
        return None

    async def reset(self, worker: WorkerRecord) -> bool:
        """Send a password-reset email to *worker*.  Outcome is shown as a toast."""
        try:
            result = await self._user.forgot_password(worker.id, worker.role.value)
        except TransportError as exc:
            logger.error(f"Password reset failed for {worker.role.value} {worker.id}: {exc}")
            self._notifications.show_toast("Failed to send password reset email", Severity.ERROR)
            return False

        if not result.success:
            self._notifications.show_toast(result.message or "Failed to send password reset email", Severity.ERROR)
            return False

        logger.info(f"Password reset sent to {mask_email(worker.email)}")
        audit_event("password.reset", category=worker.role.value, worker_id=worker.id)
        self._notifications.show_toast(
            result.message or f"Password reset email sent to {worker.email}",
            Severity.SUCCESS,
        )
        return True
