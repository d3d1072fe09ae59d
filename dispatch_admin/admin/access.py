# dispatch_admin/admin/access.py
"""Admin gate: the console only opens for users the backend reports as admin."""
from __future__ import annotations

from dispatch_admin.admin.errors import AuthorizationError, TransportError
from dispatch_admin.core.ports import UserApi
from dispatch_admin.infra.audit_log import audit_event
from dispatch_admin.infra.logging_config import get_logger

logger = get_logger(__name__)

ACCESS_DENIED_MESSAGE = "Access denied. Admin privileges are required to view this page."


class AdminAccessGate:
    def __init__(self, user: UserApi) -> None:
        self._user = user

    async def check(self, user_id: int | str | None) -> bool:
        """
        True only if the backend confirms *user_id* is an admin.

        A missing user id or a failed check counts as "not admin".
        """
        if user_id in (None, ""):
            logger.warning("Admin check skipped: no signed-in user")
            return False
        try:
            allowed = await self._user.is_admin(user_id)
        except TransportError as exc:
            logger.error(f"Admin check failed for user {user_id}: {exc}")
            return False
        if not allowed:
            audit_event("console.access_denied", detail=f"user_id={user_id}")
        return bool(allowed)

    async def require(self, user_id: int | str | None) -> None:
        """Raises AuthorizationError unless *user_id* is an admin."""
        if not await self.check(user_id):
            raise AuthorizationError(ACCESS_DENIED_MESSAGE)
