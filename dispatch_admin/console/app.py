# dispatch_admin/console/app.py
"""
Admin console composition root.

Builds one mediator and one of each manager over a shared backend,
runs the admin gate, loads both active lists, starts the unread poller,
and tears everything down again on close.

Usage:
    async with AdminConsole.from_settings(user_id=42) as console:
        if console.state is ConsoleState.READY:
            console.workforce.records(WorkerRole.DRIVER)
"""
from __future__ import annotations

import asyncio
from enum import Enum
from typing import Callable, Optional

from dispatch_admin.admin.access import AdminAccessGate
from dispatch_admin.admin.errors import ConsoleError
from dispatch_admin.admin.fired import FiredWorkersView
from dispatch_admin.admin.fleet import FleetManager
from dispatch_admin.admin.models import WorkerRecord
from dispatch_admin.admin.password import PasswordService
from dispatch_admin.admin.service import WorkforceLifecycleManager
from dispatch_admin.config import settings
from dispatch_admin.console.forms import CarForm, WorkerForm
from dispatch_admin.core.domain import WorkerRole
from dispatch_admin.core.notifications import NotificationMediator
from dispatch_admin.core.ports import Backend
from dispatch_admin.infra.backend_client import RestBackend
from dispatch_admin.infra.http_client import close_all_sessions
from dispatch_admin.infra.logging_config import get_logger
from dispatch_admin.infra.unread_sync import PollHandle, UnreadMessageSynchronizer

logger = get_logger(__name__)


class ConsoleState(str, Enum):
    LOADING = "loading"
    DENIED = "denied"
    READY = "ready"
    CLOSED = "closed"


class AdminConsole:
    def __init__(
        self,
        backend: Backend,
        *,
        user_id: int | str | None,
        notifications: NotificationMediator | None = None,
        on_error: Callable[[ConsoleError], None] | None = None,
        poll_interval: float | None = None,
        owns_sessions: bool = False,
    ) -> None:
        self.backend = backend
        self.user_id = user_id
        self.notifications = notifications or NotificationMediator(
            default_toast_ms=settings.toast_default_duration_ms,
        )
        self._on_error = on_error
        self._owns_sessions = owns_sessions
        self.errors: list[ConsoleError] = []

        self.access = AdminAccessGate(backend.user)
        self.workforce = WorkforceLifecycleManager(backend, self.notifications, on_error=self._report)
        self.fleet = FleetManager(
            backend.cars,
            self.notifications,
            owner_active=lambda driver_id: self.workforce.is_active(WorkerRole.DRIVER, driver_id),
        )
        self.fired = FiredWorkersView(backend.user)
        self.passwords = PasswordService(backend.user, self.notifications)
        self.unread = UnreadMessageSynchronizer(backend.messages, interval=poll_interval)

        self.workforce.on_fired(self._after_fire)
        self.workforce.on_fired(self.fired.refresh_after_fire)

        self.state = ConsoleState.LOADING
        self._poll: Optional[PollHandle] = None

    @classmethod
    def from_settings(cls, *, user_id: int | str | None, **kwargs) -> "AdminConsole":
        """Console over the REST backend configured in settings."""
        return cls(RestBackend(), user_id=user_id, owns_sessions=True, **kwargs)

    def _report(self, exc: ConsoleError) -> None:
        self.errors.append(exc)
        if self._on_error is not None:
            self._on_error(exc)

    def _after_fire(self, role: WorkerRole, worker_id: int) -> None:
        if role is WorkerRole.DRIVER:
            self.fleet.forget(worker_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> ConsoleState:
        """Gate on admin, then load both lists and start the unread poller."""
        if not await self.access.check(self.user_id):
            self.state = ConsoleState.DENIED
            logger.warning(f"Console access denied for user {self.user_id}")
            return self.state

        await asyncio.gather(
            self.workforce.list_active(WorkerRole.DISPATCHER),
            self.workforce.list_active(WorkerRole.DRIVER),
        )
        self._poll = self.unread.start()
        self.state = ConsoleState.READY
        logger.info(
            f"Console ready: dispatchers={len(self.workforce.records(WorkerRole.DISPATCHER))}, "
            f"drivers={len(self.workforce.records(WorkerRole.DRIVER))}"
        )
        return self.state

    async def close(self) -> None:
        if self.state is ConsoleState.CLOSED:
            return
        if self._poll is not None:
            await self._poll.cancel()
            self._poll = None
        await self.notifications.aclose()
        if self._owns_sessions:
            await close_all_sessions()
        self.state = ConsoleState.CLOSED
        logger.info("Console closed")

    async def __aenter__(self) -> "AdminConsole":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # View entry points
    # ------------------------------------------------------------------

    def worker_form(self, role: WorkerRole, record: WorkerRecord | None = None) -> WorkerForm:
        if record is None:
            return WorkerForm.create(self.workforce, role)
        return WorkerForm.edit(self.workforce, record)

    async def open_fleet(self, driver_id: int):
        return await self.fleet.list_by_driver(driver_id)

    def car_form(self, driver_id: int, car=None) -> CarForm:
        if car is None:
            return CarForm.create(self.fleet, driver_id)
        return CarForm.edit(self.fleet, driver_id, car)

    async def open_messages(self, driver_id: int) -> None:
        await self.unread.open_thread(driver_id)

    async def close_messages(self, driver_id: int) -> None:
        await self.unread.close_thread(driver_id)
