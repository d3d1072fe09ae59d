# dispatch_admin/admin/fired.py
"""Read-only view of fired dispatchers and drivers."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from dispatch_admin.admin.errors import TransportError
from dispatch_admin.admin.models import FiredWorkers, WorkerRecord
from dispatch_admin.core.domain import WorkerRole
from dispatch_admin.core.ports import UserApi
from dispatch_admin.infra.logging_config import get_logger
from dispatch_admin.infra.metrics import inc_counter

logger = get_logger(__name__)

LOAD_FAILED_MESSAGE = "Failed to load fired workers. Please try again."


@dataclass(frozen=True)
class FiredState:
    workers: FiredWorkers = field(default_factory=FiredWorkers)
    loading: bool = False
    error: Optional[str] = None


class FiredWorkersView:
    """
    Holds the last successful read of ``get_fired_workers``.

    Fired records are terminal; this view never offers an action on them.
    """

    def __init__(self, user: UserApi) -> None:
        self._user = user
        self._state = FiredState()

    @property
    def state(self) -> FiredState:
        return self._state

    def records(self, role: WorkerRole | None = None) -> list[WorkerRecord]:
        workers = self._state.workers
        if role is WorkerRole.DISPATCHER:
            return list(workers.dispatchers)
        if role is WorkerRole.DRIVER:
            return list(workers.drivers)
        return sorted(
            [*workers.dispatchers, *workers.drivers],
            key=lambda r: r.end_date.isoformat() if r.end_date else "",
            reverse=True,
        )

    async def load(self) -> FiredState:
        self._state = FiredState(workers=self._state.workers, loading=True)
        try:
            workers = await self._user.get_fired_workers()
        except TransportError as exc:
            logger.error(f"Failed to load fired workers: {exc}")
            inc_counter("fired_load_failed")
            self._state = FiredState(error=LOAD_FAILED_MESSAGE)
            return self._state
        self._state = FiredState(workers=workers)
        logger.debug(f"Loaded {workers.total} fired workers")
        return self._state

    async def refresh_after_fire(self, role: WorkerRole, worker_id: int) -> None:
        """Hook for the workforce manager: a worker just moved to fired."""
        logger.debug(f"{role.value} {worker_id} fired, reloading fired list")
        await self.load()
