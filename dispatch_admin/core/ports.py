# dispatch_admin/core/ports.py
from __future__ import annotations
from typing import Any, Protocol

from dispatch_admin.admin.models import (
    CarRecord,
    CreateWorkerResult,
    FireResult,
    FiredWorkers,
    PasswordResult,
    UnreadMessage,
    WorkerRecord,
)


# ============================================================================
# BACKEND COLLABORATORS
# Every method raises TransportError when the call fails.
# ============================================================================

class DispatchersApi(Protocol):
    async def get_active(self) -> list[WorkerRecord]: ...
    async def get_by_id(self, dispatcher_id: int) -> WorkerRecord: ...
    async def create(self, record: dict[str, Any]) -> CreateWorkerResult: ...
    async def update(self, record: dict[str, Any]) -> None: ...


class DriversApi(Protocol):
    async def get_active(self) -> list[WorkerRecord]: ...
    async def get_all(self) -> list[WorkerRecord]: ...
    async def get_by_id(self, driver_id: int) -> WorkerRecord: ...
    async def create(self, record: dict[str, Any]) -> CreateWorkerResult: ...
    async def update(self, record: dict[str, Any]) -> None: ...


class UserApi(Protocol):
    async def is_admin(self, user_id: int | str) -> bool: ...
    async def fire_dispatcher(self, dispatcher_id: int) -> FireResult: ...
    async def fire_driver(self, driver_id: int) -> FireResult:
        """Fire a driver; the backend reassigns their active calls and notifies them."""
        ...
    async def forgot_password(self, user_id: int | str, role: str = "dispatcher") -> PasswordResult: ...
    async def update_password(self, user_id: int | str, old_password: str, new_password: str) -> PasswordResult: ...
    async def get_fired_workers(self) -> FiredWorkers: ...


class CarsApi(Protocol):
    async def get_by_driver(self, driver_id: int) -> list[CarRecord]: ...
    async def create(self, car: dict[str, Any]) -> CarRecord | None: ...
    async def update(self, car_id: int, car: dict[str, Any]) -> None: ...
    async def delete(self, car_id: int) -> None: ...


class MessagesApi(Protocol):
    async def get_unread(self) -> list[UnreadMessage]: ...
    async def mark_as_read(self, message_ids: list[int]) -> None: ...


class Backend(Protocol):
    """Bundle of every collaborator, as wired by the console."""
    dispatchers: DispatchersApi
    drivers: DriversApi
    user: UserApi
    cars: CarsApi
    messages: MessagesApi
