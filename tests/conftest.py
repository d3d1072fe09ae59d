# tests/conftest.py
"""Pytest configuration and fixtures"""
import pytest
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from dispatch_admin.admin.errors import TransportError
from dispatch_admin.admin.models import (
    CarRecord,
    CreateWorkerResult,
    FireResult,
    FiredWorkers,
    PasswordResult,
    UnreadMessage,
    parse_cars,
    parse_workers,
)
from dispatch_admin.admin.service import WorkforceLifecycleManager
from dispatch_admin.core.domain import WorkerRole
from dispatch_admin.core.notifications import NotificationMediator
from dispatch_admin.infra.metrics import get_metrics_collector


class MockWorkerApi:
    """Async mock for the dispatchers / drivers collaborators"""
    def __init__(self, backend: "FakeBackend", role: WorkerRole):
        self.backend = backend
        self.role = role

    @property
    def rows(self) -> dict:
        return self.backend.workers[self.role]

    async def get_active(self):
        self.backend.hit(f"{self.role.value}.get_active")
        return parse_workers([r for r in self.rows.values() if not r.get("endDate")], self.role)

    async def get_all(self):
        self.backend.hit(f"{self.role.value}.get_all")
        return parse_workers(list(self.rows.values()), self.role)

    async def get_by_id(self, worker_id: int):
        self.backend.hit(f"{self.role.value}.get_by_id", worker_id)
        if worker_id not in self.rows:
            raise TransportError(404, "not found", action=f"load {self.role.value}")
        return parse_workers([self.rows[worker_id]], self.role)[0]

    async def create(self, record: dict):
        self.backend.hit(f"{self.role.value}.create", record)
        worker_id = self.backend.next_id()
        self.rows[worker_id] = {**record, "id": worker_id}
        warning = self.backend.create_warning
        return CreateWorkerResult(
            id=worker_id,
            warning=warning,
            temp_password=self.backend.temp_password if warning else None,
        )

    async def update(self, record: dict):
        self.backend.hit(f"{self.role.value}.update", record)
        self.rows[record["id"]] = {**self.rows.get(record["id"], {}), **record}


class MockUserApi:
    """Async mock for the user collaborator (admin check, fire, passwords)"""
    def __init__(self, backend: "FakeBackend"):
        self.backend = backend

    async def is_admin(self, user_id):
        self.backend.hit("user.is_admin", user_id)
        return int(user_id) in self.backend.admins

    def _fire(self, role: WorkerRole, worker_id: int):
        row = self.backend.workers[role][worker_id]
        row["endDate"] = "2026-10-19T12:00:00"
        row["isActive"] = False

    async def fire_dispatcher(self, dispatcher_id: int):
        self.backend.hit("user.fire_dispatcher", dispatcher_id)
        self._fire(WorkerRole.DISPATCHER, dispatcher_id)
        return FireResult()

    async def fire_driver(self, driver_id: int):
        self.backend.hit("user.fire_driver", driver_id)
        self._fire(WorkerRole.DRIVER, driver_id)
        return FireResult(affected_calls=self.backend.affected_calls)

    async def forgot_password(self, user_id, role: str = "dispatcher"):
        self.backend.hit("user.forgot_password", user_id, role)
        return PasswordResult(success=True, message="Password reset email sent")

    async def update_password(self, user_id, old_password: str, new_password: str):
        self.backend.hit("user.update_password", user_id)
        if old_password != self.backend.password:
            return PasswordResult(success=False, message="Current password is incorrect")
        self.backend.password = new_password
        return PasswordResult(success=True, message="Password updated successfully")

    async def get_fired_workers(self):
        self.backend.hit("user.get_fired_workers")
        return FiredWorkers.model_validate({
            "Dispatchers": [r for r in self.backend.workers[WorkerRole.DISPATCHER].values() if r.get("endDate")],
            "Drivers": [r for r in self.backend.workers[WorkerRole.DRIVER].values() if r.get("endDate")],
        })


class MockCarsApi:
    """Async mock for the cars collaborator"""
    def __init__(self, backend: "FakeBackend"):
        self.backend = backend

    async def get_by_driver(self, driver_id: int):
        self.backend.hit("cars.get_by_driver", driver_id)
        return parse_cars([c for c in self.backend.car_rows.values() if c["driverId"] == driver_id])

    async def create(self, car: dict):
        self.backend.hit("cars.create", car)
        car_id = self.backend.next_id()
        self.backend.car_rows[car_id] = {**car, "id": car_id}
        return CarRecord.model_validate(self.backend.car_rows[car_id])

    async def update(self, car_id: int, car: dict):
        self.backend.hit("cars.update", car_id, car)
        self.backend.car_rows[car_id] = {**self.backend.car_rows[car_id], **car}

    async def delete(self, car_id: int):
        self.backend.hit("cars.delete", car_id)
        self.backend.car_rows.pop(car_id, None)


class MockMessagesApi:
    """Async mock for the messages collaborator"""
    def __init__(self, backend: "FakeBackend"):
        self.backend = backend
        self.marked: list[list[int]] = []

    async def get_unread(self):
        self.backend.hit("messages.get_unread")
        return [UnreadMessage.model_validate(m) for m in self.backend.unread]

    async def mark_as_read(self, message_ids):
        self.backend.hit("messages.mark_as_read", list(message_ids))
        self.marked.append(list(message_ids))
        self.backend.unread = [m for m in self.backend.unread if m["id"] not in message_ids]


class FakeBackend:
    """In-memory backend with the same collaborator shape as RestBackend.

    ``fail(name)`` makes the named call raise TransportError until ``heal(name)``.
    """
    def __init__(self):
        self.workers = {WorkerRole.DISPATCHER: {}, WorkerRole.DRIVER: {}}
        self.car_rows: dict[int, dict] = {}
        self.unread: list[dict] = []
        self.admins = {1}
        self.password = "secret1"
        self.create_warning = None
        self.temp_password = "Tmp#4821"
        self.affected_calls = 0
        self.calls: list[tuple] = []
        self.failures: dict[str, TransportError] = {}
        self._ids = 100

        self.dispatchers = MockWorkerApi(self, WorkerRole.DISPATCHER)
        self.drivers = MockWorkerApi(self, WorkerRole.DRIVER)
        self.user = MockUserApi(self)
        self.cars = MockCarsApi(self)
        self.messages = MockMessagesApi(self)

    def next_id(self) -> int:
        self._ids += 1
        return self._ids

    def hit(self, name: str, *args) -> None:
        self.calls.append((name, *args))
        if name in self.failures:
            raise self.failures[name]

    def fail(self, name: str, status: int = 500) -> None:
        self.failures[name] = TransportError(status, "boom", action=name, retryable=status >= 500)

    def heal(self, name: str) -> None:
        self.failures.pop(name, None)

    def called(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]

    def add_worker(self, role: WorkerRole, name: str, **fields) -> int:
        worker_id = fields.pop("id", None) or self.next_id()
        slug = name.lower().replace(" ", ".")
        self.workers[role][worker_id] = {
            "id": worker_id,
            "name": name,
            "email": f"{slug}@example.com",
            "phoneNumber": "5551234567",
            "isActive": True,
            **({"license": "DL123456"} if role is WorkerRole.DRIVER else {}),
            **fields,
        }
        return worker_id

    def add_car(self, driver_id: int, **fields) -> int:
        car_id = self.next_id()
        self.car_rows[car_id] = {
            "id": car_id,
            "driverId": driver_id,
            "make": "Toyota",
            "model": "Camry",
            "year": 2020,
            "color": "Black",
            "licensePlate": "ABC123",
            **fields,
        }
        return car_id


@pytest.fixture(autouse=True)
def reset_metrics():
    get_metrics_collector().reset()
    yield


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def mediator():
    return NotificationMediator()


@pytest.fixture
def errors():
    """Collects whatever the manager hands to its error hook"""
    return []


@pytest.fixture
def manager(backend, mediator, errors):
    return WorkforceLifecycleManager(backend, mediator, on_error=errors.append)
