# dispatch_admin/admin/fleet.py
"""
Car fleet sub-manager: the cars of one driver at a time.

Same rules as the worker lists: validate locally, call the backend,
report through the mediator, reload the driver's fleet after every
successful change.  Cars can only be changed while their owner is still
an active driver; once the owner is fired the fleet is read-only.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Callable, Optional

from dispatch_admin.admin.errors import (
    BusyError,
    FleetLockedError,
    TransportError,
    ValidationError,
)
from dispatch_admin.admin.models import CarRecord
from dispatch_admin.core.domain import FormDraft, Severity
from dispatch_admin.core.notifications import NotificationMediator
from dispatch_admin.core.ports import CarsApi
from dispatch_admin.core.validators import CAR_RULES, validate
from dispatch_admin.infra.audit_log import audit_event
from dispatch_admin.infra.logging_config import LogContext, get_logger
from dispatch_admin.infra.metrics import inc_counter

logger = get_logger(__name__)


@dataclass(frozen=True)
class FleetSnapshot:
    driver_id: int
    cars: tuple[CarRecord, ...] = ()
    loading: bool = False
    submitting: bool = False


def new_car_draft() -> FormDraft:
    return FormDraft(values={
        "make": "",
        "model": "",
        "year": str(date.today().year),
        "color": "",
        "licensePlate": "",
        "vin": "",
    })


def car_draft_from(car: CarRecord) -> FormDraft:
    return FormDraft(
        values={
            "make": car.make,
            "model": car.model,
            "year": "" if car.year is None else str(car.year),
            "color": car.color,
            "licensePlate": car.license_plate,
            "vin": car.vin or "",
        },
        target_id=car.id,
    )


def _car_payload(driver_id: int, draft: FormDraft) -> dict[str, Any]:
    v = draft.values
    vin = str(v.get("vin") or "").strip().upper()
    payload: dict[str, Any] = {
        "driverId": driver_id,
        "make": str(v.get("make") or "").strip(),
        "model": str(v.get("model") or "").strip(),
        "year": int(str(v.get("year")).strip()),
        "color": str(v.get("color") or "").strip(),
        "licensePlate": str(v.get("licensePlate") or "").strip().upper(),
        "vin": vin or None,
    }
    if draft.target_id is not None:
        payload["id"] = draft.target_id
    return payload


def _car_label(car: CarRecord) -> str:
    label = f"{car.year or ''} {car.make} {car.model}".strip()
    return label or "this car"


class FleetManager:
    """
    Loads and mutates the cars of individual drivers.

    ``owner_active`` answers whether a driver id is currently an active
    driver; the console wires it to the workforce manager's driver list.
    """

    def __init__(
        self,
        cars: CarsApi,
        notifications: NotificationMediator,
        *,
        owner_active: Callable[[int], bool],
    ) -> None:
        self._cars = cars
        self._notifications = notifications
        self._owner_active = owner_active
        self._fleets: dict[int, FleetSnapshot] = {}
        self._listeners: list[Callable[[FleetSnapshot], None]] = []

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def snapshot(self, driver_id: int) -> FleetSnapshot:
        return self._fleets.get(driver_id) or FleetSnapshot(driver_id)

    def subscribe(self, listener: Callable[[FleetSnapshot], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _update(self, driver_id: int, **changes: Any) -> FleetSnapshot:
        snap = replace(self.snapshot(driver_id), **changes)
        self._fleets[driver_id] = snap
        for listener in list(self._listeners):
            listener(snap)
        return snap

    def forget(self, driver_id: int) -> None:
        """Drop the cached fleet of a driver (called after the driver is fired)."""
        if self._fleets.pop(driver_id, None) is not None:
            logger.debug(f"Fleet cache dropped for driver {driver_id}")

    def _ensure_mutable(self, driver_id: int) -> None:
        if not self._owner_active(driver_id):
            raise FleetLockedError(f"Driver {driver_id} is not active; their cars cannot be changed")
        if self.snapshot(driver_id).submitting:
            raise BusyError(f"A car change for driver {driver_id} is already being saved")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_by_driver(self, driver_id: int) -> list[CarRecord]:
        """Reload one driver's cars.  A failed read shows an empty fleet."""
        self._update(driver_id, loading=True)
        try:
            cars = await self._cars.get_by_driver(driver_id)
        except TransportError as exc:
            LogContext(logger, driver_id=driver_id).error(f"Failed to load cars: {exc}")
            inc_counter("fleet_load_failed")
            cars = []
        self._update(driver_id, cars=tuple(cars), loading=False)
        return list(cars)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _check(self, draft: FormDraft) -> None:
        errors = validate(draft.values, CAR_RULES)
        draft.errors = dict(errors)
        if errors:
            raise ValidationError(errors)

    async def _write(self, driver_id: int, verb: str, call) -> Any:
        self._update(driver_id, submitting=True)
        try:
            return await call
        except TransportError as exc:
            LogContext(logger, driver_id=driver_id).error(f"Failed to {verb} car: {exc}")
            inc_counter("fleet_write_failed", action=verb)
            self._notifications.show_error("Error", f"Failed to {verb} car. Please try again.")
            raise
        finally:
            self._update(driver_id, submitting=False)

    async def create(self, driver_id: int, draft: FormDraft) -> Optional[CarRecord]:
        """
        Add a car to an active driver's fleet.

        Raises:
            FleetLockedError: The owner is not an active driver
            BusyError: Another car change for this driver is in flight
            ValidationError: The draft has invalid fields
            TransportError: The backend call failed (error dialog shown)
        """
        self._ensure_mutable(driver_id)
        self._check(draft)
        payload = _car_payload(driver_id, draft)
        created = await self._write(driver_id, "add", self._cars.create(payload))

        audit_event("car.create", category="driver", worker_id=driver_id,
                    detail=f"plate={payload['licensePlate']}")
        self._notifications.show_toast("Car added successfully", Severity.SUCCESS)
        await self.list_by_driver(driver_id)
        return created

    async def update(self, driver_id: int, draft: FormDraft) -> None:
        if draft.target_id is None:
            raise ValueError("update() needs an edit draft (target_id is None)")
        self._ensure_mutable(driver_id)
        self._check(draft)
        payload = _car_payload(driver_id, draft)
        await self._write(driver_id, "update", self._cars.update(draft.target_id, payload))

        audit_event("car.update", category="driver", worker_id=driver_id, detail=f"car_id={draft.target_id}")
        self._notifications.show_toast("Car updated successfully", Severity.SUCCESS)
        await self.list_by_driver(driver_id)

    def request_delete(self, driver_id: int, car: CarRecord) -> None:
        """Open the delete confirmation; nothing is sent until "Delete" is pressed."""
        self._ensure_mutable(driver_id)

        async def _confirmed() -> None:
            try:
                await self.delete(driver_id, car.id)
            except TransportError:
                # Already logged and shown as an error dialog.
                return

        self._notifications.confirm(
            "Delete Car",
            f"Are you sure you want to delete {_car_label(car)}?",
            confirm_text="Delete",
            on_confirm=_confirmed,
        )

    async def delete(self, driver_id: int, car_id: int | None) -> None:
        if car_id is None:
            raise ValueError("Car has no id")
        self._ensure_mutable(driver_id)
        await self._write(driver_id, "delete", self._cars.delete(car_id))

        audit_event("car.delete", category="driver", worker_id=driver_id, detail=f"car_id={car_id}")
        self._notifications.show_toast("Car deleted successfully", Severity.SUCCESS)
        await self.list_by_driver(driver_id)
