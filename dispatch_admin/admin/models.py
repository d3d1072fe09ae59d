# dispatch_admin/admin/models.py
"""
Pydantic models for backend payloads.

The backend is inconsistent about key casing (``dispatchers`` vs
``Dispatchers``, ``phoneNumber`` vs ``PhoneNumber``), so every model
normalises the first letter of incoming keys before validation and then
maps camelCase to snake_case attributes.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from dispatch_admin.core.domain import WorkerRole


def _lower_first(key: str) -> str:
    return key[:1].lower() + key[1:] if key else key


class BackendModel(BaseModel):
    """Base for everything parsed from the backend."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    @model_validator(mode="before")
    @classmethod
    def _normalise_keys(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return _normalise(data)
        return data


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

class CarRecord(BackendModel):
    """A vehicle owned by one driver."""

    id: int | None = Field(default=None, validation_alias=AliasChoices("id", "carId"))
    driver_id: int | None = Field(default=None, validation_alias=AliasChoices("driverId", "userId"))
    make: str = ""
    model: str = ""
    year: int | None = None
    color: str = ""
    license_plate: str = ""
    vin: str | None = None
    is_primary: bool = False


class WorkerRecord(BackendModel):
    """A dispatcher or driver.  ``end_date`` is set exactly when fired."""

    id: int
    name: str = ""
    email: str = ""
    phone_number: str = Field(default="", validation_alias=AliasChoices("phoneNumber", "phone"))
    role: WorkerRole = WorkerRole.DISPATCHER
    is_active: bool = True
    is_admin: bool = False
    license: str | None = Field(default=None, validation_alias=AliasChoices("license", "licenseNumber"))
    user_name: str | None = None
    join_date: date | datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("joinDate", "dateJoined", "joinedDate"),
    )
    end_date: date | datetime | None = None
    cars: tuple[CarRecord, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _fired_is_inactive(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = _normalise(data)
            if data.get("endDate") is not None:
                data["isActive"] = False
        return data

    @property
    def is_fired(self) -> bool:
        return self.end_date is not None or not self.is_active


def parse_workers(raw: Any, role: WorkerRole) -> list[WorkerRecord]:
    """Parse a backend list of workers, stamping the category on each."""
    if not isinstance(raw, list):
        return []
    return [
        WorkerRecord.model_validate({**_normalise(item), "role": role})
        for item in raw
        if isinstance(item, dict)
    ]


def _normalise(item: dict) -> dict:
    return {_lower_first(k) if isinstance(k, str) else k: v for k, v in item.items()}


def parse_cars(raw: Any) -> list[CarRecord]:
    if not isinstance(raw, list):
        return []
    return [CarRecord.model_validate(item) for item in raw if isinstance(item, dict)]


# ---------------------------------------------------------------------------
# Call results
# ---------------------------------------------------------------------------

class CreateWorkerResult(BackendModel):
    """Result of a create call.

    ``warning`` is set when the backend created the account but could not
    deliver the generated credentials; ``temp_password`` then carries the
    credential the admin has to hand over manually.
    """

    id: int | None = None
    warning: str | None = None
    temp_password: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _accept_bare_id(cls, data: Any) -> Any:
        if data is None:
            return {}
        if isinstance(data, int):
            return {"id": data}
        return data


class FireResult(BackendModel):
    """Outcome of a fire call.  Dispatchers never have affected calls."""

    affected_calls: int = 0

    @model_validator(mode="before")
    @classmethod
    def _accept_bare_count(cls, data: Any) -> Any:
        if data is None or isinstance(data, bool):
            return {}
        if isinstance(data, int):
            return {"affectedCalls": data}
        return data


class FiredWorkers(BackendModel):
    dispatchers: tuple[WorkerRecord, ...] = ()
    drivers: tuple[WorkerRecord, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _stamp_roles(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = _normalise(data)
        return {
            "dispatchers": parse_workers(data.get("dispatchers") or [], WorkerRole.DISPATCHER),
            "drivers": parse_workers(data.get("drivers") or [], WorkerRole.DRIVER),
        }

    @property
    def total(self) -> int:
        return len(self.dispatchers) + len(self.drivers)


class PasswordResult(BackendModel):
    success: bool = False
    message: str = ""


class UnreadMessage(BackendModel):
    id: int | None = None
    driver_id: int | None = Field(
        default=None,
        validation_alias=AliasChoices("driverId", "fromDriverId"),
    )
    sender: str | None = Field(default=None, validation_alias=AliasChoices("from", "sender"))
