# dispatch_admin/console/forms.py
"""
Form sessions: one open create/edit dialog and its draft.

A session owns the draft while the dialog is open.  Editing a field
clears that field's error.  ``submit`` closes the session only when the
change was saved; on a validation or backend failure the draft (and the
typed values) stay put so the admin can correct and retry.
"""
from __future__ import annotations

from typing import Any

from dispatch_admin.admin.errors import (
    BusyError,
    FleetLockedError,
    TransportError,
    ValidationError,
    WorkerInactiveError,
)
from dispatch_admin.admin.fleet import FleetManager, car_draft_from, new_car_draft
from dispatch_admin.admin.models import CarRecord, WorkerRecord
from dispatch_admin.admin.service import WorkforceLifecycleManager, draft_from, new_draft
from dispatch_admin.core.domain import FormDraft, WorkerRole
from dispatch_admin.core.phone_mask import PhoneEdit, apply_key, set_text
from dispatch_admin.infra.logging_config import get_logger

logger = get_logger(__name__)

PHONE_FIELD = "phoneNumber"


class FormSession:
    """Base class; subclasses implement :meth:`_save` and :attr:`submitting`."""

    def __init__(self, draft: FormDraft) -> None:
        self.draft = draft
        self.closed = False

    @property
    def is_edit(self) -> bool:
        return self.draft.is_edit

    @property
    def errors(self) -> dict[str, str]:
        return self.draft.errors

    @property
    def submitting(self) -> bool:
        raise NotImplementedError

    @property
    def can_submit(self) -> bool:
        return not self.closed and not self.submitting

    def set_field(self, name: str, value: Any) -> None:
        self.draft.values[name] = value
        self.draft.errors.pop(name, None)

    def phone_key(self, key: str, caret: int) -> PhoneEdit:
        """Route one key press on the phone field through the mask."""
        edit = apply_key(str(self.draft.get(PHONE_FIELD) or ""), key, caret)
        self.set_field(PHONE_FIELD, edit.value)
        return edit

    def phone_paste(self, text: str) -> PhoneEdit:
        edit = set_text(text)
        self.set_field(PHONE_FIELD, edit.value)
        return edit

    def cancel(self) -> None:
        """Close without saving; the draft is discarded."""
        self.closed = True

    async def _save(self) -> None:
        raise NotImplementedError

    async def submit(self) -> bool:
        """
        Save the draft.

        Returns True when the change was saved and the form closed.  A
        second submit while one is in flight is refused.
        """
        if not self.can_submit:
            logger.debug("Submit ignored: form closed or already submitting")
            return False
        try:
            await self._save()
        except ValidationError as exc:
            self.draft.errors = dict(exc.errors)
            return False
        except (TransportError, BusyError, FleetLockedError, WorkerInactiveError) as exc:
            logger.debug(f"Submit not saved: {exc.detail}")
            return False
        self.closed = True
        return True


class WorkerForm(FormSession):
    def __init__(self, manager: WorkforceLifecycleManager, role: WorkerRole, draft: FormDraft) -> None:
        super().__init__(draft)
        self.manager = manager
        self.role = role

    @classmethod
    def create(cls, manager: WorkforceLifecycleManager, role: WorkerRole) -> "WorkerForm":
        return cls(manager, role, new_draft(role))

    @classmethod
    def edit(cls, manager: WorkforceLifecycleManager, record: WorkerRecord) -> "WorkerForm":
        return cls(manager, record.role, draft_from(record))

    @property
    def submitting(self) -> bool:
        return self.manager.is_submitting(self.role)

    async def _save(self) -> None:
        if self.is_edit:
            await self.manager.update(self.role, self.draft)
        else:
            await self.manager.create(self.role, self.draft)


class CarForm(FormSession):
    def __init__(self, fleet: FleetManager, driver_id: int, draft: FormDraft) -> None:
        super().__init__(draft)
        self.fleet = fleet
        self.driver_id = driver_id

    @classmethod
    def create(cls, fleet: FleetManager, driver_id: int) -> "CarForm":
        return cls(fleet, driver_id, new_car_draft())

    @classmethod
    def edit(cls, fleet: FleetManager, driver_id: int, car: CarRecord) -> "CarForm":
        return cls(fleet, driver_id, car_draft_from(car))

    @property
    def submitting(self) -> bool:
        return self.fleet.snapshot(self.driver_id).submitting

    async def _save(self) -> None:
        if self.is_edit:
            await self.fleet.update(self.driver_id, self.draft)
        else:
            await self.fleet.create(self.driver_id, self.draft)
