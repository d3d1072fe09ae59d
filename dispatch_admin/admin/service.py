# dispatch_admin/admin/service.py
"""
Workforce lifecycle manager: the single owner of the active dispatcher
and driver lists, and the only place that mutates them.

Responsibilities:
    1. Validate drafts before any network call
    2. Call the backend collaborators
    3. Report outcomes through the NotificationMediator
    4. Reload the affected list after every successful mutation
    5. Emit immutable snapshots to subscribed views

State per category is Active → Fired.  Fired is terminal: nothing here
(or in the backend contract) turns a fired worker back into an active one.

Consistency over latency: the list shown is always the last successful
server read.  Mutations never splice the local list; they reload it.
"""
from __future__ import annotations

import inspect
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Optional, Union

from dispatch_admin.admin.errors import (
    BusyError,
    ConsoleError,
    TransportError,
    ValidationError,
    WorkerInactiveError,
)
from dispatch_admin.admin.models import CreateWorkerResult, FireResult, WorkerRecord
from dispatch_admin.core.domain import FormDraft, Severity, WorkerRole
from dispatch_admin.core.notifications import NotificationMediator
from dispatch_admin.core.phone_mask import format_phone, strip_formatting
from dispatch_admin.core.ports import Backend
from dispatch_admin.core.validators import rules_for, validate
from dispatch_admin.infra.audit_log import audit_event
from dispatch_admin.infra.logging_config import LogContext, get_logger, mask_email, mask_phone
from dispatch_admin.infra.metrics import inc_counter

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CategoryState:
    records: tuple[WorkerRecord, ...] = ()
    loading: bool = False
    submitting: bool = False


@dataclass(frozen=True)
class WorkforceSnapshot:
    dispatchers: CategoryState = field(default_factory=CategoryState)
    drivers: CategoryState = field(default_factory=CategoryState)

    def for_role(self, role: WorkerRole) -> CategoryState:
        return self.drivers if role is WorkerRole.DRIVER else self.dispatchers


SnapshotListener = Callable[[WorkforceSnapshot], None]
FiredHook = Callable[[WorkerRole, int], Union[None, Awaitable[None]]]
ErrorHook = Callable[[ConsoleError], None]


# ---------------------------------------------------------------------------
# Drafts
# ---------------------------------------------------------------------------

def new_draft(role: WorkerRole) -> FormDraft:
    """Empty create-form draft for *role*."""
    values: dict[str, Any] = {"name": "", "email": "", "phoneNumber": ""}
    if role is WorkerRole.DRIVER:
        values["license"] = ""
    else:
        values["isAdmin"] = False
    return FormDraft(values=values)


def draft_from(record: WorkerRecord) -> FormDraft:
    """Edit-form draft copied from an active record (phone shown masked)."""
    values: dict[str, Any] = {
        "name": record.name,
        "email": record.email,
        "phoneNumber": format_phone(record.phone_number),
    }
    if record.role is WorkerRole.DRIVER:
        values["license"] = record.license or ""
        if record.user_name:
            values["userName"] = record.user_name
    else:
        values["isAdmin"] = record.is_admin
    if record.join_date is not None:
        values["joinDate"] = record.join_date.isoformat()
    return FormDraft(values=values, target_id=record.id)


def _worker_payload(role: WorkerRole, draft: FormDraft, *, password: str | None = None) -> dict[str, Any]:
    """
    Full record body for create/update.  Phone numbers go out as 10 digits.

    Only a create marks the record active; an update never carries the
    flag, so it cannot bring a fired worker back.
    """
    v = draft.values
    payload: dict[str, Any] = {
        "name": str(v.get("name") or "").strip(),
        "email": str(v.get("email") or "").strip(),
        "phoneNumber": strip_formatting(v.get("phoneNumber")),
    }
    if draft.target_id is None:
        payload["isActive"] = True
    if role is WorkerRole.DRIVER:
        payload["license"] = str(v.get("license") or "").strip()
        if v.get("userName"):
            payload["userName"] = v["userName"]
    else:
        payload["isAdmin"] = bool(v.get("isAdmin", False))
    if v.get("joinDate"):
        payload["joinDate"] = v["joinDate"]
    if draft.target_id is not None:
        payload["id"] = draft.target_id
    if password is not None:
        payload["password"] = password
    return payload


def _title(role: WorkerRole) -> str:
    return role.value.capitalize()


def fire_toast_message(record_name: str, role: WorkerRole, result: FireResult) -> str:
    """Confirmation text after a fire; mentions reassignment only when calls moved."""
    message = f"{record_name or _title(role)} has been fired."
    if role is WorkerRole.DRIVER and result.affected_calls > 0:
        calls = "call was" if result.affected_calls == 1 else "calls were"
        message += f" {result.affected_calls} active {calls} reassigned to other drivers."
    return message


def matches(record: WorkerRecord, term: str) -> bool:
    """Case-insensitive match on name, email, user name, phone or license."""
    term = term.strip().lower()
    if not term:
        return True
    digits = strip_formatting(term)
    return (
        term in record.name.lower()
        or term in record.email.lower()
        or term in (record.user_name or "").lower()
        or term in (record.license or "").lower()
        or (bool(digits) and digits in strip_formatting(record.phone_number))
    )


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------

class WorkforceLifecycleManager:
    """
    Owns the active dispatcher and driver lists.

    Views call the intent methods below and re-render from the snapshots
    passed to their listeners; they never touch the lists directly.
    """

    def __init__(
        self,
        backend: Backend,
        notifications: NotificationMediator,
        *,
        on_error: ErrorHook | None = None,
    ) -> None:
        self._backend = backend
        self._notifications = notifications
        self._on_error = on_error
        self._snapshot = WorkforceSnapshot()
        self._listeners: list[SnapshotListener] = []
        self._fired_hooks: list[FiredHook] = []

    # ------------------------------------------------------------------
    # Snapshot plumbing
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> WorkforceSnapshot:
        return self._snapshot

    def records(self, role: WorkerRole) -> tuple[WorkerRecord, ...]:
        return self._snapshot.for_role(role).records

    def is_submitting(self, role: WorkerRole) -> bool:
        return self._snapshot.for_role(role).submitting

    def is_active(self, role: WorkerRole, worker_id: int) -> bool:
        """True if *worker_id* is in the last loaded active list."""
        return any(r.id == worker_id and not r.is_fired for r in self.records(role))

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def on_fired(self, hook: FiredHook) -> None:
        """Register a follow-up run after a successful fire (fleet, fired view)."""
        self._fired_hooks.append(hook)

    def _update(self, role: WorkerRole, **changes: Any) -> None:
        state = replace(self._snapshot.for_role(role), **changes)
        if role is WorkerRole.DRIVER:
            self._snapshot = replace(self._snapshot, drivers=state)
        else:
            self._snapshot = replace(self._snapshot, dispatchers=state)
        for listener in list(self._listeners):
            listener(self._snapshot)

    def _api(self, role: WorkerRole):
        return self._backend.drivers if role is WorkerRole.DRIVER else self._backend.dispatchers

    def _report(self, exc: ConsoleError) -> None:
        if self._on_error is not None:
            self._on_error(exc)

    def _guard(self, role: WorkerRole) -> None:
        if self.is_submitting(role):
            raise BusyError(f"A {role.value} change is already being saved")

    def _ensure_active(self, role: WorkerRole, worker_id: int) -> None:
        if not self.is_active(role, worker_id):
            inc_counter("workforce_inactive_refused", category=role.value)
            raise WorkerInactiveError(f"{_title(role)} {worker_id} is not active and cannot be changed")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_active(self, role: WorkerRole) -> list[WorkerRecord]:
        """
        Fetch the active set for *role* and publish it.

        A failed read degrades to an empty list: the error is logged and
        handed to the error hook, never raised.
        """
        self._update(role, loading=True)
        try:
            records = await self._api(role).get_active()
        except TransportError as exc:
            logger.error(f"Failed to load {role.value}s: {exc}")
            inc_counter("workforce_load_failed", category=role.value)
            self._report(exc)
            records = []
        self._update(role, records=tuple(records), loading=False)
        return list(records)

    async def get(self, role: WorkerRole, worker_id: int) -> Optional[WorkerRecord]:
        """Single record by id; None if the read failed."""
        try:
            return await self._api(role).get_by_id(worker_id)
        except TransportError as exc:
            logger.error(f"Failed to load {role.value} {worker_id}: {exc}")
            self._report(exc)
            return None

    def search(self, role: WorkerRole, term: str) -> list[WorkerRecord]:
        """Filter the current snapshot; never hits the backend."""
        return [r for r in self.records(role) if matches(r, term)]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _check(self, role: WorkerRole, draft: FormDraft) -> None:
        errors = validate(draft.values, rules_for(role))
        draft.errors = dict(errors)
        if errors:
            inc_counter("workforce_validation_failed", category=role.value)
            raise ValidationError(errors)

    def _write_failed(self, role: WorkerRole, verb: str, exc: TransportError) -> None:
        logger.error(f"Failed to {verb} {role.value}: {exc}")
        inc_counter("workforce_write_failed", category=role.value, action=verb)
        self._notifications.show_error(
            "Error",
            f"Failed to {verb} {role.value}. Please try again.",
        )

    async def create(self, role: WorkerRole, draft: FormDraft) -> CreateWorkerResult:
        """
        Create a worker from *draft*.

        The password is sent empty: the backend generates one and emails
        it.  When delivery fails the backend returns a warning plus the
        temporary password, which is shown once in a blocking dialog.

        Raises:
            BusyError: Another change for *role* is in flight
            ValidationError: The draft has invalid fields (no call made)
            TransportError: The backend call failed (error dialog shown)
        """
        self._guard(role)
        self._check(role, draft)
        payload = _worker_payload(role, draft, password="")
        log_ctx = LogContext(logger, category=role.value)

        self._update(role, submitting=True)
        try:
            result = await self._api(role).create(payload)
        except TransportError as exc:
            self._write_failed(role, "save", exc)
            raise
        finally:
            self._update(role, submitting=False)

        log_ctx.info(
            f"{_title(role)} created: email={mask_email(payload['email'])}, "
            f"phone={mask_phone(payload['phoneNumber'])}, id={result.id}"
        )
        audit_event(f"{role.value}.create", category=role.value, worker_id=result.id)
        inc_counter("workforce_created", category=role.value)

        if result.warning:
            log_ctx.warning(f"{_title(role)} created with delivery warning: {result.warning}")
            self._notifications.show_dialog(
                "Warning",
                f"Warning: {result.warning}\n\nTemporary Password: {result.temp_password or '(not provided)'}",
                severity=Severity.WARNING,
            )
        else:
            self._notifications.show_toast(f"{_title(role)} {payload['name']} created", Severity.SUCCESS)

        await self.list_active(role)
        return result

    async def update(self, role: WorkerRole, draft: FormDraft) -> None:
        """
        Overwrite the full record behind an edit draft.

        Raises:
            BusyError / ValidationError / TransportError: as for :meth:`create`
            WorkerInactiveError: The target is not in the active list
        """
        if draft.target_id is None:
            raise ValueError("update() needs an edit draft (target_id is None)")
        self._guard(role)
        self._ensure_active(role, draft.target_id)
        self._check(role, draft)
        payload = _worker_payload(role, draft)

        self._update(role, submitting=True)
        try:
            await self._api(role).update(payload)
        except TransportError as exc:
            self._write_failed(role, "save", exc)
            raise
        finally:
            self._update(role, submitting=False)

        LogContext(logger, category=role.value, worker_id=draft.target_id).info(f"{_title(role)} updated")
        audit_event(f"{role.value}.update", category=role.value, worker_id=draft.target_id,
                    detail=f"fields={sorted(payload)}")
        self._notifications.show_toast(f"{_title(role)} {payload['name']} updated", Severity.SUCCESS)

        await self.list_active(role)

    def request_fire(self, role: WorkerRole, worker: WorkerRecord) -> None:
        """
        First step of a fire: open the confirmation dialog.

        Nothing is sent until the admin presses "Fire"; "Cancel" just
        closes the dialog.  Raises WorkerInactiveError for a worker who
        is no longer active.
        """
        self._guard(role)
        self._ensure_active(role, worker.id)
        message = f"Are you sure you want to fire {worker.name}? This cannot be undone."
        if role is WorkerRole.DRIVER:
            message += " Their active calls will be reassigned to other drivers."

        async def _confirmed() -> None:
            try:
                await self.fire(role, worker.id, name=worker.name)
            except (WorkerInactiveError, BusyError) as exc:
                logger.warning(f"Fire of {role.value} {worker.id} not sent: {exc.detail}")

        self._notifications.confirm(
            f"Fire {_title(role)}",
            message,
            confirm_text="Fire",
            on_confirm=_confirmed,
        )

    async def fire(self, role: WorkerRole, worker_id: int, *, name: str = "") -> Optional[FireResult]:
        """
        Active → Fired.  Terminal.

        For a driver the backend also reassigns their active calls and
        notifies them; the number of moved calls is reported in the toast.
        A failure is logged and shown as an error dialog and None is
        returned; the active list is left as it was.  A worker missing from
        the active list raises WorkerInactiveError and nothing is sent.
        """
        self._guard(role)
        self._ensure_active(role, worker_id)
        log_ctx = LogContext(logger, category=role.value, worker_id=worker_id)

        self._update(role, submitting=True)
        try:
            if role is WorkerRole.DRIVER:
                result = await self._backend.user.fire_driver(worker_id)
            else:
                result = await self._backend.user.fire_dispatcher(worker_id)
        except TransportError as exc:
            self._write_failed(role, "fire", exc)
            return None
        finally:
            self._update(role, submitting=False)

        log_ctx.info(f"{_title(role)} fired: affected_calls={result.affected_calls}")
        audit_event(
            f"{role.value}.fire", category=role.value, worker_id=worker_id,
            detail=f"affected_calls={result.affected_calls}",
        )
        inc_counter("workforce_fired", category=role.value)
        self._notifications.show_toast(fire_toast_message(name, role, result), Severity.SUCCESS)

        await self.list_active(role)
        for hook in list(self._fired_hooks):
            outcome = hook(role, worker_id)
            if inspect.isawaitable(outcome):
                await outcome
        return result
