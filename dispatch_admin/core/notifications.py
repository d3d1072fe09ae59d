"""
Dialog / toast mediator shared by every console component.

One ``NotificationMediator`` is built per console instance and handed to
the managers that need it; it has no business logic and only holds the
two presentation slots:

* **Dialog channel** – a single slot.  ``show_dialog`` replaces whatever
  is pending.  ``press`` runs the button's action and then always closes
  the dialog the button belonged to.
* **Toast channel** – a single slot with auto-dismiss.  A new toast
  replaces the current one immediately and cancels its timer.

Renderers either subscribe a listener or drain the injectable
``asyncio.Queue`` of :class:`NotificationEvent`.

Usage:
    mediator = NotificationMediator(events=asyncio.Queue())
    mediator.show_dialog("Confirm", "Are you sure?", [
        DialogButton("Cancel", ButtonStyle.CANCEL),
        DialogButton("Delete", ButtonStyle.DESTRUCTIVE, action=delete_item),
    ])
    mediator.show_toast("Call sent successfully!", Severity.SUCCESS)
"""
from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence

from dispatch_admin.core.domain import (
    ButtonStyle,
    Dialog,
    DialogButton,
    NotificationRequest,
    Severity,
    Toast,
)
from dispatch_admin.infra.background import safe_create_task
from dispatch_admin.infra.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_TOAST_MS = 3000


class EventKind(str, Enum):
    DIALOG_OPENED = "dialog_opened"
    DIALOG_CLOSED = "dialog_closed"
    TOAST_SHOWN = "toast_shown"
    TOAST_CLOSED = "toast_closed"


@dataclass(frozen=True)
class NotificationEvent:
    kind: EventKind
    request: Optional[NotificationRequest]


Listener = Callable[[NotificationEvent], None]


class NotificationMediator:
    """Single dialog slot plus single toast slot."""

    def __init__(
        self,
        events: asyncio.Queue | None = None,
        *,
        default_toast_ms: int = DEFAULT_TOAST_MS,
    ) -> None:
        self._events = events
        self._default_toast_ms = default_toast_ms
        self._dialog: Dialog | None = None
        self._toast: Toast | None = None
        self._toast_timer: asyncio.TimerHandle | None = None
        self._listeners: list[Listener] = []
        self._pending: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    @property
    def dialog(self) -> Dialog | None:
        return self._dialog

    @property
    def toast(self) -> Toast | None:
        return self._toast

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a renderer; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _publish(self, kind: EventKind, request: NotificationRequest | None) -> None:
        event = NotificationEvent(kind, request)
        if self._events is not None:
            self._events.put_nowait(event)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.error(f"Notification listener failed on {kind.value}", exc_info=True)

    # ------------------------------------------------------------------
    # Dialog channel
    # ------------------------------------------------------------------

    def show_dialog(
        self,
        title: str,
        message: str,
        buttons: Sequence[DialogButton] | None = None,
        severity: Severity = Severity.INFO,
    ) -> Dialog:
        """Open a dialog, replacing any dialog already showing."""
        dialog = Dialog(
            title=title,
            message=message,
            buttons=tuple(buttons) if buttons else (DialogButton("OK"),),
            severity=severity,
        )
        if self._dialog is not None:
            logger.debug(f"Dialog '{self._dialog.title}' replaced by '{title}'")
        self._dialog = dialog
        self._publish(EventKind.DIALOG_OPENED, dialog)
        return dialog

    def show_error(self, title: str, message: str) -> Dialog:
        return self.show_dialog(title, message, severity=Severity.ERROR)

    def confirm(
        self,
        title: str,
        message: str,
        *,
        confirm_text: str,
        on_confirm: Callable,
        cancel_text: str = "Cancel",
    ) -> Dialog:
        """Two-button confirmation: a cancel button with no action and a destructive one."""
        return self.show_dialog(
            title,
            message,
            [
                DialogButton(cancel_text, ButtonStyle.CANCEL),
                DialogButton(confirm_text, ButtonStyle.DESTRUCTIVE, action=on_confirm),
            ],
            severity=Severity.WARNING,
        )

    def press(self, index: int) -> asyncio.Task | None:
        """Invoke button *index* of the current dialog.

        The action runs first; async actions are scheduled as a background
        task which is returned so callers can await the outcome.  The
        dialog that owned the button is then closed even if the action
        raised.  A dialog opened by the action itself stays open.
        """
        dialog = self._dialog
        if dialog is None:
            raise LookupError("No dialog is open")
        button = dialog.buttons[index]

        task: asyncio.Task | None = None
        try:
            if button.action is not None:
                result = button.action()
                if inspect.isawaitable(result):
                    task = safe_create_task(result, name=f"dialog_action_{button.text}")
                    self._pending.add(task)
                    task.add_done_callback(self._pending.discard)
        finally:
            if self._dialog is dialog:
                self._close_dialog()
        return task

    def press_text(self, text: str) -> asyncio.Task | None:
        """Invoke the button labelled *text* on the current dialog."""
        if self._dialog is None:
            raise LookupError("No dialog is open")
        for i, button in enumerate(self._dialog.buttons):
            if button.text == text:
                return self.press(i)
        raise LookupError(f"Dialog '{self._dialog.title}' has no '{text}' button")

    def close_dialog(self) -> None:
        """Close without running any action (Escape / backdrop click)."""
        if self._dialog is not None:
            self._close_dialog()

    def _close_dialog(self) -> None:
        closed = self._dialog
        self._dialog = None
        self._publish(EventKind.DIALOG_CLOSED, closed)

    # ------------------------------------------------------------------
    # Toast channel
    # ------------------------------------------------------------------

    def show_toast(
        self,
        message: str,
        severity: Severity = Severity.INFO,
        duration_ms: int | None = None,
    ) -> Toast:
        """Show a toast, replacing the current one regardless of its remaining time."""
        toast = Toast(
            message=message,
            severity=severity,
            duration_ms=self._default_toast_ms if duration_ms is None else duration_ms,
        )
        self._cancel_toast_timer()
        self._toast = toast
        self._publish(EventKind.TOAST_SHOWN, toast)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, toast stays until closed")
        else:
            self._toast_timer = loop.call_later(
                toast.duration_ms / 1000, self._expire_toast, toast,
            )
        return toast

    def close_toast(self) -> None:
        self._cancel_toast_timer()
        if self._toast is not None:
            closed = self._toast
            self._toast = None
            self._publish(EventKind.TOAST_CLOSED, closed)

    def _expire_toast(self, toast: Toast) -> None:
        self._toast_timer = None
        if self._toast is toast:
            self.close_toast()

    def _cancel_toast_timer(self) -> None:
        if self._toast_timer is not None:
            self._toast_timer.cancel()
            self._toast_timer = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def drain(self) -> None:
        """Wait for every action task started from a dialog button."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def aclose(self) -> None:
        """Teardown: finish pending actions and stop the toast timer."""
        await self.drain()
        self._cancel_toast_timer()
