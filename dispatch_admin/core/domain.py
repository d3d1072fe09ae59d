# dispatch_admin/core/domain.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union


# ============================================================================
# WORKER CATEGORIES
# ============================================================================

class WorkerRole(str, Enum):
    """Worker category managed by the console."""
    DISPATCHER = "dispatcher"
    DRIVER = "driver"


# ============================================================================
# NOTIFICATION REQUESTS
# ============================================================================

class Severity(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class ButtonStyle(str, Enum):
    NORMAL = "normal"
    CANCEL = "cancel"
    DESTRUCTIVE = "destructive"


ButtonAction = Callable[[], Union[None, Awaitable[Any]]]


@dataclass(frozen=True)
class DialogButton:
    text: str
    style: ButtonStyle = ButtonStyle.NORMAL
    action: Optional[ButtonAction] = None


@dataclass(frozen=True)
class Dialog:
    """Blocking modal dialog. At most one is visible at a time."""
    title: str
    message: str
    buttons: tuple[DialogButton, ...] = (DialogButton("OK"),)
    severity: Severity = Severity.INFO


@dataclass(frozen=True)
class Toast:
    """Transient notification; a new toast replaces the current one."""
    message: str
    severity: Severity = Severity.INFO
    duration_ms: int = 3000


NotificationRequest = Union[Dialog, Toast]


# ============================================================================
# FORM DRAFT
# ============================================================================

@dataclass
class FormDraft:
    """
    Transient editable copy of a record backing one open form dialog.

    ``values`` uses the backend's field names (``phoneNumber``, ``license``,
    ``year`` ...) so error keys line up with the form fields.  ``target_id``
    is None for a create form.
    """
    values: dict[str, Any] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)
    target_id: Optional[int] = None

    @property
    def is_edit(self) -> bool:
        return self.target_id is not None

    def get(self, name: str, default: Any = None) -> Any:
        return self.values.get(name, default)
