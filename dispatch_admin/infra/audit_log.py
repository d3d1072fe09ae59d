# dispatch_admin/infra/audit_log.py
"""
Audit logging for workforce mutations.

Records create / update / fire / car changes issued from the console to
a dedicated ``audit`` logger (separate from the application log) with
structured context, so they can be routed to their own sink.

Never include credentials in ``detail``: temporary passwords are shown
to the admin once and must not reach log storage.
"""
from __future__ import annotations

import logging
from typing import Any

_audit_logger = logging.getLogger("audit")


def audit_event(
    action: str,
    *,
    category: str | None = None,
    worker_id: int | str | None = None,
    detail: str = "",
    extra: dict[str, Any] | None = None,
) -> None:
    """
    Record an audit event.

    Args:
        action: Action name (e.g., "worker.create", "worker.fire", "car.delete")
        category: Worker category affected ("dispatcher" / "driver")
        worker_id: Worker (or car) id affected, if known
        detail: Human-readable detail
        extra: Additional structured context
    """
    record = {
        "audit_action": action,
        "category": category or "",
        "worker_id": worker_id if worker_id is not None else "",
        "detail": detail,
    }
    if extra:
        record.update(extra)

    _audit_logger.info(
        f"AUDIT: {action} category={category or '-'} id={worker_id if worker_id is not None else '-'} {detail}",
        extra=record,
    )
