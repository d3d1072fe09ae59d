# dispatch_admin/infra/background.py
"""Fire-and-forget task helpers for the console's event loop."""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable

from dispatch_admin.infra.logging_config import get_logger

logger = get_logger(__name__)


def safe_create_task(coro: Awaitable[Any], *, name: str | None = None) -> asyncio.Task:
    """Create a background task with exception logging to avoid 'Task exception was never retrieved'."""
    task = asyncio.ensure_future(coro)
    if name:
        task.set_name(name)
    task.add_done_callback(_log_task_exception)
    return task


def _log_task_exception(task: asyncio.Task) -> None:
    """Callback: log unhandled exceptions from fire-and-forget tasks."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(
            f"Background task {task.get_name()!r} failed: {exc}",
            exc_info=(type(exc), exc, exc.__traceback__),
        )
