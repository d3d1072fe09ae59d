# dispatch_admin/infra/unread_sync.py
"""
Unread-message badge synchronizer.

Polls ``get_unread`` on a fixed interval and keeps a per-driver unread
count.  Ticks never wait for the previous fetch; each fetch carries a
sequence number and a response older than the last applied one is
dropped, so a slow early poll can never overwrite a newer result.

A failed fetch resets every count to zero until the next successful
poll.  While a driver's message thread is open their badge is hidden
and their unread messages are marked as read; closing the thread
triggers an immediate out-of-band refresh.

Usage:
    sync = UnreadMessageSynchronizer(backend.messages)
    handle = sync.start()
    ...
    await handle.cancel()
"""
from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Callable

from dispatch_admin.admin.errors import TransportError
from dispatch_admin.admin.models import UnreadMessage
from dispatch_admin.config import settings
from dispatch_admin.core.ports import MessagesApi
from dispatch_admin.infra.background import safe_create_task
from dispatch_admin.infra.logging_config import LogContext, get_logger
from dispatch_admin.infra.metrics import inc_counter

logger = get_logger(__name__)

CountsListener = Callable[[dict[int, int]], None]


class PollHandle:
    """Returned by :meth:`UnreadMessageSynchronizer.start`; cancelling stops all polling."""

    def __init__(self, sync: "UnreadMessageSynchronizer") -> None:
        self._sync = sync

    @property
    def active(self) -> bool:
        return self._sync.running

    async def cancel(self) -> None:
        await self._sync.stop()


class UnreadMessageSynchronizer:
    def __init__(self, messages: MessagesApi, *, interval: float | None = None) -> None:
        self._messages = messages
        self._interval = settings.unread_poll_interval_seconds if interval is None else interval
        self._counts: dict[int, int] = {}
        self._unread_ids: dict[int, list[int]] = {}
        self._open_threads: set[int] = set()
        self._listeners: list[CountsListener] = []

        self._issued = 0
        self._applied = 0

        self._task: asyncio.Task | None = None
        self._inflight: set[asyncio.Task] = set()
        self._running = False
        self._handle: PollHandle | None = None

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._running

    @property
    def counts(self) -> dict[int, int]:
        """Visible badge counts: drivers with an open thread are left out."""
        return {d: n for d, n in self._counts.items() if d not in self._open_threads and n > 0}

    def count_for(self, driver_id: int) -> int:
        return self.counts.get(driver_id, 0)

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    def subscribe(self, listener: CountsListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _emit(self) -> None:
        counts = self.counts
        for listener in list(self._listeners):
            try:
                listener(counts)
            except Exception:
                logger.error("Unread counts listener failed", exc_info=True)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> PollHandle:
        """Begin polling (first fetch immediately).  Must be called inside a running loop."""
        if self._running and self._handle is not None:
            logger.warning("Unread poller already running")
            return self._handle

        self._running = True
        self._task = asyncio.get_running_loop().create_task(self._poll_loop(), name="unread_poller")
        self._handle = PollHandle(self)
        logger.info(f"Unread poller started: interval={self._interval}s")
        return self._handle

    async def stop(self) -> None:
        """Stop the timer and cancel fetches still in flight."""
        self._running = False
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

        pending = list(self._inflight)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._inflight.clear()
        logger.info("Unread poller stopped")

    async def _poll_loop(self) -> None:
        while self._running:
            self._spawn_fetch()
            await asyncio.sleep(self._interval)

    def _spawn_fetch(self) -> asyncio.Task:
        task = safe_create_task(self.refresh(), name="unread_fetch")
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    # ------------------------------------------------------------------
    # Fetch
    # ------------------------------------------------------------------

    async def refresh(self) -> dict[int, int]:
        """One fetch; applies its result unless a newer fetch already landed."""
        self._issued += 1
        seq = self._issued
        try:
            messages = await self._messages.get_unread()
        except TransportError as exc:
            logger.warning(f"Unread fetch failed, clearing badges: {exc}")
            inc_counter("unread_poll_total", status="error")
            messages = []
        else:
            inc_counter("unread_poll_total", status="ok")
        self._apply(seq, messages)
        return self.counts

    def _apply(self, seq: int, messages: list[UnreadMessage]) -> None:
        if seq < self._applied:
            logger.debug(f"Dropping stale unread response #{seq} (applied #{self._applied})")
            inc_counter("unread_poll_stale")
            return
        self._applied = seq

        ids: dict[int, list[int]] = defaultdict(list)
        counts: dict[int, int] = defaultdict(int)
        for message in messages:
            if message.driver_id is None:
                continue
            counts[message.driver_id] += 1
            if message.id is not None:
                ids[message.driver_id].append(message.id)

        self._counts = dict(counts)
        self._unread_ids = dict(ids)
        self._emit()

    # ------------------------------------------------------------------
    # Thread visibility
    # ------------------------------------------------------------------

    async def open_thread(self, driver_id: int) -> None:
        """Hide *driver_id*'s badge and mark their known unread messages as read."""
        self._open_threads.add(driver_id)
        self._emit()

        message_ids = self._unread_ids.get(driver_id) or []
        if not message_ids:
            return
        log_ctx = LogContext(logger, driver_id=driver_id)
        try:
            await self._messages.mark_as_read(list(message_ids))
        except TransportError as exc:
            log_ctx.warning(f"Mark-as-read failed for {len(message_ids)} messages: {exc}")
            return
        log_ctx.debug(f"Marked {len(message_ids)} messages as read")

    async def close_thread(self, driver_id: int) -> dict[int, int]:
        """Show *driver_id*'s badge again and refresh immediately."""
        self._open_threads.discard(driver_id)
        return await self.refresh()
