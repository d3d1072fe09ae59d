# dispatch_admin/infra/http_client.py
"""
Shared HTTP client session for backend calls.

Provides a lazy-initialized aiohttp.ClientSession singleton so every
collaborator (dispatchers, drivers, cars, user, messages) reuses one
connection pool instead of opening a session per request.

Shutdown
~~~~~~~~
Call ``close_all_sessions()`` once when the console is torn down.
"""
from __future__ import annotations

import aiohttp

from dispatch_admin.config import settings
from dispatch_admin.infra.logging_config import get_logger

logger = get_logger(__name__)

_sessions: dict[str, aiohttp.ClientSession] = {}


def _get_or_create(
    name: str,
    timeout: aiohttp.ClientTimeout,
    limit: int = 10,
) -> aiohttp.ClientSession:
    """Return an existing session or create a new one."""
    session = _sessions.get(name)
    if session is None or session.closed:
        session = aiohttp.ClientSession(
            timeout=timeout,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            connector=aiohttp.TCPConnector(
                keepalive_timeout=30,
                limit=limit,
                enable_cleanup_closed=True,
            ),
        )
        _sessions[name] = session
        logger.debug("HTTP session '%s' created (limit=%d)", name, limit)
    return session


def get_api_session() -> aiohttp.ClientSession:
    """Session for backend REST calls (total/connect timeouts from settings)."""
    return _get_or_create(
        "api",
        aiohttp.ClientTimeout(
            total=settings.api_timeout_seconds,
            connect=settings.api_connect_timeout_seconds,
        ),
        limit=10,
    )


async def close_all_sessions() -> None:
    """Gracefully close every managed session.  Call during console shutdown."""
    for name in list(_sessions):
        session = _sessions.pop(name, None)
        if session is not None and not session.closed:
            await session.close()
            logger.debug("HTTP session '%s' closed", name)
