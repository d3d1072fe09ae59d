# dispatch_admin/infra/backend_client.py
"""
REST adapter for the dispatch backend.

Implements the collaborator protocols in ``dispatch_admin.core.ports`` on
top of the shared aiohttp session.

Error classification (TransportError.retryable):
- 401 / 403                  → NOT retryable (token expired, not allowed)
- Other 4xx                  → NOT retryable (bad payload, missing record)
- 408 / 429                  → retryable  (backoff then retry)
- 5xx                        → retryable  (transient)
- Network / timeout          → retryable  (transient)
- Malformed response body    → NOT retryable

Retries are applied to idempotent calls only.  ``create`` calls are sent
exactly once.
"""
from __future__ import annotations

import asyncio
from typing import Any, Callable

import aiohttp
from pydantic import ValidationError as PydanticValidationError

from dispatch_admin.admin.errors import TransportError
from dispatch_admin.admin.models import (
    CarRecord,
    CreateWorkerResult,
    FireResult,
    FiredWorkers,
    PasswordResult,
    UnreadMessage,
    WorkerRecord,
    parse_cars,
    parse_workers,
)
from dispatch_admin.config import settings
from dispatch_admin.core.domain import WorkerRole
from dispatch_admin.infra.http_client import get_api_session
from dispatch_admin.infra.logging_config import get_logger
from dispatch_admin.infra.metrics import inc_counter
from dispatch_admin.infra.retry import retry_on_transient_error

logger = get_logger(__name__)


class Endpoints:
    DISPATCHERS_ACTIVE = "/api/User/ActiveDispatchers"
    DISPATCHER_BY_ID = "/api/User/DispatcherById"
    DISPATCHER_CREATE = "/api/User/AddDispatcher"
    DISPATCHER_UPDATE = "/api/User/UpdateDispatcher"

    DRIVERS_ALL = "/api/User/AllDrivers"
    DRIVERS_ACTIVE = "/api/User/ActiveDrivers"
    DRIVER_BY_ID = "/api/User/DriverById"
    DRIVER_CREATE = "/api/User/AddDriver"
    DRIVER_UPDATE = "/api/User/UpdateDriver"

    CARS_BY_DRIVER = "/api/User/getCars"
    CAR_CREATE = "/api/User/AddCar"
    CAR_UPDATE = "/api/User/UpdateCar"
    CAR_DELETE = "/api/User/DeleteCar"

    IS_ADMIN = "/api/User/isAdmin"
    FIRE_DRIVER = "/api/User/FireDriver"
    FIRE_DISPATCHER = "/api/User/FireDispatcher"
    FIRED_WORKERS = "/api/User/FiredWorkers"
    UPDATE_PASSWORD = "/api/User/UpdatePassword"
    FORGOT_PASSWORD = "/api/User/ForgotPassword"

    MESSAGES_UNREAD = "/api/Communication/Unread"
    MESSAGES_MARK_READ = "/api/Communication/MarkAsRead"


_NO_BODY = object()


# ---------------------------------------------------------------------------
# Low-level client
# ---------------------------------------------------------------------------

class ApiClient:
    """JSON-over-HTTP with TransportError classification."""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        session_factory: Callable[[], aiohttp.ClientSession] = get_api_session,
    ) -> None:
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.token = token if token is not None else settings.api_token
        self._session_factory = session_factory

    def _headers(self) -> dict[str, str]:
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}

    async def request(
        self,
        method: str,
        path: str,
        *,
        action: str,
        params: dict[str, Any] | None = None,
        body: Any = _NO_BODY,
    ) -> Any:
        """
        Execute one backend call.

        Args:
            method: HTTP method
            path: Endpoint path (see :class:`Endpoints`)
            action: Human name of the call, carried on TransportError
            params: Query string parameters
            body: JSON body (may be a bare number, e.g. a worker id)

        Returns:
            Decoded JSON body, or None for an empty response

        Raises:
            TransportError: On network errors and non-2xx responses
        """
        url = f"{self.base_url}{path}"
        kwargs: dict[str, Any] = {"headers": self._headers()}
        if params:
            kwargs["params"] = params
        if body is not _NO_BODY:
            kwargs["json"] = body

        try:
            session = self._session_factory()
            async with session.request(method, url, **kwargs) as resp:
                payload = await _safe_response_json(resp)

                if 200 <= resp.status < 300:
                    inc_counter("backend_calls_total", status="ok")
                    logger.debug(f"Backend {method} {path} -> {resp.status}")
                    return payload

                message = _error_message(payload, resp.status)

                if resp.status in (401, 403):
                    logger.error(f"Backend auth error on '{action}': {message}")
                    inc_counter("backend_calls_total", status="auth_error")
                    raise TransportError(resp.status, message, action=action, retryable=False)

                if resp.status in (408, 429) or resp.status >= 500:
                    logger.warning(f"Backend transient error on '{action}': status={resp.status}, msg={message}")
                    inc_counter("backend_calls_total", status="transient")
                    raise TransportError(resp.status, message, action=action, retryable=True)

                logger.warning(f"Backend rejected '{action}': status={resp.status}, msg={message}")
                inc_counter("backend_calls_total", status="rejected")
                raise TransportError(resp.status, message, action=action, retryable=False)

        except TransportError:
            raise
        except aiohttp.ClientError as exc:
            logger.error(f"Backend connection error on '{action}': {exc}")
            inc_counter("backend_calls_total", status="connection_error")
            raise TransportError(0, str(exc), action=action, retryable=True) from exc
        except asyncio.TimeoutError as exc:
            logger.error(f"Backend timeout on '{action}'")
            inc_counter("backend_calls_total", status="timeout")
            raise TransportError(0, "timeout", action=action, retryable=True) from exc


async def _safe_response_json(resp: aiohttp.ClientResponse) -> Any:
    """Decode a JSON body; None when empty or not JSON."""
    try:
        return await resp.json(content_type=None)
    except (ValueError, aiohttp.ContentTypeError):
        return None


def _error_message(payload: Any, status: int) -> str:
    if isinstance(payload, dict):
        for key in ("message", "Message", "title", "error"):
            if payload.get(key):
                return str(payload[key])
    if isinstance(payload, str) and payload:
        return payload
    return f"HTTP {status}"


def _parse(action: str, parser: Callable[[Any], Any], raw: Any) -> Any:
    """Run a model parser, turning a malformed body into a TransportError."""
    try:
        return parser(raw)
    except PydanticValidationError as exc:
        logger.error(f"Malformed backend response for '{action}': {exc.error_count()} error(s)")
        raise TransportError(200, "malformed response", action=action, retryable=False) from exc


def _worker(raw: Any, role: WorkerRole) -> WorkerRecord:
    return WorkerRecord.model_validate({**(raw or {}), "role": role})


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------

class DispatchersClient:
    def __init__(self, api: ApiClient) -> None:
        self._api = api

    @retry_on_transient_error()
    async def get_active(self) -> list[WorkerRecord]:
        raw = await self._api.request("GET", Endpoints.DISPATCHERS_ACTIVE, action="load dispatchers")
        return _parse("load dispatchers", lambda r: parse_workers(r, WorkerRole.DISPATCHER), raw)

    @retry_on_transient_error()
    async def get_by_id(self, dispatcher_id: int) -> WorkerRecord:
        raw = await self._api.request(
            "GET", f"{Endpoints.DISPATCHER_BY_ID}/{dispatcher_id}", action="load dispatcher",
        )
        return _parse("load dispatcher", lambda r: _worker(r, WorkerRole.DISPATCHER), raw)

    async def create(self, record: dict[str, Any]) -> CreateWorkerResult:
        raw = await self._api.request("POST", Endpoints.DISPATCHER_CREATE, action="create dispatcher", body=record)
        return _parse("create dispatcher", CreateWorkerResult.model_validate, raw)

    @retry_on_transient_error()
    async def update(self, record: dict[str, Any]) -> None:
        await self._api.request("POST", Endpoints.DISPATCHER_UPDATE, action="update dispatcher", body=record)


class DriversClient:
    def __init__(self, api: ApiClient) -> None:
        self._api = api

    @retry_on_transient_error()
    async def get_active(self) -> list[WorkerRecord]:
        raw = await self._api.request("GET", Endpoints.DRIVERS_ACTIVE, action="load drivers")
        return _parse("load drivers", lambda r: parse_workers(r, WorkerRole.DRIVER), raw)

    @retry_on_transient_error()
    async def get_all(self) -> list[WorkerRecord]:
        raw = await self._api.request("GET", Endpoints.DRIVERS_ALL, action="load all drivers")
        return _parse("load all drivers", lambda r: parse_workers(r, WorkerRole.DRIVER), raw)

    @retry_on_transient_error()
    async def get_by_id(self, driver_id: int) -> WorkerRecord:
        raw = await self._api.request("GET", f"{Endpoints.DRIVER_BY_ID}/{driver_id}", action="load driver")
        return _parse("load driver", lambda r: _worker(r, WorkerRole.DRIVER), raw)

    async def create(self, record: dict[str, Any]) -> CreateWorkerResult:
        raw = await self._api.request("POST", Endpoints.DRIVER_CREATE, action="create driver", body=record)
        return _parse("create driver", CreateWorkerResult.model_validate, raw)

    @retry_on_transient_error()
    async def update(self, record: dict[str, Any]) -> None:
        await self._api.request("POST", Endpoints.DRIVER_UPDATE, action="update driver", body=record)


class UserClient:
    def __init__(self, api: ApiClient) -> None:
        self._api = api

    @retry_on_transient_error()
    async def is_admin(self, user_id: int | str) -> bool:
        raw = await self._api.request(
            "GET", Endpoints.IS_ADMIN, action="check admin role", params={"userId": user_id},
        )
        if isinstance(raw, dict):
            raw = raw.get("isAdmin", raw.get("IsAdmin", False))
        return raw is True

    @retry_on_transient_error()
    async def fire_dispatcher(self, dispatcher_id: int) -> FireResult:
        await self._api.request(
            "POST", Endpoints.FIRE_DISPATCHER, action="fire dispatcher", body=dispatcher_id,
        )
        # Dispatchers have no cascading call reassignment.
        return FireResult()

    @retry_on_transient_error()
    async def fire_driver(self, driver_id: int) -> FireResult:
        raw = await self._api.request("POST", Endpoints.FIRE_DRIVER, action="fire driver", body=driver_id)
        return _parse("fire driver", FireResult.model_validate, raw)

    @retry_on_transient_error()
    async def forgot_password(self, user_id: int | str, role: str = "dispatcher") -> PasswordResult:
        raw = await self._api.request(
            "POST", Endpoints.FORGOT_PASSWORD, action="reset password",
            body={"userId": user_id, "userType": role},
        )
        return _parse("reset password", PasswordResult.model_validate, raw or {})

    @retry_on_transient_error()
    async def update_password(self, user_id: int | str, old_password: str, new_password: str) -> PasswordResult:
        raw = await self._api.request(
            "POST", Endpoints.UPDATE_PASSWORD, action="update password",
            body={
                "userId": user_id,
                "userType": "dispatcher",
                "oldPassword": old_password,
                "newPassword": new_password,
            },
        )
        return _parse("update password", PasswordResult.model_validate, raw or {})

    @retry_on_transient_error()
    async def get_fired_workers(self) -> FiredWorkers:
        raw = await self._api.request("GET", Endpoints.FIRED_WORKERS, action="load fired workers")
        return _parse("load fired workers", FiredWorkers.model_validate, raw or {})


class CarsClient:
    def __init__(self, api: ApiClient) -> None:
        self._api = api

    @retry_on_transient_error()
    async def get_by_driver(self, driver_id: int) -> list[CarRecord]:
        raw = await self._api.request(
            "GET", Endpoints.CARS_BY_DRIVER, action="load cars", params={"userId": driver_id},
        )
        return _parse("load cars", parse_cars, raw)

    async def create(self, car: dict[str, Any]) -> CarRecord | None:
        raw = await self._api.request("POST", Endpoints.CAR_CREATE, action="add car", body=car)
        if isinstance(raw, dict):
            return _parse("add car", CarRecord.model_validate, raw)
        return None

    @retry_on_transient_error()
    async def update(self, car_id: int, car: dict[str, Any]) -> None:
        await self._api.request("PUT", f"{Endpoints.CAR_UPDATE}/{car_id}", action="update car", body=car)

    @retry_on_transient_error()
    async def delete(self, car_id: int) -> None:
        await self._api.request("DELETE", f"{Endpoints.CAR_DELETE}/{car_id}", action="delete car")


class MessagesClient:
    def __init__(self, api: ApiClient) -> None:
        self._api = api

    async def get_unread(self) -> list[UnreadMessage]:
        # Not retried: the poll loop re-fetches on its own schedule.
        raw = await self._api.request("GET", Endpoints.MESSAGES_UNREAD, action="load unread messages")
        if not isinstance(raw, list):
            return []
        return _parse(
            "load unread messages",
            lambda r: [UnreadMessage.model_validate(m) for m in r if isinstance(m, dict)],
            raw,
        )

    @retry_on_transient_error()
    async def mark_as_read(self, message_ids: list[int]) -> None:
        await self._api.request(
            "POST", Endpoints.MESSAGES_MARK_READ, action="mark messages read", body=list(message_ids),
        )


class RestBackend:
    """All collaborators over one ApiClient."""

    def __init__(self, api: ApiClient | None = None) -> None:
        self.api = api or ApiClient()
        self.dispatchers = DispatchersClient(self.api)
        self.drivers = DriversClient(self.api)
        self.user = UserClient(self.api)
        self.cars = CarsClient(self.api)
        self.messages = MessagesClient(self.api)
