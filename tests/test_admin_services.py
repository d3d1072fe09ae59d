# tests/test_admin_services.py
"""Tests for the admin gate, fired-worker view and password service"""
import pytest

from dispatch_admin.admin.access import ACCESS_DENIED_MESSAGE, AdminAccessGate
from dispatch_admin.admin.errors import AuthorizationError
from dispatch_admin.admin.fired import LOAD_FAILED_MESSAGE, FiredWorkersView
from dispatch_admin.admin.password import PasswordService
from dispatch_admin.core.domain import Severity, WorkerRole


class TestAdminAccessGate:
    @pytest.mark.asyncio
    async def test_admin_passes(self, backend):
        gate = AdminAccessGate(backend.user)
        assert await gate.check(1) is True
        await gate.require(1)

    @pytest.mark.asyncio
    async def test_non_admin_denied(self, backend):
        gate = AdminAccessGate(backend.user)
        assert await gate.check(2) is False
        with pytest.raises(AuthorizationError) as exc_info:
            await gate.require(2)
        assert exc_info.value.detail == ACCESS_DENIED_MESSAGE

    @pytest.mark.asyncio
    async def test_failed_check_counts_as_denied(self, backend):
        backend.fail("user.is_admin")
        assert await AdminAccessGate(backend.user).check(1) is False

    @pytest.mark.asyncio
    async def test_missing_user_never_calls_backend(self, backend):
        assert await AdminAccessGate(backend.user).check(None) is False
        assert backend.called("user.is_admin") == []


class TestFiredWorkersView:
    @pytest.mark.asyncio
    async def test_load_splits_categories(self, backend):
        backend.add_worker(WorkerRole.DISPATCHER, "Ann Lee", endDate="2025-03-01T00:00:00")
        backend.add_worker(WorkerRole.DRIVER, "Cy Park", endDate="2026-01-15T00:00:00")
        backend.add_worker(WorkerRole.DRIVER, "Dee Moss")
        view = FiredWorkersView(backend.user)

        state = await view.load()

        assert state.error is None
        assert state.workers.total == 2
        assert [r.name for r in view.records(WorkerRole.DRIVER)] == ["Cy Park"]
        assert [r.role for r in view.records()] == [WorkerRole.DRIVER, WorkerRole.DISPATCHER]
        assert all(not r.is_active for r in view.records())

    @pytest.mark.asyncio
    async def test_load_failure(self, backend):
        backend.fail("user.get_fired_workers")
        state = await FiredWorkersView(backend.user).load()
        assert state.error == LOAD_FAILED_MESSAGE
        assert state.workers.total == 0
        assert state.loading is False

    @pytest.mark.asyncio
    async def test_fire_then_view_shows_worker(self, backend, manager):
        worker_id = backend.add_worker(WorkerRole.DRIVER, "Cy Park")
        view = FiredWorkersView(backend.user)
        manager.on_fired(view.refresh_after_fire)
        await manager.list_active(WorkerRole.DRIVER)

        await manager.fire(WorkerRole.DRIVER, worker_id)

        assert [r.id for r in view.records(WorkerRole.DRIVER)] == [worker_id]


class TestPasswordService:
    @pytest.mark.asyncio
    async def test_change_password(self, backend, mediator):
        service = PasswordService(backend.user, mediator, min_length=6)
        assert await service.change(1, "secret1", "newpass", "newpass") is None
        assert backend.password == "newpass"
        assert mediator.toast.severity is Severity.SUCCESS

    @pytest.mark.asyncio
    async def test_local_checks_skip_backend(self, backend, mediator):
        service = PasswordService(backend.user, mediator, min_length=6)
        assert await service.change(1, "", "newpass", "newpass") == "Current password is required"
        assert await service.change(1, "secret1", "newpass", "other") == "New passwords do not match"
        assert await service.change(1, "secret1", "abc", "abc") == "Password must be at least 6 characters"
        assert backend.called("user.update_password") == []

    @pytest.mark.asyncio
    async def test_wrong_current_password(self, backend, mediator):
        service = PasswordService(backend.user, mediator)
        assert await service.change(1, "wrong", "newpass", "newpass") == "Current password is incorrect"
        assert backend.password == "secret1"

    @pytest.mark.asyncio
    async def test_change_transport_failure(self, backend, mediator):
        backend.fail("user.update_password")
        service = PasswordService(backend.user, mediator)
        assert await service.change(1, "secret1", "newpass", "newpass") == "Failed to update password. Please try again."

    @pytest.mark.asyncio
    async def test_reset_sends_role(self, backend, manager, mediator):
        backend.add_worker(WorkerRole.DRIVER, "Cy Park")
        worker = (await manager.list_active(WorkerRole.DRIVER))[0]

        assert await PasswordService(backend.user, mediator).reset(worker) is True

        assert backend.called("user.forgot_password") == [("user.forgot_password", worker.id, "driver")]
        assert mediator.toast.message == "Password reset email sent"

    @pytest.mark.asyncio
    async def test_reset_failure_toast(self, backend, manager, mediator):
        backend.add_worker(WorkerRole.DISPATCHER, "Ann Lee")
        worker = (await manager.list_active(WorkerRole.DISPATCHER))[0]
        backend.fail("user.forgot_password")

        assert await PasswordService(backend.user, mediator).reset(worker) is False
        assert mediator.toast.severity is Severity.ERROR
