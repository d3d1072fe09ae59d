# tests/test_forms.py
"""Tests for create/edit form sessions"""
import asyncio

import pytest

from dispatch_admin.admin.fleet import FleetManager
from dispatch_admin.console.forms import CarForm, WorkerForm
from dispatch_admin.core.domain import WorkerRole
from dispatch_admin.core.phone_mask import BACKSPACE

D = WorkerRole.DISPATCHER
V = WorkerRole.DRIVER


def fill(form, phone="5551234567"):
    form.set_field("name", "Ann Lee")
    form.set_field("email", "ann@example.com")
    edit = None
    for digit in phone:
        caret = len(form.draft.values["phoneNumber"])
        edit = form.phone_key(digit, caret)
    return edit


class TestWorkerForm:
    def test_phone_keys_go_through_mask(self, manager):
        form = WorkerForm.create(manager, D)
        edit = fill(form)
        assert form.draft.values["phoneNumber"] == "(555) 123-4567"
        assert edit.caret == 14

        edit = form.phone_key(BACKSPACE, 6)
        assert form.draft.values["phoneNumber"] == "(551) 234-567"

    def test_phone_paste(self, manager):
        form = WorkerForm.create(manager, D)
        form.phone_paste("555 123 4567")
        assert form.draft.values["phoneNumber"] == "(555) 123-4567"

    @pytest.mark.asyncio
    async def test_validation_errors_keep_form_open(self, backend, manager):
        form = WorkerForm.create(manager, V)
        fill(form)

        assert await form.submit() is False
        assert form.closed is False
        assert form.errors == {"license": "License number is required"}

        form.set_field("license", "DL123456")
        assert "license" not in form.errors

        assert await form.submit() is True
        assert form.closed is True
        assert len(backend.called("driver.create")) == 1

    @pytest.mark.asyncio
    async def test_backend_failure_keeps_typed_values(self, backend, manager, mediator):
        backend.fail("dispatcher.create")
        form = WorkerForm.create(manager, D)
        fill(form)

        assert await form.submit() is False
        assert form.closed is False
        assert form.draft.values["name"] == "Ann Lee"
        assert mediator.dialog.message == "Failed to save dispatcher. Please try again."

        backend.heal("dispatcher.create")
        assert await form.submit() is True

    @pytest.mark.asyncio
    async def test_submit_disabled_while_saving(self, backend, manager):
        gate = asyncio.Event()
        original = backend.dispatchers.create

        async def slow_create(record):
            await gate.wait()
            return await original(record)

        backend.dispatchers.create = slow_create
        form = WorkerForm.create(manager, D)
        fill(form)

        first = asyncio.create_task(form.submit())
        await asyncio.sleep(0)
        assert form.can_submit is False
        assert await form.submit() is False

        gate.set()
        assert await first is True
        assert len(backend.called("dispatcher.create")) == 1

    @pytest.mark.asyncio
    async def test_edit_form_updates(self, backend, manager):
        backend.add_worker(D, "Ann Lee")
        await manager.list_active(D)
        form = WorkerForm.edit(manager, manager.records(D)[0])
        assert form.is_edit
        assert form.draft.values["phoneNumber"] == "(555) 123-4567"

        form.set_field("name", "Ann Leigh")
        assert await form.submit() is True
        assert backend.called("dispatcher.update")
        assert backend.called("dispatcher.create") == []

    @pytest.mark.asyncio
    async def test_edit_of_fired_worker_stays_open(self, backend, manager):
        worker_id = backend.add_worker(V, "Cy Park")
        await manager.list_active(V)
        form = WorkerForm.edit(manager, manager.records(V)[0])
        await manager.fire(V, worker_id, name="Cy Park")

        form.set_field("name", "Cy Parker")
        assert await form.submit() is False
        assert form.closed is False
        assert backend.called("driver.update") == []

    def test_cancel_closes(self, manager):
        form = WorkerForm.create(manager, D)
        form.cancel()
        assert form.closed
        assert form.can_submit is False


class TestCarForm:
    @pytest.mark.asyncio
    async def test_locked_fleet_keeps_form_open(self, backend, mediator):
        fleet = FleetManager(backend.cars, mediator, owner_active=lambda d: False)
        form = CarForm.create(fleet, 7)
        form.set_field("make", "Honda")
        form.set_field("model", "Civic")

        assert await form.submit() is False
        assert form.closed is False
        assert backend.called("cars.create") == []

    @pytest.mark.asyncio
    async def test_car_form_create(self, backend, mediator):
        fleet = FleetManager(backend.cars, mediator, owner_active=lambda d: True)
        form = CarForm.create(fleet, 7)
        form.set_field("make", "Honda")
        form.set_field("model", "Civic")

        assert await form.submit() is True
        assert len(fleet.snapshot(7).cars) == 1
