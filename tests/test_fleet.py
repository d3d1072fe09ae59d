# tests/test_fleet.py
"""Tests for the car fleet sub-manager"""
import pytest

from dispatch_admin.admin.errors import FleetLockedError, TransportError, ValidationError
from dispatch_admin.admin.fleet import FleetManager, car_draft_from, new_car_draft
from dispatch_admin.core.domain import WorkerRole


@pytest.fixture
def active_drivers():
    return {7}


@pytest.fixture
def fleet(backend, mediator, active_drivers):
    return FleetManager(backend.cars, mediator, owner_active=lambda driver_id: driver_id in active_drivers)


def car_draft(**overrides):
    draft = new_car_draft()
    draft.values.update({"make": "Honda", "model": "Civic", "year": "2021", "licensePlate": "xyz789"})
    draft.values.update(overrides)
    return draft


class TestFleetReads:
    @pytest.mark.asyncio
    async def test_list_by_driver(self, backend, fleet):
        backend.add_car(7)
        backend.add_car(8)

        cars = await fleet.list_by_driver(7)

        assert [c.driver_id for c in cars] == [7]
        assert fleet.snapshot(7).cars == tuple(cars)

    @pytest.mark.asyncio
    async def test_stored_long_vin_does_not_hide_fleet(self, backend, fleet):
        backend.add_car(7, vin="1HGCM82633A004352")
        backend.add_car(7, vin="1HGCM82633A0043521")

        cars = await fleet.list_by_driver(7)

        assert len(cars) == 2

    @pytest.mark.asyncio
    async def test_failed_read_shows_empty_fleet(self, backend, fleet, mediator):
        backend.add_car(7)
        backend.fail("cars.get_by_driver")

        assert await fleet.list_by_driver(7) == []
        assert mediator.dialog is None


class TestFleetMutations:
    @pytest.mark.asyncio
    async def test_create_normalises_and_reloads(self, backend, fleet, mediator):
        await fleet.create(7, car_draft(vin=" 1hgcm82633a004352 "))

        (_, payload), = backend.called("cars.create")
        assert payload["driverId"] == 7
        assert payload["year"] == 2021
        assert payload["licensePlate"] == "XYZ789"
        assert payload["vin"] == "1HGCM82633A004352"
        assert backend.called("cars.get_by_driver") == [("cars.get_by_driver", 7)]
        assert len(fleet.snapshot(7).cars) == 1
        assert mediator.toast.message == "Car added successfully"

    @pytest.mark.asyncio
    async def test_blank_vin_sent_as_none(self, backend, fleet):
        await fleet.create(7, car_draft())
        (_, payload), = backend.called("cars.create")
        assert payload["vin"] is None

    @pytest.mark.asyncio
    async def test_invalid_car_draft(self, backend, fleet):
        draft = car_draft(make="", year="1980")

        with pytest.raises(ValidationError):
            await fleet.create(7, draft)

        assert set(draft.errors) == {"make", "year"}
        assert backend.called("cars.create") == []

    @pytest.mark.asyncio
    async def test_inactive_owner_is_locked(self, backend, fleet):
        with pytest.raises(FleetLockedError):
            await fleet.create(8, car_draft())
        assert backend.called("cars.create") == []

    @pytest.mark.asyncio
    async def test_update(self, backend, fleet, mediator):
        car_id = backend.add_car(7)
        cars = await fleet.list_by_driver(7)
        draft = car_draft_from(cars[0])
        draft.values["color"] = "Red"

        await fleet.update(7, draft)

        (_, updated_id, payload), = backend.called("cars.update")
        assert updated_id == car_id
        assert payload["color"] == "Red"
        assert fleet.snapshot(7).cars[0].color == "Red"
        assert mediator.toast.message == "Car updated successfully"

    @pytest.mark.asyncio
    async def test_write_failure_shows_dialog(self, backend, fleet, mediator):
        backend.fail("cars.create")

        with pytest.raises(TransportError):
            await fleet.create(7, car_draft())

        assert mediator.dialog.message == "Failed to add car. Please try again."
        assert fleet.snapshot(7).submitting is False


class TestFleetDelete:
    @pytest.mark.asyncio
    async def test_delete_needs_confirmation(self, backend, fleet, mediator):
        backend.add_car(7)
        car = (await fleet.list_by_driver(7))[0]

        fleet.request_delete(7, car)
        assert mediator.dialog.title == "Delete Car"
        mediator.press_text("Cancel")
        assert backend.called("cars.delete") == []

        fleet.request_delete(7, car)
        await mediator.press_text("Delete")

        assert backend.called("cars.delete") == [("cars.delete", car.id)]
        assert fleet.snapshot(7).cars == ()

    @pytest.mark.asyncio
    async def test_confirmed_delete_failure_is_reported(self, backend, fleet, mediator):
        backend.add_car(7)
        car = (await fleet.list_by_driver(7))[0]
        backend.fail("cars.delete")

        fleet.request_delete(7, car)
        await mediator.press_text("Delete")

        assert mediator.dialog.message == "Failed to delete car. Please try again."
        assert len(fleet.snapshot(7).cars) == 1

    @pytest.mark.asyncio
    async def test_fired_driver_fleet_is_read_only(self, backend, manager, mediator):
        driver_id = backend.add_worker(WorkerRole.DRIVER, "Cy Park")
        backend.add_car(driver_id)
        await manager.list_active(WorkerRole.DRIVER)
        fleet = FleetManager(
            backend.cars, mediator,
            owner_active=lambda d: manager.is_active(WorkerRole.DRIVER, d),
        )
        car = (await fleet.list_by_driver(driver_id))[0]

        await manager.fire(WorkerRole.DRIVER, driver_id)

        with pytest.raises(FleetLockedError):
            fleet.request_delete(driver_id, car)
