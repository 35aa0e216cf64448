"""Tests for the inventory adjuster (atomic counters, never negative)."""

import threading
from uuid import uuid4

import pytest

from pulseconnect.services import inventory_service
from pulseconnect.services.errors import InsufficientUnits, ValidationFailed


def _add(db, hospital_id, group="A+", units=1, kind="blood"):
    inventory_service.on_donation_completed(db, hospital_id, group, units, kind)
    db.commit()


def test_increment_creates_counter_then_adds(db, hospital):
    _add(db, hospital.id, units=2)
    _add(db, hospital.id, units=3)

    assert inventory_service.get_units(db, hospital.id, "A+") == 5
    assert len(inventory_service.get_inventory(db, hospital.id)) == 1


def test_blood_and_plasma_are_separate(db, hospital):
    _add(db, hospital.id, units=2)
    _add(db, hospital.id, units=4, kind="plasma")

    assert inventory_service.get_units(db, hospital.id, "A+", "blood") == 2
    assert inventory_service.get_units(db, hospital.id, "A+", "plasma") == 4
    kinds = [c.donation_kind for c in inventory_service.get_inventory(db, hospital.id)]
    assert kinds == ["blood", "plasma"]


def test_consume_decrements(db, hospital):
    _add(db, hospital.id, units=5)

    remaining = inventory_service.on_units_consumed(db, hospital.id, "A+", 3)

    assert remaining == 2
    assert inventory_service.get_units(db, hospital.id, "A+") == 2


def test_consume_more_than_stock_is_rejected(db, hospital):
    _add(db, hospital.id, units=2)

    with pytest.raises(InsufficientUnits):
        inventory_service.on_units_consumed(db, hospital.id, "A+", 3)

    assert inventory_service.get_units(db, hospital.id, "A+") == 2


def test_consume_without_counter_is_rejected(db, hospital):
    with pytest.raises(InsufficientUnits):
        inventory_service.on_units_consumed(db, hospital.id, "B-", 1)


@pytest.mark.parametrize("units", [0, -1, True, 1.5])
def test_units_must_be_positive_integers(db, hospital, units):
    with pytest.raises(ValidationFailed):
        inventory_service.on_donation_completed(db, hospital.id, "A+", units)
    with pytest.raises(ValidationFailed):
        inventory_service.on_units_consumed(db, hospital.id, "A+", units)


def test_unknown_group_rejected(db, hospital):
    with pytest.raises(ValidationFailed):
        inventory_service.on_donation_completed(db, hospital.id, "Q+", 1)


def test_inventory_is_per_hospital(db, hospital, hospital_factory):
    other = hospital_factory()
    _add(db, hospital.id, units=2)

    assert inventory_service.get_units(db, other.id, "A+") == 0
    assert inventory_service.get_inventory(db, uuid4()) == []


def test_concurrent_consumes_never_go_negative(session_factory, db, hospital):
    _add(db, hospital.id, units=3)
    hospital_id = hospital.id
    barrier = threading.Barrier(5)
    results: list[str] = []
    lock = threading.Lock()

    def attempt():
        session = session_factory()
        try:
            barrier.wait()
            try:
                inventory_service.on_units_consumed(session, hospital_id, "A+", 1)
                outcome = "ok"
            except InsufficientUnits:
                outcome = "short"
            with lock:
                results.append(outcome)
        finally:
            session.close()

    threads = [threading.Thread(target=attempt) for _ in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(results) == ["ok", "ok", "ok", "short", "short"]
    assert inventory_service.get_units(db, hospital_id, "A+") == 0
