"""
Tests for the request lifecycle.

Coverage:
- Creation and validation
- Exclusive accept (including concurrent callers)
- Per-donor ignore (idempotent, never touches status)
- Hospital deactivate / cancel / reopen
- Monotonic transitions and error types
- Store outages on reads surface as Unavailable
"""

import threading
from datetime import timedelta
from unittest.mock import patch
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from pulseconnect.db.enums import AppointmentStatus, RequestStatus
from pulseconnect.db.models import Appointment, BloodRequest, Notification, RequestIgnore
from pulseconnect.services import (
    appointment_service,
    compatibility_service,
    inventory_service,
    notification_service,
    request_service,
)
from pulseconnect.services.errors import (
    AlreadyResolved,
    InvalidTransition,
    NotFound,
    Unavailable,
    ValidationFailed,
)


def _tomorrow():
    return appointment_service.today() + timedelta(days=1)


# =============================================================================
# Create
# =============================================================================

def test_create_request_is_pending(db, hospital):
    request = request_service.create_request(
        db,
        hospital.id,
        blood_group="AB-",
        units_needed=3,
        patient_name="  Jane  ",
        urgency="Emergency",
    )

    assert request.status == RequestStatus.PENDING.value
    assert request.donor_id is None
    assert request.patient_name == "Jane"
    # Position falls back to the hospital's
    assert request.latitude == hospital.latitude


@pytest.mark.parametrize(
    "overrides",
    [
        {"blood_group": "Z+"},
        {"units_needed": 0},
        {"urgency": "Whenever"},
        {"donation_kind": "platelets"},
        {"patient_name": " "},
        {"latitude": 1.0},
    ],
)
def test_create_request_validation(db, hospital, overrides):
    data = {"blood_group": "A+", "units_needed": 1, "patient_name": "P"}
    data.update(overrides)
    with pytest.raises(ValidationFailed):
        request_service.create_request(db, hospital.id, **data)


def test_create_request_unknown_hospital(db):
    with pytest.raises(NotFound):
        request_service.create_request(
            db, uuid4(), blood_group="A+", units_needed=1, patient_name="P"
        )


# =============================================================================
# Accept
# =============================================================================

def test_accept_binds_donor_and_notifies_hospital(db, blood_request, donor, hospital):
    request = request_service.accept(db, blood_request.id, donor.id)

    assert request.status == RequestStatus.ACCEPTED.value
    assert request.donor_id == donor.id

    notes = db.query(Notification).filter(Notification.user_id == hospital.id).all()
    assert len(notes) == 1
    assert notes[0].kind == "request_update"
    assert notes[0].entity_id == blood_request.id


def test_second_accept_is_already_resolved(db, blood_request, donor, donor_factory):
    request_service.accept(db, blood_request.id, donor.id)
    other = donor_factory("O-")

    with pytest.raises(AlreadyResolved):
        request_service.accept(db, blood_request.id, other.id)

    db.expire_all()
    assert db.get(BloodRequest, blood_request.id).donor_id == donor.id


def test_winner_retrying_accept_gets_neutral_detail(db, blood_request, donor):
    request_service.accept(db, blood_request.id, donor.id)

    with pytest.raises(AlreadyResolved) as exc:
        request_service.accept(db, blood_request.id, donor.id)
    assert "another donor" not in str(exc.value)

    db.expire_all()
    assert db.get(BloodRequest, blood_request.id).donor_id == donor.id


def test_accept_deactivated_request_is_invalid(db, blood_request, donor):
    request_service.deactivate(db, blood_request.id)

    with pytest.raises(InvalidTransition) as exc:
        request_service.accept(db, blood_request.id, donor.id)
    assert exc.value.current_state == "ignored"
    assert exc.value.attempted_op == "accept"


def test_accept_rejects_incompatible_or_unavailable_donor(db, blood_request, donor_factory):
    incompatible = donor_factory("B+")
    unavailable = donor_factory("O-", is_available=False)

    with pytest.raises(ValidationFailed):
        request_service.accept(db, blood_request.id, incompatible.id)
    with pytest.raises(ValidationFailed):
        request_service.accept(db, blood_request.id, unavailable.id)

    db.expire_all()
    assert db.get(BloodRequest, blood_request.id).status == RequestStatus.PENDING.value


def test_accept_unknown_request(db, donor):
    with pytest.raises(NotFound):
        request_service.accept(db, uuid4(), donor.id)


def test_concurrent_accepts_have_exactly_one_winner(
    session_factory, blood_request, donor_factory
):
    donors = [donor_factory("O-") for _ in range(8)]
    request_id = blood_request.id
    barrier = threading.Barrier(len(donors))
    outcomes: list[str] = []
    lock = threading.Lock()

    def attempt(donor_id):
        session = session_factory()
        try:
            barrier.wait()
            try:
                request_service.accept(session, request_id, donor_id)
                result = "won"
            except AlreadyResolved:
                result = "lost"
            with lock:
                outcomes.append(result)
        finally:
            session.close()

    threads = [threading.Thread(target=attempt, args=(d.id,)) for d in donors]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes) == ["lost"] * 7 + ["won"]

    check = session_factory()
    try:
        request = check.get(BloodRequest, request_id)
        assert request.status == RequestStatus.ACCEPTED.value
        assert request.donor_id in {d.id for d in donors}
    finally:
        check.close()


# =============================================================================
# Ignore
# =============================================================================

def test_ignore_is_per_donor_and_idempotent(db, blood_request, donor, donor_factory):
    request_service.ignore(db, blood_request.id, donor.id)
    request_service.ignore(db, blood_request.id, donor.id)

    assert db.query(RequestIgnore).count() == 1
    db.expire_all()
    assert db.get(BloodRequest, blood_request.id).status == RequestStatus.PENDING.value

    # Hidden for this donor only
    assert request_service.list_open_requests_for_donor(db, donor.id) == []
    other = donor_factory("O-")
    assert [r.id for r in request_service.list_open_requests_for_donor(db, other.id)] == [
        blood_request.id
    ]

    # Another donor can still accept
    request_service.accept(db, blood_request.id, other.id)


def test_ignore_after_accept_is_noop(db, blood_request, donor, donor_factory):
    request_service.accept(db, blood_request.id, donor.id)
    other = donor_factory("O-")

    request_service.ignore(db, blood_request.id, other.id)

    db.expire_all()
    request = db.get(BloodRequest, blood_request.id)
    assert request.status == RequestStatus.ACCEPTED.value
    assert request.donor_id == donor.id
    assert db.query(RequestIgnore).count() == 0


# =============================================================================
# Hospital transitions
# =============================================================================

def test_cancel_accepted_releases_donor(db, blood_request, donor):
    request_service.accept(db, blood_request.id, donor.id)

    request = request_service.cancel(db, blood_request.id, reason="patient stable")

    assert request.status == RequestStatus.CANCELLED.value
    assert request.donor_id is None
    donor_notes = db.query(Notification).filter(Notification.user_id == donor.id).all()
    assert [n.title for n in donor_notes] == ["Request Cancelled"]


def test_cancel_scheduled_cancels_linked_appointment(db, blood_request, donor):
    request_service.accept(db, blood_request.id, donor.id)
    appointment = request_service.schedule(
        db, blood_request.id, scheduled_date=_tomorrow()
    )

    request_service.cancel(db, blood_request.id)

    db.expire_all()
    assert db.get(Appointment, appointment.id).status == AppointmentStatus.CANCELLED.value


def test_cancel_pending_is_invalid(db, blood_request):
    with pytest.raises(InvalidTransition):
        request_service.cancel(db, blood_request.id)


def test_cancel_by_other_hospital_is_not_found(db, blood_request, donor, hospital_factory):
    request_service.accept(db, blood_request.id, donor.id)
    stranger = hospital_factory()

    with pytest.raises(NotFound):
        request_service.cancel(db, blood_request.id, hospital_id=stranger.id)


def test_reopen_only_from_cancelled(db, blood_request, donor, donor_factory):
    with pytest.raises(InvalidTransition):
        request_service.reopen(db, blood_request.id)

    request_service.accept(db, blood_request.id, donor.id)
    request_service.cancel(db, blood_request.id)
    request = request_service.reopen(db, blood_request.id)

    assert request.status == RequestStatus.PENDING.value
    assert request.donor_id is None
    # Open for a new donor again
    request_service.accept(db, blood_request.id, donor_factory("O-").id)


def test_deactivate_twice_is_invalid(db, blood_request):
    request_service.deactivate(db, blood_request.id)
    with pytest.raises(InvalidTransition):
        request_service.deactivate(db, blood_request.id)


def test_schedule_requires_accepted(db, blood_request):
    with pytest.raises(InvalidTransition):
        request_service.schedule(db, blood_request.id, scheduled_date=_tomorrow())


def test_complete_requires_scheduled(db, blood_request, donor):
    request_service.accept(db, blood_request.id, donor.id)
    with pytest.raises(InvalidTransition):
        request_service.complete(db, blood_request.id)


# =============================================================================
# Reads
# =============================================================================

def test_hospital_list_is_newest_first(db, hospital, request_factory, hospital_factory):
    first = request_factory(hospital)
    second = request_factory(hospital)
    request_factory(hospital_factory())

    listed = request_service.list_requests_for_hospital(db, hospital.id)

    assert [r.id for r in listed] == [second.id, first.id]


def test_open_feed_orders_by_urgency(db, hospital, donor, request_factory):
    low = request_factory(hospital, urgency="Low")
    emergency = request_factory(hospital, urgency="Emergency")
    request_factory(hospital, status="ignored")

    feed = request_service.list_open_requests_for_donor(db, donor.id)

    assert [r.id for r in feed] == [emergency.id, low.id]


def test_open_feed_only_compatible(db, hospital, donor_factory, request_factory):
    a_pos = request_factory(hospital, blood_group="A+")
    request_factory(hospital, blood_group="O-")
    a_donor = donor_factory("A+")

    assert [r.id for r in request_service.list_open_requests_for_donor(db, a_donor.id)] == [
        a_pos.id
    ]


# =============================================================================
# Store outages
# =============================================================================

def _store_down(*args, **kwargs):
    raise OperationalError("SELECT 1", {}, Exception("statement timeout"))


@pytest.mark.parametrize(
    "read",
    [
        lambda db, h, r, d: request_service.list_requests_for_hospital(db, h),
        lambda db, h, r, d: request_service.list_open_requests_for_donor(db, d),
        lambda db, h, r, d: compatibility_service.list_candidates(db, r),
        lambda db, h, r, d: inventory_service.get_inventory(db, h),
        lambda db, h, r, d: appointment_service.list_appointments(db, hospital_id=h),
        lambda db, h, r, d: notification_service.list_notifications(db, h),
        lambda db, h, r, d: notification_service.get_unread_count(db, h),
    ],
)
def test_reads_surface_unavailable(db, hospital, blood_request, donor, read):
    ids = (hospital.id, blood_request.id, donor.id)
    with patch.object(db, "query", side_effect=_store_down), \
            patch.object(db, "get", side_effect=_store_down):
        with pytest.raises(Unavailable):
            read(db, *ids)


def test_schedule_and_complete_prechecks_surface_unavailable(db, blood_request, donor):
    request_service.accept(db, blood_request.id, donor.id)
    request_id = blood_request.id

    with patch.object(db, "get", side_effect=_store_down):
        with pytest.raises(Unavailable):
            request_service.schedule(db, request_id, scheduled_date=_tomorrow())
        with pytest.raises(Unavailable):
            request_service.complete(db, request_id)

    db.expire_all()
    assert db.get(BloodRequest, blood_request.id).status == RequestStatus.ACCEPTED.value
