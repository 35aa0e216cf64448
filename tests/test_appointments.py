"""
Tests for the appointment scheduler.

Coverage:
- Booking window (past / too far ahead)
- Donor overlap conflicts and the configurable buffer
- Request-linked booking (donor must be the accepted donor)
- Completion: inventory, donation record, request completion, exactly once
- Confirm / no-show / cancel transitions
- Cancel or no-show on a request-linked appointment reopens booking
- Reminders
"""

import threading
from datetime import date, time, timedelta
from uuid import uuid4

import pytest

from pulseconnect.core.config import settings
from pulseconnect.db.enums import AppointmentStatus, NotarizationStatus, RequestStatus
from pulseconnect.db.models import Appointment, BloodRequest, Donation, Donor, Notification
from pulseconnect.services import appointment_service, inventory_service, request_service
from pulseconnect.services.errors import (
    InvalidTransition,
    NotFound,
    SlotConflict,
    ValidationFailed,
)


def _in_days(n: int) -> date:
    return appointment_service.today() + timedelta(days=n)


@pytest.fixture
def scheduled_request(db, blood_request, donor):
    """A request accepted by `donor` and booked for tomorrow."""
    request_service.accept(db, blood_request.id, donor.id)
    appointment = request_service.schedule(
        db, blood_request.id, scheduled_date=_in_days(1), scheduled_time=time(10, 30)
    )
    return blood_request, appointment


# =============================================================================
# Window validation
# =============================================================================

def test_validate_schedule_date_window():
    ref = date(2026, 3, 1)
    appointment_service.validate_schedule_date(ref, reference=ref)
    appointment_service.validate_schedule_date(ref + timedelta(days=30), reference=ref)

    with pytest.raises(ValidationFailed):
        appointment_service.validate_schedule_date(ref - timedelta(days=1), reference=ref)
    with pytest.raises(ValidationFailed):
        appointment_service.validate_schedule_date(ref + timedelta(days=31), reference=ref)


def test_window_follows_settings(monkeypatch):
    monkeypatch.setattr(settings, "APPOINTMENT_MAX_DAYS_AHEAD", 7)
    ref = date(2026, 3, 1)
    with pytest.raises(ValidationFailed):
        appointment_service.validate_schedule_date(ref + timedelta(days=8), reference=ref)


# =============================================================================
# Booking
# =============================================================================

def test_standalone_booking(db, hospital, donor):
    appointment = appointment_service.schedule(
        db,
        donor_id=donor.id,
        hospital_id=hospital.id,
        scheduled_date=_in_days(3),
        donation_kind="plasma",
        units=2,
    )

    assert appointment.status == AppointmentStatus.SCHEDULED.value
    assert appointment.request_id is None
    assert appointment.units == 2

    note = db.query(Notification).filter(Notification.user_id == donor.id).one()
    assert note.kind == "appointment_confirmation"


def test_booking_in_past_is_rejected(db, hospital, donor):
    with pytest.raises(ValidationFailed):
        appointment_service.schedule(
            db, donor_id=donor.id, hospital_id=hospital.id, scheduled_date=_in_days(-1)
        )
    assert db.query(Appointment).count() == 0


def test_same_day_conflict(db, hospital, donor):
    appointment_service.schedule(
        db, donor_id=donor.id, hospital_id=hospital.id, scheduled_date=_in_days(2)
    )
    with pytest.raises(SlotConflict):
        appointment_service.schedule(
            db, donor_id=donor.id, hospital_id=hospital.id, scheduled_date=_in_days(2)
        )
    # Next day is fine with the default (same-day) window
    appointment_service.schedule(
        db, donor_id=donor.id, hospital_id=hospital.id, scheduled_date=_in_days(3)
    )


def test_conflict_buffer_window(db, hospital, donor, monkeypatch):
    monkeypatch.setattr(settings, "APPOINTMENT_CONFLICT_WINDOW_DAYS", 2)
    appointment_service.schedule(
        db, donor_id=donor.id, hospital_id=hospital.id, scheduled_date=_in_days(5)
    )
    with pytest.raises(SlotConflict):
        appointment_service.schedule(
            db, donor_id=donor.id, hospital_id=hospital.id, scheduled_date=_in_days(7)
        )


def test_cancelled_appointment_frees_the_day(db, hospital, donor):
    first = appointment_service.schedule(
        db, donor_id=donor.id, hospital_id=hospital.id, scheduled_date=_in_days(2)
    )
    appointment_service.cancel(db, first.id)

    appointment_service.schedule(
        db, donor_id=donor.id, hospital_id=hospital.id, scheduled_date=_in_days(2)
    )


def test_request_booking_moves_request_to_scheduled(db, scheduled_request, donor):
    request, appointment = scheduled_request

    db.expire_all()
    assert db.get(BloodRequest, request.id).status == RequestStatus.SCHEDULED.value
    assert appointment.donor_id == donor.id
    assert appointment.request_id == request.id
    assert appointment.units == 2  # inherits units_needed


def test_request_booking_requires_accepting_donor(db, hospital, blood_request, donor, donor_factory):
    request_service.accept(db, blood_request.id, donor.id)
    other = donor_factory("O-")

    with pytest.raises(ValidationFailed):
        appointment_service.schedule(
            db,
            donor_id=other.id,
            hospital_id=hospital.id,
            scheduled_date=_in_days(1),
            request_id=blood_request.id,
        )
    db.expire_all()
    assert db.get(BloodRequest, blood_request.id).status == RequestStatus.ACCEPTED.value


def test_slot_conflict_leaves_request_accepted(db, hospital, blood_request, donor):
    appointment_service.schedule(
        db, donor_id=donor.id, hospital_id=hospital.id, scheduled_date=_in_days(1)
    )
    request_service.accept(db, blood_request.id, donor.id)

    with pytest.raises(SlotConflict):
        request_service.schedule(db, blood_request.id, scheduled_date=_in_days(1))

    db.expire_all()
    assert db.get(BloodRequest, blood_request.id).status == RequestStatus.ACCEPTED.value


# =============================================================================
# Completion
# =============================================================================

def test_complete_request_updates_everything(db, scheduled_request, hospital, donor):
    request, appointment = scheduled_request

    completed = request_service.complete(db, request.id)

    assert completed.status == RequestStatus.COMPLETED.value
    db.expire_all()
    assert db.get(Appointment, appointment.id).status == AppointmentStatus.COMPLETED.value
    # Stock goes to the donor's group (O-), not the request's
    assert inventory_service.get_units(db, hospital.id, "O-") == 2
    assert inventory_service.get_units(db, hospital.id, "A+") == 0
    donation = db.query(Donation).one()
    assert donation.appointment_id == appointment.id
    assert donation.notarization_status == NotarizationStatus.SKIPPED.value
    assert db.get(Donor, donor.id).last_donation_date == appointment_service.today()


def test_completion_retry_is_noop(db, scheduled_request, hospital):
    request, appointment = scheduled_request

    first = appointment_service.mark_completed(db, appointment.id)
    second = appointment_service.mark_completed(db, appointment.id)
    request_service.complete(db, request.id)

    assert first.applied is True
    assert second.applied is False
    assert second.donation is None
    assert inventory_service.get_units(db, hospital.id, "O-") == 2
    assert db.query(Donation).count() == 1


def test_concurrent_completion_increments_once(session_factory, db, hospital, donor):
    appointment = appointment_service.schedule(
        db, donor_id=donor.id, hospital_id=hospital.id, scheduled_date=_in_days(1)
    )
    appointment_id = appointment.id
    hospital_id = hospital.id
    barrier = threading.Barrier(4)
    applied: list[bool] = []
    lock = threading.Lock()

    def attempt():
        session = session_factory()
        try:
            barrier.wait()
            result = appointment_service.mark_completed(session, appointment_id)
            with lock:
                applied.append(result.applied)
        finally:
            session.close()

    threads = [threading.Thread(target=attempt) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(applied) == [False, False, False, True]
    assert inventory_service.get_units(db, hospital_id, "O-") == 1


def test_complete_cancelled_appointment_is_invalid(db, hospital, donor):
    appointment = appointment_service.schedule(
        db, donor_id=donor.id, hospital_id=hospital.id, scheduled_date=_in_days(1)
    )
    appointment_service.cancel(db, appointment.id)

    with pytest.raises(InvalidTransition) as exc:
        appointment_service.mark_completed(db, appointment.id)
    assert exc.value.current_state == "cancelled"
    assert inventory_service.get_inventory(db, hospital.id) == []


def test_mark_completed_unknown(db):
    with pytest.raises(NotFound):
        appointment_service.mark_completed(db, uuid4())


# =============================================================================
# Other transitions
# =============================================================================

def test_confirm_then_complete(db, hospital, donor):
    appointment = appointment_service.schedule(
        db, donor_id=donor.id, hospital_id=hospital.id, scheduled_date=_in_days(1)
    )

    confirmed = appointment_service.confirm(db, appointment.id)
    again = appointment_service.confirm(db, appointment.id)

    assert confirmed.status == again.status == AppointmentStatus.CONFIRMED.value
    hospital_notes = db.query(Notification).filter(Notification.user_id == hospital.id).count()
    assert hospital_notes == 1
    assert appointment_service.mark_completed(db, appointment.id).applied is True


def test_no_show_is_terminal(db, hospital, donor):
    appointment = appointment_service.schedule(
        db, donor_id=donor.id, hospital_id=hospital.id, scheduled_date=_in_days(1)
    )

    appointment_service.mark_no_show(db, appointment.id)
    appointment_service.mark_no_show(db, appointment.id)

    with pytest.raises(InvalidTransition):
        appointment_service.cancel(db, appointment.id)
    with pytest.raises(InvalidTransition):
        appointment_service.confirm(db, appointment.id)


# =============================================================================
# Request-linked outcomes
# =============================================================================

def test_cancelling_linked_appointment_returns_request_to_accepted(db, scheduled_request, donor, hospital):
    request, appointment = scheduled_request

    appointment_service.cancel(db, appointment.id)

    db.expire_all()
    released = db.get(BloodRequest, request.id)
    assert released.status == RequestStatus.ACCEPTED.value
    assert released.donor_id == donor.id

    rebooked = request_service.schedule(db, request.id, scheduled_date=_in_days(2))
    assert rebooked.request_id == request.id
    assert request_service.complete(db, request.id).status == RequestStatus.COMPLETED.value
    assert inventory_service.get_units(db, hospital.id, "O-") == 2


def test_no_show_on_linked_appointment_allows_rebooking(db, scheduled_request, donor):
    request, appointment = scheduled_request

    appointment_service.mark_no_show(db, appointment.id)

    db.expire_all()
    assert db.get(BloodRequest, request.id).status == RequestStatus.ACCEPTED.value
    rebooked = request_service.schedule(db, request.id, scheduled_date=_in_days(3))
    assert rebooked.status == AppointmentStatus.SCHEDULED.value
    db.expire_all()
    assert db.get(BloodRequest, request.id).status == RequestStatus.SCHEDULED.value


def test_cancelled_request_stays_cancelled(db, scheduled_request):
    request, appointment = scheduled_request

    request_service.cancel(db, request.id)
    appointment_service.cancel(db, appointment.id)

    db.expire_all()
    stored = db.get(BloodRequest, request.id)
    assert stored.status == RequestStatus.CANCELLED.value
    assert stored.donor_id is None


# =============================================================================
# Reminders and reads
# =============================================================================

def test_send_reminders_for_tomorrow(db, hospital, donor, donor_factory):
    appointment_service.schedule(
        db, donor_id=donor.id, hospital_id=hospital.id, scheduled_date=_in_days(1)
    )
    other = donor_factory("A+")
    cancelled = appointment_service.schedule(
        db, donor_id=other.id, hospital_id=hospital.id, scheduled_date=_in_days(1)
    )
    appointment_service.cancel(db, cancelled.id)
    appointment_service.schedule(
        db, donor_id=other.id, hospital_id=hospital.id, scheduled_date=_in_days(4)
    )

    assert appointment_service.send_reminders(db) == 1
    reminders = db.query(Notification).filter(Notification.kind == "appointment_reminder").all()
    assert [n.user_id for n in reminders] == [donor.id]


def test_list_appointments_scoped(db, hospital, hospital_factory, donor):
    mine = appointment_service.schedule(
        db, donor_id=donor.id, hospital_id=hospital.id, scheduled_date=_in_days(2)
    )
    other_hospital = hospital_factory()
    appointment_service.schedule(
        db, donor_id=donor.id, hospital_id=other_hospital.id, scheduled_date=_in_days(4)
    )

    assert [a.id for a in appointment_service.list_appointments(db, hospital_id=hospital.id)] == [
        mine.id
    ]
    assert len(appointment_service.list_appointments(db, donor_id=donor.id)) == 2
