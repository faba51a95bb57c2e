import threading
import uuid
from datetime import time

import pytest

from homecare.core.errors import (
    Conflict,
    Forbidden,
    HomecareError,
    InvalidTransition,
    NotFound,
    PolicyViolation,
    SlotDurationError,
    SlotUnavailable,
)
from homecare.models import NurseSlot
from homecare.services import bookings, slots

from conftest import as_service, as_user, signup


def _slot_status(db, slot_id):
    db.expire_all()
    return as_service(db).get(NurseSlot, slot_id).status


def test_slot_window_defaults_to_one_hour():
    assert slots.slot_window(time(9, 0)) == (time(9, 0), time(10, 0))
    with pytest.raises(SlotDurationError):
        slots.slot_window(time(9, 0), time(9, 45))
    with pytest.raises(SlotDurationError):
        slots.slot_window(time(23, 30))


def test_only_nurses_publish_slots(db, patient_id, slot_day):
    with pytest.raises(Forbidden):
        slots.publish_slot(as_user(db, patient_id), slot_day, time(9, 0))


def test_overlapping_slot_is_rejected(db, nurse_id, slot_id, slot_day):
    with pytest.raises(Conflict):
        slots.publish_slot(as_user(db, nurse_id), slot_day, time(9, 30),
                           time(10, 30))
    later = slots.publish_slot(as_user(db, nurse_id), slot_day, time(10, 0))
    assert later.end_time == time(11, 0)


def test_patient_books_slot(db, patient_id, nurse_id, slot_id):
    booking = bookings.create_booking(as_user(db, patient_id), slot_id,
                                      "wound-care", notes="Dressing change")
    assert booking.status == "pending"
    assert booking.patient_id == patient_id
    assert booking.nurse_id == nurse_id
    assert _slot_status(db, slot_id) == "booked"

    # both parties see it, nobody else does
    assert [b.id for b in bookings.list_bookings(as_user(db, nurse_id))
            ] == [booking.id]
    stranger = signup(db, "patient")
    assert bookings.list_bookings(as_user(db, stranger)) == []


def test_nurse_cannot_book_and_slot_stays_available(db, nurse_id, slot_id):
    with pytest.raises(PolicyViolation):
        bookings.create_booking(as_user(db, nurse_id), slot_id, "wound-care")
    assert _slot_status(db, slot_id) == "available"
    assert bookings.list_bookings(as_user(db, nurse_id)) == []


def test_second_booking_for_same_slot_fails(Session, patient_id, slot_id):
    first, second = Session(), Session()
    try:
        other = signup(second, "patient", name="Ravi")
        bookings.create_booking(as_user(first, patient_id), slot_id,
                                "wound-care")
        first.close()

        with pytest.raises(SlotUnavailable):
            bookings.create_booking(as_user(second, other), slot_id,
                                    "wound-care")
        assert bookings.list_bookings(as_user(second, other)) == []
    finally:
        first.close()
        second.close()


def _race(Session, *calls):
    """Run each call on its own session, released together; collect outcomes."""
    gate = threading.Barrier(len(calls), timeout=10)
    outcomes = []

    def run(call):
        session = Session()
        try:
            gate.wait()
            call(session)
            outcomes.append("ok")
        except HomecareError as exc:
            outcomes.append(exc.code)
        finally:
            session.close()

    workers = [threading.Thread(target=run, args=(c, )) for c in calls]
    for w in workers:
        w.start()
    for w in workers:
        w.join(timeout=30)
    return sorted(outcomes)


def test_concurrent_bookings_for_same_slot(db, Session, patient_id, slot_id):
    other = signup(db, "patient", name="Ravi")
    assert not db.in_transaction()

    outcomes = _race(
        Session,
        lambda s: bookings.create_booking(as_user(s, patient_id), slot_id,
                                          "wound-care"),
        lambda s: bookings.create_booking(as_user(s, other), slot_id,
                                          "wound-care"),
    )
    assert outcomes == ["ok", "slot_unavailable"]
    assert _slot_status(db, slot_id) == "booked"
    assert len(bookings.list_bookings(as_service(db))) == 1


def test_concurrent_overlapping_publishes(db, Session, nurse_id, slot_day):
    assert not db.in_transaction()

    outcomes = _race(
        Session,
        lambda s: slots.publish_slot(as_user(s, nurse_id), slot_day,
                                     time(9, 0)),
        lambda s: slots.publish_slot(as_user(s, nurse_id), slot_day,
                                     time(9, 30), time(10, 30)),
    )
    assert outcomes == ["conflict", "ok"]
    assert len(slots.my_slots(as_user(db, nurse_id))) == 1


def test_writes_leave_no_transaction_open(db, nurse_id, slot_day):
    # signup ran in the nurse_id fixture
    assert not db.in_transaction()
    patient = signup(db, "patient")
    assert not db.in_transaction()

    slot = slots.publish_slot(as_user(db, nurse_id), slot_day, time(14, 0))
    assert not db.in_transaction()
    slot_id = slot.id
    db.rollback()

    bookings.create_booking(as_user(db, patient), slot_id, "wound-care")
    assert not db.in_transaction()


def test_reserve_slot_swaps_once(db, patient_id, slot_id):
    rls = as_user(db, patient_id)
    assert bookings.reserve_slot(rls, slot_id) is True
    assert bookings.reserve_slot(rls, slot_id) is False
    db.rollback()


def test_status_transitions_follow_the_lifecycle(db, patient_id, nurse_id,
                                                 slot_id):
    booking = bookings.create_booking(as_user(db, patient_id), slot_id,
                                      "wound-care")
    nurse = as_user(db, nurse_id)

    with pytest.raises(InvalidTransition):
        bookings.set_status(nurse, booking.id, "completed")

    assert bookings.set_status(nurse, booking.id,
                               "confirmed").status == "confirmed"
    assert bookings.set_status(nurse, booking.id,
                               "completed").status == "completed"
    assert _slot_status(db, slot_id) == "completed"

    with pytest.raises(InvalidTransition):
        bookings.set_status(nurse, booking.id, "cancelled")


def test_cancelling_frees_the_slot(db, patient_id, slot_id):
    rls = as_user(db, patient_id)
    booking = bookings.create_booking(rls, slot_id, "wound-care")
    bookings.set_status(rls, booking.id, "cancelled")
    assert _slot_status(db, slot_id) == "available"

    again = bookings.create_booking(rls, slot_id, "wound-care")
    assert again.id != booking.id


def test_outsider_cannot_touch_booking(db, patient_id, slot_id):
    booking = bookings.create_booking(as_user(db, patient_id), slot_id,
                                      "wound-care")
    stranger = signup(db, "nurse", name="Kala")
    with pytest.raises(NotFound):
        bookings.set_status(as_user(db, stranger), booking.id, "confirmed")


def test_pincode_must_be_served_and_covered(db, patient_id, nurse_id,
                                            slot_id):
    from homecare.services.slots import add_coverage, upsert_service_area

    rls = as_user(db, patient_id)
    with pytest.raises(HomecareError):
        bookings.create_booking(rls, slot_id, "wound-care", pincode="600001")

    upsert_service_area(as_service(db), "600001", "wound-care", True)
    with pytest.raises(HomecareError):
        bookings.create_booking(rls, slot_id, "wound-care", pincode="600001")

    add_coverage(as_user(db, nurse_id), "600001")
    booking = bookings.create_booking(rls, slot_id, "wound-care",
                                      pincode="600001")
    assert booking.status == "pending"


def test_nurse_withdraws_unbooked_slot(db, patient_id, nurse_id, slot_id):
    with pytest.raises(Forbidden):
        slots.cancel_slot(as_user(db, patient_id), slot_id)
    assert slots.cancel_slot(as_user(db, nurse_id),
                             slot_id).status == "cancelled"
    with pytest.raises(SlotUnavailable):
        slots.cancel_slot(as_user(db, nurse_id), slot_id)


def test_available_slots_filter_by_pincode(db, patient_id, nurse_id,
                                           slot_id, slot_day):
    rls = as_user(db, patient_id)
    assert [s.id for s in slots.available_slots(rls, slot_day)] == [slot_id]
    assert slots.available_slots(rls, slot_day, pincode="600001") == []

    slots.add_coverage(as_user(db, nurse_id), "600001")
    assert [s.id for s in slots.available_slots(rls, slot_day,
                                                pincode="600001")] == [slot_id]


def test_unknown_slot_is_not_found(db, patient_id):
    with pytest.raises(NotFound):
        bookings.create_booking(as_user(db, patient_id), uuid.uuid4(),
                                "wound-care")
