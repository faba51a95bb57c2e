import uuid
from datetime import time

import pytest
from sqlalchemy.exc import IntegrityError

from homecare.db.seed import DEMO_NURSE_ID, DEMO_PATIENT_ID
from homecare.models import (
    Booking,
    Identity,
    NurseProfile,
    NurseSlot,
    PatientProfile,
    Profile,
)
from homecare.services.bookings import create_booking

from conftest import as_service, as_user


def _add(db, obj):
    db.add(obj)
    db.flush()


def test_nurse_extension_for_patient_profile_is_rejected(db):
    with pytest.raises(IntegrityError):
        _add(db, NurseProfile(id=DEMO_PATIENT_ID, qualification="GNM"))
    db.rollback()


def test_extension_role_column_cannot_be_forged(db):
    with pytest.raises(IntegrityError):
        _add(db, PatientProfile(id=DEMO_NURSE_ID, role="nurse"))
    db.rollback()


def test_negative_experience_is_rejected(db):
    db.execute(NurseProfile.__table__.delete().where(
        NurseProfile.id == DEMO_NURSE_ID))
    with pytest.raises(IntegrityError):
        _add(db, NurseProfile(id=DEMO_NURSE_ID, qualification="GNM",
                              years_of_experience=-1))
    db.rollback()


@pytest.mark.parametrize("start,end", [
    (time(9, 0), time(10, 30)),
    (time(9, 0), time(9, 30)),
    (time(10, 0), time(9, 0)),
])
def test_slot_must_be_exactly_one_hour(db, slot_day, start, end):
    with pytest.raises(IntegrityError):
        _add(db, NurseSlot(id=uuid.uuid4(), nurse_id=DEMO_NURSE_ID,
                           date=slot_day, start_time=start, end_time=end))
    db.rollback()


def test_one_hour_slot_is_accepted(db, slot_day):
    _add(db, NurseSlot(id=uuid.uuid4(), nurse_id=DEMO_NURSE_ID,
                       date=slot_day, start_time=time(14, 0),
                       end_time=time(15, 0)))
    db.rollback()


def test_booking_nurse_must_own_slot(db, slot_id):
    with pytest.raises(IntegrityError):
        _add(db, Booking(id=uuid.uuid4(), patient_id=DEMO_PATIENT_ID,
                         nurse_id=DEMO_NURSE_ID, slot_id=slot_id,
                         service_id="wound-care"))
    db.rollback()


def test_one_live_booking_per_slot(db, slot_id):
    nurse_id = as_service(db).get(NurseSlot, slot_id).nurse_id

    def booking(status):
        return Booking(id=uuid.uuid4(), patient_id=DEMO_PATIENT_ID,
                       nurse_id=nurse_id, slot_id=slot_id,
                       service_id="wound-care", status=status)

    _add(db, booking("cancelled"))
    _add(db, booking("pending"))
    with pytest.raises(IntegrityError):
        _add(db, booking("confirmed"))
    db.rollback()


def test_deleting_identity_cascades_to_profiles(db, patient_id):
    db.execute(Identity.__table__.delete().where(Identity.id == patient_id))
    db.flush()
    svc = as_service(db)
    assert svc.get(Profile, patient_id) is None
    assert svc.get(PatientProfile, patient_id) is None
    db.rollback()


def test_deleting_profile_cascades_to_bookings(db, patient_id, slot_id):
    booking = create_booking(as_user(db, patient_id), slot_id, "wound-care")
    booking_id = booking.id

    db.execute(Profile.__table__.delete().where(Profile.id == patient_id))
    db.flush()
    assert as_service(db).get(Booking, booking_id) is None
    assert as_service(db).get(NurseSlot, slot_id) is not None
    db.rollback()
