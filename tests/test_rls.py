import uuid

import pytest
from sqlalchemy import select
from sqlalchemy.sql.elements import False_

from homecare.core.errors import NotFound, PolicyViolation
from homecare.core.policies import (
    POLICIES,
    check_for,
    render_create_policy,
    using_for,
)
from homecare.db.rls import Principal, RowSecuritySession
from homecare.models import (
    NurseProfile,
    NurseSlot,
    PatientProfile,
    Profile,
    ServiceArea,
)

from conftest import as_service, as_user, signup


def _policy(table, name):
    return next(p for p in POLICIES if p.table == table and p.name == name)


def test_policy_ddl_uses_auth_uid():
    ddl = render_create_policy(
        _policy("bookings", "Patients can create bookings"))
    assert ddl.startswith('CREATE POLICY "Patients can create bookings"')
    assert "FOR INSERT" in ddl
    assert "TO authenticated" in ddl
    assert "auth.uid()" in ddl
    assert "'patient'" in ddl
    assert "USING" not in ddl


def test_update_policy_ddl_has_both_clauses():
    ddl = render_create_policy(
        _policy("profiles", "Users can update their own profile"))
    assert "FOR UPDATE" in ddl
    assert "USING (profiles.id = auth.uid())" in ddl
    assert "WITH CHECK (profiles.id = auth.uid())" in ddl


def test_no_policy_means_nothing_visible():
    assert isinstance(using_for("service_areas", "DELETE", ("public", ), None),
                      False_)
    assert isinstance(
        check_for("service_areas", "INSERT", ("public", "authenticated"),
                  None), False_)


def test_owner_only_extension_rows(db, patient_id):
    other = signup(db, "patient", name="Ravi")

    mine = as_user(db, patient_id)
    assert mine.get(PatientProfile, patient_id) is not None
    assert mine.get(PatientProfile, other) is None
    assert [p.id for p in mine.all(Profile)] == [patient_id]

    with pytest.raises(NotFound):
        mine.update(PatientProfile, other, {"blood_group": "AB-"})


def test_anonymous_sees_no_profiles_but_service_areas(db, patient_id):
    svc = as_service(db)
    svc.insert(ServiceArea(id=uuid.uuid4(), pincode="600001",
                           service_id="wound-care"))
    db.commit()

    anon = RowSecuritySession(db, Principal.anonymous())
    assert anon.count(Profile) == 0
    assert anon.count(NurseProfile) == 0
    assert anon.count(ServiceArea) == 1


def test_nurse_profiles_visible_to_signed_in_users(db, patient_id, nurse_id):
    rls = as_user(db, patient_id)
    assert [n.id for n in rls.all(NurseProfile)] != []
    assert rls.get(NurseProfile, nurse_id).qualification == "GNM"


def test_insert_for_someone_else_is_rejected(db, patient_id):
    stranger = uuid.uuid4()
    rls = as_user(db, patient_id)
    with pytest.raises(PolicyViolation) as exc:
        rls.insert(Profile(id=stranger, role="patient", name="Mallory"))
    assert exc.value.table == "profiles"
    assert exc.value.command == "INSERT"
    db.rollback()
    assert as_service(db).get(Profile, stranger) is None


def test_update_cannot_move_row_to_another_owner(db, nurse_id, slot_id):
    other_nurse = signup(db, "nurse", name="Kala")
    rls = as_user(db, nurse_id)
    with pytest.raises(PolicyViolation):
        rls.update(NurseSlot, slot_id, {"nurse_id": other_nurse})
    db.rollback()
    assert as_service(db).get(NurseSlot, slot_id).nurse_id == nurse_id


def test_service_area_writes_need_service_role(db, patient_id):
    rls = as_user(db, patient_id)
    with pytest.raises(PolicyViolation):
        rls.insert(ServiceArea(id=uuid.uuid4(), pincode="600002",
                               service_id="physio"))
    db.rollback()
    assert db.execute(select(ServiceArea)).first() is None


def test_conditional_update_skips_hidden_rows(db, nurse_id, slot_id,
                                              patient_id):
    patient = as_user(db, patient_id)
    changed = patient.update_where(NurseSlot, {"status": "cancelled"},
                                   NurseSlot.id == slot_id)
    assert changed == 0

    nurse = as_user(db, nurse_id)
    changed = nurse.update_where(NurseSlot, {"status": "cancelled"},
                                 NurseSlot.id == slot_id)
    assert changed == 1
    db.commit()


def test_elevated_block_bypasses_policies(db, patient_id, nurse_id):
    rls = as_user(db, patient_id)
    assert rls.get(Profile, nurse_id) is None
    with rls.elevated() as svc:
        assert svc.get(Profile, nurse_id).name == "Meena"
    assert rls.principal.role == "authenticated"
