# homecare/db/seed.py
from __future__ import annotations

import logging
import uuid
from datetime import date

from sqlalchemy.engine import Connection

from homecare.models import Identity, NurseProfile, PatientProfile, Profile

logger = logging.getLogger(__name__)

DEMO_PATIENT_ID = uuid.UUID("e9dc96f3-6691-4a7c-9d6c-ef3b367ad6f1")
DEMO_NURSE_ID = uuid.UUID("f7dc96f3-6691-4a7c-9d6c-ef3b367ad6f2")

# "!" never verifies, so the demo identities can't be logged into
UNUSABLE_PASSWORD = "!"

DEMO_ROWS = [
    (Identity, [
        dict(id=DEMO_PATIENT_ID,
             email="patient@demo.homecare",
             password_hash=UNUSABLE_PASSWORD),
        dict(id=DEMO_NURSE_ID,
             email="nurse@demo.homecare",
             password_hash=UNUSABLE_PASSWORD),
    ]),
    (Profile, [
        dict(id=DEMO_PATIENT_ID, role="patient", name="Test Patient"),
        dict(id=DEMO_NURSE_ID, role="nurse", name="Test Nurse"),
    ]),
    (PatientProfile, [
        dict(
            id=DEMO_PATIENT_ID,
            role="patient",
            date_of_birth=date(1990, 1, 1),
            gender="male",
            blood_group="O+",
            emergency_contact_name="Emergency Contact",
            emergency_contact_phone="+91 98765 43210",
        ),
    ]),
    (NurseProfile, [
        dict(
            id=DEMO_NURSE_ID,
            role="nurse",
            qualification="BSc Nursing",
            years_of_experience=5,
            specializations=[
                "General Care", "Elder Care", "Post-operative Care"
            ],
            languages_spoken=["English", "Tamil", "Hindi"],
        ),
    ]),
]


def _insert_or_skip(conn: Connection, model, row: dict) -> int:
    if conn.dialect.name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif conn.dialect.name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise RuntimeError(
            f"seeding not supported on dialect {conn.dialect.name!r}")

    stmt = insert(model.__table__).values(**row).on_conflict_do_nothing(
        index_elements=["id"])
    return conn.execute(stmt).rowcount


def seed_demo(conn: Connection) -> int:
    """
    Insert the demo patient and nurse. Rows keyed on an existing id are
    skipped, so running this again changes nothing.
    """
    inserted = 0
    for model, rows in DEMO_ROWS:
        for row in rows:
            inserted += _insert_or_skip(conn, model, row)
    if inserted:
        logger.info("seed: inserted %d demo row(s)", inserted)
    else:
        logger.info("seed: demo rows already present")
    return inserted
