import pytest
from sqlalchemy import inspect, select, update

from homecare.core.policies import POLICIES, SECURED_TABLES
from homecare.db.policy_catalog import rls_policies
from homecare.db.schema_manager import SchemaManager
from homecare.db.seed import DEMO_NURSE_ID, DEMO_PATIENT_ID, seed_demo
from homecare.models import Identity, Profile

from conftest import signup


def test_apply_creates_tables_and_policies(engine):
    with engine.connect() as conn:
        state = SchemaManager().describe(conn)

    assert set(state.tables) >= set(SECURED_TABLES) | {"identities"}
    assert state.rls_tables == frozenset(SECURED_TABLES)
    assert len(state.policies) == len(POLICIES)
    assert ("bookings", "Patients can create bookings") in state.policies
    assert "uq_bookings_live_slot" in state.constraints["bookings"]
    assert "ck_nurse_slots_one_hour_slot" in state.constraints["nurse_slots"]


def test_second_apply_changes_nothing(engine):
    manager = SchemaManager()
    with engine.connect() as conn:
        before = manager.describe(conn)
        assert manager.plan(conn) == []

    assert manager.apply(engine) == []

    with engine.connect() as conn:
        assert manager.describe(conn) == before


def test_reset_keeps_identities_and_reseeds(engine, db, patient_id):
    changes = SchemaManager().apply(engine, reset=True)
    kinds = {c.kind for c in changes}
    assert {"drop_policy", "drop_table", "create_table", "enable_rls",
            "create_policy"} <= kinds
    assert all(c.table != "identities" for c in changes
               if c.kind == "drop_table")

    db.expire_all()
    assert db.get(Identity, patient_id) is not None
    # the signed-up profile went with the table; the demo rows came back
    ids = set(db.execute(select(Profile.id)).scalars())
    assert ids == {DEMO_PATIENT_ID, DEMO_NURSE_ID}

    with engine.connect() as conn:
        assert len(SchemaManager().describe(conn).policies) == len(POLICIES)


def test_drifted_policy_is_recreated(engine):
    key = ("profiles", "Users can view their own profile")
    with engine.begin() as conn:
        conn.execute(
            update(rls_policies).where(
                rls_policies.c.table_name == key[0],
                rls_policies.c.policy_name == key[1]).values(
                    fingerprint="0" * 16))

    manager = SchemaManager()
    with engine.connect() as conn:
        plan = manager.plan(conn)
    assert [(c.kind, c.table, c.policy) for c in plan] == [
        ("drop_policy", *key),
        ("create_policy", *key),
    ]

    manager.apply(engine)
    with engine.connect() as conn:
        assert manager.plan(conn) == []


def test_failed_apply_leaves_database_untouched(bare_engine, monkeypatch):
    manager = SchemaManager()
    real_execute = SchemaManager._execute

    def failing_execute(self, conn, change):
        if change.kind == "enable_rls":
            raise RuntimeError("boom")
        real_execute(self, conn, change)

    monkeypatch.setattr(SchemaManager, "_execute", failing_execute)
    with pytest.raises(RuntimeError):
        manager.apply(bare_engine)

    assert inspect(bare_engine).get_table_names() == []


def test_seed_is_idempotent(engine):
    with engine.begin() as conn:
        assert seed_demo(conn) == 0

    with engine.connect() as conn:
        count = len(conn.execute(select(Identity.id)).all())
    assert count == 2


def test_seed_fills_empty_schema(bare_engine):
    SchemaManager().apply(bare_engine, seed=False)
    with bare_engine.begin() as conn:
        assert seed_demo(conn) == 6
        assert seed_demo(conn) == 0


def test_signup_after_seed_uses_fresh_ids(db):
    new_id = signup(db, "patient")
    assert new_id not in (DEMO_PATIENT_ID, DEMO_NURSE_ID)
