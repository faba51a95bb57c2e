import uuid
from datetime import date, time, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from homecare.api.deps import get_db
from homecare.db.rls import Principal, RowSecuritySession
from homecare.db.schema_manager import SchemaManager
from homecare.db.session import make_engine
from homecare.main import app
from homecare.schemas.auth import SignupIn
from homecare.services import accounts

PASSWORD = "s3cret-pass"


@pytest.fixture
def engine(tmp_path):
    # a file, not :memory:, so TestClient's worker thread sees the same data
    eng = make_engine(f"sqlite:///{tmp_path / 'homecare.db'}")
    SchemaManager().apply(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def bare_engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'empty.db'}")
    yield eng
    eng.dispose()


@pytest.fixture
def Session(engine):
    return sessionmaker(bind=engine, autoflush=False, future=True)


@pytest.fixture
def db(Session):
    session = Session()
    yield session
    session.close()


def as_user(db, identity_id):
    return RowSecuritySession(db, Principal.authenticated(identity_id))


def as_service(db):
    return RowSecuritySession(db, Principal.service())


def signup(db, role, email=None, name=None, **details):
    email = email or f"{role}-{uuid.uuid4().hex[:8]}@example.com"
    profile = {"role": role, "name": name or role.title()}
    if role == "nurse":
        profile["nurse"] = {"qualification": "GNM", **details}
    else:
        profile["patient"] = details
    _, account = accounts.signup(
        db,
        SignupIn.model_validate({
            "email": email,
            "password": PASSWORD,
            "profile": profile
        }))
    return account.id


@pytest.fixture
def patient_id(db):
    return signup(db, "patient", email="asha@example.com", name="Asha")


@pytest.fixture
def nurse_id(db):
    return signup(db, "nurse", email="meena@example.com", name="Meena")


@pytest.fixture
def slot_day():
    return date.today() + timedelta(days=1)


@pytest.fixture
def slot_id(db, nurse_id, slot_day):
    from homecare.services.slots import publish_slot
    sid = publish_slot(as_user(db, nurse_id), slot_day, time(9, 0)).id
    # reading the id reopened a transaction; release it for other sessions
    db.rollback()
    return sid


@pytest.fixture
def client(Session):

    def override_get_db():
        session = Session()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
