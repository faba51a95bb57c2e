# homecare/services/accounts.py
from __future__ import annotations

import logging
import uuid
from typing import List, Optional, Tuple, Union

from sqlalchemy import select
from sqlalchemy.orm import Session

from homecare.core.errors import AuthError, Conflict, HomecareError, NotFound
from homecare.core.security import (
    create_access_token,
    hash_password,
    verify_password,
)
from homecare.db.rls import Principal, RowSecuritySession
from homecare.db.session import claim_write_lock
from homecare.models import (
    Identity,
    NurseProfile,
    NurseServiceArea,
    PatientProfile,
    Profile,
    ProfileRole,
)
from homecare.schemas.auth import LoginIn, SignupIn
from homecare.schemas.profile import (
    AccountUpdate,
    NurseAccount,
    NurseCard,
    NurseDetails,
    PatientAccount,
    PatientDetails,
)

logger = logging.getLogger(__name__)

AccountOut = Union[PatientAccount, NurseAccount]


def to_account(profile: Profile,
               ext: Union[PatientProfile, NurseProfile]) -> AccountOut:
    base = dict(id=profile.id,
                name=profile.name,
                phone=profile.phone,
                address=profile.address,
                created_at=profile.created_at)
    if profile.role == ProfileRole.PATIENT.value:
        return PatientAccount(patient=PatientDetails.model_validate(ext),
                              **base)
    return NurseAccount(nurse=NurseDetails.model_validate(ext), **base)


# =========================================================
# IDENTITY (signup / login)
# =========================================================
def signup(db: Session, payload: SignupIn) -> Tuple[str, AccountOut]:
    """
    Create the identity, then the profile and its extension as that
    identity, all in one transaction.
    """
    email = payload.email.strip().lower()
    # nothing below reads ORM attributes after commit
    identity_id = uuid.uuid4()
    password_hash = hash_password(payload.password)

    claim_write_lock(db)
    try:
        exists = db.execute(select(Identity.id).where(
            Identity.email == email)).first()
        if exists:
            raise Conflict("Email already registered")
        db.add(Identity(id=identity_id,
                        email=email,
                        password_hash=password_hash))
        db.flush()
        rls = RowSecuritySession(db, Principal.authenticated(identity_id))
        account = register_profile(rls, payload.profile, commit=False)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("signup: %s registered as %s", identity_id, account.role)
    return create_access_token(identity_id, email), account


def login(db: Session, payload: LoginIn) -> Tuple[str, uuid.UUID]:
    email = payload.email.strip().lower()
    ident: Optional[Identity] = db.execute(
        select(Identity).where(Identity.email == email)).scalars().first()
    if not ident or not verify_password(payload.password, ident.password_hash):
        raise AuthError("Invalid credentials")
    return create_access_token(ident.id, email), ident.id


# =========================================================
# PROFILES
# =========================================================
def register_profile(rls: RowSecuritySession,
                     data,
                     commit: bool = True) -> AccountOut:
    uid = rls.uid
    if uid is None:
        raise AuthError("Sign in to create a profile")

    profile = Profile(id=uid,
                      role=data.role,
                      name=data.name,
                      phone=data.phone,
                      address=data.address)
    if data.role == ProfileRole.PATIENT.value:
        ext = PatientProfile(id=uid,
                             role=data.role,
                             **data.patient.model_dump())
    else:
        ext = NurseProfile(id=uid, role=data.role, **data.nurse.model_dump())

    if commit:
        claim_write_lock(rls.session)
    try:
        rls.insert(profile)
        rls.insert(ext)
        account = to_account(profile, ext)
        if commit:
            rls.session.commit()
    except Exception:
        if commit:
            rls.session.rollback()
        raise
    return account


def load_account(rls: RowSecuritySession,
                 profile_id: Optional[uuid.UUID] = None) -> AccountOut:
    """The caller's own account (default) as the role-tagged variant."""
    profile_id = profile_id or rls.uid
    profile = rls.get_or_404(Profile, profile_id, "Profile")
    ext_model = (PatientProfile if profile.role == ProfileRole.PATIENT.value
                 else NurseProfile)
    ext = rls.get(ext_model, profile_id)
    if ext is None:
        raise NotFound("Profile is incomplete")
    return to_account(profile, ext)


def update_account(rls: RowSecuritySession,
                   payload: AccountUpdate) -> AccountOut:
    uid = rls.uid
    claim_write_lock(rls.session)
    try:
        profile = rls.get_or_404(Profile, uid, "Profile")
        is_patient = profile.role == ProfileRole.PATIENT.value
        if payload.patient is not None and not is_patient:
            raise HomecareError("Nurse accounts have no patient details")
        if payload.nurse is not None and is_patient:
            raise HomecareError("Patient accounts have no nurse details")

        base = payload.model_dump(include={"name", "phone", "address"},
                                  exclude_unset=True)
        if base:
            rls.update(Profile, uid, base)
        ext = payload.patient if is_patient else payload.nurse
        if ext is not None:
            values = ext.model_dump(exclude_unset=True)
            if values:
                rls.update(PatientProfile if is_patient else NurseProfile,
                           uid, values)
        rls.session.commit()
    except Exception:
        rls.session.rollback()
        raise
    return load_account(rls)


def list_nurses(rls: RowSecuritySession,
                pincode: Optional[str] = None) -> List[NurseCard]:
    """
    Nurse directory. Credentials come through the caller's policies; names
    live on `profiles` (owner-only), so only the names of the nurses the
    caller can already see are read with elevated rights.
    """
    criteria = []
    if pincode:
        criteria.append(
            NurseProfile.id.in_(
                select(NurseServiceArea.nurse_id).where(
                    rls.visible(NurseServiceArea),
                    NurseServiceArea.pincode == pincode,
                    NurseServiceArea.is_active.is_(True),
                )))
    nurses = rls.all(NurseProfile, *criteria, order_by=NurseProfile.created_at)
    if not nurses:
        return []

    with rls.elevated() as svc:
        names = dict(
            svc.session.execute(
                select(Profile.id, Profile.name).where(
                    Profile.id.in_([n.id for n in nurses]),
                    Profile.role == ProfileRole.NURSE.value)).all())
    return [
        NurseCard(id=n.id,
                  name=names.get(n.id, ""),
                  qualification=n.qualification,
                  years_of_experience=n.years_of_experience,
                  specializations=list(n.specializations or []),
                  languages_spoken=list(n.languages_spoken or []))
        for n in nurses
    ]
