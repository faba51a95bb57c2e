# homecare/services/stats.py
from sqlalchemy.orm import Session

from homecare.db.rls import Principal, RowSecuritySession
from homecare.models import Profile, ProfileRole


def profile_counts(db: Session) -> dict:
    """
    Public head-counts for the landing page. Profiles are owner-only, so
    the counting runs as the service role; only the totals leave here.
    """
    svc = RowSecuritySession(db, Principal.service())
    return {
        "nurse_count": svc.count(Profile,
                                 Profile.role == ProfileRole.NURSE.value),
        "patient_count": svc.count(Profile,
                                   Profile.role == ProfileRole.PATIENT.value),
    }
