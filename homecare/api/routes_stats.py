# homecare/api/routes_stats.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from homecare.api.deps import get_db
from homecare.api.response import ok
from homecare.schemas.booking import StatsOut
from homecare.services import stats

router = APIRouter(tags=["stats"])


@router.get("/stats")
def get_stats(db: Session = Depends(get_db)):
    return ok(StatsOut(**stats.profile_counts(db)))
