# vetclinic/routers/profile.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import crud, schemas, security, models
from ..database import get_db

router = APIRouter(
    prefix="/profile",
    tags=["Profile"],
    dependencies=[Depends(security.get_current_user)],
    responses={404: {"description": "Not found"}},
)


@router.get("", response_model=schemas.ProfileResponse)
def read_profile(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user),
):
    return crud.serialize_profile(crud.get_profile(db, current_user.id))


@router.put("", response_model=schemas.ProfileResponse)
def save_profile(
    fields: schemas.ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user),
):
    """Create or update the practitioner's profile. Email always mirrors the account."""
    return crud.serialize_profile(crud.save_profile(db, current_user.id, fields))


@router.get("/status", response_model=schemas.ProfileStatus)
def profile_status(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user),
):
    missing = crud.missing_profile_fields(crud.find_profile(db, current_user.id))
    return {"complete": not missing, "missing_fields": missing}
