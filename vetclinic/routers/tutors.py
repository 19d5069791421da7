# vetclinic/routers/tutors.py
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from typing import List, Optional

from .. import crud, schemas, security, models
from ..database import get_db

router = APIRouter(
    prefix="/tutors",
    tags=["Tutors"],
    dependencies=[Depends(security.get_current_user)],
    responses={404: {"description": "Not found"}},
)


@router.get("", response_model=List[schemas.TutorResponse])
def list_tutors(
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user),
):
    """Tutors owned by the current practitioner, sorted by name."""
    return [crud.serialize_tutor(tutor) for tutor in crud.list_tutors(db, current_user.id, search=search)]


@router.post("", response_model=schemas.TutorResponse, status_code=status.HTTP_201_CREATED)
def create_tutor(
    tutor: schemas.TutorCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user),
):
    return crud.serialize_tutor(crud.create_tutor(db, current_user.id, tutor))


@router.get("/{tutor_id}", response_model=schemas.TutorResponse)
def read_tutor(
    tutor_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user),
):
    return crud.serialize_tutor(crud.get_tutor(db, current_user.id, tutor_id))


@router.put("/{tutor_id}", response_model=schemas.TutorResponse)
def update_tutor(
    tutor_id: int,
    tutor: schemas.TutorUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user),
):
    return crud.serialize_tutor(crud.update_tutor(db, current_user.id, tutor_id, tutor))


@router.delete("/{tutor_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_tutor(
    tutor_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user),
):
    """Delete the tutor with its patients and their appointments.

    Answers 409 when any issued document references the tutor's patients.
    """
    crud.delete_tutor(db, current_user.id, tutor_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{tutor_id}/patients", response_model=List[schemas.PatientResponse])
def list_patients(
    tutor_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user),
):
    return crud.list_patients_by_tutor(db, current_user.id, tutor_id)


@router.post("/{tutor_id}/patients", response_model=schemas.PatientResponse, status_code=status.HTTP_201_CREATED)
def create_patient(
    tutor_id: int,
    patient: schemas.PatientCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user),
):
    return crud.create_patient(db, current_user.id, tutor_id, patient)
