# vetclinic/routers/appointments.py
from datetime import date
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from typing import List

from .. import crud, schemas, security, models
from ..database import get_db

router = APIRouter(
    prefix="/appointments",
    tags=["Appointments"],
    dependencies=[Depends(security.get_current_user)],
    responses={404: {"description": "Not found"}},
)


@router.get("", response_model=List[schemas.AppointmentResponse])
def list_appointments(
    day: date = Query(..., alias="date"),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user),
):
    """Appointments of the given day (``?date=YYYY-MM-DD``) ordered by start time."""
    appointments = crud.list_appointments_by_date(db, current_user.id, day)
    return [crud.serialize_appointment(appointment) for appointment in appointments]


@router.post("", response_model=schemas.AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    appointment: schemas.AppointmentCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user),
):
    return crud.serialize_appointment(crud.create_appointment(db, current_user.id, appointment))


@router.delete("/{appointment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user),
):
    crud.delete_appointment(db, current_user.id, appointment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
