# vetclinic/crud.py
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import or_, func
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from datetime import datetime, timedelta, date, time, timezone
from typing import Optional, List, Dict, Any, Tuple
import logging
from . import models, schemas
from .config import get_settings
from .errors import ValidationError, NotFound, Conflict
from .security import get_password_hash, verify_password, encryption_service
from .validators import (
    is_blank, validate_cpf, format_cpf, normalize_cep, is_valid_state,
)
from .compliance_logger import compliance_logger

logger = logging.getLogger(__name__)


class CRUDError(Exception):
    pass


ADDRESS_FIELDS = ("cep", "street", "number", "neighborhood", "city", "state")

# field name -> label used in "complete your profile" messages
REQUIRED_PROFILE_FIELDS = {
    "name": "name",
    "crmv_number": "registration number",
    "phone": "phone",
}


def _clean(value: Any) -> Any:
    """Strip strings and turn blank ones into None."""
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def _validate_address(data: Dict[str, Any], errors: Dict[str, str]) -> None:
    if data.get("cep") is not None:
        cep = normalize_cep(data["cep"])
        if cep is None:
            errors["cep"] = "Postal code must have 8 digits."
        else:
            data["cep"] = cep
    if data.get("state") is not None:
        if not is_valid_state(data["state"]):
            errors["state"] = "Unknown state code."
        else:
            data["state"] = data["state"].upper()


# ==================== USER OPERATIONS ====================

def get_user(db: Session, user_id: int) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    return db.query(models.User).filter(func.lower(models.User.email) == email.strip().lower()).first()


def create_user(db: Session, user: schemas.UserCreate) -> models.User:
    """Create a practitioner account. Email addresses are unique case-insensitively."""
    if get_user_by_email(db, user.email):
        raise Conflict("An account with this email already exists.")
    try:
        db_user = models.User(
            email=user.email.strip().lower(),
            password_hash=get_password_hash(user.password),
            is_active=True,
        )
        db.add(db_user)
        db.commit()
        db.refresh(db_user)
    except IntegrityError:
        db.rollback()
        raise Conflict("An account with this email already exists.")
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error creating user: {str(e)}")
        raise CRUDError("A database error occurred while creating the account.")
    compliance_logger.log_event(
        user_id=db_user.id, action=models.AuditAction.CREATE, category="AUTH",
        resource_type="user", resource_id=db_user.id, details="Account created",
    )
    return db_user


def authenticate_user(db: Session, email: str, password: str) -> Optional[models.User]:
    user = get_user_by_email(db, email)
    if not user or not user.is_active:
        return None
    if not verify_password(password, user.password_hash):
        return None
    try:
        user.last_login = datetime.now(timezone.utc)
        db.commit()
        db.refresh(user)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error stamping last login for user {user.id}: {str(e)}")
    return user


# ==================== PRACTITIONER PROFILE ====================

def missing_profile_fields(profile: Optional[models.PractitionerProfile]) -> List[str]:
    if profile is None:
        return list(REQUIRED_PROFILE_FIELDS)
    return [field for field in REQUIRED_PROFILE_FIELDS if is_blank(getattr(profile, field, None))]


def is_profile_complete(profile: Optional[models.PractitionerProfile]) -> bool:
    """True iff name, registration number and phone are all non-blank."""
    return not missing_profile_fields(profile)


def find_profile(db: Session, practitioner_id: int) -> Optional[models.PractitionerProfile]:
    return db.query(models.PractitionerProfile).filter(
        models.PractitionerProfile.practitioner_id == practitioner_id
    ).first()


def get_profile(db: Session, practitioner_id: int) -> models.PractitionerProfile:
    profile = find_profile(db, practitioner_id)
    if profile is None:
        raise NotFound("Profile")
    return profile


def save_profile(db: Session, practitioner_id: int, fields: schemas.ProfileUpdate) -> models.PractitionerProfile:
    """Create the profile on first call, update the given fields afterwards."""
    data = {key: _clean(value) for key, value in fields.model_dump(exclude_unset=True).items()}
    errors: Dict[str, str] = {}

    if data.get("cpf") is not None:
        if not validate_cpf(data["cpf"]):
            errors["cpf"] = "Invalid CPF."
        else:
            data["cpf"] = format_cpf(data["cpf"])
    if data.get("crmv_state") is not None:
        if not is_valid_state(data["crmv_state"]):
            errors["crmv_state"] = "Unknown registration state."
        else:
            data["crmv_state"] = data["crmv_state"].upper()
    _validate_address(data, errors)
    if errors:
        raise ValidationError(errors)

    try:
        profile = find_profile(db, practitioner_id)
        created = profile is None
        if created:
            profile = models.PractitionerProfile(practitioner_id=practitioner_id)
            db.add(profile)
        _apply_fields(profile, data)
        db.commit()
        db.refresh(profile)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error saving profile for practitioner {practitioner_id}: {str(e)}")
        raise CRUDError("A database error occurred while saving the profile.")

    compliance_logger.log_event(
        user_id=practitioner_id,
        action=models.AuditAction.CREATE if created else models.AuditAction.UPDATE,
        category="PROFILE", resource_type="profile", resource_id=practitioner_id,
        details=f"Profile fields saved: {', '.join(sorted(data)) or 'none'}",
    )
    return profile


def serialize_profile(profile: models.PractitionerProfile) -> schemas.ProfileResponse:
    response = schemas.ProfileResponse.model_validate(profile)
    response.cpf = encryption_service.decrypt(profile.cpf_encrypted)
    if profile.user is not None:
        response.email = profile.user.email
    return response


# ==================== TUTOR REGISTRY ====================

def _validate_tutor(data: Dict[str, Any]) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    if is_blank(data.get("name")):
        errors["name"] = "Name is required."
    if is_blank(data.get("phone")):
        errors["phone"] = "Phone is required."
    if data.get("cpf") is not None:
        if not validate_cpf(data["cpf"]):
            errors["cpf"] = "Invalid CPF."
        else:
            data["cpf"] = format_cpf(data["cpf"])
    _validate_address(data, errors)
    return errors


def _apply_fields(record: Any, data: Dict[str, Any]) -> None:
    """Copy validated fields onto a profile or tutor; the CPF is only stored encrypted."""
    for key, value in data.items():
        if key == "cpf":
            record.cpf_encrypted = encryption_service.encrypt(value)
        else:
            setattr(record, key, value)


def serialize_tutor(tutor: models.Tutor) -> schemas.TutorResponse:
    response = schemas.TutorResponse.model_validate(tutor)
    response.cpf = encryption_service.decrypt(tutor.cpf_encrypted)
    return response


def list_tutors(db: Session, practitioner_id: int, search: Optional[str] = None) -> List[models.Tutor]:
    """Tutors owned by the practitioner, name ascending."""
    try:
        query = db.query(models.Tutor).filter(models.Tutor.practitioner_id == practitioner_id)
        if search and search.strip():
            term = f"%{search.strip()}%"
            query = query.filter(or_(
                models.Tutor.name.ilike(term),
                models.Tutor.phone.ilike(term),
                models.Tutor.email.ilike(term),
            ))
        return query.order_by(func.lower(models.Tutor.name), models.Tutor.id).all()
    except SQLAlchemyError as e:
        logger.error(f"Error listing tutors: {str(e)}")
        raise CRUDError("A database error occurred while listing tutors.")


def get_tutor(db: Session, practitioner_id: int, tutor_id: int) -> models.Tutor:
    tutor = db.query(models.Tutor).filter(
        models.Tutor.id == tutor_id,
        models.Tutor.practitioner_id == practitioner_id,
    ).first()
    if tutor is None:
        raise NotFound("Tutor")
    return tutor


def create_tutor(db: Session, practitioner_id: int, fields: schemas.TutorCreate) -> models.Tutor:
    data = {key: _clean(value) for key, value in fields.model_dump().items()}
    errors = _validate_tutor(data)
    if errors:
        raise ValidationError(errors)
    try:
        tutor = models.Tutor(practitioner_id=practitioner_id)
        _apply_fields(tutor, data)
        db.add(tutor)
        db.commit()
        db.refresh(tutor)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error creating tutor: {str(e)}")
        raise CRUDError("A database error occurred while creating the tutor.")
    compliance_logger.log_event(
        user_id=practitioner_id, action=models.AuditAction.CREATE, category="REGISTRY",
        resource_type="tutor", resource_id=tutor.id, details="Tutor created",
    )
    return tutor


def update_tutor(db: Session, practitioner_id: int, tutor_id: int, fields: schemas.TutorUpdate) -> models.Tutor:
    """Partial update; the merged record is validated like a new one."""
    tutor = get_tutor(db, practitioner_id, tutor_id)
    changes = {key: _clean(value) for key, value in fields.model_dump(exclude_unset=True).items()}

    merged = {
        "name": tutor.name,
        "phone": tutor.phone,
        "email": tutor.email,
        "cpf": encryption_service.decrypt(tutor.cpf_encrypted),
    }
    merged.update({field: getattr(tutor, field) for field in ADDRESS_FIELDS})
    merged.update(changes)
    errors = _validate_tutor(merged)
    if errors:
        raise ValidationError(errors)

    try:
        _apply_fields(tutor, {key: merged[key] for key in changes})
        db.commit()
        db.refresh(tutor)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error updating tutor {tutor_id}: {str(e)}")
        raise CRUDError("A database error occurred while updating the tutor.")
    compliance_logger.log_event(
        user_id=practitioner_id, action=models.AuditAction.UPDATE, category="REGISTRY",
        resource_type="tutor", resource_id=tutor.id,
        details=f"Tutor fields updated: {', '.join(sorted(changes)) or 'none'}",
    )
    return tutor


def delete_tutor(db: Session, practitioner_id: int, tutor_id: int) -> None:
    """Delete a tutor together with its patients and their appointments.

    Refused with Conflict when any issued document references the tutor or
    one of its patients. The cascade runs in a single transaction.
    """
    tutor = get_tutor(db, practitioner_id, tutor_id)
    patient_ids = [patient.id for patient in tutor.patients]

    document_filter = [models.Prescription.tutor_id == tutor.id]
    appointment_filter = [models.Appointment.tutor_id == tutor.id]
    if patient_ids:
        document_filter.append(models.Prescription.patient_id.in_(patient_ids))
        appointment_filter.append(models.Appointment.patient_id.in_(patient_ids))

    has_documents = db.query(models.Prescription.id).filter(or_(*document_filter)).first() is not None
    if has_documents:
        raise Conflict("This tutor has issued documents and cannot be deleted.")

    try:
        appointments = db.query(models.Appointment).filter(or_(*appointment_filter)).all()
        for appointment in appointments:
            db.delete(appointment)
        for patient in list(tutor.patients):
            db.delete(patient)
        db.delete(tutor)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error deleting tutor {tutor_id}: {str(e)}")
        raise CRUDError("A database error occurred while deleting the tutor.")

    logger.info(f"Tutor {tutor_id} deleted with {len(patient_ids)} patient(s) and {len(appointments)} appointment(s)")
    compliance_logger.log_event(
        user_id=practitioner_id, action=models.AuditAction.DELETE, category="REGISTRY",
        resource_type="tutor", resource_id=tutor_id,
        details=f"Tutor deleted with patients {patient_ids}",
    )


# ==================== PATIENT REGISTRY ====================

def _validate_patient(data: Dict[str, Any]) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    if is_blank(data.get("name")):
        errors["name"] = "Name is required."
    if data.get("species") is None:
        errors["species"] = "Species is required."
    dob = data.get("date_of_birth")
    if dob is not None and dob > date.today():
        errors["date_of_birth"] = "Date of birth cannot be in the future."
    return errors


def list_patients_by_tutor(db: Session, practitioner_id: int, tutor_id: int) -> List[models.Patient]:
    tutor = get_tutor(db, practitioner_id, tutor_id)
    return db.query(models.Patient).filter(
        models.Patient.tutor_id == tutor.id
    ).order_by(func.lower(models.Patient.name), models.Patient.id).all()


def get_patient(db: Session, practitioner_id: int, patient_id: int) -> models.Patient:
    patient = db.query(models.Patient).options(joinedload(models.Patient.tutor)).filter(
        models.Patient.id == patient_id,
        models.Patient.practitioner_id == practitioner_id,
    ).first()
    if patient is None:
        raise NotFound("Patient")
    return patient


def create_patient(db: Session, practitioner_id: int, tutor_id: int, fields: schemas.PatientCreate) -> models.Patient:
    tutor = get_tutor(db, practitioner_id, tutor_id)
    data = {key: _clean(value) for key, value in fields.model_dump().items()}
    errors = _validate_patient(data)
    if errors:
        raise ValidationError(errors)
    try:
        patient = models.Patient(tutor_id=tutor.id, practitioner_id=practitioner_id, **data)
        db.add(patient)
        db.commit()
        db.refresh(patient)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error creating patient: {str(e)}")
        raise CRUDError("A database error occurred while creating the patient.")
    compliance_logger.log_event(
        user_id=practitioner_id, action=models.AuditAction.CREATE, category="REGISTRY",
        resource_type="patient", resource_id=patient.id, details=f"Patient created under tutor {tutor.id}",
    )
    return patient


def update_patient(db: Session, practitioner_id: int, patient_id: int, fields: schemas.PatientUpdate) -> models.Patient:
    patient = get_patient(db, practitioner_id, patient_id)
    changes = {key: _clean(value) for key, value in fields.model_dump(exclude_unset=True).items()}
    if changes.get("neutered") is None:
        changes.pop("neutered", None)

    merged = {
        "name": patient.name,
        "species": patient.species,
        "date_of_birth": patient.date_of_birth,
    }
    merged.update(changes)
    errors = _validate_patient(merged)
    if errors:
        raise ValidationError(errors)

    try:
        for key, value in changes.items():
            setattr(patient, key, value)
        db.commit()
        db.refresh(patient)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error updating patient {patient_id}: {str(e)}")
        raise CRUDError("A database error occurred while updating the patient.")
    compliance_logger.log_event(
        user_id=practitioner_id, action=models.AuditAction.UPDATE, category="REGISTRY",
        resource_type="patient", resource_id=patient.id,
        details=f"Patient fields updated: {', '.join(sorted(changes)) or 'none'}",
    )
    return patient


def delete_patient(db: Session, practitioner_id: int, patient_id: int) -> None:
    """Delete a patient and its appointments; refused when issued documents reference it."""
    patient = get_patient(db, practitioner_id, patient_id)
    has_documents = db.query(models.Prescription.id).filter(
        models.Prescription.patient_id == patient.id
    ).first() is not None
    if has_documents:
        raise Conflict("This patient has issued documents and cannot be deleted.")

    try:
        for appointment in list(patient.appointments):
            db.delete(appointment)
        db.delete(patient)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error deleting patient {patient_id}: {str(e)}")
        raise CRUDError("A database error occurred while deleting the patient.")
    compliance_logger.log_event(
        user_id=practitioner_id, action=models.AuditAction.DELETE, category="REGISTRY",
        resource_type="patient", resource_id=patient_id, details="Patient deleted",
    )


# ==================== APPOINTMENT BOOK ====================

def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored times are UTC; SQLite hands them back without tzinfo."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def clinic_day_bounds(day: date) -> Tuple[datetime, datetime]:
    """UTC instants delimiting ``day`` as a calendar day in the clinic timezone."""
    tz = get_settings().clinic_tz
    start = tz.localize(datetime.combine(day, time.min))
    end = tz.localize(datetime.combine(day + timedelta(days=1), time.min))
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def serialize_appointment(appointment: models.Appointment) -> schemas.AppointmentResponse:
    response = schemas.AppointmentResponse.model_validate(appointment)
    response.start_time = _as_utc(appointment.start_time)
    response.end_time = _as_utc(appointment.end_time)
    response.patient_name = appointment.patient.name if appointment.patient else None
    response.tutor_name = appointment.tutor.name if appointment.tutor else None
    return response


def list_appointments_by_date(db: Session, practitioner_id: int, day: date) -> List[models.Appointment]:
    """Appointments starting on the given clinic-local calendar day, ordered by start time."""
    start, end = clinic_day_bounds(day)
    try:
        return db.query(models.Appointment).options(
            joinedload(models.Appointment.patient),
            joinedload(models.Appointment.tutor),
        ).filter(
            models.Appointment.practitioner_id == practitioner_id,
            models.Appointment.start_time >= start,
            models.Appointment.start_time < end,
        ).order_by(models.Appointment.start_time, models.Appointment.id).all()
    except SQLAlchemyError as e:
        logger.error(f"Error fetching appointments for {day}: {str(e)}")
        raise CRUDError("A database error occurred while listing appointments.")


def create_appointment(db: Session, practitioner_id: int, fields: schemas.AppointmentCreate) -> models.Appointment:
    errors = {
        field: "Time must carry a UTC offset."
        for field in ("start_time", "end_time")
        if getattr(fields, field).tzinfo is None
    }
    if errors:
        raise ValidationError(errors)
    start_time = fields.start_time.astimezone(timezone.utc)
    end_time = fields.end_time.astimezone(timezone.utc)
    if start_time >= end_time:
        raise ValidationError({"end_time": "End time must be after start time."})

    tutor = get_tutor(db, practitioner_id, fields.tutor_id)
    patient = get_patient(db, practitioner_id, fields.patient_id)
    if patient.tutor_id != tutor.id:
        raise ValidationError({"patient_id": "Patient does not belong to the selected tutor."})

    if get_settings().appointments_reject_overlap:
        # Overlap: (StartA < EndB) AND (EndA > StartB)
        clash = db.query(models.Appointment.id).filter(
            models.Appointment.practitioner_id == practitioner_id,
            models.Appointment.start_time < end_time,
            models.Appointment.end_time > start_time,
        ).first()
        if clash is not None:
            raise Conflict("The requested time overlaps an existing appointment.")

    try:
        appointment = models.Appointment(
            practitioner_id=practitioner_id,
            tutor_id=tutor.id,
            patient_id=patient.id,
            start_time=start_time,
            end_time=end_time,
            reason=_clean(fields.reason),
            notes=_clean(fields.notes),
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error creating appointment: {str(e)}")
        raise CRUDError("A database error occurred while creating the appointment.")
    compliance_logger.log_event(
        user_id=practitioner_id, action=models.AuditAction.CREATE, category="APPOINTMENT",
        resource_type="appointment", resource_id=appointment.id,
        details=f"Appointment booked for patient {patient.id}",
    )
    return appointment


def delete_appointment(db: Session, practitioner_id: int, appointment_id: int) -> None:
    appointment = db.query(models.Appointment).filter(
        models.Appointment.id == appointment_id,
        models.Appointment.practitioner_id == practitioner_id,
    ).first()
    if appointment is None:
        raise NotFound("Appointment")
    try:
        db.delete(appointment)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error deleting appointment {appointment_id}: {str(e)}")
        raise CRUDError("A database error occurred while deleting the appointment.")
    compliance_logger.log_event(
        user_id=practitioner_id, action=models.AuditAction.DELETE, category="APPOINTMENT",
        resource_type="appointment", resource_id=appointment_id, details="Appointment deleted",
    )


# ==================== DASHBOARD & AUDIT ====================

def get_dashboard_stats(db: Session, practitioner_id: int) -> Dict[str, Any]:
    """Counters shown on the practitioner's home screen"""
    try:
        documents = db.query(models.Prescription).filter(models.Prescription.practitioner_id == practitioner_id)
        day_start, day_end = clinic_day_bounds(datetime.now(get_settings().clinic_tz).date())
        stats = {}
        stats["total_tutors"] = db.query(models.Tutor).filter(models.Tutor.practitioner_id == practitioner_id).count()
        stats["total_patients"] = db.query(models.Patient).filter(models.Patient.practitioner_id == practitioner_id).count()
        stats["total_documents"] = documents.count()
        stats["prescriptions_issued"] = documents.filter(
            models.Prescription.document_type == models.DocumentType.prescription
        ).count()
        stats["attestations_issued"] = documents.filter(
            models.Prescription.document_type == models.DocumentType.attestation
        ).count()
        stats["appointments_today"] = db.query(models.Appointment).filter(
            models.Appointment.practitioner_id == practitioner_id,
            models.Appointment.start_time >= day_start,
            models.Appointment.start_time < day_end,
        ).count()
        return stats
    except SQLAlchemyError as e:
        logger.error(f"Error fetching dashboard stats: {str(e)}")
        raise CRUDError("A database error occurred while computing statistics.")


def get_audit_logs(
    db: Session,
    user_id: int,
    skip: int = 0,
    limit: int = 100,
    action: Optional[str] = None,
    category: Optional[str] = None,
) -> List[models.AuditLog]:
    try:
        query = db.query(models.AuditLog).filter(models.AuditLog.user_id == user_id)
        if action:
            action_upper = action.upper()
            if action_upper not in models.AuditAction.__members__:
                raise ValidationError({"action": f"Unknown action '{action}'."})
            query = query.filter(models.AuditLog.action == models.AuditAction[action_upper])
        if category:
            query = query.filter(models.AuditLog.category == category.upper())
        return query.order_by(models.AuditLog.timestamp.desc(), models.AuditLog.id.desc()).offset(skip).limit(limit).all()
    except SQLAlchemyError as e:
        logger.error(f"Error fetching audit logs: {str(e)}")
        raise CRUDError("A database error occurred while fetching audit logs.")
