"""Prescription/attestation ledger.

A document is composed in memory as a :class:`~vetclinic.schemas.PrescriptionDraft`
carrying frozen copies of the patient, tutor and practitioner data, then
issued exactly once. Issuing is the only write: it mints the public code,
stamps the creation time and persists the record with its medication items.
Issued rows are never updated or deleted (see the flush guards in
``vetclinic.models``).
"""
import html
import uuid
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

import bleach
import structlog
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from .. import crud, models, schemas
from ..compliance_logger import compliance_logger
from ..config import get_settings
from ..errors import ValidationError, ProfileIncomplete, NotFound, Conflict
from ..security import encryption_service
from ..validators import is_blank, display_age, format_registration

logger = structlog.get_logger(__name__)

REQUIRED_ITEM_FIELDS = ("name", "dosage", "frequency")


def clean_text(value: Optional[str]) -> Optional[str]:
    """Strip markup from free text before it is frozen into a document."""
    if value is None:
        return None
    cleaned = html.unescape(bleach.clean(value, tags=[], strip=True)).strip()
    return cleaned or None


class LedgerService:

    # ---------- composition ----------

    def _practitioner_snapshot(self, profile: models.PractitionerProfile) -> Dict[str, Any]:
        return {
            "name": profile.name.strip(),
            "registration": format_registration(profile.crmv_state, profile.crmv_number),
            "crmv_state": profile.crmv_state,
            "crmv_number": profile.crmv_number.strip(),
            "secondary_registration": profile.secondary_registration,
            "specialty": profile.specialty,
            "clinic_name": profile.clinic_name,
            "phone": profile.phone.strip(),
            "email": profile.user.email if profile.user else None,
            "cep": profile.cep,
            "street": profile.street,
            "number": profile.number,
            "neighborhood": profile.neighborhood,
            "city": profile.city,
            "state": profile.state,
        }

    def _patient_snapshot(self, patient: models.Patient, issue_date: date) -> Dict[str, Any]:
        return {
            "name": patient.name,
            "species": patient.species.value if patient.species else None,
            "breed": patient.breed,
            "sex": patient.sex,
            "date_of_birth": patient.date_of_birth.isoformat() if patient.date_of_birth else None,
            "age": display_age(patient.date_of_birth, patient.age, today=issue_date),
            "weight": patient.weight,
            "color": patient.color,
            "microchip": patient.microchip,
            "neutered": bool(patient.neutered),
        }

    def _tutor_snapshot(self, tutor: models.Tutor) -> Dict[str, Any]:
        return {
            "name": tutor.name,
            "phone": tutor.phone,
            "email": tutor.email,
            "cep": tutor.cep,
            "street": tutor.street,
            "number": tutor.number,
            "neighborhood": tutor.neighborhood,
            "city": tutor.city,
            "state": tutor.state,
        }

    def _validate_content(self, request: schemas.PrescriptionDraftRequest) -> Dict[str, Any]:
        errors: Dict[str, str] = {}
        purpose = clean_text(request.purpose)
        if is_blank(purpose):
            errors["purpose"] = "Purpose is required."

        medications: List[schemas.MedicationItem] = []
        attestation_text = None
        if request.document_type == models.DocumentType.prescription:
            if not request.medications:
                errors["medications"] = "A prescription needs at least one medication."
            for index, item in enumerate(request.medications):
                cleaned = schemas.MedicationItem(
                    name=clean_text(item.name),
                    dosage=clean_text(item.dosage),
                    frequency=clean_text(item.frequency),
                    duration=clean_text(item.duration),
                )
                missing = [field for field in REQUIRED_ITEM_FIELDS if is_blank(getattr(cleaned, field))]
                if missing:
                    # only the first offending item is reported
                    errors[f"medications[{index}].{missing[0]}"] = (
                        f"Medication {index + 1} is missing {', '.join(missing)}."
                    )
                    break
                medications.append(cleaned)
        else:
            attestation_text = clean_text(request.attestation_text)
            if is_blank(attestation_text):
                errors["attestation_text"] = "An attestation needs a body text."

        if errors:
            raise ValidationError(errors)
        return {"purpose": purpose, "medications": medications, "attestation_text": attestation_text}

    def compose_draft(
        self, db: Session, practitioner_id: int, request: schemas.PrescriptionDraftRequest
    ) -> schemas.PrescriptionDraft:
        """Build an in-memory draft. Nothing is written."""
        profile = crud.find_profile(db, practitioner_id)
        missing = crud.missing_profile_fields(profile)
        if missing:
            raise ProfileIncomplete(missing)

        content = self._validate_content(request)
        patient = crud.get_patient(db, practitioner_id, request.patient_id)
        tutor = patient.tutor
        issue_date = request.issue_date or date.today()

        return schemas.PrescriptionDraft(
            draft_id=str(request.draft_id or uuid.uuid4()),
            document_type=request.document_type,
            practitioner_id=practitioner_id,
            patient_id=patient.id,
            tutor_id=tutor.id,
            issue_date=issue_date,
            practitioner=self._practitioner_snapshot(profile),
            patient=self._patient_snapshot(patient, issue_date),
            tutor=self._tutor_snapshot(tutor),
            tutor_document=encryption_service.decrypt(tutor.cpf_encrypted),
            **content,
        )

    # ---------- issuance ----------

    def _already_issued(self, db: Session, draft_id: str) -> bool:
        return db.query(models.Prescription.id).filter(models.Prescription.draft_id == draft_id).first() is not None

    def issue(self, db: Session, draft: schemas.PrescriptionDraft, ip_address: Optional[str] = None) -> models.Prescription:
        """Persist the draft once with a freshly minted public code."""
        if self._already_issued(db, draft.draft_id):
            raise Conflict("This draft has already been issued.")

        record = models.Prescription(
            public_code=str(uuid.uuid4()),
            draft_id=draft.draft_id,
            document_type=draft.document_type,
            status=models.DocumentStatus.issued,
            practitioner_id=draft.practitioner_id,
            patient_id=draft.patient_id,
            tutor_id=draft.tutor_id,
            issue_date=draft.issue_date,
            purpose=draft.purpose,
            attestation_text=draft.attestation_text,
            patient_name=draft.patient["name"],
            tutor_name=draft.tutor["name"],
            practitioner_snapshot=draft.practitioner,
            patient_snapshot=draft.patient,
            tutor_snapshot=draft.tutor,
            tutor_document_encrypted=encryption_service.encrypt(draft.tutor_document),
            created_at=datetime.now(timezone.utc),
            medications=[
                models.PrescriptionMedication(
                    position=position,
                    name=item.name,
                    dosage=item.dosage,
                    frequency=item.frequency,
                    duration=item.duration,
                )
                for position, item in enumerate(draft.medications)
            ],
        )
        try:
            db.add(record)
            db.commit()
            db.refresh(record)
        except IntegrityError as e:
            db.rollback()
            if "draft_id" in str(e.orig):
                # a concurrent request issued the same draft first
                raise Conflict("This draft has already been issued.")
            logger.error("issue_failed", draft_id=draft.draft_id, error=str(e.orig))
            raise crud.CRUDError("A database error occurred while issuing the document.")
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("issue_failed", draft_id=draft.draft_id, error=str(e))
            raise crud.CRUDError("A database error occurred while issuing the document.")

        logger.info(
            "document_issued",
            record_id=record.id,
            document_type=record.document_type.value,
            practitioner_id=record.practitioner_id,
        )
        compliance_logger.log_event(
            user_id=record.practitioner_id,
            action=models.AuditAction.ISSUE,
            category="LEDGER",
            resource_type="prescription",
            resource_id=record.id,
            details=f"Issued {record.document_type.value} {record.public_code} for patient {record.patient_id}",
            ip_address=ip_address,
        )
        return record

    # ---------- reads ----------

    def get_by_id(self, db: Session, practitioner_id: int, record_id: int) -> models.Prescription:
        record = db.query(models.Prescription).options(
            selectinload(models.Prescription.medications)
        ).filter(
            models.Prescription.id == record_id,
            models.Prescription.practitioner_id == practitioner_id,
        ).first()
        if record is None:
            raise NotFound("Document")
        return record

    def get_by_public_code(self, db: Session, code: str, ip_address: Optional[str] = None) -> schemas.PublicPrescriptionView:
        """Unauthenticated lookup. Returns the public projection only."""
        normalized = (code or "").strip().lower()
        record = db.query(models.Prescription).options(
            selectinload(models.Prescription.medications)
        ).filter(models.Prescription.public_code == normalized).first()
        if record is None:
            logger.warning("public_lookup_miss", ip_address=ip_address)
            raise NotFound("Document", detail="Document not found or invalid verification code.")

        compliance_logger.log_event(
            user_id=record.practitioner_id,
            action=models.AuditAction.VERIFY,
            category="PUBLIC_VERIFICATION",
            resource_type="prescription",
            resource_id=record.id,
            details=f"Public verification of {record.public_code}",
            ip_address=ip_address,
        )
        return self.public_view(record)

    def public_view(self, record: models.Prescription) -> schemas.PublicPrescriptionView:
        patient = record.patient_snapshot or {}
        practitioner = record.practitioner_snapshot or {}
        return schemas.PublicPrescriptionView(
            public_code=record.public_code,
            document_type=record.document_type,
            issue_date=record.issue_date,
            purpose=record.purpose,
            medications=[schemas.MedicationItem.model_validate(item) for item in record.medications],
            attestation_text=record.attestation_text,
            patient=schemas.PublicPatient(
                name=patient.get("name") or record.patient_name,
                species=patient.get("species"),
                breed=patient.get("breed"),
                age=patient.get("age"),
                weight=patient.get("weight"),
            ),
            tutor=schemas.PublicTutor(name=record.tutor_name),
            practitioner=schemas.PublicPractitioner(
                name=practitioner.get("name", ""),
                registration=practitioner.get("registration", ""),
            ),
        )

    def internal_view(self, record: models.Prescription) -> schemas.IssuedPrescriptionResponse:
        tutor = dict(record.tutor_snapshot or {})
        tutor["document"] = encryption_service.decrypt(record.tutor_document_encrypted)
        return schemas.IssuedPrescriptionResponse(
            id=record.id,
            public_code=record.public_code,
            draft_id=record.draft_id,
            document_type=record.document_type,
            status=record.status,
            practitioner_id=record.practitioner_id,
            patient_id=record.patient_id,
            tutor_id=record.tutor_id,
            issue_date=record.issue_date,
            purpose=record.purpose,
            medications=[schemas.MedicationItem.model_validate(item) for item in record.medications],
            attestation_text=record.attestation_text,
            practitioner=record.practitioner_snapshot,
            patient=record.patient_snapshot,
            tutor=tutor,
            created_at=record.created_at,
            verification_url=get_settings().verification_url(record.public_code),
        )

    def list_records(
        self, db: Session, practitioner_id: int, filters: schemas.PrescriptionListFilters
    ) -> List[models.Prescription]:
        """Issued records of the practitioner, newest first."""
        if filters.date_from and filters.date_to and filters.date_from > filters.date_to:
            raise ValidationError({"date_to": "End date must not precede start date."})

        query = db.query(models.Prescription).filter(models.Prescription.practitioner_id == practitioner_id)
        if filters.document_type:
            query = query.filter(models.Prescription.document_type == filters.document_type)
        if filters.date_from:
            query = query.filter(models.Prescription.issue_date >= filters.date_from)
        if filters.date_to:
            query = query.filter(models.Prescription.issue_date <= filters.date_to)
        if filters.patient_id is not None:
            query = query.filter(models.Prescription.patient_id == filters.patient_id)
        if filters.search and filters.search.strip():
            term = f"%{filters.search.strip()}%"
            query = query.filter(or_(
                models.Prescription.patient_name.ilike(term),
                models.Prescription.tutor_name.ilike(term),
                models.Prescription.public_code.ilike(term),
            ))
        try:
            return query.order_by(models.Prescription.created_at.desc(), models.Prescription.id.desc()).all()
        except SQLAlchemyError as e:
            logger.error("list_failed", practitioner_id=practitioner_id, error=str(e))
            raise crud.CRUDError("A database error occurred while listing documents.")

    def documents_for_patient(self, db: Session, practitioner_id: int, patient_id: int) -> List[models.Prescription]:
        patient = crud.get_patient(db, practitioner_id, patient_id)
        return self.list_records(db, practitioner_id, schemas.PrescriptionListFilters(patient_id=patient.id))


ledger_service = LedgerService()
