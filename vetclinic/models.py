# vetclinic/models.py
from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Text, Date,
    Enum as SQLAlchemyEnum, Boolean, LargeBinary, JSON, Index, event
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from .database import Base
from .errors import Conflict
import enum


class Species(str, enum.Enum):
    canine = "canine"
    feline = "feline"
    bovine = "bovine"
    equine = "equine"
    reptile = "reptile"
    avian = "avian"
    other = "other"


class DocumentType(str, enum.Enum):
    prescription = "prescription"
    attestation = "attestation"


class DocumentStatus(str, enum.Enum):
    # "draft" only ever exists in memory; rows are always "issued"
    draft = "draft"
    issued = "issued"


class AuditAction(str, enum.Enum):
    CREATE = "CREATE"
    READ = "READ"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    LOGIN = "LOGIN"
    ISSUE = "ISSUE"
    VERIFY = "VERIFY"
    EXPORT = "EXPORT"
    ACCESS_DENIED = "ACCESS_DENIED"


# ==================== Identity ====================

class User(Base):
    """Practitioner account issued by the identity layer."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True)
    last_login = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    profile = relationship("PractitionerProfile", back_populates="user", uselist=False)
    audit_logs = relationship("AuditLog", back_populates="user")


class PractitionerProfile(Base):
    """Displayable credentials printed on every issued document."""
    __tablename__ = "practitioner_profiles"

    practitioner_id = Column(Integer, ForeignKey("users.id"), primary_key=True)
    name = Column(String(255), nullable=True)
    crmv_state = Column(String(2), nullable=True)
    crmv_number = Column(String(50), nullable=True)
    secondary_registration = Column(String(50), nullable=True)  # e.g. SIPEAGRO
    phone = Column(String(20), nullable=True)
    cpf_encrypted = Column(LargeBinary, nullable=True)
    specialty = Column(String(100), nullable=True)
    clinic_name = Column(String(255), nullable=True)

    # Address
    cep = Column(String(8), nullable=True)
    street = Column(String(255), nullable=True)
    number = Column(String(20), nullable=True)
    neighborhood = Column(String(100), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(2), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", back_populates="profile")


# ==================== Registries ====================

class Tutor(Base):
    """Animal owner / responsible party."""
    __tablename__ = "tutors"
    __table_args__ = (
        Index('idx_tutors_practitioner_name', 'practitioner_id', 'name'),
    )

    id = Column(Integer, primary_key=True, index=True)
    practitioner_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    name = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=False)
    email = Column(String(255), nullable=True)

    # National ID (CPF), Fernet-encrypted
    cpf_encrypted = Column(LargeBinary, nullable=True)

    cep = Column(String(8), nullable=True)
    street = Column(String(255), nullable=True)
    number = Column(String(20), nullable=True)
    neighborhood = Column(String(100), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(2), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    patients = relationship("Patient", back_populates="tutor", order_by="Patient.name")


class Patient(Base):
    """An animal under care, owned by exactly one tutor."""
    __tablename__ = "patients"
    __table_args__ = (
        Index('idx_patients_tutor_name', 'tutor_id', 'name'),
        Index('idx_patients_practitioner', 'practitioner_id'),
    )

    id = Column(Integer, primary_key=True, index=True)
    tutor_id = Column(Integer, ForeignKey("tutors.id"), nullable=False)
    practitioner_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    name = Column(String(255), nullable=False)
    species = Column(SQLAlchemyEnum(Species, name='species'), nullable=False)
    breed = Column(String(100), nullable=True)
    sex = Column(String(20), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    age = Column(String(50), nullable=True)  # free text when date of birth is unknown
    weight = Column(String(20), nullable=True)
    color = Column(String(100), nullable=True)
    microchip = Column(String(50), nullable=True)
    neutered = Column(Boolean, default=False)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    tutor = relationship("Tutor", back_populates="patients")
    appointments = relationship("Appointment", back_populates="patient")


# ==================== Ledger ====================

class Prescription(Base):
    """Issued prescription or attestation. Append-only: rows are never updated or deleted."""
    __tablename__ = "prescriptions"
    __table_args__ = (
        Index('idx_prescriptions_practitioner_date', 'practitioner_id', 'issue_date'),
        Index('idx_prescriptions_patient', 'patient_id'),
        Index('idx_prescriptions_type', 'document_type'),
    )

    id = Column(Integer, primary_key=True, index=True)
    public_code = Column(String(36), unique=True, index=True, nullable=False)
    draft_id = Column(String(36), unique=True, nullable=False)
    document_type = Column(SQLAlchemyEnum(DocumentType, name='document_type'), nullable=False)
    status = Column(SQLAlchemyEnum(DocumentStatus, name='document_status'), nullable=False, default=DocumentStatus.issued)

    practitioner_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    patient_id = Column(Integer, ForeignKey("patients.id", ondelete="RESTRICT"), nullable=False)
    tutor_id = Column(Integer, ForeignKey("tutors.id", ondelete="RESTRICT"), nullable=False)

    issue_date = Column(Date, nullable=False)
    purpose = Column(Text, nullable=False)
    attestation_text = Column(Text, nullable=True)

    # Frozen at issue time
    patient_name = Column(String(255), nullable=False)
    tutor_name = Column(String(255), nullable=False)
    practitioner_snapshot = Column(JSON, nullable=False)
    patient_snapshot = Column(JSON, nullable=False)
    tutor_snapshot = Column(JSON, nullable=False)
    tutor_document_encrypted = Column(LargeBinary, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)

    medications = relationship(
        "PrescriptionMedication",
        back_populates="prescription",
        order_by="PrescriptionMedication.position",
    )


class PrescriptionMedication(Base):
    __tablename__ = "prescription_medications"

    id = Column(Integer, primary_key=True, index=True)
    prescription_id = Column(Integer, ForeignKey("prescriptions.id", ondelete="RESTRICT"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    name = Column(String(255), nullable=False)
    dosage = Column(String(255), nullable=False)
    frequency = Column(String(255), nullable=False)
    duration = Column(String(255), nullable=True)

    prescription = relationship("Prescription", back_populates="medications")


@event.listens_for(Prescription, "before_update")
@event.listens_for(PrescriptionMedication, "before_update")
def _refuse_update(mapper, connection, target):
    raise Conflict("Issued documents are immutable; issue a new document instead.")


@event.listens_for(Prescription, "before_delete")
@event.listens_for(PrescriptionMedication, "before_delete")
def _refuse_delete(mapper, connection, target):
    raise Conflict("Issued documents are permanent and cannot be deleted.")


# ==================== Appointment Book ====================

class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        Index('idx_appointments_practitioner_start', 'practitioner_id', 'start_time'),
        Index('idx_appointments_date_range', 'start_time', 'end_time'),
    )

    id = Column(Integer, primary_key=True, index=True)
    practitioner_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    tutor_id = Column(Integer, ForeignKey("tutors.id"), nullable=False)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    reason = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    patient = relationship("Patient", back_populates="appointments")
    tutor = relationship("Tutor")


# ==================== Audit ====================

class AuditLog(Base):
    """Durable audit trail of mutations, issues, logins and public verifications."""
    __tablename__ = "audit_logs"
    __table_args__ = (
        Index('idx_audit_user_date', 'user_id', 'timestamp'),
        Index('idx_audit_action_date', 'action', 'timestamp'),
        Index('idx_audit_resource', 'resource_type', 'resource_id'),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    action = Column(SQLAlchemyEnum(AuditAction, name='audit_action'), nullable=False)
    category = Column(String(50), nullable=False, default="GENERAL", index=True)
    severity = Column(String(20), default="INFO", index=True)
    resource_type = Column(String(50), nullable=True)
    resource_id = Column(String(64), nullable=True)
    details = Column(Text, nullable=True)
    ip_address = Column(String(45), nullable=True)
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    user = relationship("User", back_populates="audit_logs")
