# vetclinic/schemas.py
from datetime import datetime, date
from typing import List, Optional, Dict, Any
from uuid import UUID
from pydantic import BaseModel, Field, EmailStr, field_validator, computed_field

from .models import Species, DocumentType, DocumentStatus
from .validators import display_age as compute_display_age, format_registration


# --- Base Schemas ---
class BaseSchema(BaseModel):
    class Config:
        from_attributes = True


def _empty_str_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v


def _normalize_species(v):
    # accepts "Canine", " feline " etc.
    if isinstance(v, str):
        v = v.strip().lower()
        return v or None
    return v


# --- Identity Schemas ---
class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)

    @field_validator('password')
    @classmethod
    def validate_password(cls, v):
        if not any(char.isdigit() for char in v):
            raise ValueError('Password must contain at least one digit')
        if not any(char.isalpha() for char in v):
            raise ValueError('Password must contain at least one letter')
        return v


class UserResponse(BaseSchema):
    id: int
    email: EmailStr
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None


class TokenResponse(BaseSchema):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


# --- Address ---
class AddressFields(BaseSchema):
    cep: Optional[str] = Field(None, max_length=9)
    street: Optional[str] = Field(None, max_length=255)
    number: Optional[str] = Field(None, max_length=20)
    neighborhood: Optional[str] = Field(None, max_length=100)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=2)


class AddressLookupResponse(BaseModel):
    cep: str
    street: Optional[str] = None
    neighborhood: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None


# --- Practitioner Profile Schemas ---
class ProfileUpdate(AddressFields):
    name: Optional[str] = Field(None, max_length=255)
    crmv_state: Optional[str] = Field(None, max_length=2)
    crmv_number: Optional[str] = Field(None, max_length=50)
    secondary_registration: Optional[str] = Field(None, max_length=50)
    phone: Optional[str] = Field(None, max_length=20)
    cpf: Optional[str] = Field(None, max_length=14)
    specialty: Optional[str] = Field(None, max_length=100)
    clinic_name: Optional[str] = Field(None, max_length=255)


class ProfileResponse(ProfileUpdate):
    practitioner_id: int
    email: Optional[EmailStr] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @computed_field
    @property
    def registration(self) -> str:
        return format_registration(self.crmv_state, self.crmv_number)


class ProfileStatus(BaseModel):
    complete: bool
    missing_fields: List[str] = []


# --- Tutor Schemas ---
class TutorBase(AddressFields):
    name: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[EmailStr] = None
    cpf: Optional[str] = Field(None, max_length=14)

    @field_validator('email', mode='before')
    @classmethod
    def blank_email_to_none(cls, v):
        return _empty_str_to_none(v)


class TutorCreate(TutorBase):
    pass


class TutorUpdate(AddressFields):
    name: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[EmailStr] = None
    cpf: Optional[str] = Field(None, max_length=14)

    @field_validator('email', mode='before')
    @classmethod
    def blank_email_to_none(cls, v):
        return _empty_str_to_none(v)


class TutorResponse(TutorBase):
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# --- Patient Schemas ---
class PatientBase(BaseSchema):
    name: Optional[str] = Field(None, max_length=255)
    species: Optional[Species] = None
    breed: Optional[str] = Field(None, max_length=100)
    sex: Optional[str] = Field(None, max_length=20)
    date_of_birth: Optional[date] = None
    age: Optional[str] = Field(None, max_length=50)
    weight: Optional[str] = Field(None, max_length=20)
    color: Optional[str] = Field(None, max_length=100)
    microchip: Optional[str] = Field(None, max_length=50)
    neutered: bool = False
    notes: Optional[str] = None

    @field_validator('species', mode='before')
    @classmethod
    def normalize_species(cls, v):
        return _normalize_species(v)


class PatientCreate(PatientBase):
    pass


class PatientUpdate(BaseSchema):
    name: Optional[str] = Field(None, max_length=255)
    species: Optional[Species] = None
    breed: Optional[str] = Field(None, max_length=100)
    sex: Optional[str] = Field(None, max_length=20)
    date_of_birth: Optional[date] = None
    age: Optional[str] = Field(None, max_length=50)
    weight: Optional[str] = Field(None, max_length=20)
    color: Optional[str] = Field(None, max_length=100)
    microchip: Optional[str] = Field(None, max_length=50)
    neutered: Optional[bool] = None
    notes: Optional[str] = None

    @field_validator('species', mode='before')
    @classmethod
    def normalize_species(cls, v):
        return _normalize_species(v)


class PatientResponse(PatientBase):
    id: int
    tutor_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @computed_field
    @property
    def display_age(self) -> Optional[str]:
        return compute_display_age(self.date_of_birth, self.age)


# --- Ledger Schemas ---
class MedicationItem(BaseSchema):
    name: Optional[str] = Field(None, max_length=255)
    dosage: Optional[str] = Field(None, max_length=255)
    frequency: Optional[str] = Field(None, max_length=255)
    duration: Optional[str] = Field(None, max_length=255)


class PrescriptionDraftRequest(BaseModel):
    """Body used both to preview a draft and to issue it."""
    patient_id: int
    document_type: DocumentType
    purpose: Optional[str] = None
    medications: List[MedicationItem] = []
    attestation_text: Optional[str] = None
    issue_date: Optional[date] = None
    # Client-generated idempotency key; the same draft can only be issued once
    draft_id: Optional[UUID] = None


class PrescriptionDraft(BaseModel):
    """In-memory document candidate carrying frozen snapshots. Never persisted."""
    draft_id: str
    status: DocumentStatus = DocumentStatus.draft
    document_type: DocumentType
    practitioner_id: int
    patient_id: int
    tutor_id: int
    issue_date: date
    purpose: str
    medications: List[MedicationItem] = []
    attestation_text: Optional[str] = None
    practitioner: Dict[str, Any]
    patient: Dict[str, Any]
    tutor: Dict[str, Any]
    tutor_document: Optional[str] = None


class PrescriptionListFilters(BaseModel):
    document_type: Optional[DocumentType] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    search: Optional[str] = None
    patient_id: Optional[int] = None


class IssuedPrescriptionResponse(BaseModel):
    id: int
    public_code: str
    draft_id: str
    document_type: DocumentType
    status: DocumentStatus
    practitioner_id: int
    patient_id: int
    tutor_id: int
    issue_date: date
    purpose: str
    medications: List[MedicationItem] = []
    attestation_text: Optional[str] = None
    practitioner: Dict[str, Any]
    patient: Dict[str, Any]
    tutor: Dict[str, Any]
    created_at: datetime
    verification_url: str


class PrescriptionSummary(BaseSchema):
    id: int
    public_code: str
    document_type: DocumentType
    issue_date: date
    purpose: str
    patient_id: int
    patient_name: str
    tutor_name: str
    created_at: datetime


class PublicPatient(BaseModel):
    name: str
    species: Optional[str] = None
    breed: Optional[str] = None
    age: Optional[str] = None
    weight: Optional[str] = None


class PublicTutor(BaseModel):
    name: str


class PublicPractitioner(BaseModel):
    name: str
    registration: str


class PublicPrescriptionView(BaseModel):
    """The only shape ever returned by the unauthenticated verification surface."""
    public_code: str
    document_type: DocumentType
    issue_date: date
    purpose: str
    medications: List[MedicationItem] = []
    attestation_text: Optional[str] = None
    patient: PublicPatient
    tutor: PublicTutor
    practitioner: PublicPractitioner


class ShareLinkResponse(BaseModel):
    verification_url: str
    whatsapp_url: str
    message: str


# --- Appointment Schemas ---
class AppointmentBase(BaseSchema):
    tutor_id: int
    patient_id: int
    start_time: datetime
    end_time: datetime
    reason: Optional[str] = None
    notes: Optional[str] = None


class AppointmentCreate(AppointmentBase):
    pass


class AppointmentResponse(AppointmentBase):
    id: int
    practitioner_id: int
    created_at: Optional[datetime] = None
    patient_name: Optional[str] = None
    tutor_name: Optional[str] = None


# --- Audit / Dashboard ---
class AuditLogResponse(BaseSchema):
    id: int
    user_id: Optional[int] = None
    action: str
    category: str
    severity: Optional[str] = None
    resource_type: Optional[str] = None
    resource_id: Optional[str] = None
    details: Optional[str] = None
    ip_address: Optional[str] = None
    timestamp: datetime

    @field_validator('action', mode='before')
    @classmethod
    def enum_to_str(cls, v):
        return v.value if hasattr(v, 'value') else v


class DashboardStatsResponse(BaseSchema):
    total_tutors: int
    total_patients: int
    total_documents: int
    prescriptions_issued: int
    attestations_issued: int
    appointments_today: int
