# vetclinic/routers/prescriptions.py
from datetime import date
from io import BytesIO
from typing import List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from .. import schemas, security, models
from ..compliance_logger import compliance_logger
from ..database import get_db
from ..models import DocumentType
from ..services.document_renderer import document_renderer
from ..services.ledger_service import ledger_service

router = APIRouter(
    prefix="/prescriptions",
    tags=["Prescriptions"],
    dependencies=[Depends(security.get_current_user)],
    responses={404: {"description": "Not found"}},
)

DRAFT_WATERMARK = "RASCUNHO - documento sem validade"


@router.post("/drafts", response_model=schemas.PrescriptionDraft)
def compose_draft(
    draft_request: schemas.PrescriptionDraftRequest,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user),
):
    """
    Validate and preview a document without persisting anything.
    """
    return ledger_service.compose_draft(db, current_user.id, draft_request)


@router.post("/drafts/pdf")
def preview_draft_pdf(
    draft_request: schemas.PrescriptionDraftRequest,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user),
):
    """Watermarked preview PDF of a draft. Carries no QR code since no public code exists yet."""
    draft = ledger_service.compose_draft(db, current_user.id, draft_request)
    pdf = document_renderer.render_pdf(draft, watermark=DRAFT_WATERMARK)
    return StreamingResponse(BytesIO(pdf), media_type="application/pdf", headers={
        "Content-Disposition": "inline; filename=draft.pdf"
    })


@router.post("", response_model=schemas.IssuedPrescriptionResponse, status_code=status.HTTP_201_CREATED)
def issue_document(
    draft_request: schemas.PrescriptionDraftRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user),
):
    """
    Compose and issue a prescription or attestation.

    Sending the same ``draft_id`` twice answers 409 instead of issuing a duplicate.
    """
    draft = ledger_service.compose_draft(db, current_user.id, draft_request)
    record = ledger_service.issue(db, draft, ip_address=security.client_ip(request))
    return ledger_service.internal_view(record)


@router.get("", response_model=List[schemas.PrescriptionSummary])
def list_documents(
    document_type: Optional[DocumentType] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    search: Optional[str] = None,
    patient_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user),
):
    filters = schemas.PrescriptionListFilters(
        document_type=document_type,
        date_from=date_from,
        date_to=date_to,
        search=search,
        patient_id=patient_id,
    )
    return ledger_service.list_records(db, current_user.id, filters)


@router.get("/{record_id}", response_model=schemas.IssuedPrescriptionResponse)
def read_document(
    record_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user),
):
    return ledger_service.internal_view(ledger_service.get_by_id(db, current_user.id, record_id))


@router.get("/{record_id}/pdf")
def download_document_pdf(
    record_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user),
):
    """Printable PDF with the verification QR code."""
    document = ledger_service.internal_view(ledger_service.get_by_id(db, current_user.id, record_id))
    pdf = document_renderer.render_issued(document)
    compliance_logger.log_event(
        user_id=current_user.id, action=models.AuditAction.EXPORT, category="LEDGER",
        resource_type="prescription", resource_id=document.id,
        details=f"PDF exported for {document.public_code}", ip_address=security.client_ip(request),
    )
    return StreamingResponse(BytesIO(pdf), media_type="application/pdf", headers={
        "Content-Disposition": f"inline; filename={document.document_type.value}_{document.public_code}.pdf"
    })


@router.get("/{record_id}/qr.png")
def read_document_qr(
    record_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user),
):
    document = ledger_service.internal_view(ledger_service.get_by_id(db, current_user.id, record_id))
    return Response(content=document_renderer.qr_png(document.verification_url), media_type="image/png")


@router.get("/{record_id}/share", response_model=schemas.ShareLinkResponse)
def share_document(
    record_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user),
):
    """Verification link plus a ready-to-send WhatsApp message for the tutor."""
    document = ledger_service.internal_view(ledger_service.get_by_id(db, current_user.id, record_id))
    kind = "a receita" if document.document_type == DocumentType.prescription else "o atestado"
    message = (
        f"Olá, {document.tutor['name']}! Segue o link para visualizar {kind} "
        f"de {document.patient['name']}: {document.verification_url}"
    )
    phone = "".join(ch for ch in (document.tutor.get("phone") or "") if ch.isdigit())
    base = f"https://wa.me/{phone}" if phone else "https://wa.me/"
    return {
        "verification_url": document.verification_url,
        "whatsapp_url": f"{base}?text={quote(message)}",
        "message": message,
    }
