# vetclinic/routers/public.py
# The only unauthenticated read surface: verification of issued documents by public code.
from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from .. import schemas, security
from ..database import get_db
from ..errors import NotFound
from ..limiter import limiter, public_rate_limit
from ..services.document_renderer import document_renderer
from ..services.ledger_service import ledger_service

router = APIRouter(
    prefix="/public",
    tags=["Public Verification"],
    responses={404: {"description": "Document not found or invalid verification code"}},
)

# Served outside /api/v1: this is the URL encoded in every document's QR code
page_router = APIRouter(tags=["Public Verification"])


@router.get("/prescriptions/{code}", response_model=schemas.PublicPrescriptionView)
@limiter.limit(public_rate_limit)
def verify_document(code: str, request: Request, db: Session = Depends(get_db)):
    return ledger_service.get_by_public_code(db, code, ip_address=security.client_ip(request))


@page_router.get("/view-prescription/{code}", response_class=HTMLResponse)
@limiter.limit(public_rate_limit)
def verification_page(code: str, request: Request, db: Session = Depends(get_db)):
    try:
        view = ledger_service.get_by_public_code(db, code, ip_address=security.client_ip(request))
    except NotFound:
        return HTMLResponse(document_renderer.render_public_page(None), status_code=404)
    return HTMLResponse(document_renderer.render_public_page(view))
