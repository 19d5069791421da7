from datetime import date

import pytest

from vetclinic import schemas
from vetclinic.models import DocumentType
from vetclinic.services.document_renderer import DocumentRenderer


@pytest.fixture
def renderer():
    return DocumentRenderer()


@pytest.fixture
def draft():
    return schemas.PrescriptionDraft(
        draft_id="7d1f6f0e-4f57-4b8c-9a43-0f6f0a4f3c11",
        document_type=DocumentType.prescription,
        practitioner_id=1,
        patient_id=1,
        tutor_id=1,
        issue_date=date(2026, 3, 1),
        purpose="Otitis <externa>",
        medications=[schemas.MedicationItem(name="Amoxicillin", dosage="50mg", frequency="12h", duration="7 days")],
        practitioner={"name": "Dra. Ana Ribeiro", "registration": "CRMV-SP 12345", "phone": "11988887777"},
        patient={"name": "Rex", "species": "canine", "age": "4 anos"},
        tutor={"name": "Maria Santos", "phone": "11999990000"},
        tutor_document="111.444.777-35",
    )


def test_qr_png(renderer):
    png = renderer.qr_png("https://vet.example.com/view-prescription/abc")
    assert png.startswith(b"\x89PNG\r\n\x1a\n")
    assert renderer.qr_data_uri("x").startswith("data:image/png;base64,")


def test_html_escapes_free_text_and_shows_watermark(renderer, draft):
    html = renderer.render_html(draft, watermark="RASCUNHO")
    assert "Receituário" in html
    assert "Amoxicillin" in html
    assert "Otitis &lt;externa&gt;" in html
    assert "RASCUNHO" in html
    assert "Canino" in html


def test_html_without_watermark(renderer, draft):
    assert 'class="watermark"' not in renderer.render_html(draft)


def test_render_pdf(renderer, draft):
    pdf = renderer.render_pdf(draft, qr_data_uri=renderer.qr_data_uri("https://vet.example.com/x"))
    assert pdf.startswith(b"%PDF")


def test_public_page_for_unknown_code(renderer):
    page = renderer.render_public_page(None)
    assert "Documento não encontrado" in page
