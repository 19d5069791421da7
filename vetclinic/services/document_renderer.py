import base64
import logging
from io import BytesIO
from pathlib import Path
from typing import Optional, Union

import jinja2
import qrcode
from xhtml2pdf import pisa

from .. import schemas
from ..errors import RenderError

logger = logging.getLogger(__name__)

TEMPLATE_PATH = Path(__file__).resolve().parent.parent / "templates"

DOCUMENT_TITLES = {
    "prescription": "Receituário",
    "attestation": "Atestado Médico Veterinário",
}

# Issued records and unsaved drafts expose the same fields to the template
Document = Union[schemas.IssuedPrescriptionResponse, schemas.PrescriptionDraft]

SPECIES_LABELS = {
    "canine": "Canino",
    "feline": "Felino",
    "bovine": "Bovino",
    "equine": "Equino",
    "reptile": "Réptil",
    "avian": "Ave",
    "other": "Outro",
}


class DocumentRenderer:
    """Turns a frozen document into HTML, PDF and QR artifacts. Holds no state besides the template environment."""

    def __init__(self, template_path: Path = TEMPLATE_PATH):
        self.template_env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(template_path)),
            autoescape=jinja2.select_autoescape(["html"]),
        )
        self.template_env.filters["species_label"] = lambda value: SPECIES_LABELS.get(value or "", value or "")

    def qr_png(self, payload: str) -> bytes:
        """PNG bytes of a QR code encoding ``payload`` (the verification URL)."""
        qr = qrcode.QRCode(version=1, box_size=10, border=4)
        qr.add_data(payload)
        qr.make(fit=True)

        qr_image = qr.make_image(fill_color="black", back_color="white")
        buffer = BytesIO()
        qr_image.save(buffer, format="PNG")
        return buffer.getvalue()

    def qr_data_uri(self, payload: str) -> str:
        return "data:image/png;base64," + base64.b64encode(self.qr_png(payload)).decode()

    def render_html(
        self,
        document: Document,
        qr_data_uri: Optional[str] = None,
        watermark: Optional[str] = None,
    ) -> str:
        template = self.template_env.get_template("prescription.html")
        return template.render(
            doc=document,
            document_type=document.document_type.value,
            title=DOCUMENT_TITLES[document.document_type.value],
            qr=qr_data_uri,
            watermark=watermark,
        )

    def render_pdf(
        self,
        document: Document,
        qr_data_uri: Optional[str] = None,
        watermark: Optional[str] = None,
    ) -> bytes:
        """Render a printable PDF. Pure function of its inputs."""
        html = self.render_html(document, qr_data_uri=qr_data_uri, watermark=watermark)
        pdf_io = BytesIO()
        status = pisa.CreatePDF(src=html, dest=pdf_io, encoding="utf-8")
        if status.err:
            logger.error(f"PDF rendering failed with {status.err} error(s)")
            raise RenderError("The document could not be rendered.")
        return pdf_io.getvalue()

    def render_issued(self, document: schemas.IssuedPrescriptionResponse) -> bytes:
        return self.render_pdf(document, qr_data_uri=self.qr_data_uri(document.verification_url))

    def render_public_page(self, view: Optional[schemas.PublicPrescriptionView]) -> str:
        template = self.template_env.get_template("public_view.html")
        return template.render(
            view=view,
            found=view is not None,
            title=DOCUMENT_TITLES[view.document_type.value] if view else None,
        )


document_renderer = DocumentRenderer()
