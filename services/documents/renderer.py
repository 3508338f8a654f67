"""
Document Renderer

Turns a template, contract or issued document into a PDF, and stamps a
recipient's signature onto an existing PDF.

Rendering uses reportlab in invariant mode so identical inputs always
produce identical bytes. Stamping draws a transparent reportlab overlay
and merges it onto the last page with pypdf, decoding the signature
image with Pillow.
"""

import base64
import io
import logging
import re
from typing import List, Optional, Tuple

from PIL import Image, UnidentifiedImageError
from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError
from reportlab.lib.pagesizes import letter
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfgen import canvas

from .exceptions import RenderError
from .types import Contract, Document, Template, format_number

logger = logging.getLogger(__name__)

MARGIN = 50
LINE_HEIGHT = 14
FONT = 'Helvetica'
BOLD_FONT = 'Helvetica-Bold'
FOOTER = 'This contract is legally binding. Please read all terms carefully before signing.'

SIGNATURE_BOX = {'x': 50, 'y': 90, 'width': 180, 'height': 50}


def standard_terms(commission_percentage) -> List[str]:
    """Standard listing terms printed on every contract."""
    return [
        f"1. The property owner agrees to list their property on the platform with a "
        f"{format_number(commission_percentage)}% commission rate.",
        "2. The platform will handle all booking management, payment processing, and customer service.",
        "3. The owner is responsible for maintaining the property in good condition and ensuring "
        "availability as listed.",
        "4. Commission will be deducted from each booking payment before transfer to the owner.",
        "5. Either party may terminate this agreement with 30 days written notice.",
        "6. This agreement is governed by the laws of the jurisdiction where the property is located.",
    ]


class _PageWriter:
    """Writes wrapped lines top to bottom, starting new pages as needed."""

    def __init__(self, pdf: canvas.Canvas, width: float, height: float):
        self.pdf = pdf
        self.width = width
        self.height = height
        self.y = height - MARGIN

    def _ensure_room(self, needed: float) -> None:
        if self.y - needed < MARGIN + 20:
            self.pdf.showPage()
            self.y = self.height - MARGIN

    def text(self, text: str, size: int = 10, bold: bool = False, indent: int = 0) -> None:
        font = BOLD_FONT if bold else FONT
        max_width = self.width - 2 * MARGIN - indent
        for line in simpleSplit(text, font, size, max_width) or ['']:
            self._ensure_room(LINE_HEIGHT)
            self.pdf.setFont(font, size)
            self.pdf.drawString(MARGIN + indent, self.y, line)
            self.y -= LINE_HEIGHT

    def gap(self, amount: float = 8) -> None:
        self.y -= amount

    def signature_lines(self, left_label: str, right_label: str) -> None:
        self._ensure_room(70)
        mid = self.width / 2
        self.pdf.setFont(BOLD_FONT, 10)
        self.pdf.drawString(MARGIN, self.y, left_label)
        self.pdf.drawString(mid + 20, self.y, right_label)
        self.y -= 30
        self.pdf.line(MARGIN, self.y, mid - 20, self.y)
        self.pdf.line(mid + 20, self.y, self.width - MARGIN, self.y)
        self.pdf.setFont(FONT, 8)
        self.pdf.drawString(MARGIN, self.y - 12, 'Signature')
        self.pdf.drawString(mid + 20, self.y - 12, 'Signature')
        self.pdf.drawString(MARGIN, self.y - 24, 'Date: _______________')
        self.pdf.drawString(mid + 20, self.y - 24, 'Date: _______________')
        self.y -= 40


class DocumentRenderer:
    """
    Renders portal artifacts as PDF bytes.

    Usage:
        renderer = DocumentRenderer()
        pdf = renderer.render(template, recipient_name='Ana Cruz')
        signed = renderer.stamp_signature(pdf, 'Ana Cruz', '2024-05-01', signature_png_b64)
    """

    def __init__(self, pagesize: Tuple[float, float] = letter):
        self.pagesize = pagesize

    # -------------------------------------------------------------------------
    # Rendering
    # -------------------------------------------------------------------------

    def render(self, source, recipient_name: Optional[str] = None,
               recipient_email: Optional[str] = None) -> bytes:
        """
        Render a Template, Contract or Document to PDF bytes.

        Raises:
            RenderError: if the source type is unsupported or reportlab fails
        """
        if not isinstance(source, (Template, Contract, Document)):
            raise RenderError(f"Cannot render object of type {type(source).__name__}")

        try:
            buffer = io.BytesIO()
            width, height = self.pagesize
            pdf = canvas.Canvas(buffer, pagesize=self.pagesize, invariant=1)
            pdf.setTitle(self._title(source))
            writer = _PageWriter(pdf, width, height)

            if isinstance(source, Contract):
                self._write_contract(writer, source, recipient_name, recipient_email)
            elif isinstance(source, Template):
                self._write_template(writer, source, recipient_name, recipient_email)
            else:
                self._write_document(writer, source, recipient_name, recipient_email)

            pdf.setFont(FONT, 8)
            pdf.drawString(MARGIN, 30, FOOTER)
            pdf.showPage()
            pdf.save()
        except Exception as e:
            logger.error(f"Failed to render {type(source).__name__} {source.id}: {e}")
            raise RenderError(f"Failed to render {source.id}: {e}") from e

        logger.debug(f"Rendered {type(source).__name__} {source.id}")
        return buffer.getvalue()

    @staticmethod
    def _title(source) -> str:
        if isinstance(source, Document):
            return source.title
        if isinstance(source, Contract):
            return source.template_name
        return source.name

    @staticmethod
    def _write_recipient(writer: _PageWriter, heading: str, name, email) -> None:
        if not (name or email):
            return
        writer.text(heading, size=12, bold=True)
        if name:
            writer.text(f"Name: {name}", indent=20)
        if email:
            writer.text(f"Email: {email}", indent=20)
        writer.gap(12)

    @staticmethod
    def _write_fields(writer: _PageWriter, fields) -> None:
        for f in fields:
            writer.text(f"{f.label}{' *' if f.required else ''}:", bold=True, indent=20)
            writer.text(f"Type: {f.type.value}", size=9, indent=40)
            value = f.value if f.value is not None else f.default_value
            if value:
                writer.text(f"Value: {value}", size=9, indent=40)
            writer.gap(6)

    def _write_terms(self, writer: _PageWriter, commission, extra_terms: str = None) -> None:
        writer.text('Terms and Conditions:', size=12, bold=True)
        writer.gap(4)
        if extra_terms:
            writer.text(extra_terms, size=9, indent=20)
            writer.gap(6)
        for term in standard_terms(commission):
            writer.text(term, size=9, indent=20)
            writer.gap(4)
        writer.gap(20)

    def _write_template(self, writer, template: Template, recipient_name, recipient_email) -> None:
        heading = 'PROPERTY RENTAL CONTRACT' if template.is_contract_template else template.category.value.upper()
        writer.text(heading, size=18, bold=True)
        writer.text(template.name, size=14, bold=True)
        writer.gap(16)

        writer.text('Template Details:', size=12, bold=True)
        writer.text(f"Description: {template.description}", indent=20)
        if template.commission_percentage is not None:
            writer.text(f"Commission Rate: {format_number(template.commission_percentage)}%", indent=20)
        writer.text(f"Created: {template.created_at[:10]}", indent=20)
        writer.gap(12)

        self._write_recipient(writer, 'Property Owner Information:', recipient_name, recipient_email)

        writer.text('Fields:', size=12, bold=True)
        writer.gap(4)
        self._write_fields(writer, template.fields)

        if template.is_contract_template:
            self._write_terms(writer, template.commission_percentage)
            writer.signature_lines('Property Owner:', 'Platform Representative:')

    def _write_contract(self, writer, contract: Contract, recipient_name, recipient_email) -> None:
        writer.text('PROPERTY RENTAL CONTRACT', size=18, bold=True)
        writer.text(contract.template_name, size=14, bold=True)
        writer.gap(16)

        writer.text('Contract Details:', size=12, bold=True)
        writer.text(f"Contract: {contract.id}", indent=20)
        writer.text(f"Commission Rate: {format_number(contract.commission_percentage)}%", indent=20)
        if contract.base_rate is not None:
            writer.text(f"Base Rate: ${contract.base_rate:,.2f}/night", indent=20)
        if contract.final_rate is not None:
            writer.text(f"Final Rate with Commission: ${contract.final_rate:,.2f}/night", indent=20)
        writer.text(f"Sent: {contract.sent_at[:10]}", indent=20)
        writer.gap(12)

        self._write_recipient(
            writer,
            'Property Owner Information:',
            recipient_name or contract.owner_name,
            recipient_email or contract.owner_email,
        )

        writer.text('Contract Terms and Fields:', size=12, bold=True)
        writer.gap(4)
        self._write_fields(writer, contract.fields)

        self._write_terms(writer, contract.commission_percentage, contract.terms)
        writer.signature_lines('Property Owner:', 'Platform Representative:')

    def _write_document(self, writer, document: Document, recipient_name, recipient_email) -> None:
        writer.text(document.category.value.upper(), size=18, bold=True)
        writer.text(document.title, size=14, bold=True)
        writer.gap(16)

        if document.description:
            writer.text(document.description)
            writer.gap(12)

        self._write_recipient(writer, 'Recipient:', recipient_name, recipient_email)

        if document.fields:
            writer.text('Fields:', size=12, bold=True)
            writer.gap(4)
            self._write_fields(writer, document.fields)

        writer.signature_lines('Recipient:', 'Property Manager:')

    # -------------------------------------------------------------------------
    # Signature stamping
    # -------------------------------------------------------------------------

    @staticmethod
    def decode_signature_image(signature_b64: str) -> Image.Image:
        """
        Decode a base64 (or data URI) signature image.

        Raises:
            RenderError: if the data is not valid base64 or not an image
        """
        b64_data = signature_b64.strip()
        match = re.match(r"^data:.*?;base64,(.+)$", b64_data, re.IGNORECASE | re.DOTALL)
        if match:
            b64_data = match.group(1).strip()

        b64_clean = re.sub(r'[^A-Za-z0-9+/=]', '', b64_data)
        missing_padding = len(b64_clean) % 4
        if missing_padding:
            b64_clean += '=' * (4 - missing_padding)

        try:
            signature_bytes = base64.b64decode(b64_clean, validate=True)
        except ValueError as e:
            raise RenderError("Unable to decode signature image") from e

        try:
            with Image.open(io.BytesIO(signature_bytes)) as probe:
                probe.verify()
            return Image.open(io.BytesIO(signature_bytes)).convert("RGBA")
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise RenderError("Invalid signature image format or corrupt data") from e

    def stamp_signature(self, pdf_bytes: bytes, signer_name: str, signed_on: str,
                        signature_image: Optional[str] = None) -> bytes:
        """
        Stamp a signature block onto the last page of `pdf_bytes`.

        Args:
            pdf_bytes: PDF to sign
            signer_name: printed under the signature
            signed_on: ISO date or timestamp printed under the signature
            signature_image: optional base64 PNG/JPEG (data URIs accepted)

        Raises:
            RenderError: if the PDF or image cannot be processed
        """
        image = self.decode_signature_image(signature_image) if signature_image else None

        try:
            reader = PdfReader(io.BytesIO(pdf_bytes))
            if not reader.pages:
                raise RenderError("Cannot sign a PDF without pages")

            last_page = reader.pages[-1]
            page_width = float(last_page.mediabox.width)
            page_height = float(last_page.mediabox.height)

            overlay_buffer = io.BytesIO()
            overlay = canvas.Canvas(overlay_buffer, pagesize=(page_width, page_height), invariant=1)
            box = SIGNATURE_BOX
            if image is not None:
                overlay.drawImage(
                    ImageReader(image), box['x'], box['y'],
                    width=box['width'], height=box['height'], mask='auto',
                )
            else:
                overlay.setFont('Helvetica-Oblique', 16)
                overlay.drawString(box['x'], box['y'] + 15, signer_name)
            overlay.setFont(FONT, 8)
            overlay.drawString(box['x'], box['y'] - 12, f"Signed by: {signer_name}")
            overlay.drawString(box['x'], box['y'] - 22, f"Date: {signed_on}")
            overlay.save()
            overlay_buffer.seek(0)

            writer = PdfWriter()
            for index, page in enumerate(reader.pages):
                if index == len(reader.pages) - 1:
                    page.merge_page(PdfReader(overlay_buffer).pages[0])
                writer.add_page(page)

            output = io.BytesIO()
            writer.write(output)
        except RenderError:
            raise
        except (PyPdfError, ValueError, OSError) as e:
            logger.error(f"Failed to stamp signature for {signer_name}: {e}")
            raise RenderError(f"Failed to stamp signature: {e}") from e

        logger.info(f"Signature stamped for {signer_name}")
        return output.getvalue()
