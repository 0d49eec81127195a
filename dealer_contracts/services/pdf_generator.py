"""PDF materializer for rendered contracts.

Turns the markup surface of a GeneratedContract into an A4 PDF held in memory.
A failed build raises RenderError and never yields bytes, so nothing corrupt
can reach the archive.
"""

import asyncio
import base64
import binascii
import io
import logging
from typing import Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_JUSTIFY
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import cm
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from dealer_contracts.exceptions import RenderError
from dealer_contracts.models.contract import GeneratedContract, MarkupBlock
from dealer_contracts.models.signature import SignedState
from dealer_contracts.utils.formatting import format_date
from dealer_contracts.utils.pdf_fonts import get_font_name, register_contract_fonts

logger = logging.getLogger(__name__)


def decode_signature_image(data_url: str) -> bytes:
    """Decode a 'data:image/png;base64,...' signature into raw image bytes"""
    payload = data_url.split(",", 1)[1] if data_url.startswith("data:") else data_url
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise RenderError(f"Signature image is not valid base64: {e}") from e


class ContractPDFGenerator:
    """Generate the PDF of a contract from its markup blocks"""

    def __init__(self):
        register_contract_fonts()
        self.font_name = get_font_name()
        self.font_bold = get_font_name(bold=True)
        self._init_styles()

    def _init_styles(self):
        """Initialize paragraph styles"""
        self.styles = {
            'title': ParagraphStyle('Title', fontName=self.font_bold,
                fontSize=16, alignment=TA_CENTER, spaceAfter=6, spaceBefore=4,
                textColor=colors.HexColor('#1a5f7a')),
            'meta': ParagraphStyle('Meta', fontName=self.font_name,
                fontSize=9, alignment=TA_CENTER, textColor=colors.gray),
            'section': ParagraphStyle('Section', fontName=self.font_bold,
                fontSize=11, spaceBefore=12, spaceAfter=4,
                textColor=colors.HexColor('#1a5f7a')),
            'normal': ParagraphStyle('Normal', fontName=self.font_name,
                fontSize=10, leading=14, alignment=TA_JUSTIFY),
            'footer': ParagraphStyle('Footer', fontName=self.font_name,
                fontSize=8, spaceBefore=20, textColor=colors.gray),
        }

    def materialize(self, contract: GeneratedContract, signature: Optional[SignedState] = None) -> bytes:
        """Render the contract to PDF bytes.

        With `signature`, the signer's drawn signature and audit line are
        appended below the contract.
        """
        buffer = io.BytesIO()
        try:
            doc = SimpleDocTemplate(
                buffer, pagesize=A4,
                rightMargin=2*cm, leftMargin=2*cm, topMargin=1.5*cm, bottomMargin=1.5*cm,
                title=contract.file_name, author="dealer_contracts", invariant=True,
            )
            story = self._build_story(contract.markup)
            if signature is not None:
                story.extend(self._build_signature(signature))
            doc.build(story)
        except RenderError:
            raise
        except Exception as e:
            logger.error(f"PDF generation failed for {contract.file_name}: {e}")
            raise RenderError(f"Could not materialize {contract.file_name}: {e}") from e

        data = buffer.getvalue()
        if not data.startswith(b"%PDF"):
            raise RenderError(f"Layout engine produced no PDF for {contract.file_name}")
        logger.info(f"Materialized {contract.file_name} ({len(data)} bytes)")
        return data

    async def materialize_async(self, contract: GeneratedContract, signature: Optional[SignedState] = None) -> bytes:
        """Run materialize in a worker thread"""
        return await asyncio.to_thread(self.materialize, contract, signature)

    def _build_story(self, blocks: list[MarkupBlock]) -> list:
        """Build PDF story from markup blocks"""
        story = []
        rows: list[list] = []

        def flush_rows():
            if rows:
                story.append(self._build_table(list(rows)))
                rows.clear()

        for block in blocks:
            text = escape(block.text)
            if block.label and block.style in ("line", "signature_link"):
                rows.append([
                    Paragraph(f"{escape(block.label)}:", self.styles['normal']),
                    Paragraph(text, self.styles['normal']),
                ])
                continue

            flush_rows()
            if block.style == 'title':
                story.append(Paragraph(text, self.styles['title']))
            elif block.style == 'meta':
                story.append(Paragraph(text, self.styles['meta']))
            elif block.style == 'section':
                story.append(Paragraph(text, self.styles['section']))
            elif block.style == 'footer':
                story.append(Paragraph(text, self.styles['footer']))
            else:
                story.append(Paragraph(text.replace("\n", "<br/>"), self.styles['normal']))
        flush_rows()
        return story

    def _build_table(self, data: list) -> Table:
        """Label/value table for a run of labelled lines"""
        table = Table(data, colWidths=[5.5*cm, 11.5*cm])
        table.setStyle(TableStyle([
            ('FONTNAME', (0, 0), (-1, -1), self.font_name),
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 2),
            ('LEFTPADDING', (0, 0), (-1, -1), 0),
        ]))
        return table

    def _build_signature(self, signature: SignedState) -> list:
        """Signer block: drawn signature plus the audit details"""
        image = Image(io.BytesIO(decode_signature_image(signature.signature_image)),
                      width=6*cm, height=2.5*cm, kind='proportional')
        audit = (
            f"Digitaal ondertekend door {escape(signature.signer_name)} "
            f"({escape(signature.signer_email)}) op {format_date(signature.signed_at)} "
            f"{signature.signed_at:%H:%M} UTC vanaf {escape(signature.source_address)}"
        )
        return [
            Spacer(1, 16),
            Paragraph("HANDTEKENING KOPER", self.styles['section']),
            image,
            Paragraph(audit, self.styles['footer']),
        ]


def materialize(contract: GeneratedContract, signature: Optional[SignedState] = None) -> bytes:
    """Render a contract to PDF bytes"""
    return ContractPDFGenerator().materialize(contract, signature)
