"""Render assessment reports as print HTML, PDF or DOCX.

Every format is produced from one :class:`ExportDocument`, built by
:func:`build_export_document`.  That function is the only place that picks
the report text (via :func:`resolve_active_content`) and decides whether the
signature block is present, so the three renderers cannot disagree.
"""

from __future__ import annotations

import base64
import html
import io
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from html.parser import HTMLParser
from typing import Any, Callable, Dict, List, Optional, Tuple

import structlog
from docx import Document
from docx.image.exceptions import UnrecognizedImageError
from docx.shared import Inches, Pt

from practicehub.config import PracticeSettings
from practicehub.pdf_render import HEADING_SIZE, PdfLine, render_pdf
from practicehub.report_lifecycle import resolve_active_content
from practicehub.sanitizer import has_markup, sanitize_report_html
from practicehub.time_utils import format_practice_date, utc_now

logger = structlog.get_logger(__name__)

REPORT_TITLE = "CLINICAL ASSESSMENT REPORT"
CONFIDENTIALITY_NOTICE = "Confidential Medical Record - HIPAA Protected Information"
ELECTRONIC_NOTICE = "This report was generated electronically and is valid without a physical signature."
NOT_PROVIDED = "Not provided"

EXPORT_FORMATS: Dict[str, Tuple[str, str]] = {
    "pdf": ("application/pdf", "pdf"),
    "docx": (
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "docx",
    ),
    "html": ("text/html; charset=utf-8", "html"),
}

_DATA_URL_RE = re.compile(r"^data:image/(png|jpe?g|gif);base64,(?P<data>[A-Za-z0-9+/=\s]+)$")


@dataclass(frozen=True)
class ContentBlock:
    kind: str  # "heading", "paragraph" or "bullet"
    text: str
    level: int = 2


@dataclass(frozen=True)
class SignatureBlock:
    name: str
    signed_on: str
    title: Optional[str] = None
    credentials: Optional[str] = None
    image: Optional[str] = None


@dataclass
class ExportDocument:
    practice: PracticeSettings
    generated_on: str
    client_fields: List[Tuple[str, str]]
    content_html: str
    blocks: List[ContentBlock] = field(default_factory=list)
    signature: Optional[SignatureBlock] = None
    client_name: str = "client"

    @property
    def is_signed(self) -> bool:
        return self.signature is not None


# ----------------------------------------------------------------------
# Content normalisation
# ----------------------------------------------------------------------


def legacy_text_to_html(text: str) -> str:
    """Convert plain or markdown-ish legacy report text into HTML."""

    blocks: List[str] = []
    for chunk in re.split(r"\n\s*\n", text.strip()):
        chunk = chunk.strip()
        if not chunk:
            continue
        heading = re.match(r"^(#{1,3})\s+(.+)$", chunk)
        if heading and "\n" not in chunk:
            level = len(heading.group(1))
            blocks.append(f"<h{level}>{_inline_markdown(heading.group(2))}</h{level}>")
            continue
        lines = [_inline_markdown(line.strip()) for line in chunk.splitlines()]
        blocks.append("<p>" + "<br>".join(lines) + "</p>")
    return "\n".join(blocks)


def _inline_markdown(text: str) -> str:
    escaped = html.escape(text, quote=False)
    escaped = re.sub(r"\*\*(.+?)\*\*", r"<strong>\1</strong>", escaped)
    return re.sub(r"\*(.+?)\*", r"<em>\1</em>", escaped)


def normalise_content_html(content: str) -> str:
    if not content.strip():
        return ""
    if not has_markup(content):
        return legacy_text_to_html(content)
    return sanitize_report_html(content)


class _BlockParser(HTMLParser):
    """Flatten sanitized report HTML into heading/paragraph/bullet blocks."""

    _HEADINGS = {"h1": 1, "h2": 2, "h3": 3}
    _BLOCKS = {"p", "pre", "blockquote", "li", "h1", "h2", "h3", "div"}

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.blocks: List[ContentBlock] = []
        self._buffer: List[str] = []
        self._kind = "paragraph"
        self._level = 2

    def handle_starttag(self, tag, attrs):
        if tag in self._BLOCKS:
            self._flush()
            if tag in self._HEADINGS:
                self._kind, self._level = "heading", self._HEADINGS[tag]
            elif tag == "li":
                self._kind = "bullet"
            else:
                self._kind = "paragraph"
        elif tag == "br":
            self._buffer.append("\n")

    def handle_endtag(self, tag):
        if tag in self._BLOCKS:
            self._flush()

    def handle_data(self, data):
        self._buffer.append(data)

    def close(self):
        super().close()
        self._flush()

    def _flush(self) -> None:
        text = "".join(self._buffer)
        self._buffer = []
        kind, level = self._kind, self._level
        self._kind, self._level = "paragraph", 2
        for line in text.split("\n"):
            line = re.sub(r"\s+", " ", line).strip()
            if line:
                self.blocks.append(ContentBlock(kind=kind, text=line, level=level))


def content_blocks(content_html: str) -> List[ContentBlock]:
    parser = _BlockParser()
    parser.feed(content_html)
    parser.close()
    return parser.blocks


# ----------------------------------------------------------------------
# Document model
# ----------------------------------------------------------------------


def _or_default(value: Any, default: str = NOT_PROVIDED) -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text or default


def _client_address(client: Any) -> str:
    if client is None or not getattr(client, "address", None):
        return NOT_PROVIDED
    parts = [
        getattr(client, name, None) for name in ("address", "city", "province", "postal_code")
    ]
    return ", ".join(str(part).strip() for part in parts if part and str(part).strip())


def _credentials(clinician: Any) -> Optional[str]:
    license_type = getattr(clinician, "license_type", None)
    if not license_type:
        return None
    number = getattr(clinician, "license_number", None)
    return f"{license_type} #{number}" if number else license_type


def build_export_document(
    assignment: Any,
    report: Any,
    practice: PracticeSettings,
    *,
    signer: Any = None,
    tz_name: Optional[str] = None,
) -> ExportDocument:
    """Assemble everything a renderer may print for ``report``.

    ``signer`` defaults to the clinician who assigned the assessment.  The
    signature block and finalization date are only included while the report
    is finalized.
    """

    client = getattr(assignment, "client", None)
    template = getattr(assignment, "template", None)
    clinician = getattr(assignment, "assigned_by", None)
    signer = signer or clinician

    clinician_line = "Not assigned"
    if clinician is not None:
        clinician_line = clinician.full_name
        if getattr(clinician, "title", None):
            clinician_line += f", {clinician.title}"

    dob = getattr(client, "date_of_birth", None)
    client_fields = [
        ("Client Name", _or_default(getattr(client, "full_name", None))),
        ("Client ID", _or_default(getattr(client, "client_id", None))),
        ("Date of Birth", _or_default(format_practice_date(dob, tz_name) if dob else None)),
        ("Gender", _or_default(getattr(client, "gender", None), "Not specified")),
        ("Phone Number", _or_default(getattr(client, "phone_number", None))),
        ("Email Address", _or_default(getattr(client, "email_address", None))),
        ("Address", _client_address(client)),
        ("Assessment", _or_default(getattr(template, "name", None), "Assessment")),
        (
            "Completion Date",
            format_practice_date(getattr(assignment, "completed_at", None), tz_name) or "Not completed",
        ),
        ("Clinician", clinician_line),
    ]

    content_html = normalise_content_html(resolve_active_content(report))

    signature = None
    finalized_at = getattr(report, "finalized_at", None)
    if getattr(report, "is_finalized", False) and finalized_at is not None and signer is not None:
        signature = SignatureBlock(
            name=signer.full_name,
            title=getattr(signer, "title", None),
            credentials=_credentials(signer),
            signed_on=format_practice_date(finalized_at, tz_name) or "",
            image=getattr(signer, "signature_image", None),
        )

    generated_at = getattr(report, "generated_at", None) or utc_now()
    return ExportDocument(
        practice=practice,
        generated_on=format_practice_date(generated_at, tz_name) or "",
        client_fields=client_fields,
        content_html=content_html,
        blocks=content_blocks(content_html),
        signature=signature,
        client_name=getattr(client, "full_name", None) or "client",
    )


def export_filename(document: ExportDocument, fmt: str, on: Optional[date] = None) -> str:
    slug = re.sub(r"[^A-Za-z0-9]+", "-", document.client_name).strip("-") or "client"
    stamp = (on or utc_now().date()).isoformat()
    return f"assessment-report-{slug}-{stamp}.{EXPORT_FORMATS[fmt][1]}"


# ----------------------------------------------------------------------
# Renderers
# ----------------------------------------------------------------------


def _safe_image_src(src: Optional[str]) -> Optional[str]:
    if not src:
        return None
    if _DATA_URL_RE.match(src) or src.startswith("https://"):
        return src
    return None


def render_html(document: ExportDocument) -> str:
    e = html.escape
    practice = document.practice
    contact = " | ".join(
        part for part in (
            f"Phone: {practice.phone}" if practice.phone else "",
            f"Email: {practice.email}" if practice.email else "",
        ) if part
    )
    header = [f'<div class="practice-name">{e(practice.name)}</div>']
    if practice.subtitle:
        header.append(f'<p class="practice-info">{e(practice.subtitle)}</p>')
    if practice.address:
        header.append(f'<p class="practice-info">{"<br>".join(e(l) for l in practice.address.splitlines())}</p>')
    if contact:
        header.append(f'<p class="practice-info">{e(contact)}</p>')
    if practice.website:
        header.append(f'<p class="practice-info">Website: {e(practice.website)}</p>')

    info_items = "\n".join(
        f'<div class="info-item"><div class="info-label">{e(label)}</div>'
        f'<div class="info-value">{e(value)}</div></div>'
        for label, value in document.client_fields
    )

    signature_html = ""
    if document.signature is not None:
        sig = document.signature
        parts = ['<div class="signature-section">', '<div class="signature-title">Digital Signature</div>']
        image = _safe_image_src(sig.image)
        if image:
            parts.append(f'<img src="{e(image)}" alt="Signature" class="signature-image" />')
        parts.append(f'<div class="signature-name">{e(sig.name)}</div>')
        if sig.credentials:
            parts.append(f'<div class="signature-title-text">{e(sig.credentials)}</div>')
        parts.append(f'<div class="signature-date">Digitally signed: {e(sig.signed_on)}</div>')
        parts.append("</div>")
        signature_html = "\n".join(parts)

    footer_contact = " | ".join(p for p in (practice.name, practice.phone, practice.email) if p)
    return f"""<!DOCTYPE html>
<html>
<head>
<meta charset="UTF-8">
<title>{e(REPORT_TITLE.title())} - {e(document.client_name)}</title>
<style>
body {{ font-family: Helvetica, Arial, sans-serif; padding: 20px 30px; line-height: 1.6; color: #333; }}
.header {{ display: flex; justify-content: space-between; border-bottom: 3px solid #2563eb; padding-bottom: 12px; }}
.practice-name {{ font-weight: 700; color: #1e40af; font-size: 18px; }}
.practice-info {{ margin: 4px 0; font-size: 13px; color: #4b5563; }}
h1.report-title {{ color: #1e40af; text-align: center; font-size: 28px; }}
.confidentiality-banner {{ background: #fef3c7; border-left: 4px solid #f59e0b; padding: 10px 15px; text-align: center; font-size: 12px; font-weight: 600; text-transform: uppercase; }}
.info-grid {{ display: grid; grid-template-columns: repeat(2, 1fr); gap: 12px; }}
.info-label {{ font-weight: 600; color: #64748b; font-size: 12px; text-transform: uppercase; }}
.signature-section {{ margin-top: 40px; padding: 20px; border-top: 3px solid #2563eb; page-break-inside: avoid; }}
.signature-image {{ max-width: 250px; max-height: 80px; }}
.footer {{ margin-top: 30px; border-top: 1px solid #e5e7eb; text-align: center; font-size: 11px; color: #9ca3af; }}
</style>
</head>
<body>
<div class="header">
<div class="header-left">
{chr(10).join(header)}
</div>
<div class="header-right"><div>Report Generated</div><div>{e(document.generated_on)}</div></div>
</div>
<h1 class="report-title">{e(REPORT_TITLE)}</h1>
<div class="confidentiality-banner">{e(CONFIDENTIALITY_NOTICE)}</div>
<div class="client-info-section">
<div class="client-info-title">CLIENT INFORMATION</div>
<div class="info-grid">
{info_items}
</div>
</div>
<div class="report-content">
{document.content_html}
</div>
{signature_html}
<div class="footer">
<p>{e(ELECTRONIC_NOTICE)}</p>
<p>{e(footer_contact)}</p>
</div>
</body>
</html>
"""


def render_pdf_bytes(document: ExportDocument) -> bytes:
    practice = document.practice
    lines: List[PdfLine] = [PdfLine(practice.name, bold=True, size=HEADING_SIZE)]
    for extra in (practice.subtitle, practice.address, practice.phone, practice.email, practice.website):
        if extra:
            lines.extend(PdfLine(part) for part in str(extra).splitlines())
    lines.append(PdfLine(f"Report generated: {document.generated_on}"))
    lines.append(PdfLine(""))
    lines.append(PdfLine(REPORT_TITLE, bold=True, size=16))
    lines.append(PdfLine(CONFIDENTIALITY_NOTICE.upper()))
    lines.append(PdfLine(""))
    lines.append(PdfLine("CLIENT INFORMATION", bold=True))
    lines.extend(PdfLine(f"{label}: {value}") for label, value in document.client_fields)
    lines.append(PdfLine(""))

    for block in document.blocks:
        if block.kind == "heading":
            lines.append(PdfLine(""))
            lines.append(PdfLine(block.text, bold=True, size=HEADING_SIZE if block.level <= 2 else 12))
        elif block.kind == "bullet":
            lines.append(PdfLine(f"- {block.text}"))
        else:
            lines.append(PdfLine(block.text))
            lines.append(PdfLine(""))

    if document.signature is not None:
        sig = document.signature
        lines.append(PdfLine(""))
        lines.append(PdfLine("DIGITAL SIGNATURE", bold=True))
        lines.append(PdfLine(sig.name, bold=True))
        if sig.credentials:
            lines.append(PdfLine(sig.credentials))
        lines.append(PdfLine(f"Digitally signed: {sig.signed_on}"))

    lines.append(PdfLine(""))
    lines.append(PdfLine(ELECTRONIC_NOTICE, size=9))
    return render_pdf(lines, title=f"Assessment Report - {document.client_name}")


def _signature_picture(image: Optional[str]) -> Optional[io.BytesIO]:
    if not image:
        return None
    match = _DATA_URL_RE.match(image)
    if not match:
        # Remote images are not fetched during export.
        return None
    try:
        return io.BytesIO(base64.b64decode(match.group("data")))
    except (ValueError, TypeError):
        logger.warning("signature_image_decode_failed")
        return None


def render_docx_bytes(document: ExportDocument) -> bytes:
    practice = document.practice
    doc = Document()
    style = doc.styles["Normal"]
    style.font.name = "Calibri"
    style.font.size = Pt(11)

    doc.add_heading(practice.name, level=2)
    for extra in (practice.subtitle, practice.address, practice.phone, practice.email, practice.website):
        if extra:
            doc.add_paragraph(str(extra))
    doc.add_paragraph(f"Report generated: {document.generated_on}")

    doc.add_heading(REPORT_TITLE, level=1)
    doc.add_paragraph(CONFIDENTIALITY_NOTICE.upper())

    doc.add_heading("Client Information", level=2)
    table = doc.add_table(rows=0, cols=2)
    for label, value in document.client_fields:
        cells = table.add_row().cells
        cells[0].text = label
        cells[1].text = value

    for block in document.blocks:
        if block.kind == "heading":
            doc.add_heading(block.text, level=min(max(block.level, 1), 3))
        elif block.kind == "bullet":
            doc.add_paragraph(block.text, style="List Bullet")
        else:
            doc.add_paragraph(block.text)

    if document.signature is not None:
        sig = document.signature
        doc.add_heading("Digital Signature", level=2)
        picture = _signature_picture(sig.image)
        if picture is not None:
            try:
                doc.add_picture(picture, width=Inches(2.5))
            except UnrecognizedImageError:
                logger.warning("signature_image_unrecognized")
        name = doc.add_paragraph()
        name.add_run(sig.name).bold = True
        if sig.credentials:
            doc.add_paragraph(sig.credentials)
        doc.add_paragraph(f"Digitally signed: {sig.signed_on}")

    doc.add_paragraph(ELECTRONIC_NOTICE)

    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


_RENDERERS: Dict[str, Callable[[ExportDocument], Any]] = {
    "html": lambda document: render_html(document).encode("utf-8"),
    "pdf": render_pdf_bytes,
    "docx": render_docx_bytes,
}


def render(document: ExportDocument, fmt: str) -> bytes:
    """Render ``document`` in ``fmt`` (``pdf``, ``docx`` or ``html``)."""

    renderer = _RENDERERS.get(fmt)
    if renderer is None:
        raise ValueError(f"Unsupported export format: {fmt}")
    return renderer(document)


__all__ = [
    "EXPORT_FORMATS",
    "ContentBlock",
    "SignatureBlock",
    "ExportDocument",
    "legacy_text_to_html",
    "normalise_content_html",
    "content_blocks",
    "build_export_document",
    "export_filename",
    "render_html",
    "render_pdf_bytes",
    "render_docx_bytes",
    "render",
]
