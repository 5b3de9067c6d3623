"""Helpers for rendering assessment report documents into PDF bytes."""

from __future__ import annotations

import textwrap
from dataclasses import dataclass
from typing import Iterable, List, Sequence

__all__ = [
    "PdfLine",
    "render_pdf",
]


# Basic PDF geometry (Letter size, portrait orientation)
PAGE_WIDTH = 612  # 8.5" * 72pt
PAGE_HEIGHT = 792  # 11" * 72pt
MARGIN = 72  # 1" margins
BODY_SIZE = 11
HEADING_SIZE = 14
LINE_SPACING = 1.35

# Helvetica averages roughly half an em per character.
_USABLE_WIDTH = PAGE_WIDTH - 2 * MARGIN

_FONTS = {"regular": "F1", "bold": "F2"}


@dataclass(frozen=True)
class PdfLine:
    """One logical line of output before wrapping."""

    text: str
    bold: bool = False
    size: int = BODY_SIZE

    @property
    def leading(self) -> int:
        return int(round(self.size * LINE_SPACING))

    @property
    def max_chars(self) -> int:
        return max(20, int(_USABLE_WIDTH / (self.size * 0.5)))


def render_pdf(lines: Sequence[PdfLine], title: str | None = None) -> bytes:
    """Render styled ``lines`` into a paginated PDF byte string."""

    if not lines:
        raise ValueError("lines must not be empty")
    pages = _paginate(_wrap_lines(lines))
    return _build_pdf(pages, title=title)


def _wrap_lines(lines: Iterable[PdfLine]) -> List[PdfLine]:
    wrapped: List[PdfLine] = []
    for line in lines:
        if not line.text.strip():
            wrapped.append(PdfLine("", size=line.size))
            continue
        wrapper = textwrap.TextWrapper(width=line.max_chars, break_long_words=True)
        for segment in wrapper.wrap(line.text) or [""]:
            wrapped.append(PdfLine(segment.rstrip(), bold=line.bold, size=line.size))
    return wrapped


def _paginate(lines: Iterable[PdfLine]) -> List[List[PdfLine]]:
    usable_height = PAGE_HEIGHT - 2 * MARGIN
    pages: List[List[PdfLine]] = []
    current: List[PdfLine] = []
    used = 0
    for line in lines:
        if current and used + line.leading > usable_height:
            pages.append(current)
            current = []
            used = 0
        if not current and not line.text:
            # Leading blank lines on a fresh page only waste space.
            continue
        current.append(line)
        used += line.leading
    if current:
        pages.append(current)
    return pages or [[]]


def _escape_pdf_string(value: str) -> str:
    return value.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def _encode(value: str) -> bytes:
    # The standard Type1 fonts use WinAnsi; anything else degrades to "?".
    return value.encode("cp1252", errors="replace")


def _build_page_stream(lines: List[PdfLine]) -> bytes:
    commands: List[str] = ["BT", f"{MARGIN} {PAGE_HEIGHT - MARGIN} Td"]
    previous: PdfLine | None = None
    for line in lines:
        if previous is not None:
            commands.append(f"0 -{line.leading} Td")
        font = _FONTS["bold" if line.bold else "regular"]
        commands.append(f"/{font} {line.size} Tf")
        commands.append(f"({_escape_pdf_string(line.text)}) Tj")
        previous = line
    commands.append("ET")
    return _encode("\n".join(commands))


class _PdfObjects:
    """Numbered PDF object table; object 0 is the reserved free entry."""

    def __init__(self) -> None:
        self._payloads: List[bytes | None] = [None]

    def reserve(self) -> int:
        self._payloads.append(None)
        return len(self._payloads) - 1

    def set(self, object_id: int, payload: bytes) -> None:
        if not payload.endswith(b"\n"):
            payload += b"\n"
        self._payloads[object_id] = payload

    def serialise(self, root_id: int, info_id: int | None) -> bytes:
        buffer = bytearray(b"%PDF-1.4\n%\xe2\xe3\xcf\xd3\n")
        offsets: List[int] = []
        for object_id, payload in enumerate(self._payloads[1:], start=1):
            if payload is None:
                raise ValueError(f"PDF object {object_id} was not initialised")
            offsets.append(len(buffer))
            buffer.extend(f"{object_id} 0 obj\n".encode("ascii"))
            buffer.extend(payload)
            buffer.extend(b"endobj\n")

        xref_offset = len(buffer)
        total = len(self._payloads)
        buffer.extend(f"xref\n0 {total}\n".encode("ascii"))
        buffer.extend(b"0000000000 65535 f \n")
        for offset in offsets:
            buffer.extend(f"{offset:010d} 00000 n \n".encode("ascii"))

        trailer = [f"/Size {total}", f"/Root {root_id} 0 R"]
        if info_id is not None:
            trailer.append(f"/Info {info_id} 0 R")
        buffer.extend(f"trailer\n<< {' '.join(trailer)} >>\nstartxref\n{xref_offset}\n%%EOF".encode("ascii"))
        return bytes(buffer)


def _build_pdf(pages: List[List[PdfLine]], *, title: str | None = None) -> bytes:
    objects = _PdfObjects()
    catalog_id = objects.reserve()
    pages_id = objects.reserve()
    page_ids = [objects.reserve() for _ in pages]
    content_ids = [objects.reserve() for _ in pages]
    regular_font_id = objects.reserve()
    bold_font_id = objects.reserve()
    info_id = objects.reserve() if title else None

    for content_id, page_lines in zip(content_ids, pages):
        stream = _build_page_stream(page_lines)
        objects.set(
            content_id,
            f"<< /Length {len(stream)} >>\nstream\n".encode("ascii") + stream + b"\nendstream\n",
        )

    objects.set(
        regular_font_id,
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica /Encoding /WinAnsiEncoding >>",
    )
    objects.set(
        bold_font_id,
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica-Bold /Encoding /WinAnsiEncoding >>",
    )

    resources = f"/Resources << /Font << /F1 {regular_font_id} 0 R /F2 {bold_font_id} 0 R >> >>"
    for page_id, content_id in zip(page_ids, content_ids):
        objects.set(
            page_id,
            (
                f"<< /Type /Page /Parent {pages_id} 0 R "
                f"/MediaBox [0 0 {PAGE_WIDTH} {PAGE_HEIGHT}] "
                f"/Contents {content_id} 0 R {resources} >>"
            ).encode("ascii"),
        )

    kids = " ".join(f"{page_id} 0 R" for page_id in page_ids)
    objects.set(pages_id, f"<< /Type /Pages /Kids [{kids}] /Count {len(page_ids)} >>".encode("ascii"))
    objects.set(catalog_id, f"<< /Type /Catalog /Pages {pages_id} 0 R >>".encode("ascii"))

    if info_id is not None and title:
        objects.set(info_id, b"<< /Title (" + _encode(_escape_pdf_string(title)) + b") >>")

    return objects.serialise(catalog_id, info_id)
