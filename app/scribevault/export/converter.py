"""
Export of stored transcripts as txt, pdf or docx downloads.

Output depends only on the transcript text and the format, so exporting
the same record twice yields identical bytes.
"""

import io
import logging
import re
import time
import zipfile
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List

from docx import Document
from docx.shared import Pt
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

from configs.config import get_config
from scribevault.errors import InputError

logger = logging.getLogger(__name__)
cfg = get_config()

MAX_FILENAME_LEN = 50
EMPTY_DOCX_TEXT = "No content."

# Zip entry timestamp used for every docx part (the zip format starts at 1980)
FIXED_ZIP_DATE = (1980, 1, 1, 0, 0, 0)
FIXED_CORE_DATE = datetime(2000, 1, 1)

MIME_TYPES = {
    "txt": "text/plain; charset=utf-8",
    "pdf": "application/pdf",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}

PDF_FONT = "Helvetica"
PDF_FONT_SIZE = 11
PDF_LEADING = 14
PDF_MARGIN = 56


@dataclass(frozen=True)
class ExportResult:
    buffer: bytes
    mime: str
    file_name: str


def export_filename(record: Dict[str, Any], fmt: str) -> str:
    """``<sanitized base name>-<transcript id or timestamp>.<ext>``"""
    raw_name = record.get("file_name") or "transcript"
    raw_id = record.get("transcript_id") or str(int(time.time() * 1000))
    base = re.sub(r"\.[^/.]+$", "", raw_name)
    base = re.sub(r"[^\w\-]+", "_", base)[:MAX_FILENAME_LEN]
    return f"{base}-{raw_id}.{fmt}"


def export_transcript(record: Dict[str, Any], fmt: str) -> ExportResult:
    """Render ``record["transcription"]`` in ``fmt`` (txt, pdf or docx)."""
    fmt = (fmt or "").lower()
    renderer = _RENDERERS.get(fmt) if fmt in cfg.EXPORT_FORMATS else None
    if renderer is None:
        raise InputError(f"Unsupported format: {fmt or '(none)'}")

    text = record.get("transcription") or ""
    buffer = renderer(text)
    file_name = export_filename(record, fmt)
    logger.info(
        "Exported transcript %s as %s (%d bytes)",
        record.get("transcript_id"), fmt, len(buffer),
    )
    return ExportResult(buffer=buffer, mime=MIME_TYPES[fmt], file_name=file_name)


# ── Renderers ────────────────────────────────────────────────────────────


def _render_txt(text: str) -> bytes:
    return text.encode("utf-8")


def _render_pdf(text: str) -> bytes:
    out = io.BytesIO()
    # invariant=1 fixes the creation date and document id
    pdf = canvas.Canvas(out, pagesize=A4, invariant=1)
    width, height = A4
    max_width = width - 2 * PDF_MARGIN

    lines: List[str] = []
    for raw_line in text.split("\n"):
        lines.extend(simpleSplit(raw_line, PDF_FONT, PDF_FONT_SIZE, max_width) or [""])

    y = height - PDF_MARGIN
    pdf.setFont(PDF_FONT, PDF_FONT_SIZE)
    for line in lines:
        if y < PDF_MARGIN:
            pdf.showPage()
            pdf.setFont(PDF_FONT, PDF_FONT_SIZE)
            y = height - PDF_MARGIN
        pdf.drawString(PDF_MARGIN, y, line)
        y -= PDF_LEADING
    pdf.save()
    return out.getvalue()


def _render_docx(text: str) -> bytes:
    document = Document()
    document.core_properties.created = FIXED_CORE_DATE
    document.core_properties.modified = FIXED_CORE_DATE
    document.core_properties.last_printed = FIXED_CORE_DATE

    lines = [line for line in text.split("\n") if line]
    for line in lines or [EMPTY_DOCX_TEXT]:
        paragraph = document.add_paragraph()
        paragraph.paragraph_format.space_after = Pt(6)
        run = paragraph.add_run(line)
        run.font.name = "Arial"
        run.font.size = Pt(8)

    raw = io.BytesIO()
    document.save(raw)
    return _restamp_zip(raw.getvalue())


def _restamp_zip(data: bytes) -> bytes:
    """Rewrite a zip archive with fixed entry timestamps."""
    out = io.BytesIO()
    with zipfile.ZipFile(io.BytesIO(data)) as src, zipfile.ZipFile(
        out, "w", zipfile.ZIP_DEFLATED
    ) as dst:
        for info in src.infolist():
            entry = zipfile.ZipInfo(info.filename, date_time=FIXED_ZIP_DATE)
            entry.compress_type = zipfile.ZIP_DEFLATED
            entry.external_attr = info.external_attr
            dst.writestr(entry, src.read(info.filename))
    return out.getvalue()


_RENDERERS = {
    "txt": _render_txt,
    "pdf": _render_pdf,
    "docx": _render_docx,
}
