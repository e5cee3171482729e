import io
import logging
from datetime import date as Date
from functools import lru_cache
from typing import List, Optional

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfgen import canvas

from core.prescription import build_paragraphs
from core.types import (
    ComposedDocument,
    ComposedPage,
    RecommendationPlan,
    Template,
    TemplateBox,
    TextMeasurer,
    TextRun,
)

logger = logging.getLogger(__name__)

FONT_REGULAR = "Helvetica"
FONT_BOLD = "Helvetica-Bold"
HEADING_MAX_LEN = 50
PARAGRAPH_GAP = 2


class TemplateUnavailableError(RuntimeError):
    """The background template cannot be located or read; no document can be built."""


class ReportLabMeasurer:
    def width(self, text: str, font: str, size: float) -> float:
        return pdfmetrics.stringWidth(text, font, size)


# ----------------------------
# Template
# ----------------------------
def template_from_bytes(data: bytes, source: str = "<bytes>") -> Template:
    if not data:
        raise TemplateUnavailableError(f"template {source} is empty")
    try:
        reader = PdfReader(io.BytesIO(data))
        if not reader.pages:
            raise TemplateUnavailableError(f"template {source} has no pages")
        box = reader.pages[0].mediabox
    except (PyPdfError, ValueError) as e:
        raise TemplateUnavailableError(f"template {source} is not a readable PDF: {e}") from e
    return Template(data=data, width=float(box.width), height=float(box.height), source=source)


@lru_cache(maxsize=8)
def load_template(path: str) -> Template:
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        raise TemplateUnavailableError(f"cannot read template {path}: {e}") from e
    tpl = template_from_bytes(data, source=path)
    logger.info("loaded template %s (%.0fx%.0f pt)", path, tpl.width, tpl.height)
    return tpl


# ----------------------------
# Layout
# ----------------------------
def is_heading(paragraph: str) -> bool:
    return paragraph.strip().endswith(":") and len(paragraph) < HEADING_MAX_LEN


def wrap(paragraph: str, font: str, size: float, max_width: float, measurer: TextMeasurer) -> List[str]:
    """Greedy word wrap; a single word wider than the box keeps its own line."""
    out: List[str] = []
    line = ""
    for word in paragraph.replace("\r", "").split():
        candidate = f"{line} {word}" if line else word
        if line and measurer.width(candidate, font, size) > max_width:
            out.append(line)
            line = word
        else:
            line = candidate
    if line:
        out.append(line)
    if not out:
        out.append("")
    return out


def compose(
    paragraphs: List[str],
    template: Template,
    box: Optional[TemplateBox] = None,
    measurer: Optional[TextMeasurer] = None,
) -> ComposedDocument:
    box = box or TemplateBox()
    measurer = measurer or ReportLabMeasurer()
    writable_width = template.width - box.margin_left - box.margin_right

    doc = ComposedDocument(template=template)
    page = ComposedPage(background=template)
    doc.pages.append(page)
    y = template.height - box.top_first

    for p in paragraphs:
        heading = is_heading(p)
        font = FONT_BOLD if heading else FONT_REGULAR
        size = box.font_size + 1 if heading else box.font_size
        line_height = size + box.line_gap

        for ln in wrap(p, font, size, writable_width, measurer):
            if y - line_height < box.bottom_margin:
                page = ComposedPage(background=template)
                doc.pages.append(page)
                y = template.height - box.top_others
            page.runs.append(TextRun(text=ln, x=box.margin_left, y=y, font=font, size=size))
            y -= line_height
        if not heading:
            y -= PARAGRAPH_GAP

    logger.debug("composed %d paragraph(s) into %d page(s)", len(paragraphs), len(doc.pages))
    return doc


# ----------------------------
# Output
# ----------------------------
def _overlay(document: ComposedDocument) -> PdfReader:
    tpl = document.template
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=(tpl.width, tpl.height))
    for page in document.pages:
        for run in page.runs:
            if not run.text:
                continue
            c.setFont(run.font, run.size)
            c.drawString(run.x, run.y, run.text)
        c.showPage()
    c.save()
    buf.seek(0)
    return PdfReader(buf)


def render_pdf(document: ComposedDocument) -> bytes:
    """Merge the text overlay of each composed page onto its own copy of the template."""
    tpl = document.template
    overlay = _overlay(document)
    first = PdfReader(io.BytesIO(tpl.data))
    writer = PdfWriter()
    for i, overlay_page in enumerate(overlay.pages):
        source = first if i == 0 else PdfReader(io.BytesIO(tpl.data))
        page = writer.add_page(source.pages[0])
        page.merge_page(overlay_page)
    out = io.BytesIO()
    writer.write(out)
    return out.getvalue()


def generate_prescription_pdf(
    plan: RecommendationPlan,
    template: Template,
    patient_name: Optional[str] = None,
    date: Optional[Date] = None,
    box: Optional[TemplateBox] = None,
    exam_text: Optional[str] = None,
    summary_mode: Optional[str] = None,
    measurer: Optional[TextMeasurer] = None,
) -> bytes:
    paragraphs = build_paragraphs(plan, patient_name, date, exam_text, summary_mode)
    document = compose(paragraphs, template, box, measurer)
    data = render_pdf(document)
    logger.info("generated prescription: %d page(s), %d bytes", len(document.pages), len(data))
    return data
