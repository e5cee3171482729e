import io
import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import pdfplumber

from core.normalize import normalize, strip_noise, strip_accents
from core.types import RawMeasurement, CanonicalMeasurement

logger = logging.getLogger(__name__)


@dataclass
class ParsedExam:
    clean_text: str
    raw: List[RawMeasurement] = field(default_factory=list)
    measurements: List[CanonicalMeasurement] = field(default_factory=list)


# ----------------------------------
# "Label: value unit" on one line
# ----------------------------------
# label: letters (accented too), digits, spaces and light punctuation
# value: signed decimal, comma or dot separator
# unit:  letters plus µ % / · ° ² ³ ^ _ -
RESULT_LINE = re.compile(
    r"^\s*([A-Za-zÀ-ÿ0-9 .,'()/\-+%]+?)\s*:\s*([+-]?\d+(?:[.,]\d+)?)\s*([A-Za-zµμ%/·°²³^_-]+)?\s*$"
)

# ----------------------------------
# Label -> marker key, first match wins
# ----------------------------------
MARKERS: List[Tuple[str, str]] = [
    ("vitamin_d_25oh", r"vitamina?\s*d(?:\s*3)?\b|\b25\s*-?\s*(?:oh|hidroxi|hydroxy)"),
    ("hba1c", r"hba1c|\ba1c\b|hemoglobina\s+glicada|glicada|glycated\s+ha?emoglobin"),
    ("ldl", r"\bldl\b"),
    ("hdl", r"\bhdl\b"),
    ("triglycerides", r"triglicer|triglycer|\btg\b"),
    ("chol_total", r"colesterol\s+total|total\s+cholesterol|cholesterol,?\s*total"),
    ("glucose_estimated_avg", r"(?:glicose|glicemia)\s+media\s+estimada|estimated\s+average\s+glucose|\beag\b"),
    ("glucose", r"glicose|glicemia|glucose|\bfpg\b"),
    ("tsh", r"\btsh\b|tireoestimulante|thyroid\s+stimulating"),
    ("ferritin", r"ferritin"),
    ("b12", r"\bb\s*-?\s*12\b|cobalamin|cianocobalamina"),
]
MARKER_RX = [(key, re.compile(pat)) for key, pat in MARKERS]
MARKER_KEYS = frozenset(key for key, _ in MARKERS)


def read_pdf_text(data: bytes) -> str:
    """Text of every page of a text-based PDF, or "" when it cannot be read."""
    if not data:
        return ""
    try:
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            texts = [page.extract_text() or "" for page in pdf.pages]
    except Exception as e:
        logger.warning("could not extract text from PDF: %s", e)
        return ""
    return "\n".join(texts)


def _match_line(line: str) -> Optional[RawMeasurement]:
    m = RESULT_LINE.match(line)
    if not m:
        return None
    label, value, unit = m.groups()
    label = re.sub(r"\s{2,}", " ", label).strip()
    if unit:
        unit = unit.replace("μ", "µ")
    return RawMeasurement(label=label, value=value, unit=unit)


def extract(clean_text: str) -> List[RawMeasurement]:
    results: List[RawMeasurement] = []
    seen = set()
    for raw in (clean_text or "").split("\n"):
        ln = raw.strip()
        # text-only lines with a colon are never results
        if not ln or not re.search(r"\d", ln):
            continue
        item = _match_line(ln)
        if item is None:
            logger.debug("no measurement in line: %r", ln)
            continue
        key = (item.label, item.value, item.unit or "")
        if key in seen:
            continue
        seen.add(key)
        results.append(item)
    return results


def clean_label(label: str) -> str:
    return re.sub(r"\s+", " ", strip_accents(label).lower()).strip()


def canonicalize(label: str) -> str:
    cleaned = clean_label(label)
    for key, rx in MARKER_RX:
        if rx.search(cleaned):
            return key
    return cleaned


def _to_float(value: str) -> Optional[float]:
    try:
        return float(value.replace(",", "."))
    except (AttributeError, ValueError):
        return None


def to_canonical(raw: List[RawMeasurement]) -> List[CanonicalMeasurement]:
    out: List[CanonicalMeasurement] = []
    for item in raw:
        v = _to_float(item.value)
        if v is None:
            logger.debug("dropping %r: value %r is not numeric", item.label, item.value)
            continue
        out.append(CanonicalMeasurement(marker_key=canonicalize(item.label), value=v, unit=item.unit))
    return out


def parse_exam(raw_text: str) -> ParsedExam:
    clean = strip_noise(normalize(raw_text))
    raw = extract(clean)
    parsed = ParsedExam(clean_text=clean, raw=raw, measurements=to_canonical(raw))
    logger.info("parsed %d measurement(s), %d recognised marker(s)",
                len(raw), sum(1 for m in parsed.measurements if m.marker_key in MARKER_KEYS))
    return parsed
