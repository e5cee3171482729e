import logging
import re
import unicodedata

logger = logging.getLogger(__name__)

# ----------------------------
# Lines that are never results
# ----------------------------
NOISE_PATTERNS = [
    # headers, methods, signatures
    r"observa[cç][oõ]es?\s*do\s*exame",
    r"\bobservations?\b",
    r"data\s*de\s*(?:coleta|recebimento|gera[cç][aã]o|emiss[aã]o)",
    r"\b(?:collection|issue|received)\s*date\b",
    r"assinado\s+eletronicamente",
    r"signed\s+electronically",
    r"laborat[oó]rio",
    r"\blaboratory\b",
    r"\b(?:crm|crf)[-:/ ]?\w+",
    r"\(m[eé]todo",
    r"\bmethod\b",
    r"\bmetodologia\b|\bmethodology\b",
    r"\bmaterial\s*:",
    # reference ranges
    r"\brefer[êe]ncia\b|\bintervalo\s*de\s*refer[êe]ncia\b|\bvalores?\s*de\s*refer[êe]ncia\b|\bvr\b",
    r"\breference\s*(?:range|interval|values?)\b",
    r"\bnormal\b\s*:\s*\d",
    r"\brisco\b|\brisk\b|\bdiabetes\b(?:\s*mellitus)?",
    r"\bassinatura\b|\bsignature\b",
    r"\b(?:resultado|result)\s*:\s*$",
    # bibliography
    r"\b20\d{2}\b.*(?:supplement|doi|ed\.|vol\.|pages?)",
    r"wintrobe",
    r"greer,",
    r"https?://",
]
NOISE_RX = re.compile("|".join(NOISE_PATTERNS), flags=re.I)

PROSE_MIN_LEN = 180


def normalize(text: str) -> str:
    """Clean whitespace of raw extracted text.

    Carriage returns become newlines, horizontal whitespace runs (nbsp included)
    become one space, every line is stripped and blank-line runs are capped at
    one empty line.
    """
    t = (text or "").replace("\r", "\n")
    t = re.sub(r"[^\S\n]+", " ", t)
    t = "\n".join(line.strip() for line in t.split("\n"))
    t = re.sub(r"\n{3,}", "\n\n", t)
    return t.strip()


def _is_noise(line: str) -> bool:
    t = line.strip()
    if not t:
        return True
    if NOISE_RX.search(t):
        return True
    # long narrative text, not a result line
    if len(t) > PROSE_MIN_LEN and ":" not in t:
        return True
    return False


def strip_noise(text: str) -> str:
    kept = [ln for ln in (text or "").split("\n") if not _is_noise(ln)]
    dropped = len((text or "").split("\n")) - len(kept)
    if dropped:
        logger.debug("strip_noise dropped %d line(s)", dropped)
    return "\n".join(kept)


def strip_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text or "")
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))
