"""Alternative suggestion path backed by an OpenAI-compatible chat endpoint.

The model only sees the exam text. Whatever it returns is validated into a
:class:`RecommendationPlan`; when the service is unreachable, over quota or rate
limited the caller still gets a conservative fallback plan, never an exception.
"""
import json
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

from core.cache import SuggestionCache
from core.rules import with_defaults
from core.types import CATEGORIES, RecommendationPlan

logger = logging.getLogger(__name__)

MAX_EXAM_CHARS = 18000

# Accepted spellings of each category in model output
KEY_ALIASES: Dict[str, tuple] = {
    "supplements": ("supplements", "suplementos"),
    "herbal_therapy": ("herbal_therapy", "herbalTherapy", "fitoterapia"),
    "diet": ("diet", "dieta"),
    "exercise": ("exercise", "exercises", "exercicios", "exercícios"),
    "lifestyle": ("lifestyle", "estiloVida", "estilo_vida"),
}

SECTION_RX = {
    "supplements": r"(?:suplementos?|supplements?)",
    "herbal_therapy": r"(?:fitoterapia(?:\s+chinesa)?|herbal\s*therapy|phytotherapy)",
    "diet": r"(?:dieta|diet)",
    "exercise": r"(?:exerc[ií]cios?|exercises?)",
    "lifestyle": r"(?:(?:medita[cç][aã]o\s+e\s+)?estilo\s*de\s*vida|lifestyle)",
}
# "Dieta:" or "Dieta - ", optionally in markdown emphasis; the remainder is an item
SECTION_HEADER_RX = {
    cat: re.compile(r"^\s*[#*]*\s*" + rx + r"\s*\**\s*(?::|-\s)\s*(?P<rest>.*)$", re.I)
    for cat, rx in SECTION_RX.items()
}

FALLBACK_EXERCISE = ["Aeróbico 150 min/sem + resistido 2–3×/sem"]
FALLBACK_LIFESTYLE = ["Mindfulness 10–15 min/dia", "Hidratação ~2 L/dia", "Higiene do sono"]

SYSTEM_PROMPT = "Responda SOMENTE com JSON válido."


def fallback_plan() -> RecommendationPlan:
    return RecommendationPlan(
        exercise=list(FALLBACK_EXERCISE),
        lifestyle=list(FALLBACK_LIFESTYLE),
        from_fallback=True,
    )


def build_prompt(text: str, patient_name: Optional[str] = None) -> str:
    return "\n".join([
        "Você é um assistente clínico que cria um PLANO ESTRUTURADO e ESTRITAMENTE PERSONALIZADO "
        "a partir do texto de um exame laboratorial.",
        "Regra: use SOMENTE as informações presentes no exame fornecido; não invente marcadores que não estejam no texto.",
        "Inclua recomendações APENAS quando houver indícios no exame. "
        "Se um marcador estiver dentro da referência, não recomende nada sobre ele.",
        "Não faça diagnósticos; quando houver marcadores de risco, inclua 'investigar com especialista' em lifestyle.",
        'Formato de saída: JSON VÁLIDO exatamente com as chaves '
        '{"supplements":[],"herbal_therapy":[],"diet":[],"exercise":[],"lifestyle":[]}.',
        "Cada item deve ser uma string curta, prática e específica ao achado do exame.",
        "Se não houver nada a recomendar em alguma seção, retorne um array vazio para aquela chave.",
        "",
        f"Paciente: {patient_name or '—'}",
        "Exame (texto bruto, use como única fonte):",
        (text or "")[:MAX_EXAM_CHARS],
    ])


# ----------------------------
# Remote call
# ----------------------------
@dataclass
class Completion:
    ok: bool
    content: str = ""
    model: str = ""
    kind: Optional[str] = None  # "quota" | "rate" | "other" when not ok
    retry_after: Optional[str] = None
    request_id: Optional[str] = None
    message: Optional[str] = None


class SuggestionClient:
    def __init__(self, base_url: str, api_key: str, timeout: float = 60,
                 session: Optional[requests.Session] = None, temperature: float = 0.2):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.temperature = temperature
        self.session = session or requests.Session()

    def complete(self, prompt: str, model: str) -> Completion:
        payload = {
            "model": model,
            "temperature": self.temperature,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
        }
        try:
            resp = self.session.post(
                f"{self.base_url}/chat/completions",
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            return Completion(ok=False, model=model, kind="other", message=str(e))

        request_id = resp.headers.get("x-request-id")
        if resp.status_code != 200:
            return _failed(resp, model, request_id)
        try:
            content = resp.json()["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError):
            return Completion(ok=False, model=model, kind="other", request_id=request_id,
                              message="unexpected response body")
        return Completion(ok=True, content=content, model=model, request_id=request_id)


def _failed(resp: requests.Response, model: str, request_id: Optional[str]) -> Completion:
    try:
        err = resp.json().get("error") or {}
    except ValueError:
        err = {}
    if not isinstance(err, dict):
        err = {"message": str(err)}
    code = err.get("code") or err.get("type")
    if resp.status_code == 429 and code == "insufficient_quota":
        kind = "quota"
    elif resp.status_code == 429:
        kind = "rate"
    else:
        kind = "other"
    return Completion(
        ok=False,
        model=model,
        kind=kind,
        retry_after=resp.headers.get("retry-after"),
        request_id=request_id,
        message=err.get("message") or f"HTTP {resp.status_code}",
    )


# ----------------------------
# Output validation
# ----------------------------
def _items(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    out: List[str] = []
    for v in value:
        if v is None or isinstance(v, (dict, list)):
            continue
        s = str(v).strip()
        if s and s not in out:
            out.append(s)
    return out


def _from_mapping(data: Dict[str, Any]) -> RecommendationPlan:
    plan = RecommendationPlan()
    for cat in CATEGORIES:
        value = next((data[k] for k in KEY_ALIASES[cat] if k in data), None)
        setattr(plan, cat, _items(value))
    return plan


def _section_header(line: str) -> Optional[Tuple[str, str]]:
    for cat in CATEGORIES:
        m = SECTION_HEADER_RX[cat].match(line)
        if m:
            return cat, m.group("rest")
    return None


def _from_sections(text: str) -> RecommendationPlan:
    # a section runs until a blank line or the next known header
    found: Dict[str, List[str]] = {}
    current: Optional[str] = None
    for line in text.split("\n"):
        header = _section_header(line)
        if header:
            current, line = header
            found.setdefault(current, [])
        elif not line.strip():
            current = None
            continue
        if current is None:
            continue
        item = line.strip().lstrip("-•*").strip()
        if item:
            found[current].append(item)

    plan = RecommendationPlan()
    for cat, items in found.items():
        setattr(plan, cat, _items(items))
    return plan


def parse_plan(output: str) -> RecommendationPlan:
    text = (output or "").strip()
    fenced = re.match(r"^```(?:json)?\s*([\s\S]*?)\s*```$", text)
    if fenced:
        text = fenced.group(1)
    try:
        data = json.loads(text)
    except ValueError:
        logger.debug("model output is not JSON; scraping labelled sections")
        return _from_sections(text)
    if not isinstance(data, dict):
        return RecommendationPlan()
    return _from_mapping(data)


# ----------------------------
# Entry point
# ----------------------------
@dataclass
class SuggestionResult:
    plan: RecommendationPlan
    model_used: Optional[str] = None
    at: Optional[float] = None
    from_cache: bool = False
    reason: Optional[str] = None  # set when the fallback plan was returned


REASONS = {"quota": "quota_exceeded", "rate": "rate_limited", "other": "ai_error"}


def suggest_from_exam(
    raw_text: str,
    patient_name: Optional[str] = None,
    client: Optional[SuggestionClient] = None,
    cache: Optional[SuggestionCache] = None,
    model: str = "gpt-4o-mini",
    fallback_model: Optional[str] = None,
    clock: Callable[[], float] = time.time,
) -> SuggestionResult:
    if not (raw_text or "").strip():
        logger.warning("empty exam text; nothing to personalise")
        return SuggestionResult(plan=fallback_plan(), reason="empty_text")

    if cache is not None:
        hit = cache.get(raw_text)
        if hit is not None:
            return SuggestionResult(plan=hit.plan, model_used=hit.model_used, at=hit.at, from_cache=True)

    if client is None:
        logger.warning("suggestion service not configured; returning fallback plan")
        return SuggestionResult(plan=fallback_plan(), reason="not_configured")

    prompt = build_prompt(raw_text, patient_name)
    result = client.complete(prompt, model)
    if not result.ok and result.kind == "quota" and fallback_model:
        logger.info("quota exhausted on %s; retrying with %s", model, fallback_model)
        result = client.complete(prompt, fallback_model)

    if not result.ok:
        reason = REASONS.get(result.kind or "other", "ai_error")
        logger.warning("suggestion service failed (%s, request %s): %s",
                       reason, result.request_id, result.message)
        return SuggestionResult(plan=fallback_plan(), reason=reason)

    plan = parse_plan(result.content)
    if plan.is_empty():
        logger.warning("model %s returned no usable recommendations (request %s)",
                       result.model, result.request_id)
        return SuggestionResult(plan=fallback_plan(), model_used=result.model, reason="empty_plan")

    plan = with_defaults(plan)
    if cache is not None:
        entry = cache.put(raw_text, plan, result.model)
        return SuggestionResult(plan=plan, model_used=entry.model_used, at=entry.at)
    return SuggestionResult(plan=plan, model_used=result.model, at=clock())
