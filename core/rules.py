import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from core.pdf_parser import parse_exam
from core.registry import default_modules
from core.types import CATEGORIES, CanonicalMeasurement, RecommendationPlan, RuleModule

logger = logging.getLogger(__name__)

# Backfill for categories the rules left empty
DEFAULTS: Dict[str, List[str]] = {
    "supplements": [
        "Vitamina D3 2000 UI — 1 cápsula/dia após o almoço",
        "Magnésio quelato 300 mg — 1 cápsula à noite",
        "Ômega-3 TG 1000 mg — 2 cápsulas/dia com refeições",
        "Probiótico multicepas — 1 cápsula/dia em jejum",
    ],
    "herbal_therapy": [],
    "diet": [
        "Padrão anti-inflamatório; mais vegetais/frutas/proteínas leves",
        "Reduzir alto IG; evitar ultraprocessados e frituras",
        "Incluir cúrcuma, gengibre e chá verde diariamente",
    ],
    "exercise": [
        "Aeróbico: 150 min/semana (caminhada/bike/corrida leve)",
        "Resistido: 2–3×/semana (musculação/funcional)",
        "Alongamento diário: 10 minutos",
    ],
    "lifestyle": [
        "Mindfulness 10–15 min/dia",
        "Higiene do sono (rotina, menos telas à noite)",
        "Hidratação ~2 L/dia",
    ],
}


def unique(items: Iterable[str]) -> List[str]:
    """Order-preserving exact-text dedupe."""
    seen = set()
    out = []
    for s in items:
        if s in seen:
            continue
        seen.add(s)
        out.append(s)
    return out


def derive_recommendations(
    measurements: List[CanonicalMeasurement],
    modules: Optional[Sequence[RuleModule]] = None,
) -> RecommendationPlan:
    modules = default_modules() if modules is None else modules
    buckets: Dict[str, List[str]] = {c: [] for c in CATEGORIES}
    for mod in modules:
        for rec in mod.compute(measurements):
            buckets[rec.category].append(rec.text)

    return with_defaults(RecommendationPlan(**buckets))


def with_defaults(plan: RecommendationPlan) -> RecommendationPlan:
    """Dedupe every category and backfill the empty ones from DEFAULTS."""
    out = RecommendationPlan(from_fallback=plan.from_fallback)
    for cat in CATEGORIES:
        items = unique(plan.category(cat))
        if not items:
            items = list(DEFAULTS[cat])
            if items:
                logger.debug("%s is empty; using defaults", cat)
        setattr(out, cat, items)
    return out


def apply_overrides(plan: RecommendationPlan, overrides: Optional[Mapping[str, Sequence[str]]]) -> RecommendationPlan:
    """Caller-edited lists win per category when they have any item."""
    out = RecommendationPlan(from_fallback=plan.from_fallback)
    overrides = overrides or {}
    for cat in CATEGORIES:
        edited = [s.strip() for s in (overrides.get(cat) or []) if s and s.strip()]
        setattr(out, cat, unique(edited) if edited else list(plan.category(cat)))
    return out


def plan_from_text(raw_text: str, modules: Optional[Sequence[RuleModule]] = None) -> RecommendationPlan:
    return derive_recommendations(parse_exam(raw_text).measurements, modules)
