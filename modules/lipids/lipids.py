from typing import List
from core.types import CanonicalMeasurement, Recommendation

id = "lipids"
title = "Lipídios: LDL e triglicerídeos"

# mg/dL, inclusive upper limits
THRESHOLDS = {
    "ldl": 130.0,
    "triglycerides": 150.0,
}

OMEGA_3 = "Ômega-3 TG 1000 mg — 2 cápsulas/dia com refeições"
FIBER = "Aumentar fibras (aveia, leguminosas, vegetais); evitar ultraprocessados e frituras"
AEROBIC_RESISTANCE = "Aeróbico 150 min/semana + resistido 2–3×/semana"


def _elevated(m: CanonicalMeasurement) -> bool:
    limit = THRESHOLDS.get(m.marker_key)
    return limit is not None and m.value >= limit


def compute(measurements: List[CanonicalMeasurement]) -> List[Recommendation]:
    r: List[Recommendation] = []
    for m in measurements:
        if _elevated(m):
            r += [
                Recommendation("supplements", OMEGA_3),
                Recommendation("diet", FIBER),
                Recommendation("exercise", AEROBIC_RESISTANCE),
            ]
    return r
