from typing import List
from core.types import CanonicalMeasurement, Recommendation

id = "vitamin_d"
title = "Vitamina D (25-OH)"

# ng/mL
THRESHOLDS = {
    "deficient": 20.0,
    "insufficient": 30.0,
}

HIGH_DOSE_D3 = "Vitamina D3 10.000 UI — 1 cápsula/dia por 8 semanas, depois reavaliar"
MODERATE_DOSE_D3 = "Vitamina D3 5.000 UI — 1 cápsula/dia após o almoço"
MAGNESIUM = "Magnésio quelato 300 mg — 1 cápsula à noite"


def compute(measurements: List[CanonicalMeasurement]) -> List[Recommendation]:
    r: List[Recommendation] = []
    for m in measurements:
        if m.marker_key != "vitamin_d_25oh":
            continue
        if m.value < THRESHOLDS["deficient"]:
            r.append(Recommendation("supplements", HIGH_DOSE_D3))
        elif m.value < THRESHOLDS["insufficient"]:
            r.append(Recommendation("supplements", MODERATE_DOSE_D3))
        if m.value < THRESHOLDS["insufficient"]:
            r.append(Recommendation("supplements", MAGNESIUM))
    return r
