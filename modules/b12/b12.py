from typing import List
from core.types import CanonicalMeasurement, Recommendation

id = "b12"
title = "Vitamina B12"

THRESHOLDS = {"b12": 300.0}  # pg/mL

B12 = "Vitamina B12 (metilcobalamina) 1000 mcg — 1×/dia sublingual"


def compute(measurements: List[CanonicalMeasurement]) -> List[Recommendation]:
    return [
        Recommendation("supplements", B12)
        for m in measurements
        if m.marker_key == "b12" and m.value < THRESHOLDS["b12"]
    ]
