from typing import List
from core.types import CanonicalMeasurement, Recommendation

id = "iron"
title = "Ferro: ferritina"

THRESHOLDS = {"ferritin": 30.0}  # ng/mL

VITAMIN_C = "Vitamina C 500 mg — junto às refeições ricas em ferro"
IRON_FOODS = "Incluir fontes de ferro (carnes magras, feijão, folhas escuras) com vitamina C na mesma refeição"


def compute(measurements: List[CanonicalMeasurement]) -> List[Recommendation]:
    r: List[Recommendation] = []
    for m in measurements:
        if m.marker_key == "ferritin" and m.value < THRESHOLDS["ferritin"]:
            r.append(Recommendation("supplements", VITAMIN_C))
            r.append(Recommendation("diet", IRON_FOODS))
    return r
