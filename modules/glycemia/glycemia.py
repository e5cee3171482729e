from typing import List
from core.types import CanonicalMeasurement, Recommendation

id = "glycemia"
title = "Glicemia: HbA1c e glicose de jejum"

THRESHOLDS = {
    "hba1c": 5.7,     # %
    "glucose": 100.0,  # mg/dL
}

LOW_GI = "Priorizar alimentos de baixo índice glicêmico; reduzir açúcares e farinhas refinadas"
PROBIOTIC = "Probiótico multicepas — 1 cápsula/dia em jejum"
POST_MEAL_WALK = "Caminhada leve de 10–15 min após as refeições principais"


def compute(measurements: List[CanonicalMeasurement]) -> List[Recommendation]:
    r: List[Recommendation] = []
    for m in measurements:
        limit = THRESHOLDS.get(m.marker_key)
        if limit is None or m.value < limit:
            continue
        r += [
            Recommendation("diet", LOW_GI),
            Recommendation("supplements", PROBIOTIC),
            Recommendation("exercise", POST_MEAL_WALK),
        ]
    return r
