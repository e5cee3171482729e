from typing import List
from core.types import CanonicalMeasurement, Recommendation

id = "thyroid"
title = "Tireoide: TSH"

THRESHOLDS = {"tsh": 4.5}  # mUI/L, strictly above

MINDFULNESS_SLEEP = "Mindfulness 10–15 min/dia e higiene do sono; investigar tireoide com especialista"
PROTEIN_IODINE = "Revisar ingestão de proteínas e iodo (peixes, ovos, sal iodado)"


def compute(measurements: List[CanonicalMeasurement]) -> List[Recommendation]:
    r: List[Recommendation] = []
    for m in measurements:
        if m.marker_key == "tsh" and m.value > THRESHOLDS["tsh"]:
            r.append(Recommendation("lifestyle", MINDFULNESS_SLEEP))
            r.append(Recommendation("diet", PROTEIN_IODINE))
    return r
