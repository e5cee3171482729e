from datetime import date as Date
from typing import List, Optional

from core.pdf_parser import parse_exam
from core.rules import with_defaults
from core.types import RecommendationPlan

BULLET = "•"

CONDUCTS = [
    "Acupuntura geral",
    "Acupuntura no pós-operatório de cirurgia plástica",
    "Fitoterapia chinesa e dietética chinesa – Suplementos",
    "Gerenciamento de estresse – Mindfulness / Biofeedback",
    "Saúde quântica – Biorressonância e florais frequenciais",
    "Atendimento online",
]

SECTIONS = [
    ("supplements", "Suplementos:"),
    ("herbal_therapy", "Fitoterapia Chinesa:"),
    ("diet", "Dieta:"),
    ("exercise", "Exercícios:"),
    ("lifestyle", "Meditação e Estilo de Vida:"),
]

SUMMARY_MODES = ("tests", "raw")


def exam_summary(exam_text: Optional[str], mode: str = "tests") -> List[str]:
    """Optional block shown above the prescription.

    ``"tests"`` lists the structured results found in the exam, ``"raw"`` shows
    the cleaned text. Nothing is emitted when there is nothing to show.
    """
    if mode not in SUMMARY_MODES:
        raise ValueError(f"summary mode must be one of {SUMMARY_MODES}, got {mode!r}")
    parsed = parse_exam(exam_text or "")
    if mode == "tests":
        if not parsed.raw:
            return []
        rows = [
            f"{BULLET} {t.label}: {t.value}" + (f" {t.unit}" if t.unit else "")
            for t in parsed.raw
        ]
        return ["Resumo do exame (estruturado):", *rows, ""]
    if not parsed.clean_text.strip():
        return []
    return ["Resumo do exame (limpo):", *parsed.clean_text.split("\n"), ""]


def build_paragraphs(
    plan: RecommendationPlan,
    patient_name: Optional[str] = None,
    date: Optional[Date] = None,
    exam_text: Optional[str] = None,
    summary_mode: Optional[str] = None,
) -> List[str]:
    plan = with_defaults(plan)
    date = date or Date.today()
    lines: List[str] = []
    if summary_mode and exam_text:
        lines += exam_summary(exam_text, summary_mode)

    lines += [
        f"PACIENTE: {patient_name or 'Paciente'}",
        f"DATA: {date.strftime('%d/%m/%Y')}",
        "",
        "Condutas:",
        *[f"{BULLET} {c}" for c in CONDUCTS],
        "",
    ]
    for cat, header in SECTIONS:
        lines.append(header)
        lines += [f"{BULLET} {item}" for item in plan.category(cat)]
        lines.append("")
    return lines
