import logging
from datetime import date

import streamlit as st

from core.cache import SuggestionCache
from core.pdf_parser import parse_exam, read_pdf_text, MARKER_KEYS
from core.registry import load_config, load_enabled_modules, template_settings, suggest_settings
from core.report import TemplateUnavailableError, generate_prescription_pdf, load_template, template_from_bytes
from core.rules import apply_overrides, derive_recommendations
from core.suggest import SuggestionClient, suggest_from_exam
from core.types import TemplateBox
from core.utils import color_box, items_to_text, text_to_items

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

st.set_page_config(page_title="Receituário", layout="wide")
st.title("Receituário — exame → prescrição")

cfg = load_config()
tpl_cfg = template_settings(cfg)
sug_cfg = suggest_settings(cfg)


@st.cache_resource
def suggestion_cache() -> SuggestionCache:
    return SuggestionCache(ttl_seconds=sug_cfg.get("cache_ttl_seconds"))


# 1) Exam text: uploaded PDF or pasted text
with st.expander("Exame", expanded=True):
    up = st.file_uploader("PDF do exame (texto)", type=["pdf"])
    raw_text = read_pdf_text(up.getvalue()) if up is not None else ""
    raw_text = st.text_area("Texto do exame", value=raw_text, height=200)
    c1, c2 = st.columns(2)
    with c1:
        patient = st.text_input("Paciente", value="")
    with c2:
        when = st.date_input("Data", value=date.today())

parsed = parse_exam(raw_text)
if parsed.raw:
    st.subheader("Resultados encontrados")
    st.table([
        {"exame": r.label, "valor": r.value, "unidade": r.unit or "", "marcador": m.marker_key if m.marker_key in MARKER_KEYS else "—"}
        for r, m in zip(parsed.raw, parsed.measurements)
    ])

# 2) Plan: rule engine or remote suggestions
source = st.radio("Origem das sugestões", ["Regras", "IA"], horizontal=True)
if source == "IA":
    client = None
    if sug_cfg["api_key"]:
        client = SuggestionClient(sug_cfg["base_url"], sug_cfg["api_key"], timeout=sug_cfg["timeout"])
    result = suggest_from_exam(
        raw_text,
        patient_name=patient or None,
        client=client,
        cache=suggestion_cache(),
        model=sug_cfg["model"],
        fallback_model=sug_cfg["fallback_model"] or None,
    )
    plan = result.plan
    if result.reason:
        color_box(f"IA indisponível ({result.reason}); usando sugestões genéricas.", level="fallback")
    elif result.from_cache:
        color_box(f"Sugestões em cache ({result.model_used}).", level="info")
else:
    plan = derive_recommendations(parsed.measurements, load_enabled_modules(cfg))

# 3) Human edits take precedence per category
st.subheader("Plano (um item por linha)")
labels = {
    "supplements": "Suplementos",
    "herbal_therapy": "Fitoterapia Chinesa",
    "diet": "Dieta",
    "exercise": "Exercícios",
    "lifestyle": "Meditação e Estilo de Vida",
}
edited = {}
cols = st.columns(len(labels))
for col, (cat, label) in zip(cols, labels.items()):
    with col:
        edited[cat] = text_to_items(st.text_area(label, value=items_to_text(plan.category(cat)), height=220, key=f"plan_{cat}"))
plan = apply_overrides(plan, edited)

summary = st.selectbox("Resumo do exame no receituário", ["nenhum", "tests", "raw"])

# 4) Document
tpl_up = st.file_uploader("Modelo (PDF timbrado, opcional)", type=["pdf"], key="template")
try:
    template = template_from_bytes(tpl_up.getvalue(), tpl_up.name) if tpl_up is not None else load_template(tpl_cfg.get("path", "assets/template.pdf"))
    box = TemplateBox.from_mapping({k: v for k, v in tpl_cfg.items() if k != "path"})
    pdf_bytes = generate_prescription_pdf(
        plan,
        template,
        patient_name=patient or None,
        date=when,
        box=box,
        exam_text=raw_text,
        summary_mode=None if summary == "nenhum" else summary,
    )
    st.download_button("Baixar receituário (PDF)", data=pdf_bytes, file_name="Receituario.pdf", mime="application/pdf")
except TemplateUnavailableError as e:
    color_box(f"Modelo indisponível: {e}", level="error")

st.caption("Conteúdo de apoio; revisar antes de prescrever.")
