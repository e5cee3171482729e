from typing import List, Sequence
import streamlit as st

PALETTE = {
    "ok": "#2e7d32",
    "fallback": "#f9a825",
    "error": "#c62828",
    "info": "#455a64",
}


def color_box(text: str, level: str = "info"):
    col = PALETTE.get(level, "#455a64")
    st.markdown(
        f"""
        <div style=\"background:{col};padding:12px;border-radius:8px;color:white;font-weight:600;\">{text}</div>
        """,
        unsafe_allow_html=True,
    )


def items_to_text(items: Sequence[str]) -> str:
    return "\n".join(items)


def text_to_items(text: str) -> List[str]:
    # one item per line; pasted bullets are tolerated
    return [ln.strip().lstrip("•-*").strip() for ln in (text or "").split("\n") if ln.strip().lstrip("•-*").strip()]
