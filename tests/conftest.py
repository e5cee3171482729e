import io
from typing import List

import pytest
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from core.report import template_from_bytes
from core.suggest import Completion

LETTERHEAD = "CLINICA LETTERHEAD"
FOOTER = "Rua das Flores 100"


def make_template_pdf(pagesize=A4) -> bytes:
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=pagesize)
    w, h = pagesize
    c.setFont("Helvetica-Bold", 18)
    c.drawString(40, h - 60, LETTERHEAD)
    c.setFont("Helvetica", 9)
    c.drawString(40, 30, FOOTER)
    c.showPage()
    c.save()
    return buf.getvalue()


class FixedWidthMeasurer:
    """Every character is half the font size wide."""

    def width(self, text: str, font: str, size: float) -> float:
        return len(text) * size * 0.5


class FakeClient:
    def __init__(self, *completions: Completion):
        self.completions: List[Completion] = list(completions)
        self.calls = []

    def complete(self, prompt: str, model: str) -> Completion:
        self.calls.append((prompt, model))
        c = self.completions.pop(0)
        if not c.model:
            c.model = model
        return c


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def template_bytes() -> bytes:
    return make_template_pdf()


@pytest.fixture
def template(template_bytes):
    return template_from_bytes(template_bytes, "test-template")


@pytest.fixture
def template_path(tmp_path, template_bytes):
    p = tmp_path / "template.pdf"
    p.write_bytes(template_bytes)
    return str(p)


@pytest.fixture
def measurer():
    return FixedWidthMeasurer()


@pytest.fixture
def clock():
    return FakeClock()
