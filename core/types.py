from dataclasses import dataclass, field, fields
from typing import Protocol, List, Dict, Optional

CATEGORIES = ("supplements", "herbal_therapy", "diet", "exercise", "lifestyle")


@dataclass(frozen=True)
class RawMeasurement:
    label: str
    value: str  # as written in the exam, e.g. "2,1"
    unit: Optional[str] = None


@dataclass(frozen=True)
class CanonicalMeasurement:
    marker_key: str
    value: float
    unit: Optional[str] = None


@dataclass(frozen=True)
class Recommendation:
    category: str  # one of CATEGORIES
    text: str


@dataclass
class RecommendationPlan:
    supplements: List[str] = field(default_factory=list)
    herbal_therapy: List[str] = field(default_factory=list)
    diet: List[str] = field(default_factory=list)
    exercise: List[str] = field(default_factory=list)
    lifestyle: List[str] = field(default_factory=list)
    from_fallback: bool = False

    def category(self, name: str) -> List[str]:
        if name not in CATEGORIES:
            raise KeyError(name)
        return getattr(self, name)

    def as_dict(self) -> Dict[str, List[str]]:
        return {name: list(getattr(self, name)) for name in CATEGORIES}

    def is_empty(self) -> bool:
        return not any(getattr(self, name) for name in CATEGORIES)


@dataclass(frozen=True)
class TemplateBox:
    margin_left: float = 200
    margin_right: float = 48
    bottom_margin: float = 200
    top_first: float = 200   # offset from the top of the paper on page one
    top_others: float = 200  # same, for every following page
    font_size: float = 11
    line_gap: float = 4

    def __post_init__(self):
        for f in fields(self):
            v = getattr(self, f.name)
            if not isinstance(v, (int, float)) or v <= 0:
                raise ValueError(f"TemplateBox.{f.name} must be a positive number, got {v!r}")

    @classmethod
    def from_mapping(cls, overrides: Optional[Dict[str, float]] = None) -> "TemplateBox":
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in (overrides or {}).items() if k in known and v is not None}
        return cls(**kwargs)


@dataclass(frozen=True)
class Template:
    data: bytes
    width: float
    height: float
    source: str = "<bytes>"


@dataclass(frozen=True)
class TextRun:
    text: str
    x: float
    y: float
    font: str
    size: float


@dataclass
class ComposedPage:
    background: Template
    runs: List[TextRun] = field(default_factory=list)


@dataclass
class ComposedDocument:
    template: Template
    pages: List[ComposedPage] = field(default_factory=list)


class TextMeasurer(Protocol):
    def width(self, text: str, font: str, size: float) -> float: ...


class RuleModule(Protocol):
    id: str
    title: str
    THRESHOLDS: Dict[str, float]
    def compute(self, measurements: List[CanonicalMeasurement]) -> List[Recommendation]: ...
