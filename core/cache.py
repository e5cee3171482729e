import hashlib
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from core.types import RecommendationPlan


def exam_key(text: str) -> str:
    return hashlib.sha256((text or "").encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class CacheEntry:
    plan: RecommendationPlan
    model_used: str
    at: float


class SuggestionCache:
    """Successful remote suggestions keyed by a hash of the exam text."""

    def __init__(self, ttl_seconds: Optional[float] = None, clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, text: str) -> Optional[CacheEntry]:
        key = exam_key(text)
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self.ttl_seconds is not None and self.clock() - entry.at > self.ttl_seconds:
            del self._entries[key]
            return None
        return entry

    def put(self, text: str, plan: RecommendationPlan, model_used: str) -> CacheEntry:
        entry = CacheEntry(plan=plan, model_used=model_used, at=self.clock())
        self._entries[exam_key(text)] = entry
        return entry

    def __len__(self) -> int:
        return len(self._entries)
