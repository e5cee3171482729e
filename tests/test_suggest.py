import json

import pytest
import requests

from conftest import FakeClient
from core.cache import SuggestionCache, exam_key
from core.rules import DEFAULTS
from core.suggest import (
    FALLBACK_EXERCISE,
    FALLBACK_LIFESTYLE,
    MAX_EXAM_CHARS,
    Completion,
    SuggestionClient,
    build_prompt,
    parse_plan,
    suggest_from_exam,
)
from core.types import RecommendationPlan

EXAM = "LDL: 150 mg/dL\nTriglicerídeos: 160 mg/dL"
MODEL_JSON = json.dumps({
    "supplements": ["Ômega-3 2 g/dia"],
    "herbal_therapy": [],
    "diet": ["Mais fibras"],
    "exercise": ["Caminhada 30 min"],
    "lifestyle": ["Investigar com especialista"],
})


# ----------------------------
# parse_plan
# ----------------------------
def test_parse_plan_english_keys():
    plan = parse_plan(MODEL_JSON)
    assert plan.supplements == ["Ômega-3 2 g/dia"]
    assert plan.herbal_therapy == []
    assert plan.lifestyle == ["Investigar com especialista"]
    assert not plan.from_fallback


def test_parse_plan_portuguese_keys_and_code_fence():
    out = "```json\n" + json.dumps({
        "supplements": ["Magnésio"],
        "fitoterapia": ["Huang Qi"],
        "dieta": ["Baixo IG"],
        "exercicios": ["Resistido"],
        "estiloVida": ["Sono"],
    }) + "\n```"
    plan = parse_plan(out)
    assert plan.as_dict() == {
        "supplements": ["Magnésio"],
        "herbal_therapy": ["Huang Qi"],
        "diet": ["Baixo IG"],
        "exercise": ["Resistido"],
        "lifestyle": ["Sono"],
    }


def test_parse_plan_coerces_malformed_fields():
    out = json.dumps({
        "supplements": "Ômega-3",
        "diet": ["Fibras", "  Fibras ", "", None, 42, {"x": 1}],
        "exercise": None,
    })
    plan = parse_plan(out)
    assert plan.supplements == []
    assert plan.diet == ["Fibras", "42"]
    assert plan.exercise == []
    assert plan.lifestyle == []


def test_parse_plan_scrapes_sections_from_prose():
    out = "Suplementos:\n- Ômega-3\n- Vitamina D\n\nDieta:\n• Mais fibras\n\nEstilo de vida: Dormir 8h"
    plan = parse_plan(out)
    assert plan.supplements == ["Ômega-3", "Vitamina D"]
    assert plan.diet == ["Mais fibras"]
    assert plan.lifestyle == ["Dormir 8h"]
    assert plan.exercise == []


@pytest.mark.parametrize("out", ["", "nada a declarar", "[1, 2, 3]", "null"])
def test_parse_plan_never_raises(out):
    assert parse_plan(out).is_empty()


def test_build_prompt_truncates_exam_and_names_patient():
    prompt = build_prompt("x" * (MAX_EXAM_CHARS + 500), "Maria")
    assert "Paciente: Maria" in prompt
    assert prompt.endswith("x" * MAX_EXAM_CHARS)
    assert "x" * (MAX_EXAM_CHARS + 1) not in prompt


# ----------------------------
# suggest_from_exam
# ----------------------------
def test_success_is_parsed_and_cached(clock):
    cache = SuggestionCache(clock=clock)
    client = FakeClient(Completion(ok=True, content=MODEL_JSON))

    first = suggest_from_exam(EXAM, "Maria", client=client, cache=cache, model="m-1")
    assert first.reason is None and not first.from_cache
    assert first.model_used == "m-1"
    assert first.at == clock.now
    assert first.plan.diet == ["Mais fibras"]

    second = suggest_from_exam(EXAM, "Maria", client=client, cache=cache, model="m-1")
    assert second.from_cache
    assert second.plan.as_dict() == first.plan.as_dict()
    assert len(client.calls) == 1


def test_empty_text_returns_fallback_without_calling(clock):
    client = FakeClient()
    result = suggest_from_exam("   ", client=client)
    assert result.reason == "empty_text"
    assert result.plan.from_fallback
    assert result.plan.exercise == FALLBACK_EXERCISE
    assert result.plan.lifestyle == FALLBACK_LIFESTYLE
    assert client.calls == []


def test_quota_retries_with_fallback_model():
    client = FakeClient(
        Completion(ok=False, kind="quota"),
        Completion(ok=True, content=MODEL_JSON),
    )
    result = suggest_from_exam(EXAM, client=client, model="big", fallback_model="small")
    assert [m for _, m in client.calls] == ["big", "small"]
    assert result.model_used == "small"
    assert result.reason is None


@pytest.mark.parametrize("kind,reason", [
    ("quota", "quota_exceeded"),
    ("rate", "rate_limited"),
    ("other", "ai_error"),
])
def test_failures_degrade_to_fallback_plan(kind, reason, clock):
    cache = SuggestionCache(clock=clock)
    client = FakeClient(Completion(ok=False, kind=kind, retry_after="20"))
    result = suggest_from_exam(EXAM, client=client, cache=cache)
    assert result.reason == reason
    assert result.plan.from_fallback
    assert result.plan.supplements == []
    assert len(cache) == 0


def test_without_client_returns_fallback():
    result = suggest_from_exam(EXAM)
    assert result.reason == "not_configured"
    assert result.plan.from_fallback


# ----------------------------
# cache
# ----------------------------
def test_cache_entries_expire(clock):
    cache = SuggestionCache(ttl_seconds=60, clock=clock)
    cache.put(EXAM, RecommendationPlan(diet=["x"]), "m")
    clock.now += 60
    assert cache.get(EXAM).plan.diet == ["x"]
    clock.now += 1
    assert cache.get(EXAM) is None
    assert len(cache) == 0


def test_cache_is_keyed_by_text_hash(clock):
    cache = SuggestionCache(clock=clock)
    cache.put(EXAM, RecommendationPlan(), "m")
    assert cache.get(EXAM + " ") is None
    assert exam_key(EXAM) == exam_key(EXAM)
    assert len(exam_key(EXAM)) == 64


# ----------------------------
# SuggestionClient
# ----------------------------
class FakeResponse:
    def __init__(self, status_code, body=None, headers=None):
        self.status_code = status_code
        self._body = body
        self.headers = headers or {}

    def json(self):
        if self._body is None:
            raise ValueError("no body")
        return self._body


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.requests.append((url, json, headers, timeout))
        if self.error:
            raise self.error
        return self.response


def _client(session):
    return SuggestionClient("https://llm.example/v1/", "sk-test", timeout=5, session=session)


def test_client_success():
    body = {"choices": [{"message": {"content": MODEL_JSON}}]}
    session = FakeSession(FakeResponse(200, body, {"x-request-id": "req-1"}))
    c = _client(session).complete("prompt", "m-1")
    assert c.ok and c.content == MODEL_JSON and c.request_id == "req-1"
    url, payload, headers, timeout = session.requests[0]
    assert url == "https://llm.example/v1/chat/completions"
    assert payload["model"] == "m-1"
    assert payload["messages"][-1] == {"role": "user", "content": "prompt"}
    assert headers["Authorization"] == "Bearer sk-test"
    assert timeout == 5


@pytest.mark.parametrize("status,body,kind", [
    (429, {"error": {"code": "insufficient_quota", "message": "quota"}}, "quota"),
    (429, {"error": {"type": "requests", "message": "slow down"}}, "rate"),
    (500, None, "other"),
    (401, {"error": "bad key"}, "other"),
])
def test_client_failure_classification(status, body, kind):
    session = FakeSession(FakeResponse(status, body, {"retry-after": "7"}))
    c = _client(session).complete("prompt", "m-1")
    assert not c.ok
    assert c.kind == kind
    assert c.retry_after == "7"


def test_client_network_error_is_a_result():
    session = FakeSession(error=requests.ConnectionError("boom"))
    c = _client(session).complete("prompt", "m-1")
    assert not c.ok and c.kind == "other" and "boom" in c.message


def test_client_unexpected_body():
    session = FakeSession(FakeResponse(200, {"choices": []}))
    c = _client(session).complete("prompt", "m-1")
    assert not c.ok and c.kind == "other"


# ----------------------------
# plan contract on the remote path
# ----------------------------
def test_sections_without_blank_lines_stay_separate():
    plan = parse_plan("Suplementos:\n- Ômega-3\nDieta:\n- Mais fibras\nExercícios:\n- Caminhar")
    assert plan.supplements == ["Ômega-3"]
    assert plan.diet == ["Mais fibras"]
    assert plan.exercise == ["Caminhar"]
    assert plan.lifestyle == []


def test_sections_in_prescription_format():
    out = "**Fitoterapia Chinesa:**\n• Huang Qi\nMeditação e Estilo de Vida:\n• Dormir 8h\n• Respiração 4-7-8"
    plan = parse_plan(out)
    assert plan.herbal_therapy == ["Huang Qi"]
    assert plan.lifestyle == ["Dormir 8h", "Respiração 4-7-8"]
    assert plan.supplements == []


def test_empty_categories_from_model_get_defaults(clock):
    cache = SuggestionCache(clock=clock)
    reply = json.dumps({"supplements": [], "dieta": ["Mais fibras"], "exercise": [], "lifestyle": []})
    client = FakeClient(Completion(ok=True, content=reply))

    result = suggest_from_exam(EXAM, client=client, cache=cache)
    assert result.reason is None
    assert not result.plan.from_fallback
    assert result.plan.diet == ["Mais fibras"]
    assert result.plan.supplements == DEFAULTS["supplements"]
    assert result.plan.exercise == DEFAULTS["exercise"]
    assert result.plan.lifestyle == DEFAULTS["lifestyle"]
    assert cache.get(EXAM).plan.supplements == DEFAULTS["supplements"]


@pytest.mark.parametrize("reply", [
    json.dumps({"supplements": [], "herbal_therapy": [], "diet": [], "exercise": [], "lifestyle": []}),
    "Sem recomendações para este exame.",
])
def test_empty_model_reply_is_a_fallback_and_not_cached(reply, clock):
    cache = SuggestionCache(clock=clock)
    client = FakeClient(Completion(ok=True, content=reply))
    result = suggest_from_exam(EXAM, client=client, cache=cache, model="m-1")
    assert result.reason == "empty_plan"
    assert result.plan.from_fallback
    assert result.plan.exercise == FALLBACK_EXERCISE
    assert result.model_used == "m-1"
    assert len(cache) == 0
