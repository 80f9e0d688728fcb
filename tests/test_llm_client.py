import json
from types import SimpleNamespace

import pytest

from case_triage.errors import ClassifierFailure
from case_triage.llm_client import OpenAIClassifier


class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _classifier(content=None, error=None):
    completions = FakeCompletions(content, error)
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return OpenAIClassifier(model="mock-1", client=client), completions


def test_valid_payload_becomes_triage_result():
    clf, completions = _classifier(json.dumps({
        "urgencyLevel": "Urgent",
        "structuredSymptoms": {"fever": True},
        "riskFlags": ["fever_present"],
        "summary": "High fever",
        "recommendations": ["See a clinician today"],
    }))
    r = clf("High fever since yesterday", {"allergies": ["penicillin"]})

    assert r.urgency_level == "urgent"
    assert r.rule_tier is None
    assert r.ai_model == "mock-1"
    assert r.risk_flags == ["fever_present"]

    sent = completions.calls[0]
    assert sent["model"] == "mock-1"
    assert sent["temperature"] == 0
    assert json.loads(sent["messages"][1]["content"])["allergies"] == ["penicillin"]


@pytest.mark.parametrize(
    "content",
    [
        "not json",
        "[1, 2, 3]",
        json.dumps({"urgencyLevel": "high", "summary": "x"}),
        json.dumps({"summary": "missing urgency"}),
    ],
)
def test_bad_output_raises_classifier_failure_with_raw(content):
    clf, _ = _classifier(content)
    with pytest.raises(ClassifierFailure) as exc:
        clf("cough")
    assert exc.value.raw == content


def test_request_error_is_wrapped():
    clf, _ = _classifier(error=ConnectionError("reset by peer"))
    with pytest.raises(ClassifierFailure, match="reset by peer"):
        clf("cough")


def test_missing_api_key_is_rejected(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(ValueError, match="OPENAI_API_KEY"):
        OpenAIClassifier()
