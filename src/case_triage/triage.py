from typing import Any, Callable, Mapping, Optional

from case_triage.classifier import classify
from case_triage.llm_client import OpenAIClassifier
from case_triage.schema import PatientContext, TriageResult
from case_triage.settings import Settings, get_settings

Classifier = Callable[[str, Optional[PatientContext | Mapping[str, Any]]], TriageResult]


def get_classifier(settings: Settings | None = None) -> Classifier:
    # The keyword rules are the production path; the remote model is opt-in
    # and never blended with them.
    s = settings or get_settings()
    if s.triage_provider == "rules":
        return classify
    if s.triage_provider == "openai":
        return OpenAIClassifier(model=s.llm_model, api_key=s.openai_api_key)
    raise ValueError(f"Unsupported TRIAGE_PROVIDER: {s.triage_provider}")


def provider_name(classifier: Classifier) -> str:
    return "rules" if classifier is classify else type(classifier).__name__
