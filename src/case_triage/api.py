from __future__ import annotations

import logging
from functools import lru_cache
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field

from case_triage.advice import draft_advice
from case_triage.errors import InputValidationError
from case_triage.schema import DraftAdvice, TriageRequest, TriageResult, fallback_result
from case_triage.settings import get_settings
from case_triage.triage import Classifier, get_classifier

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Case Triage Service",
    version="0.1.0",
    description="Deterministic keyword triage for telehealth case intake.",
)


class DraftAdviceRequest(BaseModel):
    case_description: str = Field(..., alias="caseDescription", max_length=10_000)
    structured_symptoms: Optional[Dict[str, Any]] = Field(default=None, alias="structuredSymptoms")
    urgency_level: Optional[str] = Field(default=None, alias="urgencyLevel")


@lru_cache(maxsize=8)
def _classifier_for(provider: str, model: str, api_key: Optional[str]) -> Optional[Classifier]:
    s = get_settings().model_copy(
        update={"triage_provider": provider, "llm_model": model, "openai_api_key": api_key}
    )
    try:
        return get_classifier(s)
    except ValueError:
        logger.exception("Triage provider %r is misconfigured; serving fallback assessments", provider)
        return None


def classifier_dependency() -> Optional[Classifier]:
    s = get_settings()
    return _classifier_for(s.triage_provider, s.llm_model, s.openai_api_key)


@app.get("/health")
def health() -> dict:
    return {
        "status": "ok",
        "service": "case-triage",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.post("/ai/triage", response_model=TriageResult, response_model_by_alias=True)
def api_triage(
    req: TriageRequest, classifier: Optional[Classifier] = Depends(classifier_dependency)
) -> TriageResult:
    description = req.description.strip()
    if not description:
        raise HTTPException(status_code=400, detail="Missing or invalid description")
    if classifier is None:
        return fallback_result()

    try:
        return classifier(description, req.context())
    except InputValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except Exception:
        # Callers must never block on triage; answer with the default assessment.
        logger.exception("Triage request failed; returning fallback assessment")
        return fallback_result()


@app.post("/ai/draft-advice", response_model=DraftAdvice, response_model_by_alias=True)
def api_draft_advice(req: DraftAdviceRequest) -> DraftAdvice:
    try:
        return draft_advice(
            req.case_description,
            urgency_level=req.urgency_level,
            structured_symptoms=req.structured_symptoms,
        )
    except InputValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
