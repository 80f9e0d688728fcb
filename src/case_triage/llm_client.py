import json
from typing import Any, Mapping

from openai import OpenAI
from pydantic import ValidationError

from case_triage.classifier import coerce_context
from case_triage.errors import ClassifierFailure, InputValidationError
from case_triage.schema import PatientContext, TriageResult
from case_triage.settings import get_settings
from case_triage.urgency import normalize_urgency

SYSTEM_INSTRUCTIONS = """You are a medical triage assistant for decision support.
Analyze the patient's symptoms and return STRICT JSON only, with keys:
"urgencyLevel" (one of: critical, urgent, moderate, routine),
"structuredSymptoms" (object), "riskFlags" (array of strings),
"summary" (string), "recommendations" (array of strings).
Be conservative: when in doubt, escalate urgency. No commentary.
"""


class OpenAIClassifier:
    """
    Remote model classifier. Same call contract as the keyword classifier,
    but it may fail; every failure surfaces as ClassifierFailure so the
    caller can fall back.
    """

    def __init__(
        self,
        model: str | None = None,
        client: Any | None = None,
        api_key: str | None = None,
    ) -> None:
        s = get_settings()
        self.model = model or s.llm_model
        if client is None:
            api_key = api_key or s.openai_api_key
            if not api_key:
                raise ValueError("Missing OPENAI_API_KEY environment variable.")
            client = OpenAI(api_key=api_key)
        self.client = client

    def _complete(self, description: str, ctx: PatientContext) -> str:
        user_payload = {
            "description": description.strip(),
            "age": ctx.age,
            "medicalHistory": ctx.medical_history,
            "allergies": ctx.allergies,
        }
        resp = self.client.chat.completions.create(
            model=self.model,
            temperature=0,
            response_format={"type": "json_object"},
            messages=[
                {"role": "system", "content": SYSTEM_INSTRUCTIONS},
                {"role": "user", "content": json.dumps(user_payload, ensure_ascii=False)},
            ],
        )
        return resp.choices[0].message.content or ""

    def __call__(
        self,
        description: str,
        context: PatientContext | Mapping[str, Any] | None = None,
    ) -> TriageResult:
        ctx = coerce_context(context)
        try:
            raw = self._complete(description, ctx)
        except Exception as e:
            raise ClassifierFailure(f"LLM request failed: {e}") from e

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ClassifierFailure(f"LLM output was not valid JSON: {e}", raw=raw) from e
        if not isinstance(payload, dict):
            raise ClassifierFailure("LLM output was not a JSON object", raw=raw)

        try:
            level = normalize_urgency(payload.get("urgencyLevel", ""), "canonical")
            return TriageResult(
                urgency_level=level,
                structured_symptoms=payload.get("structuredSymptoms") or {},
                risk_flags=payload.get("riskFlags") or [],
                summary=payload.get("summary") or "",
                recommendations=payload.get("recommendations") or [],
                ai_model=self.model,
            )
        except (InputValidationError, ValidationError) as e:
            raise ClassifierFailure(f"LLM output failed schema validation: {e}", raw=raw) from e
