import re
from typing import Any, Mapping

from pydantic import ValidationError

from case_triage.errors import InputValidationError
from case_triage.schema import PatientContext, TriageResult
from case_triage.urgency import normalize_urgency

MODEL_NAME = "SmartTriage-v1.0"

# Matching is plain substring containment on the lowercased text, so
# "painstaking" counts as "pain". Downstream consumers rely on this.
URGENT_KEYWORDS = (
    "severe", "bleeding", "chest pain", "unconscious", "emergency", "critical",
    "can't breathe", "seizure", "heart attack", "stroke", "poisoning",
)
HIGH_KEYWORDS = (
    "intense pain", "high fever", "difficulty breathing", "heavy vomiting",
    "severe injury", "broken bone", "deep cut", "allergic reaction",
)
MODERATE_KEYWORDS = (
    "pain", "fever", "cough", "headache", "nausea", "fatigue",
    "rash", "dizzy", "stomach ache",
)
CHRONIC_CONDITIONS = ("diabetes", "heart", "hypertension")
BREATH_TERMS = ("shortness of breath", "difficulty breathing")

PAIN_LOCATION = re.compile(r"(chest|head|stomach|abdominal|back|leg|arm)\s*pain")

TIER_TEMPLATES = {
    "urgent": {
        "summary": (
            "Patient requires IMMEDIATE medical attention. "
            "Symptoms indicate a potentially life-threatening condition."
        ),
        "risk_flags": ["severe_symptoms", "immediate_attention_required", "high_risk"],
        "recommendations": [
            "Call emergency services immediately",
            "Do not wait - seek ER care now",
            "Monitor vital signs closely",
        ],
    },
    "high": {
        "summary": (
            "Patient should be seen URGENTLY. "
            "Symptoms warrant prompt medical evaluation within hours."
        ),
        "risk_flags": ["significant_symptoms", "prompt_care_needed"],
        "recommendations": [
            "Schedule urgent care visit within 2-4 hours",
            "Do not delay treatment",
            "Monitor for worsening symptoms",
        ],
    },
    "moderate": {
        "summary": (
            "Patient should be evaluated soon. "
            "Symptoms may require medical attention within 24-48 hours."
        ),
        "risk_flags": ["medical_evaluation_recommended"],
        "recommendations": [
            "Schedule appointment within 24-48 hours",
            "Monitor symptoms for any changes",
            "Rest and maintain hydration",
        ],
    },
    "low": {
        "summary": "Patient appears stable with minor symptoms. Routine care recommended.",
        "risk_flags": [],
        "recommendations": [
            "Monitor symptoms and schedule routine follow-up if symptoms persist",
            "Self-care measures may be sufficient",
            "Contact healthcare provider if condition worsens",
        ],
    },
}

CONFIDENCE = {"urgent": "high", "high": "high", "moderate": "medium", "low": "low"}


def contains_any(text: str, phrases) -> bool:
    return any(p in text for p in phrases)


def coerce_context(context: PatientContext | Mapping[str, Any] | None) -> PatientContext:
    if context is None:
        return PatientContext()
    if isinstance(context, PatientContext):
        return context
    if not isinstance(context, Mapping):
        raise InputValidationError(
            f"context must be a mapping or PatientContext, got {type(context).__name__}"
        )
    try:
        return PatientContext.model_validate(dict(context))
    except ValidationError as e:
        raise InputValidationError(f"Invalid patient context: {e}") from e


def base_tier(lowered: str) -> str:
    if contains_any(lowered, URGENT_KEYWORDS):
        return "urgent"
    if contains_any(lowered, HIGH_KEYWORDS):
        return "high"
    if contains_any(lowered, MODERATE_KEYWORDS):
        return "moderate"
    return "low"


def extract_symptoms(lowered: str) -> tuple[dict[str, Any], list[str]]:
    symptoms: dict[str, Any] = {}
    flags: list[str] = []

    if "fever" in lowered:
        symptoms["fever"] = True
        flags.append("fever_present")
    if "pain" in lowered:
        symptoms["pain"] = True
        m = PAIN_LOCATION.search(lowered)
        if m:
            symptoms["painLocation"] = m.group(1)
    if "cough" in lowered:
        symptoms["cough"] = True
    if "headache" in lowered:
        symptoms["headache"] = True
    if contains_any(lowered, ("nausea", "vomiting")):
        symptoms["nauseaVomiting"] = True
    if contains_any(lowered, ("dizzy", "dizziness")):
        symptoms["dizziness"] = True
    if contains_any(lowered, BREATH_TERMS):
        symptoms["breathingDifficulty"] = True
        flags.append("respiratory_distress")

    return symptoms, flags


def classify(
    description: str,
    context: PatientContext | Mapping[str, Any] | None = None,
) -> TriageResult:
    """
    Deterministic keyword triage.

    Tier keywords are checked in priority order (urgent > high > moderate),
    symptom indicators are scanned independently, then patient context may
    raise the tier by one step: chronic history lifts moderate to high, a
    known allergy plus "allergic" in the text lifts low to moderate.
    """
    if not isinstance(description, str):
        raise InputValidationError(
            f"description must be a string, got {type(description).__name__}"
        )
    ctx = coerce_context(context)
    lowered = description.strip().lower()

    if not lowered:
        tier = "low"
        symptoms: dict[str, Any] = {}
        risk_flags: list[str] = []
    else:
        tier = base_tier(lowered)
        risk_flags = list(TIER_TEMPLATES[tier]["risk_flags"])
        symptoms, symptom_flags = extract_symptoms(lowered)
        risk_flags.extend(symptom_flags)

        if any(contains_any(h.lower(), CHRONIC_CONDITIONS) for h in ctx.medical_history):
            risk_flags.append("chronic_condition_present")
            if tier == "moderate":
                tier = "high"

        if ctx.allergies and "allergic" in lowered:
            risk_flags.append("allergy_alert")
            if tier == "low":
                tier = "moderate"

    template = TIER_TEMPLATES[tier]
    summary = template["summary"]

    return TriageResult(
        urgency_level=normalize_urgency(tier, "rule_tier"),
        rule_tier=tier,
        structured_symptoms=symptoms,
        risk_flags=risk_flags,
        summary=summary,
        detailed_assessment=(
            "Based on the patient's description, the AI triage system has assessed "
            f"this case as {tier.upper()} priority. {summary}"
        ),
        recommendations=list(template["recommendations"]),
        ai_model=MODEL_NAME,
        confidence=CONFIDENCE[tier],
    )
