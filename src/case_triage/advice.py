from typing import Any, Dict, Optional

from case_triage.errors import InputValidationError
from case_triage.schema import DraftAdvice
from case_triage.urgency import normalize_urgency

ADVICE_MODEL = "SmartTriage-Advice-v1.0"
DISCLAIMER = "This is AI-generated advice and should be reviewed by a medical professional."

URGENCY_STEP = {
    "critical": "Seek emergency care immediately; do not wait for a scheduled visit",
    "urgent": "Arrange an urgent care visit within the next few hours",
    "moderate": "Book an appointment within 24-48 hours",
    "routine": "Self-care is likely sufficient; book a routine follow-up if symptoms persist",
}


def draft_advice(
    description: str,
    urgency_level: Optional[str] = None,
    structured_symptoms: Optional[Dict[str, Any]] = None,
) -> DraftAdvice:
    """Template care plan for a doctor to review before posting it as advice."""
    if not isinstance(description, str) or not description.strip():
        raise InputValidationError("description is required")

    steps = ["Follow the urgency level guidance provided in the triage"]
    if urgency_level:
        steps.append(URGENCY_STEP[normalize_urgency(urgency_level, "canonical")])
    symptoms = structured_symptoms or {}
    if symptoms.get("fever"):
        steps.append("Track body temperature twice a day")
    if symptoms.get("breathingDifficulty"):
        steps.append("Seek care at once if breathing gets harder")
    steps += [
        "Monitor symptoms for any changes",
        "Maintain proper hydration and rest",
        "Contact healthcare provider if symptoms worsen",
    ]

    body = "\n".join(f"{i}. {step}" for i, step in enumerate(steps, 1))
    advice = (
        "Based on the patient's symptoms and triage assessment, "
        "here is the recommended care plan:\n\n"
        f"{body}\n\n"
        "This is a preliminary assessment. Final medical advice should be "
        "provided by qualified healthcare professional."
    )
    return DraftAdvice(draft_advice=advice, ai_model=ADVICE_MODEL, disclaimer=DISCLAIMER)
