"""
Two urgency vocabularies exist in the system:

- canonical: critical / urgent / moderate / routine (case store, UI, remote model)
- rule tier: urgent / high / moderate / low (keyword rule classifier)

"urgent" and "moderate" appear in both with different meanings, so every
conversion names its source vocabulary explicitly.
"""
from typing import Literal, get_args

from case_triage.errors import InputValidationError
from case_triage.schema import RuleTier, UrgencyLevel

Vocabulary = Literal["canonical", "rule_tier"]

URGENCY_LEVELS = get_args(UrgencyLevel)
RULE_TIERS = get_args(RuleTier)

TIER_TO_URGENCY: dict[str, str] = {
    "urgent": "critical",
    "high": "urgent",
    "moderate": "moderate",
    "low": "routine",
}
URGENCY_TO_TIER: dict[str, str] = {v: k for k, v in TIER_TO_URGENCY.items()}


def normalize_urgency(value: str, vocabulary: Vocabulary) -> UrgencyLevel:
    v = str(value).strip().lower()
    if vocabulary == "canonical":
        if v not in URGENCY_LEVELS:
            raise InputValidationError(f"Unknown canonical urgency level: {value!r}")
        return v  # type: ignore[return-value]
    if vocabulary == "rule_tier":
        if v not in RULE_TIERS:
            raise InputValidationError(f"Unknown rule tier: {value!r}")
        return TIER_TO_URGENCY[v]  # type: ignore[return-value]
    raise InputValidationError(f"Unknown urgency vocabulary: {vocabulary!r}")


def to_rule_tier(level: UrgencyLevel) -> RuleTier:
    return URGENCY_TO_TIER[normalize_urgency(level, "canonical")]  # type: ignore[return-value]
