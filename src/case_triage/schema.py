from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, get_args

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# Canonical urgency vocabulary, shared with the case store and the UI.
UrgencyLevel = Literal["critical", "urgent", "moderate", "routine"]
# Internal vocabulary of the keyword rule classifier.
RuleTier = Literal["urgent", "high", "moderate", "low"]
Confidence = Literal["low", "medium", "high"]

Role = Literal["patient", "worker", "doctor", "admin"]
STAFF_ROLES = ("worker", "doctor", "admin")

CaseStatus = Literal[
    "new", "assigned", "in_progress", "awaiting_doctor", "completed", "closed", "resolved"
]
CASE_STATUSES = get_args(CaseStatus)

AssignmentStatus = Literal["pending", "accepted", "in_progress", "completed"]
ASSIGNMENT_STATUSES = get_args(AssignmentStatus)

MessageKind = Literal["patient", "note", "advice", "system"]

FALLBACK_MODEL = "fallback"
FALLBACK_SUMMARY = "AI triage unavailable at the moment. Showing default assessment."


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PatientContext(WireModel):
    medical_history: List[str] = []
    allergies: List[str] = []
    age: Optional[int] = Field(default=None, ge=0, le=150)


class TriageRequest(WireModel):
    description: str = Field(..., max_length=10_000)
    language: Optional[str] = None
    medical_history: Optional[List[str]] = None
    allergies: Optional[List[str]] = None
    age: Optional[int] = Field(default=None, ge=0, le=150)

    def context(self) -> PatientContext:
        return PatientContext(
            medical_history=self.medical_history or [],
            allergies=self.allergies or [],
            age=self.age,
        )


class TriageResult(WireModel):
    urgency_level: UrgencyLevel
    rule_tier: Optional[RuleTier] = None
    structured_symptoms: Dict[str, Any] = {}
    risk_flags: List[str] = []
    summary: str
    detailed_assessment: Optional[str] = None
    recommendations: List[str] = []
    ai_model: str
    confidence: Optional[Confidence] = None


def fallback_result() -> TriageResult:
    return TriageResult(
        urgency_level="moderate",
        structured_symptoms={},
        risk_flags=[],
        summary=FALLBACK_SUMMARY,
        ai_model=FALLBACK_MODEL,
    )


class Actor(BaseModel):
    user_id: int
    role: Role
    areas: List[int] = []
    name: Optional[str] = None

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


class CreateCaseRequest(WireModel):
    description: str
    language: str
    patient_id: Optional[int] = None
    area_id: Optional[int] = None
    patient_name: Optional[str] = Field(default=None, max_length=120)
    patient_age: Optional[int] = Field(default=None, ge=0, le=150)
    location: Optional[str] = None
    audio_url: Optional[str] = None
    medical_history: List[str] = []
    allergies: List[str] = []
    worker_id: Optional[int] = None

    @field_validator("description", "language")
    @classmethod
    def required_text(cls, v: str, info):
        v = v.strip()
        if not v:
            raise ValueError(f"{info.field_name} is required")
        return v


class Case(BaseModel):
    id: Optional[int] = None
    patient_id: int
    created_by_user_id: int
    area_id: Optional[int] = None
    description: str = Field(..., min_length=1)
    language: str = Field(..., min_length=1)
    status: CaseStatus = "new"
    patient_name: Optional[str] = None
    patient_age: Optional[int] = None
    location: Optional[str] = None
    audio_url: Optional[str] = None
    medical_history: List[str] = []
    allergies: List[str] = []
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def context(self) -> PatientContext:
        return PatientContext(
            medical_history=self.medical_history,
            allergies=self.allergies,
            age=self.patient_age,
        )


class TriageRecord(BaseModel):
    id: Optional[int] = None
    case_id: int
    urgency_level: UrgencyLevel
    rule_tier: Optional[RuleTier] = None
    structured_symptoms: Dict[str, Any] = {}
    risk_flags: List[str] = []
    summary: str = ""
    detailed_assessment: Optional[str] = None
    recommendations: List[str] = []
    ai_model: str
    confidence: Optional[Confidence] = None
    created_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def from_result(cls, case_id: int, result: TriageResult) -> "TriageRecord":
        return cls(
            case_id=case_id,
            urgency_level=result.urgency_level,
            rule_tier=result.rule_tier,
            structured_symptoms=dict(result.structured_symptoms),
            risk_flags=list(result.risk_flags),
            summary=result.summary,
            detailed_assessment=result.detailed_assessment,
            recommendations=list(result.recommendations),
            ai_model=result.ai_model,
            confidence=result.confidence,
        )

    @property
    def is_fallback(self) -> bool:
        return self.ai_model == FALLBACK_MODEL


class Assignment(BaseModel):
    id: Optional[int] = None
    case_id: int
    worker_id: Optional[int] = None
    doctor_id: Optional[int] = None
    status: AssignmentStatus = "pending"
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Message(BaseModel):
    id: Optional[int] = None
    case_id: int
    author_id: Optional[int] = None
    author_role: Literal["patient", "worker", "doctor", "admin", "system"]
    kind: MessageKind
    content: str = Field(..., min_length=1)
    created_at: datetime = Field(default_factory=utcnow)


class CaseView(BaseModel):
    case: Case
    triage: Optional[TriageRecord] = None
    assignment: Optional[Assignment] = None
    messages: List[Message] = []


class CaseStatistics(BaseModel):
    by_status: Dict[str, int] = {}
    by_urgency: Dict[str, int] = {}


class DraftAdvice(WireModel):
    draft_advice: str
    ai_model: str
    disclaimer: str
