import logging
from collections import Counter
from typing import Any, Iterable, List, Mapping, Optional, get_args

from pydantic import ValidationError

from case_triage.classifier import MODEL_NAME
from case_triage.errors import AuthorizationError, InputValidationError, NotFoundError
from case_triage.identity import UserDirectory
from case_triage.messages import parse_legacy_message
from case_triage.persist_failures import persist_failure
from case_triage.repository import CaseRepository
from case_triage.schema import (
    ASSIGNMENT_STATUSES,
    CASE_STATUSES,
    Actor,
    Assignment,
    Case,
    CaseStatistics,
    CaseView,
    CreateCaseRequest,
    Message,
    MessageKind,
    TriageRecord,
    fallback_result,
)
from case_triage.settings import Settings, get_settings
from case_triage.triage import Classifier, get_classifier, provider_name

logger = logging.getLogger(__name__)

MESSAGE_KINDS = get_args(MessageKind)


class CaseLifecycleManager:
    """
    Case creation, retriage, assignment, messages and status changes.

    Every case always ends up with a current triage record: when the
    classifier (or saving its result) fails, a fallback record with
    moderate urgency is appended instead and the failure is reported
    to operators, never to the caller.
    """

    def __init__(
        self,
        repository: CaseRepository,
        directory: UserDirectory,
        classifier: Optional[Classifier] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.repository = repository
        self.directory = directory
        self.classifier = classifier or get_classifier(self.settings)

    # -- helpers -----------------------------------------------------------

    def _load_case(self, case_id: int) -> Case:
        if isinstance(case_id, bool) or not isinstance(case_id, int) or case_id <= 0:
            raise InputValidationError(f"Invalid case id: {case_id!r}")
        case = self.repository.load_case(case_id)
        if case is None:
            raise NotFoundError(f"Case not found: {case_id}")
        return case

    def _validate_worker(self, worker_id: int, area_id: Optional[int]) -> Actor:
        worker = self.directory.get_user(worker_id)
        if worker.role != "worker":
            raise InputValidationError(f"User {worker_id} is not a worker")
        if area_id is not None and area_id not in worker.areas:
            raise InputValidationError(
                f"Worker {worker_id} is not assigned to area {area_id}"
            )
        return worker

    def _report_failure(self, case: Case, error: Exception) -> None:
        try:
            path = persist_failure(
                text=case.description,
                provider=provider_name(self.classifier),
                model=getattr(self.classifier, "model", MODEL_NAME),
                error_type=type(error).__name__,
                error_message=str(error),
                raw_output=getattr(error, "raw", None),
                case_id=case.id,
            )
        except Exception:
            logger.exception("Could not write triage failure artifact for case %s", case.id)
            return
        logger.error("Wrote triage failure artifact for case %s: %s", case.id, path)

    def _run_triage(self, case: Case) -> TriageRecord:
        try:
            result = self.classifier(case.description, case.context())
            return self.repository.save_triage_record(TriageRecord.from_result(case.id, result))
        except Exception as e:
            logger.exception("Triage failed for case %s; using fallback assessment", case.id)
            self._report_failure(case, e)

        record = self.repository.save_triage_record(
            TriageRecord.from_result(case.id, fallback_result())
        )
        logger.warning("Persisted fallback triage %s for case %s", record.id, case.id)
        return record

    # -- operations --------------------------------------------------------

    def create_case(self, data: CreateCaseRequest | Mapping[str, Any], actor: Actor) -> CaseView:
        try:
            req = (
                data
                if isinstance(data, CreateCaseRequest)
                else CreateCaseRequest.model_validate(dict(data))
            )
        except ValidationError as e:
            raise InputValidationError(f"Invalid case: {e}") from e

        patient_id = (req.patient_id or actor.user_id) if actor.is_staff else actor.user_id

        if req.area_id is not None and not self.directory.area_exists(req.area_id):
            raise NotFoundError(f"Area not found: {req.area_id}")
        if req.worker_id is not None:
            self._validate_worker(req.worker_id, req.area_id)

        case = self.repository.save_case(
            Case(
                patient_id=patient_id,
                created_by_user_id=actor.user_id,
                area_id=req.area_id,
                description=req.description,
                language=req.language,
                patient_name=req.patient_name,
                patient_age=req.patient_age,
                location=req.location,
                audio_url=req.audio_url,
                medical_history=req.medical_history,
                allergies=req.allergies,
            )
        )
        record = self._run_triage(case)

        case.status = "assigned"
        case = self.repository.save_case(case)

        if req.worker_id is not None:
            self.repository.upsert_assignment(case.id, worker_id=req.worker_id)
        elif case.area_id is not None:
            # area-scoped placeholder, picked up by a worker of that area
            self.repository.upsert_assignment(case.id)

        logger.info(
            "Created case %s by user %s (urgency=%s, model=%s)",
            case.id, actor.user_id, record.urgency_level, record.ai_model,
        )
        return self.get_case(case.id)

    def retriage(self, case_id: int, actor: Actor) -> CaseView:
        case = self._load_case(case_id)
        if not actor.is_staff and case.patient_id != actor.user_id:
            raise AuthorizationError(f"User {actor.user_id} may not retriage case {case_id}")

        record = self._run_triage(case)
        logger.info(
            "Retriaged case %s by user %s (urgency=%s, model=%s)",
            case_id, actor.user_id, record.urgency_level, record.ai_model,
        )
        return self.get_case(case_id)

    def assign_worker(self, case_id: int, worker_id: int) -> Assignment:
        case = self._load_case(case_id)
        self._validate_worker(worker_id, case.area_id)
        assignment = self.repository.upsert_assignment(case_id, worker_id=worker_id)
        logger.info("Assigned worker %s to case %s", worker_id, case_id)
        return assignment

    def assign_doctor(self, case_id: int, doctor_id: int) -> Assignment:
        self._load_case(case_id)
        doctor = self.directory.get_user(doctor_id)
        if doctor.role != "doctor":
            raise InputValidationError(f"User {doctor_id} is not a doctor")
        assignment = self.repository.upsert_assignment(case_id, doctor_id=doctor_id)
        logger.info("Assigned doctor %s to case %s", doctor_id, case_id)
        return assignment

    def update_assignment_status(self, case_id: int, status: str) -> Assignment:
        if status not in ASSIGNMENT_STATUSES:
            raise InputValidationError(f"Unknown assignment status: {status!r}")
        self._load_case(case_id)
        existing = self.repository.load_assignment_by_case(case_id)
        if existing is None:
            raise NotFoundError(f"Case {case_id} has no assignment")
        return self.repository.save_assignment(existing.model_copy(update={"status": status}))

    def add_message(
        self,
        case_id: int,
        author: Optional[Actor],
        content: str,
        kind: Optional[MessageKind] = None,
    ) -> Message:
        """
        Append a message. A missing author means the platform itself wrote it.

        Without an explicit kind, older clients' "[WORKER NOTE] " and
        "[DOCTOR ADVICE]" prefixes are stripped and turned into the kind;
        otherwise the kind defaults from the author role.
        """
        self._load_case(case_id)
        if not isinstance(content, str) or not content.strip():
            raise InputValidationError("Message content is required")

        role = author.role if author is not None else "system"
        if kind is None:
            kind, content = parse_legacy_message(content.strip(), role)
            if not content:
                raise InputValidationError("Message content is required")
        if kind not in MESSAGE_KINDS:
            raise InputValidationError(f"Unknown message kind: {kind!r}")

        return self.repository.append_message(
            Message(
                case_id=case_id,
                author_id=author.user_id if author is not None else None,
                author_role=role,
                kind=kind,
                content=content.strip(),
            )
        )

    def update_status(self, case_id: int, new_status: str) -> Case:
        if new_status not in CASE_STATUSES:
            raise InputValidationError(f"Unknown case status: {new_status!r}")
        case = self._load_case(case_id)
        previous = case.status
        case.status = new_status
        case = self.repository.save_case(case)
        logger.info("Case %s status %s -> %s", case_id, previous, new_status)
        return case

    # -- queries -----------------------------------------------------------

    def get_case(self, case_id: int) -> CaseView:
        case = self._load_case(case_id)
        return CaseView(
            case=case,
            triage=self.repository.load_latest_triage(case_id),
            assignment=self.repository.load_assignment_by_case(case_id),
            messages=self.repository.load_messages(case_id),
        )

    def triage_history(self, case_id: int) -> List[TriageRecord]:
        self._load_case(case_id)
        return self.repository.load_triage_history(case_id)

    def _summaries(self, cases: Iterable[Case]) -> List[CaseView]:
        ordered = sorted(cases, key=lambda c: (c.created_at, c.id), reverse=True)
        return [
            CaseView(
                case=c,
                triage=self.repository.load_latest_triage(c.id),
                assignment=self.repository.load_assignment_by_case(c.id),
            )
            for c in ordered
        ]

    def visible_cases(self, actor: Actor) -> List[CaseView]:
        cases = self.repository.list_cases()
        if actor.role == "admin":
            return self._summaries(cases)
        if actor.role == "patient":
            return self._summaries(c for c in cases if c.patient_id == actor.user_id)
        return self._summaries(
            c for c in cases
            if (c.area_id is not None and c.area_id in actor.areas)
            or c.created_by_user_id == actor.user_id
        )

    def case_statistics(self, area_ids: Optional[Iterable[int]] = None) -> CaseStatistics:
        """Counts by status and by urgency of each case's current triage."""
        areas = set(area_ids) if area_ids else None
        cases = [
            c for c in self.repository.list_cases()
            if areas is None or c.area_id in areas
        ]
        by_urgency: Counter = Counter()
        for c in cases:
            latest = self.repository.load_latest_triage(c.id)
            if latest is not None:
                by_urgency[latest.urgency_level] += 1
        return CaseStatistics(
            by_status=dict(Counter(c.status for c in cases)),
            by_urgency=dict(by_urgency),
        )
