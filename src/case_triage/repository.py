import threading
from itertools import count
from typing import Any, Dict, Iterable, List, Optional, Protocol

from case_triage.schema import Assignment, Case, Message, TriageRecord, utcnow


class CaseRepository(Protocol):
    """Persistence collaborator. Triage records are append-only."""

    def save_case(self, case: Case) -> Case: ...

    def load_case(self, case_id: int) -> Optional[Case]: ...

    def list_cases(self) -> List[Case]: ...

    def save_triage_record(self, record: TriageRecord) -> TriageRecord: ...

    def load_latest_triage(self, case_id: int) -> Optional[TriageRecord]: ...

    def load_triage_history(self, case_id: int) -> List[TriageRecord]: ...

    def save_assignment(self, assignment: Assignment) -> Assignment: ...

    def upsert_assignment(self, case_id: int, **changes: Any) -> Assignment: ...

    def load_assignment_by_case(self, case_id: int) -> Optional[Assignment]: ...

    def append_message(self, message: Message) -> Message: ...

    def load_messages(self, case_id: int) -> List[Message]: ...


def _latest(records: Iterable[TriageRecord]) -> Optional[TriageRecord]:
    return max(records, key=lambda r: (r.created_at, r.id or 0), default=None)


class InMemoryCaseRepository:
    """
    Process-local CaseRepository.
    - ids are assigned from per-entity counters
    - every write happens under one lock, so concurrent appends stay ordered
    - stored objects are copies; callers never share state with the store
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids = {name: count(1) for name in ("case", "triage", "assignment", "message")}
        self._cases: Dict[int, Case] = {}
        self._triage: Dict[int, List[TriageRecord]] = {}
        self._assignments: Dict[int, Assignment] = {}
        self._messages: Dict[int, List[Message]] = {}

    def save_case(self, case: Case) -> Case:
        with self._lock:
            stored = case.model_copy(deep=True)
            if stored.id is None:
                stored.id = next(self._ids["case"])
            else:
                stored.updated_at = utcnow()
            self._cases[stored.id] = stored
            return stored.model_copy(deep=True)

    def load_case(self, case_id: int) -> Optional[Case]:
        with self._lock:
            c = self._cases.get(case_id)
            return c.model_copy(deep=True) if c else None

    def list_cases(self) -> List[Case]:
        with self._lock:
            return [c.model_copy(deep=True) for c in self._cases.values()]

    def save_triage_record(self, record: TriageRecord) -> TriageRecord:
        with self._lock:
            stored = record.model_copy(deep=True)
            stored.id = next(self._ids["triage"])
            stored.created_at = utcnow()
            self._triage.setdefault(stored.case_id, []).append(stored)
            return stored.model_copy(deep=True)

    def load_latest_triage(self, case_id: int) -> Optional[TriageRecord]:
        with self._lock:
            latest = _latest(self._triage.get(case_id, []))
            return latest.model_copy(deep=True) if latest else None

    def load_triage_history(self, case_id: int) -> List[TriageRecord]:
        with self._lock:
            records = sorted(self._triage.get(case_id, []), key=lambda r: (r.created_at, r.id))
            return [r.model_copy(deep=True) for r in records]

    def save_assignment(self, assignment: Assignment) -> Assignment:
        with self._lock:
            stored = assignment.model_copy(deep=True)
            existing = self._assignments.get(stored.case_id)
            if stored.id is None:
                if existing is not None:
                    raise ValueError(f"Case {stored.case_id} already has an assignment")
                stored.id = next(self._ids["assignment"])
            else:
                stored.updated_at = utcnow()
            self._assignments[stored.case_id] = stored
            return stored.model_copy(deep=True)

    def upsert_assignment(self, case_id: int, **changes: Any) -> Assignment:
        """Update the case's assignment in place, creating it first if missing."""
        with self._lock:
            existing = self._assignments.get(case_id)
            if existing is None:
                stored = Assignment(case_id=case_id, **changes)
                stored.id = next(self._ids["assignment"])
            else:
                stored = existing.model_copy(update={**changes, "updated_at": utcnow()}, deep=True)
            self._assignments[case_id] = stored
            return stored.model_copy(deep=True)

    def load_assignment_by_case(self, case_id: int) -> Optional[Assignment]:
        with self._lock:
            a = self._assignments.get(case_id)
            return a.model_copy(deep=True) if a else None

    def append_message(self, message: Message) -> Message:
        with self._lock:
            stored = message.model_copy(deep=True)
            stored.id = next(self._ids["message"])
            self._messages.setdefault(stored.case_id, []).append(stored)
            return stored.model_copy(deep=True)

    def load_messages(self, case_id: int) -> List[Message]:
        with self._lock:
            return [m.model_copy(deep=True) for m in self._messages.get(case_id, [])]
