import pytest

from case_triage.identity import InMemoryUserDirectory
from case_triage.lifecycle import CaseLifecycleManager
from case_triage.repository import InMemoryCaseRepository
from case_triage.schema import Actor

AREA_NORTH = 1
AREA_SOUTH = 2


@pytest.fixture(autouse=True)
def force_rules_provider(monkeypatch, tmp_path):
    monkeypatch.setenv("TRIAGE_PROVIDER", "rules")
    monkeypatch.setenv("LLM_MODEL", "mock-1")
    monkeypatch.setenv("OUT_DIR", str(tmp_path / "out"))
    monkeypatch.setenv("FAILURE_DIR", str(tmp_path / "out" / "fail"))
    monkeypatch.delenv("KEEP_RAW_LLM_OUTPUT", raising=False)


@pytest.fixture
def patient():
    return Actor(user_id=10, role="patient")


@pytest.fixture
def other_patient():
    return Actor(user_id=11, role="patient")


@pytest.fixture
def worker():
    return Actor(user_id=20, role="worker", areas=[AREA_NORTH])


@pytest.fixture
def second_worker():
    return Actor(user_id=21, role="worker", areas=[AREA_NORTH, AREA_SOUTH])


@pytest.fixture
def south_worker():
    return Actor(user_id=22, role="worker", areas=[AREA_SOUTH])


@pytest.fixture
def doctor():
    return Actor(user_id=30, role="doctor", areas=[AREA_NORTH])


@pytest.fixture
def admin():
    return Actor(user_id=40, role="admin")


@pytest.fixture
def directory(patient, other_patient, worker, second_worker, south_worker, doctor, admin):
    return InMemoryUserDirectory(
        users=[patient, other_patient, worker, second_worker, south_worker, doctor, admin],
        areas=[AREA_NORTH, AREA_SOUTH],
    )


@pytest.fixture
def repository():
    return InMemoryCaseRepository()


@pytest.fixture
def manager(repository, directory):
    return CaseLifecycleManager(repository, directory)
