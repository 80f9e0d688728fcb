import json
from pathlib import Path

import pytest

from case_triage.classifier import classify
from case_triage.cli import print_summary, read_inputs
from case_triage.errors import ClassifierFailure
from case_triage.flow import triage_and_persist
from case_triage.results import TriageBatchResult


def test_triage_and_persist_writes_result(tmp_path):
    r = triage_and_persist("Broken bone in my arm")
    assert r.status == "ok"
    assert r.urgency_level == "urgent"

    payload = json.loads(Path(r.out_path).read_text(encoding="utf-8"))
    assert payload["description"] == "Broken bone in my arm"
    assert payload["triage"]["urgencyLevel"] == "urgent"


def test_same_text_maps_to_same_output_path():
    a = triage_and_persist("Mild cough")
    b = triage_and_persist("Mild cough")
    assert a.out_path == b.out_path


def test_failure_persists_fallback_and_artifact(tmp_path):
    def broken(description, context):
        raise ClassifierFailure("bad json", raw="{oops")

    r = triage_and_persist("Fever and rash", classifier=broken)
    assert r.status == "fallback"
    assert r.ai_model == "fallback"
    assert r.urgency_level == "moderate"
    assert r.error_type == "ClassifierFailure"

    artifact = json.loads(Path(r.failure_artifact).read_text(encoding="utf-8"))
    assert artifact["error_message"] == "bad json"
    assert artifact["raw_output_sha256"]
    assert artifact["raw_output_preview"] == ""


def test_raw_preview_kept_when_enabled(monkeypatch):
    monkeypatch.setenv("KEEP_RAW_LLM_OUTPUT", "1")

    def broken(description, context):
        raise ClassifierFailure("bad json", raw="{oops")

    r = triage_and_persist("Fever and rash", classifier=broken)
    artifact = json.loads(Path(r.failure_artifact).read_text(encoding="utf-8"))
    assert artifact["raw_output_preview"] == "{oops"


def test_read_inputs_skips_blank_and_comment_lines(tmp_path):
    p = tmp_path / "inputs.txt"
    p.write_text("# clinic A\ncough\n\n  chest pain  \n", encoding="utf-8")
    assert read_inputs(p) == ["cough", "chest pain"]


def test_read_inputs_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_inputs(tmp_path / "missing.txt")
    empty = tmp_path / "empty.txt"
    empty.write_text("\n  \n# only a comment\n", encoding="utf-8")
    with pytest.raises(ValueError):
        read_inputs(empty)


def test_classifier_failure_is_retried():
    calls = []

    def flaky(description, context):
        calls.append(description)
        if len(calls) < 3:
            raise ClassifierFailure("rate limited")
        return classify(description)

    r = triage_and_persist("cough", classifier=flaky, max_attempts=3)
    assert r.status == "ok"
    assert len(calls) == 3


def test_other_errors_are_not_retried():
    calls = []

    def broken(description, context):
        calls.append(description)
        raise KeyError("urgencyLevel")

    r = triage_and_persist("cough", classifier=broken, max_attempts=3)
    assert r.status == "fallback"
    assert len(calls) == 1


def test_print_summary_counts_by_urgency(capsys):
    results = [
        TriageBatchResult(status="ok", urgency_level="critical"),
        TriageBatchResult(status="ok", urgency_level="routine"),
        TriageBatchResult(
            status="fallback", urgency_level="moderate", error_type="ClassifierFailure",
            error_message="bad json", failure_artifact="out/fail/x.json",
        ),
    ]
    print_summary(results)
    out = capsys.readouterr().out
    assert "Classified   : 2" in out
    assert "Fallback     : 1" in out
    assert "artifact: out/fail/x.json" in out
