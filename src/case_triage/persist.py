import json
import hashlib
from pathlib import Path

from case_triage.schema import TriageResult
from case_triage.settings import get_settings


def _sha256_hex(s: str) -> str:
    return hashlib.sha256(s.encode("utf-8")).hexdigest()


def persist_triage(result: TriageResult, *, text: str) -> Path:
    """
    Idempotent persistence of a batch triage result:
    - Same description text -> same output path
    - Uses atomic write via temp file + replace
    """
    out_dir = Path(get_settings().out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    key = _sha256_hex(text)[:16]
    path = out_dir / f"triage_{key}.json"

    payload = {"description": text, "triage": result.model_dump(mode="json", by_alias=True)}
    data = json.dumps(payload, indent=2, ensure_ascii=False)

    tmp_path = path.with_suffix(".json.tmp")
    tmp_path.write_text(data, encoding="utf-8")
    tmp_path.replace(path)  # atomic on same filesystem

    return path
