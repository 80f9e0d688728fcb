import json
import hashlib
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from case_triage.settings import get_settings


def _sha256_hex(s: str) -> str:
    return hashlib.sha256(s.encode("utf-8")).hexdigest()


def _as_text(raw: Any) -> str:
    # clients may attach response bytes or parsed JSON instead of text
    if raw is None:
        return ""
    if isinstance(raw, bytes):
        return raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        return raw
    try:
        return json.dumps(raw, ensure_ascii=False, sort_keys=True, default=str)
    except (TypeError, ValueError):
        return repr(raw)


def persist_failure(
    *,
    text: str,
    provider: str,
    model: str,
    error_type: str,
    error_message: str,
    raw_output: Any = None,
    case_id: int | None = None,
) -> Path:
    """
    Writes a structured classifier-failure artifact for operators.
    - Key is derived from the description text, never the text itself
    - Raw model output is only kept (truncated) when KEEP_RAW_LLM_OUTPUT=1
    """
    s = get_settings()
    fail_dir = Path(s.failure_dir)
    fail_dir.mkdir(parents=True, exist_ok=True)

    key = _sha256_hex(text)[:16]
    ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    path = fail_dir / f"triage_failure_{key}_{ts}.json"
    raw = _as_text(raw_output)

    payload = {
        "key": key,
        "case_id": case_id,
        "timestamp_utc": ts,
        "provider": provider,
        "model": model,
        "error_type": error_type,
        "error_message": error_message,
        "raw_output_sha256": _sha256_hex(raw) if raw else None,
        "raw_output_preview": raw[:200] if s.keep_raw_llm_output else "",
    }

    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    return path
