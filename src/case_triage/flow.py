import logging
import time

from prefect import flow, get_run_logger, task, unmapped

from case_triage.classifier import MODEL_NAME
from case_triage.errors import ClassifierFailure
from case_triage.persist import persist_triage
from case_triage.persist_failures import persist_failure
from case_triage.results import TriageBatchResult
from case_triage.schema import PatientContext, TriageResult, fallback_result
from case_triage.settings import get_settings
from case_triage.triage import Classifier, get_classifier, provider_name

logger = logging.getLogger(__name__)


def classify_with_retry(
    classifier: Classifier,
    text: str,
    context: PatientContext | None = None,
    max_attempts: int = 1,
    delay_seconds: float = 0.0,
) -> TriageResult:
    attempt = 0
    while True:
        attempt += 1
        try:
            return classifier(text, context)
        except ClassifierFailure as e:
            logger.warning("Classifier failure (attempt %s/%s): %s", attempt, max_attempts, e)
            if attempt >= max_attempts:
                raise
            time.sleep(delay_seconds)


def triage_and_persist(
    text: str,
    classifier: Classifier | None = None,
    max_attempts: int = 1,
    delay_seconds: float = 0.0,
) -> TriageBatchResult:
    """
    Best-effort triage of one description:
    - ClassifierFailure is retried up to max_attempts; other errors are not
    - never raises for classifier failures; persists the fallback assessment
      and a failure artifact instead
    """
    s = get_settings()
    classifier = classifier or get_classifier(s)

    try:
        result = classify_with_retry(classifier, text, None, max_attempts, delay_seconds)
    except Exception as e:
        fail_path = persist_failure(
            text=text,
            provider=provider_name(classifier),
            model=getattr(classifier, "model", MODEL_NAME),
            error_type=type(e).__name__,
            error_message=str(e),
            raw_output=getattr(e, "raw", None),
        )
        logger.error("Triage failed; wrote failure artifact: %s", fail_path)
        fallback = fallback_result()
        out_path = persist_triage(fallback, text=text)
        return TriageBatchResult(
            status="fallback",
            out_path=str(out_path),
            urgency_level=fallback.urgency_level,
            ai_model=fallback.ai_model,
            error_type=type(e).__name__,
            error_message=str(e),
            failure_artifact=str(fail_path),
        )

    out_path = persist_triage(result, text=text)
    return TriageBatchResult(
        status="ok",
        out_path=str(out_path),
        urgency_level=result.urgency_level,
        ai_model=result.ai_model,
    )


@task(retries=0)  # selective retry happens in classify_with_retry
def t_process_one(text: str, max_attempts: int = 3, delay_seconds: float = 2.0) -> TriageBatchResult:
    run_logger = get_run_logger()
    result = triage_and_persist(text, max_attempts=max_attempts, delay_seconds=delay_seconds)
    run_logger.info(f"Triaged description. status={result.status} urgency={result.urgency_level}")
    return result


@flow(name="case-triage", retries=0)
def triage_flow(text: str) -> str:
    run_logger = get_run_logger()
    run_logger.info("Starting triage flow.")
    result = t_process_one(text)
    run_logger.info(f"Persisted triage to: {result.out_path}")
    return result.out_path


@flow(name="case-triage-batch")
def triage_batch_flow(
    texts: list[str], max_attempts: int = 3, delay_seconds: float = 2.0
) -> list[TriageBatchResult]:
    run_logger = get_run_logger()
    run_logger.info(f"Starting batch triage flow. count={len(texts)}")

    futures = t_process_one.map(texts, unmapped(max_attempts), unmapped(delay_seconds))
    # Resolve to actual values (not State objects)
    results: list[TriageBatchResult] = []
    for f in futures:
        r = f.result(raise_on_failure=False)
        if not isinstance(r, TriageBatchResult):
            # task crashed outside the classifier (e.g. unwritable OUT_DIR)
            run_logger.error(f"Task failed: {r!r}")
            r = TriageBatchResult(
                status="fallback", error_type=type(r).__name__, error_message=str(r)
            )
        results.append(r)

    ok = sum(1 for r in results if r.status == "ok")
    run_logger.info(f"Batch complete. ok={ok} fallback={len(results) - ok}")

    return results


if __name__ == "__main__":
    sample = "Severe chest pain and difficulty breathing for the last hour"
    print(triage_flow(sample))
