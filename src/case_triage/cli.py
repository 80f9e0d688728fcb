import argparse
import json
from collections import Counter
from pathlib import Path
from typing import List

from case_triage.flow import triage_batch_flow
from case_triage.results import TriageBatchResult
from case_triage.urgency import URGENCY_LEVELS


def read_inputs(path: Path) -> List[str]:
    """One description per line; blank lines and lines starting with '#' are skipped."""
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")

    descriptions = []
    for raw in path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if line and not line.startswith("#"):
            descriptions.append(line)

    if not descriptions:
        raise ValueError(f"No descriptions found in {path}")

    return descriptions


def print_summary(results: List[TriageBatchResult]) -> None:
    ok = sum(1 for r in results if r.status == "ok")
    fallback = len(results) - ok
    by_urgency = Counter(r.urgency_level for r in results)

    print("\nTriage Summary")
    print("=" * 40)
    print(f"Descriptions : {len(results)}")
    print(f"Classified   : {ok}")
    print(f"Fallback     : {fallback}")
    for level in URGENCY_LEVELS:
        print(f"  {level:<10} {by_urgency.get(level, 0)}")
    print()

    if fallback:
        print("Fallbacks:")
        for i, r in enumerate(results, 1):
            if r.status == "fallback":
                print(f"- line #{i} {r.error_type}: {r.error_message}")
                if r.failure_artifact:
                    print(f"  artifact: {r.failure_artifact}")
        print()


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Triage a batch of symptom descriptions from a text file"
    )
    parser.add_argument(
        "input_file",
        type=Path,
        help="Text file with one symptom description per line",
    )
    parser.add_argument(
        "--max-attempts",
        type=int,
        default=3,
        help="Attempts per description when the classifier fails (default: 3)",
    )
    parser.add_argument(
        "--retry-delay",
        type=float,
        default=2.0,
        help="Seconds between attempts (default: 2.0)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print per-description results as JSON instead of a summary",
    )

    args = parser.parse_args()
    if args.max_attempts < 1:
        parser.error("--max-attempts must be at least 1")

    texts = read_inputs(args.input_file)
    results = triage_batch_flow(
        texts, max_attempts=args.max_attempts, delay_seconds=args.retry_delay
    )

    if args.json:
        print(json.dumps([r.model_dump() for r in results], indent=2))
    else:
        print_summary(results)


if __name__ == "__main__":
    main()
