import argparse
import json
import time
from pathlib import Path

from data_query_engine.backends.memory import InMemoryBackend
from data_query_engine.dispatcher import QueryEngine
from eval.metrics import summarize

DEFAULT_TABLES = Path(__file__).with_name("tables.json")

def read_jsonl(path: Path):
    for line in path.read_text(encoding="utf-8").splitlines():
        if line.strip():
            yield json.loads(line)

def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--cases", required=True)
    ap.add_argument("--tables", required=False, default=str(DEFAULT_TABLES))
    ap.add_argument("--out", required=False, default=None)
    args = ap.parse_args()

    tables = json.loads(Path(args.tables).read_text(encoding="utf-8"))
    # Generic capability absent: every accepted query goes through the translator
    engine = QueryEngine(InMemoryBackend(tables=tables))
    cases = list(read_jsonl(Path(args.cases)))

    total = 0
    correct = 0
    ok_total = 0
    fallback_served = 0
    failures = []

    for c in cases:
        total += 1
        start = time.perf_counter()
        outcome = engine.run(c["query"], correlation_id=f"eval-{c['id']}")
        elapsed_ms = (time.perf_counter() - start) * 1000

        got_kind = "ok" if outcome.ok else outcome.data["kind"]
        if got_kind == "ok":
            ok_total += 1
            if outcome.data.get("rule"):
                fallback_served += 1

        mismatch = None
        if got_kind != c["expected_kind"]:
            mismatch = {"error": "kind_mismatch", "expected": c["expected_kind"], "got": got_kind}
        elif c.get("expected_rule") and outcome.data.get("rule") != c["expected_rule"]:
            mismatch = {"error": "rule_mismatch", "expected": c["expected_rule"], "got": outcome.data.get("rule")}
        elif "expected_row_count" in c and outcome.data.get("row_count") != c["expected_row_count"]:
            mismatch = {
                "error": "row_count_mismatch",
                "expected": c["expected_row_count"],
                "got": outcome.data.get("row_count"),
            }

        if mismatch:
            failures.append({"id": c["id"], **mismatch, "elapsed_ms": elapsed_ms})
        else:
            correct += 1

    summary = summarize(total, correct, ok_total, fallback_served)

    report = {
        "summary": {
            **summary.__dict__,
            "accuracy": round(summary.accuracy, 3),
            "fallback_coverage": round(summary.fallback_coverage, 3),
        },
        "failures": failures[:50],
    }

    print(json.dumps(report, indent=2))

    if args.out:
        outp = Path(args.out)
        outp.parent.mkdir(parents=True, exist_ok=True)
        outp.write_text(json.dumps(report, indent=2), encoding="utf-8")

    # Gate: every case must produce the expected outcome kind
    if summary.accuracy < 1.0:
        raise SystemExit(f"Accuracy gate failed: {summary.accuracy:.1%} < 100%")

if __name__ == "__main__":
    main()
