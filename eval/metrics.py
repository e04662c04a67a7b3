from dataclasses import dataclass

@dataclass
class EvalResult:
    total: int
    correct: int
    accuracy: float
    ok_total: int
    fallback_served: int
    fallback_coverage: float

def summarize(total: int, correct: int, ok_total: int, fallback_served: int) -> EvalResult:
    acc = (correct / total) if total else 0.0
    coverage = (fallback_served / ok_total) if ok_total else 0.0
    return EvalResult(
        total=total,
        correct=correct,
        accuracy=acc,
        ok_total=ok_total,
        fallback_served=fallback_served,
        fallback_coverage=coverage,
    )
