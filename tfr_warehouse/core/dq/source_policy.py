from tfr_warehouse.core.types import DQResult
from typing import Mapping, Any, Iterable


def DQBuilderSource(metrics: Mapping[str, Any], contract: dict) -> DQResult:
    """
    Source-file DQ policy (lean):
    - every required contract column has one of its accepted headers
    - the file is not empty (bytes > 0)
    Data rows may legitimately be zero; per-row checks happen in the harmonizer.
    """
    headers = set(metrics.get("headers") or [])
    bytes_ = int(metrics.get("bytes") or 0)

    reasons: list[str] = []
    for col in required_columns(contract):
        if not any(src in headers for src in col.get("source", [])):
            reasons.append(f"missing_header:{col['name']}")
    if bytes_ <= 0:
        reasons.append("zero_bytes")

    passed = len(reasons) == 0
    level = "MINOR" if passed else "CRITICAL"
    return DQResult(
        passed=passed, level=level, metrics={**metrics, "reasons": reasons}
    )


def required_columns(contract: dict) -> Iterable[dict]:
    return [c for c in contract["contract"]["columns"] if c.get("required")]
