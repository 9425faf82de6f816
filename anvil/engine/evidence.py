"""
Evidence builder.

Gate runners report per-check results; this module folds them into the
immutable Evidence record stored on a plan.
"""

from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Union

from anvil.engine.hashing import format_timestamp, utc_now
from anvil.models.plan import CheckResult, CheckStatus, Evidence, OverallStatus


def determine_overall_status(checks: Sequence[CheckResult]) -> OverallStatus:
    """
    Aggregate check outcomes.

    passed when nothing failed, failed when something failed and nothing
    passed, partial otherwise.
    """
    failed = sum(1 for c in checks if c.status == CheckStatus.FAILED)
    passed = sum(1 for c in checks if c.status == CheckStatus.PASSED)
    if failed == 0:
        return OverallStatus.PASSED
    if passed == 0:
        return OverallStatus.FAILED
    return OverallStatus.PARTIAL


def summarize_checks(checks: Sequence[CheckResult]) -> Dict[str, int]:
    """Count checks by status."""
    counts = {"total": len(checks)}
    for status in CheckStatus:
        counts[status.value] = sum(1 for c in checks if c.status == status)
    return counts


def build_evidence(
    gate_version: str,
    checks: Sequence[Union[CheckResult, Mapping[str, Any]]],
    summary: Optional[str] = None,
    artifacts: Optional[Dict[str, str]] = None,
    clock: Callable[[], datetime] = utc_now,
) -> Evidence:
    """
    Build an Evidence record from check results.

    Args:
        gate_version: Version of the gate that ran the checks
        checks: Check results in run order. Dicts without a ``timestamp``
            get the evidence timestamp.
        summary: Optional summary; defaults to a count line
        artifacts: Optional named report locations
        clock: Time source, overridable for tests

    Returns:
        The Evidence record
    """
    timestamp = format_timestamp(clock())
    results = []
    for check in checks:
        if isinstance(check, CheckResult):
            results.append(check)
        else:
            results.append(CheckResult.model_validate({"timestamp": timestamp, **check}))

    if summary is None:
        counts = summarize_checks(results)
        summary = (
            f"{counts['passed']}/{counts['total']} checks passed, "
            f"{counts['failed']} failed, {counts['skipped']} skipped"
        )

    return Evidence(
        gate_version=gate_version,
        timestamp=timestamp,
        overall_status=determine_overall_status(results),
        checks=results,
        summary=summary,
        artifacts=artifacts,
    )
