"""
Proctoring monitor.

Classifies client-reported violations, keeps per-session counters and
decides whether the session has crossed a termination threshold. The
monitor never changes session status: the session engine acts on
``ViolationDecision.should_terminate``.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from hiring_assessment.models import ProctoringViolation, TestSession, ViolationSeverity

logger = logging.getLogger(__name__)


SEVERITY_BY_TYPE: dict[str, ViolationSeverity] = {
    "tab_switch": ViolationSeverity.MAJOR,
    "window_blur": ViolationSeverity.MAJOR,
    "fullscreen_exit": ViolationSeverity.MAJOR,
    "copy_paste": ViolationSeverity.CRITICAL,
    "right_click": ViolationSeverity.MINOR,
    "keyboard_shortcut": ViolationSeverity.MAJOR,
    "multiple_faces": ViolationSeverity.CRITICAL,
    "no_face_detected": ViolationSeverity.MAJOR,
    "suspicious_movement": ViolationSeverity.MINOR,
    "developer_tools": ViolationSeverity.CRITICAL,
}

# Risk thresholds for the reviewer report
HIGH_RISK_CRITICAL = 2
MEDIUM_RISK_MAJOR = 3
LOW_RISK_MINOR = 5


def classify(violation_type: str) -> ViolationSeverity:
    """Severity of a violation type; unknown types are minor."""
    return SEVERITY_BY_TYPE.get(violation_type, ViolationSeverity.MINOR)


@dataclass
class ViolationDecision:
    """Outcome of recording one violation."""

    severity: ViolationSeverity
    should_terminate: bool
    total_violations: int
    critical_count: int
    major_count: int
    minor_count: int


def should_terminate(
    critical_count: int,
    major_count: int,
    violation_threshold: int,
    critical_limit: int = 2,
) -> bool:
    return critical_count >= critical_limit or major_count >= violation_threshold


def record_violation(
    test_session: TestSession,
    violation_type: str,
    details: Optional[dict[str, Any]],
    occurred_at: datetime,
) -> ViolationDecision:
    """
    Append a violation to the session and update its counters.

    The termination check runs after the counters are updated, so the
    violation that crosses a threshold is the one that terminates.
    """
    severity = classify(violation_type)

    test_session.violations.append(
        ProctoringViolation(
            violation_type=violation_type,
            severity=severity,
            occurred_at=occurred_at,
            details=details or None,
        )
    )

    if severity == ViolationSeverity.CRITICAL:
        test_session.critical_violations += 1
    elif severity == ViolationSeverity.MAJOR:
        test_session.major_violations += 1
    else:
        test_session.minor_violations += 1

    terminate = should_terminate(
        test_session.critical_violations,
        test_session.major_violations,
        test_session.violation_threshold,
        test_session.critical_violation_limit,
    )
    if terminate:
        logger.warning(
            f"Violation threshold reached for session {test_session.session_code} "
            f"(critical={test_session.critical_violations}, "
            f"major={test_session.major_violations})"
        )

    return ViolationDecision(
        severity=severity,
        should_terminate=terminate,
        total_violations=test_session.total_violations,
        critical_count=test_session.critical_violations,
        major_count=test_session.major_violations,
        minor_count=test_session.minor_violations,
    )


def risk_level(critical_count: int, major_count: int, minor_count: int) -> str:
    """Overall risk of a session for reviewers."""
    if critical_count >= HIGH_RISK_CRITICAL:
        return "HIGH"
    if critical_count >= 1 or major_count >= MEDIUM_RISK_MAJOR:
        return "MEDIUM"
    if major_count >= 1 or minor_count >= LOW_RISK_MINOR:
        return "LOW"
    return "MINIMAL"


def recommendations(violation_types: set[str], critical_count: int) -> list[str]:
    result = []
    if "multiple_faces" in violation_types:
        result.append("Multiple faces detected - verify candidate identity")
    if "tab_switch" in violation_types:
        result.append("Frequent tab switching detected - review test session")
    if "copy_paste" in violation_types:
        result.append("Copy-paste activity detected - flag for manual review")
    if critical_count >= HIGH_RISK_CRITICAL:
        result.append("High-risk session - recommend test invalidation")
    return result


def build_report(test_session: TestSession) -> dict[str, Any]:
    """
    Reviewer-facing proctoring report for a session.

    Counts are taken from the violation log rather than the counters so the
    report reflects exactly what was recorded.
    """
    by_type: dict[str, int] = {}
    by_severity: dict[str, int] = {}
    for violation in test_session.violations:
        by_type[violation.violation_type] = by_type.get(violation.violation_type, 0) + 1
        severity = violation.severity.value
        by_severity[severity] = by_severity.get(severity, 0) + 1

    critical = by_severity.get(ViolationSeverity.CRITICAL.value, 0)
    major = by_severity.get(ViolationSeverity.MAJOR.value, 0)
    minor = by_severity.get(ViolationSeverity.MINOR.value, 0)

    return {
        "session_id": test_session.session_code,
        "candidate_id": test_session.candidate_id,
        "status": test_session.status.value,
        "started_at": test_session.started_at,
        "ended_at": test_session.ended_at,
        "total_violations": len(test_session.violations),
        "violations_by_type": by_type,
        "violations_by_severity": by_severity,
        "risk_level": risk_level(critical, major, minor),
        "recommendations": recommendations(set(by_type), critical),
        "timeline": [
            {
                "occurred_at": v.occurred_at,
                "type": v.violation_type,
                "severity": v.severity.value,
            }
            for v in test_session.violations
        ],
    }
