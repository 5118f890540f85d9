"""Build CLI reports."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from autoplan.models import PlanResult
from autoplan.reporting.decision_trace import DecisionTraceCollector
from autoplan.validation import ValidationError, ValidationReport


def build_error_report(errors: list[ValidationError], code: str = "validation_error") -> dict[str, Any]:
    """Return a JSON-serializable error report."""
    return {
        "status": "error",
        "error": {
            "code": code,
            "count": len(errors),
            "details": [
                {"code": err.code, "message": err.message, "path": err.path}
                for err in errors
            ],
        },
    }


def build_error_report_with_validation(
    errors: list[ValidationError],
    validation_report: ValidationReport,
    code: str = "validation_error",
) -> dict[str, Any]:
    payload = build_error_report(errors, code=code)
    payload["validation_report"] = validation_report.as_dict()
    return payload


def build_plan_report(
    result: PlanResult,
    trace: DecisionTraceCollector | None = None,
    metrics: dict[str, Any] | None = None,
    validation_report: ValidationReport | None = None,
) -> dict[str, Any]:
    """Return a JSON-serializable report for one planning run."""
    generated_at = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    plan_id = f"plan-{generated_at.replace(':', '').replace('-', '').replace('T', '-').replace('Z', '')}"
    return {
        "status": "ok",
        "plan_id": plan_id,
        "generated_at": generated_at,
        "allocations": [allocation.as_dict() for allocation in result.allocations],
        "unscheduled": [
            {"task_id": task.task_id, "title": task.title, "estimate_minutes": task.estimate_minutes}
            for task in result.unscheduled
        ],
        "metrics": metrics or {},
        "decision_trace": trace.as_list() if trace is not None else [],
        "validation_report": (validation_report or ValidationReport()).as_dict(),
    }
