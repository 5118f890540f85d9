"""Validation models for workspace and settings payloads."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

Severity = Literal["error", "info"]


@dataclass(slots=True)
class ValidationError:
    """One blocking problem reported to the CLI user."""

    code: str
    message: str
    path: str


@dataclass(slots=True)
class ValidationIssue:
    code: str
    message: str
    field_path: str
    severity: Severity = "error"
    suggested_fix: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": self.message, "field_path": self.field_path}
        if self.suggested_fix:
            payload["suggested_fix"] = self.suggested_fix
        payload.update(self.extra)
        return payload

    def as_error(self) -> ValidationError:
        return ValidationError(code=self.code, message=self.message, path=self.field_path)


@dataclass(slots=True)
class ValidationReport:
    """Issues gathered without stopping at the first problem.

    Errors make the payload unusable; infos record values that were accepted
    after an adjustment (clamps) or that will be ignored by planning.
    """

    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "error"]

    @property
    def infos(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "info"]

    @property
    def ok(self) -> bool:
        return not self.errors

    def add_error(
        self,
        *,
        code: str,
        message: str,
        field_path: str,
        suggested_fix: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.issues.append(ValidationIssue(code, message, field_path, "error", suggested_fix, extra or {}))

    def add_info(self, *, code: str, message: str, field_path: str, extra: dict[str, Any] | None = None) -> None:
        self.issues.append(ValidationIssue(code, message, field_path, "info", None, extra or {}))

    def extend(self, other: "ValidationReport") -> None:
        self.issues.extend(other.issues)

    def codes(self) -> set[str]:
        return {issue.code for issue in self.errors}

    def as_errors(self) -> list[ValidationError]:
        return [issue.as_error() for issue in self.errors]

    def as_dict(self) -> dict[str, list[dict[str, Any]]]:
        return {
            "errors": [issue.as_dict() for issue in self.errors],
            "infos": [issue.as_dict() for issue in self.infos],
        }
