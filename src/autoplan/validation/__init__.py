"""Validation helpers."""

from .domain_validator import validate_workspace_payload
from .errors import ValidationError, ValidationIssue, ValidationReport

__all__ = [
    "ValidationError",
    "ValidationIssue",
    "ValidationReport",
    "validate_workspace_payload",
]
