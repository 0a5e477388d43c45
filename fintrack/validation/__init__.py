"""Validation package."""

from fintrack.validation.validator import (
    RecordValidationError,
    RecordValidator,
    ValidationIssue,
)

__all__ = ["RecordValidationError", "RecordValidator", "ValidationIssue"]
