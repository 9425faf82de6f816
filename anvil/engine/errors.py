"""
Error types and issue formatting for plan validation.

Pydantic reports schema violations with its own error types; this module
maps them onto the stable ``IssueCode`` set and renders reports for the
command line.
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from anvil.models.validation import (
    IssueCode,
    IssueSeverity,
    ROOT_PATH,
    ValidationIssue,
    ValidationResult,
)


class APSError(Exception):
    """Base class for plan errors that carry a stable code."""

    def __init__(self, message: str, code: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details or {}


class CanonicalizationError(APSError):
    """A value has no canonical form."""

    def __init__(self, message: str):
        super().__init__(message, "CANONICALIZATION_FAILED")


class PlanValidationError(APSError):
    """A plan failed validation; ``issues`` holds every problem found."""

    def __init__(self, message: str, issues: Sequence[ValidationIssue], code: str = "VALIDATION_FAILED"):
        super().__init__(message, code, {"issues": [i.model_dump(mode="json") for i in issues]})
        self.issues = list(issues)


class SchemaValidationError(PlanValidationError):
    def __init__(self, issues: Sequence[ValidationIssue]):
        super().__init__(format_validation_errors(issues), issues, "SCHEMA_VALIDATION_FAILED")


class HashValidationError(PlanValidationError):
    def __init__(self, issues: Sequence[ValidationIssue]):
        super().__init__(format_validation_errors(issues), issues, "HASH_VALIDATION_FAILED")


# Pydantic "<kind>_type" errors -> readable expected type
_EXPECTED_TYPES = {
    "string_type": "string",
    "int_type": "integer",
    "float_type": "number",
    "bool_type": "boolean",
    "list_type": "array",
    "tuple_type": "array",
    "dict_type": "object",
    "model_type": "object",
    "model_attributes_type": "object",
}

_TYPE_NAMES = {
    "str": "string",
    "int": "integer",
    "float": "number",
    "bool": "boolean",
    "list": "array",
    "tuple": "array",
    "dict": "object",
    "NoneType": "null",
}


def format_path(loc: Iterable[Any]) -> str:
    """Join a pydantic error location into a dotted path."""
    path = ".".join(str(part) for part in loc)
    return path or ROOT_PATH


def _received_type(value: Any) -> str:
    name = type(value).__name__
    return _TYPE_NAMES.get(name, name)


def issue_from_pydantic_error(error: Dict[str, Any]) -> ValidationIssue:
    """
    Convert one pydantic error dict into a ValidationIssue.

    Args:
        error: An entry of ``ValidationError.errors()``

    Returns:
        The issue with a stable code and message
    """
    kind = error.get("type", "")
    path = format_path(error.get("loc", ()))
    ctx = error.get("ctx") or {}

    if kind == "missing":
        return ValidationIssue(
            path=path,
            message=f'Required field "{path}" is missing',
            code=IssueCode.MISSING_FIELD,
        )
    if kind == "null_field":
        return ValidationIssue(
            path=path,
            message=f'Invalid type at "{path}": optional fields must be omitted, received null',
            code=IssueCode.INVALID_TYPE,
        )
    if kind in _EXPECTED_TYPES or kind.endswith("_type"):
        expected = _EXPECTED_TYPES.get(kind, kind[: -len("_type")])
        return ValidationIssue(
            path=path,
            message=f'Invalid type at "{path}": expected {expected}, received {_received_type(error.get("input"))}',
            code=IssueCode.INVALID_TYPE,
        )
    if kind == "string_too_short":
        return ValidationIssue(
            path=path,
            message=f'String at "{path}" too short: minimum length is {ctx.get("min_length")}',
            code=IssueCode.TOO_SMALL,
        )
    if kind == "string_too_long":
        return ValidationIssue(
            path=path,
            message=f'String at "{path}" too long: maximum length is {ctx.get("max_length")}',
            code=IssueCode.TOO_BIG,
        )
    if kind in ("too_short", "greater_than_equal", "greater_than"):
        return ValidationIssue(path=path, message=f'Value at "{path}" too small: {error.get("msg")}', code=IssueCode.TOO_SMALL)
    if kind in ("too_long", "less_than_equal", "less_than"):
        return ValidationIssue(path=path, message=f'Value at "{path}" too big: {error.get("msg")}', code=IssueCode.TOO_BIG)
    if kind == "string_pattern_mismatch":
        return ValidationIssue(
            path=path,
            message=f'Invalid format at "{path}": value does not match expected pattern {ctx.get("pattern")}',
            code=IssueCode.INVALID_FORMAT,
        )
    if kind == "literal_error":
        return ValidationIssue(
            path=path,
            message=f'Invalid value at "{path}": expected {ctx.get("expected")}',
            code=IssueCode.INVALID_LITERAL,
        )
    if kind == "enum":
        return ValidationIssue(
            path=path,
            message=f'Invalid value at "{path}": expected one of {ctx.get("expected")}',
            code=IssueCode.INVALID_ENUM,
        )
    return ValidationIssue(
        path=path,
        message=f'Invalid value at "{path}": {error.get("msg", "invalid value")}',
        code=IssueCode.INVALID_VALUE,
    )


def _unrecognized_issue(parent: str, keys: Sequence[str]) -> ValidationIssue:
    return ValidationIssue(
        path=parent,
        message=f"Unrecognized properties at {parent}: {', '.join(keys)}",
        code=IssueCode.UNRECOGNIZED_KEYS,
    )


def issues_from_pydantic_errors(errors: Sequence[Dict[str, Any]]) -> List[ValidationIssue]:
    """
    Convert pydantic errors into issues, one per violation.

    Unknown keys that share a parent are reported together as a single
    UNRECOGNIZED_KEYS issue at the parent path.
    """
    issues: List[ValidationIssue] = []
    # parent path -> (index into issues, keys seen so far)
    unrecognized: Dict[str, Tuple[int, List[str]]] = {}

    for error in errors:
        if error.get("type") != "extra_forbidden":
            issues.append(issue_from_pydantic_error(error))
            continue
        loc = tuple(error.get("loc", ()))
        parent = format_path(loc[:-1])
        key = str(loc[-1]) if loc else ""
        if parent in unrecognized:
            index, keys = unrecognized[parent]
            keys.append(key)
            issues[index] = _unrecognized_issue(parent, keys)
        else:
            unrecognized[parent] = (len(issues), [key])
            issues.append(_unrecognized_issue(parent, [key]))
    return issues


def format_validation_errors(issues: Sequence[ValidationIssue]) -> str:
    """
    Render issues as a numbered multi-line report.

    Example:
        Found 1 validation error(s):

        ❌ 1. String at "intent" too short: minimum length is 10
           Path: intent
           Code: TOO_SMALL
    """
    if not issues:
        return "No validation errors"

    lines = [f"Found {len(issues)} validation error(s):"]
    for index, issue in enumerate(issues, start=1):
        marker = "❌" if issue.severity == IssueSeverity.ERROR else "⚠️"
        lines.append("")
        lines.append(f"{marker} {index}. {issue.message}")
        if issue.path != ROOT_PATH:
            lines.append(f"   Path: {issue.path}")
        lines.append(f"   Code: {issue.code.value}")
    return "\n".join(lines)


def create_validation_summary(result: ValidationResult) -> str:
    """One-line pass/fail summary with error and warning counts."""
    if result.valid and not result.warnings:
        return "✅ Validation passed"
    if result.valid:
        return f"✅ Validation passed - {len(result.warnings)} warnings"
    parts = [f"❌ Validation failed - {len(result.errors)} errors"]
    if result.warnings:
        parts.append(f"{len(result.warnings)} warnings")
    return " - ".join(parts)
