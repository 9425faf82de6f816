"""Validation result models shared by the validator and the adapters."""

from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field

from anvil.models.plan import APSPlan


ROOT_PATH = "<root>"


class IssueSeverity(str, Enum):
    """Severity of a validation issue."""
    ERROR = "error"
    WARNING = "warning"


class IssueCode(str, Enum):
    """Stable codes callers can branch on."""
    INVALID_TYPE = "INVALID_TYPE"
    TOO_SMALL = "TOO_SMALL"
    TOO_BIG = "TOO_BIG"
    INVALID_FORMAT = "INVALID_FORMAT"
    INVALID_LITERAL = "INVALID_LITERAL"
    INVALID_ENUM = "INVALID_ENUM"
    MISSING_FIELD = "MISSING_FIELD"
    UNRECOGNIZED_KEYS = "UNRECOGNIZED_KEYS"
    INVALID_VALUE = "INVALID_VALUE"
    HASH_MISMATCH = "HASH_MISMATCH"
    HASH_UNCOMPUTABLE = "HASH_UNCOMPUTABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    # Raw dialect content checks
    MISSING_TITLE = "MISSING_TITLE"
    MISSING_SECTION = "MISSING_SECTION"
    UNRESOLVED_CLARIFICATION = "UNRESOLVED_CLARIFICATION"
    EVIDENCE_FAILED = "EVIDENCE_FAILED"


class HashStatus(str, Enum):
    """Outcome of the hash-integrity stage."""
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"
    NOT_CHECKED = "not_checked"


class OutputFormat(str, Enum):
    """How validation results are rendered."""
    CLI = "cli"
    JSON = "json"


class ValidationIssue(BaseModel):
    """A single validation problem."""
    path: str = Field(..., description="Dotted field path, or <root>")
    message: str = Field(..., description="Human-readable message")
    code: IssueCode = Field(..., description="Stable issue code")
    severity: IssueSeverity = Field(IssueSeverity.ERROR, description="error or warning")


class ValidationOptions(BaseModel):
    """Options for a combined validation run."""
    validate_hash: bool = Field(True, description="Run the hash-integrity stage")
    strict: bool = Field(True, description="Stop after a failing schema stage")
    format: OutputFormat = Field(OutputFormat.CLI, description="Render a CLI report or raw issues")


class ValidationResult(BaseModel):
    """Combined result of schema and hash validation."""
    valid: bool = Field(..., description="True when no error-severity issue was found")
    data: Optional[APSPlan] = Field(None, description="The validated plan")
    issues: List[ValidationIssue] = Field(default_factory=list, description="All issues found")
    hash_status: HashStatus = Field(HashStatus.NOT_CHECKED, description="Hash stage outcome")
    summary: str = Field("", description="One-line summary")
    formatted_errors: Optional[str] = Field(None, description="Multi-line CLI report")

    @property
    def errors(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == IssueSeverity.ERROR]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == IssueSeverity.WARNING]

    def has_code(self, code: IssueCode) -> bool:
        """Check whether any issue carries the given code."""
        return any(i.code == code for i in self.issues)
