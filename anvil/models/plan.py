"""
APS plan data models.

This module defines the canonical plan document: the plan itself, its
proposed changes, provenance, declared validations, the append-only
evidence log, approval and execution records.

Every record is closed (unknown keys are rejected) so that the persisted
JSON form and the hashed form describe exactly the same field set.
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field, StrictBool, ValidationInfo, field_validator
from pydantic_core import PydanticCustomError


SCHEMA_VERSION = "0.1.0"

PLAN_ID_PATTERN = r"^aps-[a-f0-9]{8}$"
HASH_PATTERN = r"^[a-f0-9]{64}$"
TIMESTAMP_PATTERN = r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?Z$"

INTENT_MIN_LENGTH = 10
INTENT_MAX_LENGTH = 500

DEFAULT_REQUIRED_CHECKS = ["lint", "test", "coverage", "secrets"]

# Validation context for persisted documents, where optional fields may be
# omitted but not set to null.
DOCUMENT_CONTEXT = {"document": True}


class ChangeType(str, Enum):
    """Kind of modification a change proposes."""
    FILE_CREATE = "file_create"
    FILE_UPDATE = "file_update"
    FILE_DELETE = "file_delete"
    CONFIG_UPDATE = "config_update"
    DEPENDENCY_ADD = "dependency_add"
    DEPENDENCY_REMOVE = "dependency_remove"
    DEPENDENCY_UPDATE = "dependency_update"
    SCRIPT_EXECUTE = "script_execute"


class ProvenanceSource(str, Enum):
    """Where a plan originated."""
    CLI = "cli"
    API = "api"
    AUTOMATION = "automation"
    MANUAL = "manual"


class CheckStatus(str, Enum):
    """Outcome of a single gate check."""
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"
    WARNING = "warning"


class OverallStatus(str, Enum):
    """Aggregate outcome of a gate run."""
    PASSED = "passed"
    FAILED = "failed"
    PARTIAL = "partial"


class ExecutionOperation(str, Enum):
    """Operation performed against a plan."""
    APPLY = "apply"
    ROLLBACK = "rollback"
    DRY_RUN = "dry-run"


class ExecutionStatus(str, Enum):
    """Outcome of an execution."""
    SUCCESS = "success"
    FAILED = "failed"
    PARTIAL = "partial"


class DocumentModel(BaseModel):
    """
    Base for every plan record.

    Optional fields accept None from Python callers. Validated under
    ``DOCUMENT_CONTEXT``, an explicit null for an optional field is an
    error, so a valid document hashes the same as its ``to_document()``
    form.
    """

    @field_validator("*", mode="before")
    @classmethod
    def _reject_null_in_documents(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None and info.context and info.context.get("document"):
            if not cls.model_fields[info.field_name].is_required():
                raise PydanticCustomError("null_field", "Optional fields must be omitted, not null")
        return value


class Change(DocumentModel):
    """A single proposed modification."""
    type: ChangeType = Field(..., description="Kind of change")
    path: str = Field(..., description="Target resource identifier")
    description: str = Field(..., description="Human-readable description")
    content: Optional[str] = Field(None, description="Full payload")
    diff: Optional[str] = Field(None, description="Incremental payload")
    metadata: Optional[Dict[str, Any]] = Field(None, description="Free-form change metadata")

    model_config = {"extra": "forbid"}


class Provenance(DocumentModel):
    """Who, what, when and where created the plan."""
    timestamp: str = Field(..., pattern=TIMESTAMP_PATTERN, description="ISO-8601 UTC creation time")
    source: ProvenanceSource = Field(..., description="Origin classification")
    version: str = Field(..., description="Tool version that produced the plan")
    author: Optional[str] = Field(None, description="Plan author")
    repository: Optional[str] = Field(None, description="Repository path or URL")
    branch: Optional[str] = Field(None, description="Source branch")
    commit: Optional[str] = Field(None, description="Source commit")

    model_config = {"extra": "forbid"}


class Validations(DocumentModel):
    """Checks the plan declares; descriptive, not evidence."""
    required_checks: Optional[List[str]] = Field(None, description="Checks that must pass")
    optional_checks: Optional[List[str]] = Field(None, description="Checks that may run")
    skip_checks: Optional[List[str]] = Field(None, description="Checks explicitly skipped")
    policy_version: Optional[str] = Field(None, description="Policy bundle version")
    custom_rules: Optional[Dict[str, Any]] = Field(None, description="Extra rule configuration")

    model_config = {"extra": "forbid"}


class CheckResult(DocumentModel):
    """Result of one check within a gate run."""
    check: str = Field(..., description="Check name")
    status: CheckStatus = Field(..., description="Check outcome")
    timestamp: str = Field(..., pattern=TIMESTAMP_PATTERN, description="When the check finished")
    message: Optional[str] = Field(None, description="Short outcome message")
    details: Optional[Dict[str, Any]] = Field(None, description="Structured check output")

    model_config = {"extra": "forbid", "frozen": True}


class Evidence(DocumentModel):
    """Immutable snapshot of a validation run."""
    gate_version: str = Field(..., description="Version of the gate that produced this record")
    timestamp: str = Field(..., pattern=TIMESTAMP_PATTERN, description="When the run finished")
    overall_status: OverallStatus = Field(..., description="Aggregate outcome")
    checks: List[CheckResult] = Field(..., description="Per-check results in run order")
    summary: Optional[str] = Field(None, description="Human-readable summary")
    artifacts: Optional[Dict[str, str]] = Field(None, description="Named report locations")

    model_config = {"extra": "forbid", "frozen": True}


class Approval(DocumentModel):
    """Human sign-off."""
    approved: StrictBool = Field(..., description="Whether the plan was approved")
    approved_by: Optional[str] = Field(None, description="Approver")
    approved_at: Optional[str] = Field(None, pattern=TIMESTAMP_PATTERN, description="Approval time")
    approval_notes: Optional[str] = Field(None, description="Free-text notes")

    model_config = {"extra": "forbid"}


class Execution(DocumentModel):
    """An apply or rollback performed against the plan."""
    operation: ExecutionOperation = Field(..., description="Operation performed")
    status: ExecutionStatus = Field(..., description="Operation outcome")
    timestamp: str = Field(..., pattern=TIMESTAMP_PATTERN, description="When the operation ran")
    executed_by: Optional[str] = Field(None, description="Who ran the operation")
    changes_applied: Optional[List[str]] = Field(None, description="Paths changed successfully")
    changes_failed: Optional[List[str]] = Field(None, description="Paths that failed to change")
    rollback_point: Optional[str] = Field(None, description="Identifier to roll back to")
    logs: Optional[List[str]] = Field(None, description="Execution log lines")

    model_config = {"extra": "forbid"}


class APSPlan(DocumentModel):
    """
    The canonical plan document.

    The ``hash`` covers every field except ``hash`` itself and ``evidence``,
    so evidence can be appended without invalidating the document.
    """
    id: str = Field(..., pattern=PLAN_ID_PATTERN, description="Plan identifier, format: aps-xxxxxxxx")
    hash: str = Field(..., pattern=HASH_PATTERN, description="SHA-256 of the canonical form")
    intent: str = Field(
        ...,
        min_length=INTENT_MIN_LENGTH,
        max_length=INTENT_MAX_LENGTH,
        description="Human-readable purpose of the plan",
    )
    schema_version: Literal[SCHEMA_VERSION] = Field(..., description="Document model version")
    proposed_changes: List[Change] = Field(..., description="Changes in application order")
    provenance: Provenance = Field(..., description="Creation provenance")
    validations: Validations = Field(..., description="Declared checks")
    evidence: Optional[List[Evidence]] = Field(None, description="Append-only validation log")
    approval: Optional[Approval] = Field(None, description="Human sign-off")
    executions: Optional[List[Execution]] = Field(None, description="Apply/rollback history")
    tags: Optional[List[str]] = Field(None, description="Free-form tags")
    metadata: Optional[Dict[str, Any]] = Field(None, description="Open extension map")

    model_config = {"extra": "forbid"}

    def to_document(self) -> Dict[str, Any]:
        """Return the persisted JSON form (absent optional fields omitted)."""
        return self.model_dump(mode="json", exclude_none=True)

    @property
    def latest_evidence(self) -> Optional[Evidence]:
        """The most recently appended evidence record, if any."""
        if not self.evidence:
            return None
        return self.evidence[-1]
