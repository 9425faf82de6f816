"""
Plan validator - schema and hash-integrity validation.

Schema validation checks the closed document structure. Hash validation
recomputes the digest over the canonical form and compares it to the
declared ``hash``. Hashing is an injected strategy: a validator built
without one reports the hash stage as skipped instead of passing it.
"""

import hmac
import logging
from typing import Any, Callable, Dict, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from anvil.engine.errors import (
    CanonicalizationError,
    HashValidationError,
    SchemaValidationError,
    create_validation_summary,
    format_validation_errors,
    issues_from_pydantic_errors,
)
from anvil.engine.hashing import generate_hash, plan_hash_payload
from anvil.models.plan import DOCUMENT_CONTEXT, APSPlan
from anvil.models.validation import (
    HashStatus,
    IssueCode,
    IssueSeverity,
    OutputFormat,
    ROOT_PATH,
    ValidationIssue,
    ValidationOptions,
    ValidationResult,
)


logger = logging.getLogger(__name__)

HashFunction = Callable[[Dict[str, Any]], str]

HASH_SKIPPED_NOTE = "hash validation skipped: no hash function configured"


class APSValidator:
    """
    Validates candidate plans.

    Usage:
        validator = APSValidator(hash_function=generate_hash)
        result = validator.validate(document)
        if not result.valid:
            print(result.formatted_errors)
    """

    def __init__(self, hash_function: Optional[HashFunction] = None):
        """
        Initialize the validator.

        Args:
            hash_function: Computes a digest from the hashed part of a plan.
                When None, the hash stage is reported as skipped.
        """
        self.hash_function = hash_function

    def set_hash_function(self, hash_function: Optional[HashFunction]) -> None:
        self.hash_function = hash_function

    def validate_schema(self, candidate: Any) -> ValidationResult:
        """
        Check a candidate against the closed plan structure.

        Args:
            candidate: A dict (typically decoded JSON) or an APSPlan

        Returns:
            ValidationResult with the parsed plan on success, or one issue
            per violation on failure
        """
        if isinstance(candidate, APSPlan):
            # Re-check the current field values, not the construction-time ones
            candidate = candidate.model_dump(mode="json", exclude_none=True, warnings=False)

        try:
            plan = APSPlan.model_validate(candidate, context=DOCUMENT_CONTEXT)
        except PydanticValidationError as e:
            issues = issues_from_pydantic_errors(e.errors())
            logger.debug("Schema validation failed with %d issue(s)", len(issues))
            return ValidationResult(valid=False, issues=issues, summary="❌ Schema validation failed")
        except Exception as e:
            logger.exception("Unexpected error during schema validation")
            return ValidationResult(
                valid=False,
                issues=[ValidationIssue(
                    path=ROOT_PATH,
                    message=f"Internal error during schema validation: {e}",
                    code=IssueCode.INTERNAL_ERROR,
                )],
                summary="❌ Schema validation failed",
            )

        return ValidationResult(valid=True, data=plan, summary="✅ Schema validation passed")

    def validate_hash(self, document: Any) -> ValidationResult:
        """
        Compare a plan's declared hash with the digest of its content.

        Only meaningful for documents that passed schema validation.

        Args:
            document: An APSPlan or a plan dict

        Returns:
            ValidationResult whose ``hash_status`` is passed, failed or skipped
        """
        if self.hash_function is None:
            return ValidationResult(
                valid=True,
                hash_status=HashStatus.SKIPPED,
                summary="⚠️ Hash validation skipped (no hash function configured)",
            )

        if isinstance(document, APSPlan):
            document = document.to_document()
        if not isinstance(document, Mapping):
            return self._hash_failure(IssueCode.HASH_UNCOMPUTABLE, "Cannot hash a non-object document")

        declared = document.get("hash")
        try:
            computed = self.hash_function(plan_hash_payload(document))
        except (CanonicalizationError, TypeError, ValueError) as e:
            return self._hash_failure(IssueCode.HASH_UNCOMPUTABLE, f"Cannot compute plan hash: {e}")

        if not isinstance(declared, str) or not hmac.compare_digest(computed, declared):
            logger.warning("Hash mismatch for plan %s", document.get("id"))
            return self._hash_failure(
                IssueCode.HASH_MISMATCH,
                f"Hash mismatch: expected {computed}, got {declared}",
            )

        return ValidationResult(valid=True, hash_status=HashStatus.PASSED, summary="✅ Hash validation passed")

    def validate(self, candidate: Any, options: Optional[ValidationOptions] = None) -> ValidationResult:
        """
        Run schema validation, then (optionally) hash validation.

        In strict mode a schema failure returns immediately. Otherwise the
        hash stage still runs when the candidate declares a string hash.

        Args:
            candidate: The document to validate
            options: Validation options; defaults to ValidationOptions()

        Returns:
            Combined ValidationResult
        """
        options = options or ValidationOptions()
        try:
            return self._validate(candidate, options)
        except Exception as e:
            logger.exception("Unexpected error during validation")
            issue = ValidationIssue(
                path=ROOT_PATH,
                message=f"Internal error during validation: {e}",
                code=IssueCode.INTERNAL_ERROR,
            )
            return self._finish(ValidationResult(valid=False, issues=[issue]), options)

    def is_schema_valid(self, candidate: Any) -> bool:
        """Boolean-only schema check with no issue detail."""
        if isinstance(candidate, APSPlan):
            candidate = candidate.model_dump(mode="json", exclude_none=True, warnings=False)
        try:
            APSPlan.model_validate(candidate, context=DOCUMENT_CONTEXT)
        except (PydanticValidationError, TypeError, ValueError):
            return False
        return True

    def _validate(self, candidate: Any, options: ValidationOptions) -> ValidationResult:
        schema = self.validate_schema(candidate)
        issues = list(schema.issues)
        hash_status = HashStatus.NOT_CHECKED

        if schema.valid or not options.strict:
            if options.validate_hash:
                target = schema.data if schema.valid else self._raw_hash_target(candidate)
                if target is not None:
                    hashed = self.validate_hash(target)
                    issues.extend(hashed.issues)
                    hash_status = hashed.hash_status

        valid = not any(i.severity == IssueSeverity.ERROR for i in issues)
        result = ValidationResult(
            valid=valid,
            data=schema.data if valid else None,
            issues=issues,
            hash_status=hash_status,
        )
        return self._finish(result, options)

    @staticmethod
    def _raw_hash_target(candidate: Any) -> Optional[Mapping]:
        if isinstance(candidate, Mapping) and isinstance(candidate.get("hash"), str):
            return candidate
        return None

    @staticmethod
    def _hash_failure(code: IssueCode, message: str) -> ValidationResult:
        return ValidationResult(
            valid=False,
            issues=[ValidationIssue(path="hash", message=message, code=code)],
            hash_status=HashStatus.FAILED,
            summary="❌ Hash validation failed",
        )

    @staticmethod
    def _finish(result: ValidationResult, options: ValidationOptions) -> ValidationResult:
        summary = create_validation_summary(result)
        if result.hash_status == HashStatus.SKIPPED:
            summary += f" ({HASH_SKIPPED_NOTE})"
        result.summary = summary
        if options.format == OutputFormat.CLI and result.issues:
            result.formatted_errors = format_validation_errors(result.issues)
        return result


def validate_aps_plan(candidate: Any, options: Optional[ValidationOptions] = None) -> ValidationResult:
    """Validate a plan with SHA-256 hash checking wired in."""
    return APSValidator(hash_function=generate_hash).validate(candidate, options)


def assert_valid_plan(candidate: Any) -> APSPlan:
    """
    Validate a plan and return it, raising on failure.

    Raises:
        SchemaValidationError: If the structure is invalid
        HashValidationError: If the declared hash does not match
    """
    result = validate_aps_plan(candidate, ValidationOptions(format=OutputFormat.JSON))
    if result.valid:
        return result.data
    if result.hash_status == HashStatus.FAILED:
        raise HashValidationError(result.issues)
    raise SchemaValidationError(result.issues)
