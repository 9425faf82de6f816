"""
Format adapter contract.

An adapter converts between one external planning dialect and the
canonical plan. Subclasses implement the underscored hooks; the public
methods wrap them so that no exception escapes the adapter boundary.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional, Sequence, Union

from anvil.models.adapter import (
    AdapterError,
    AdapterMetadata,
    AdapterOptions,
    AdapterWarning,
    DetectionResult,
    ParseContext,
    ParseResult,
    SerializeResult,
)
from anvil.models.plan import APSPlan
from anvil.models.validation import IssueCode, ROOT_PATH, ValidationIssue, ValidationResult


logger = logging.getLogger(__name__)


def normalize_format(value: str) -> str:
    """Lowercase a format or extension and strip any leading dot."""
    return value.strip().lower().lstrip(".")


class FormatAdapter(ABC):
    """Base class for dialect adapters."""

    metadata: AdapterMetadata

    @property
    def name(self) -> str:
        return self.metadata.name

    def can_import(self, fmt: str) -> bool:
        """Whether ``fmt`` (a format id or file extension) is accepted."""
        normalized = normalize_format(fmt)
        formats = {normalize_format(f) for f in self.metadata.formats}
        extensions = {normalize_format(e) for e in self.metadata.extensions}
        return normalized in formats or normalized in extensions

    def can_export(self, fmt: str) -> bool:
        return self.can_import(fmt)

    def detect(self, content: str) -> DetectionResult:
        """Score how likely ``content`` is in this adapter's dialect."""
        try:
            return self._detect(content)
        except Exception as e:
            logger.exception("Detection failed in adapter %s", self.name)
            return DetectionResult(detected=False, confidence=0, reason=f"Detection failed: {e}")

    def parse(
        self,
        content: str,
        context: Optional[ParseContext] = None,
        options: Optional[AdapterOptions] = None,
    ) -> ParseResult:
        """
        Parse dialect text into a canonical plan.

        Args:
            content: Raw dialect text
            context: Caller-supplied provenance
            options: Parse options

        Returns:
            ParseResult with the plan on success or coded errors on failure
        """
        context = context or ParseContext()
        options = options or AdapterOptions()
        try:
            result = self._parse(content, context, options)
        except Exception as e:
            logger.exception("Parse failed in adapter %s", self.name)
            return parse_failure([create_error("PARSE_ERROR", f"Unexpected parse failure: {e}")])
        return apply_strict(result, options)

    def serialize(self, plan: Union[APSPlan, Mapping[str, Any]], options: Optional[AdapterOptions] = None) -> SerializeResult:
        """
        Render a canonical plan as dialect text.

        The latest evidence record, if any, is appended as an annotation.
        """
        options = options or AdapterOptions()
        try:
            return self._serialize(plan, options)
        except Exception as e:
            logger.exception("Serialize failed in adapter %s", self.name)
            return serialize_failure([create_error("SERIALIZE_ERROR", f"Unexpected serialize failure: {e}")])

    def validate(self, content: str, options: Optional[AdapterOptions] = None) -> ValidationResult:
        """Fast structural check of raw dialect text, without a full parse."""
        options = options or AdapterOptions()
        try:
            return self._validate(content, options)
        except Exception as e:
            logger.exception("Validate failed in adapter %s", self.name)
            issue = ValidationIssue(
                path=ROOT_PATH,
                message=f"Unexpected validation failure: {e}",
                code=IssueCode.INTERNAL_ERROR,
            )
            return ValidationResult(valid=False, issues=[issue], summary="❌ Validation failed - 1 errors")

    @abstractmethod
    def _detect(self, content: str) -> DetectionResult:
        ...

    @abstractmethod
    def _parse(self, content: str, context: ParseContext, options: AdapterOptions) -> ParseResult:
        ...

    @abstractmethod
    def _serialize(self, plan: Union[APSPlan, Mapping[str, Any]], options: AdapterOptions) -> SerializeResult:
        ...

    @abstractmethod
    def _validate(self, content: str, options: AdapterOptions) -> ValidationResult:
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name} {self.metadata.version}>"


def create_error(code: str, message: str, path: Optional[str] = None, line: Optional[int] = None,
                 column: Optional[int] = None, details: Optional[Dict[str, Any]] = None) -> AdapterError:
    return AdapterError(code=code, message=message, path=path, line=line, column=column, details=details)


def create_warning(code: str, message: str, path: Optional[str] = None, line: Optional[int] = None,
                   column: Optional[int] = None, details: Optional[Dict[str, Any]] = None) -> AdapterWarning:
    return AdapterWarning(code=code, message=message, path=path, line=line, column=column, details=details)


def parse_success(plan: APSPlan, warnings: Optional[Sequence[AdapterWarning]] = None) -> ParseResult:
    return ParseResult(success=True, data=plan, warnings=list(warnings or []))


def parse_failure(errors: Sequence[AdapterError], warnings: Optional[Sequence[AdapterWarning]] = None) -> ParseResult:
    return ParseResult(success=False, errors=list(errors), warnings=list(warnings or []))


def serialize_success(content: str, documents: Optional[Dict[str, str]] = None,
                      warnings: Optional[Sequence[AdapterWarning]] = None,
                      metadata: Optional[Dict[str, Any]] = None) -> SerializeResult:
    return SerializeResult(
        success=True,
        content=content,
        documents=documents or {},
        warnings=list(warnings or []),
        metadata=metadata or {},
    )


def serialize_failure(errors: Sequence[AdapterError],
                      warnings: Optional[Sequence[AdapterWarning]] = None) -> SerializeResult:
    return SerializeResult(success=False, errors=list(errors), warnings=list(warnings or []))


def apply_strict(result: ParseResult, options: AdapterOptions) -> ParseResult:
    """In strict mode, promote warnings to errors."""
    if not options.strict or not result.warnings:
        return result
    promoted = [AdapterError(**w.model_dump()) for w in result.warnings]
    return ParseResult(success=False, errors=[*result.errors, *promoted])


def format_messages(messages: Sequence[Union[AdapterError, AdapterWarning]]) -> str:
    """One line per message: ``[CODE] message (at path:line:col)``."""
    return "\n".join(str(m) for m in messages)


def has_errors(result: Union[ParseResult, SerializeResult]) -> bool:
    return bool(result.errors)


def has_warnings(result: Union[ParseResult, SerializeResult]) -> bool:
    return bool(result.warnings)
