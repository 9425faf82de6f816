"""
Markdown dialect adapter.

Shared pipeline for dialects made of several markdown document kinds
(for example a spec, a plan and a task list). A dialect supplies its
document kinds (title pattern, parser, renderer, record model), its
detection indicators and a ``build_document`` hook that maps a parsed
record onto intent, changes and evidence. This class does the rest:
classification, plan assembly and hashing, the ``aps:document`` header
round trip, evidence injection and fast validation.
"""

import logging
import re
from abc import abstractmethod
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Type, Union

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from anvil.adapters.annotations import (
    CONTEXT_KEY,
    parse_evidence_annotation,
    read_plan_header,
    render_evidence_annotation,
    render_plan_header,
    strip_annotations,
)
from anvil.adapters.base import (
    FormatAdapter,
    apply_strict,
    create_error,
    create_warning,
    parse_failure,
    parse_success,
    serialize_failure,
    serialize_success,
)
from anvil.adapters.detection import Indicator, WeightedDetector
from anvil.adapters.markdown import find_clarifications, find_section, find_title, truncate
from anvil.engine.errors import create_validation_summary, format_validation_errors, issues_from_pydantic_errors
from anvil.engine.hashing import compute_plan_hash, format_timestamp, generate_plan_id, is_valid_plan_id, utc_now
from anvil.models.adapter import (
    AdapterError,
    AdapterOptions,
    AdapterWarning,
    DetectionResult,
    ParseContext,
    ParseResult,
    SerializeResult,
)
from anvil.models.plan import (
    APSPlan,
    Approval,
    DEFAULT_REQUIRED_CHECKS,
    Execution,
    INTENT_MAX_LENGTH,
    Provenance,
    ProvenanceSource,
    SCHEMA_VERSION,
    Validations,
)
from anvil.models.validation import IssueCode, IssueSeverity, ROOT_PATH, ValidationIssue, ValidationResult


logger = logging.getLogger(__name__)

_PLACEHOLDER_HASH = "0" * 64


class DocumentKind:
    """One document type within a dialect."""

    def __init__(
        self,
        name: str,
        title_pattern: str,
        record_model: Type[BaseModel],
        parse: Callable[[str], BaseModel],
        render: Callable[[BaseModel], str],
        expected_sections: Sequence[Tuple[str, str]] = (),
    ):
        """
        Args:
            name: Document kind key, e.g. "spec"
            title_pattern: Regex matched against the level-1 heading text
            record_model: Pydantic model of the parsed record
            parse: Text -> record
            render: Record -> markdown (without annotations)
            expected_sections: (label, level-2 title regex) pairs whose
                absence is reported as a warning
        """
        self.name = name
        self.title_re = re.compile(title_pattern, re.IGNORECASE)
        self.record_model = record_model
        self.parse = parse
        self.render = render
        self.expected_sections = tuple(expected_sections)

    def missing_sections(self, body: str) -> List[str]:
        return [label for label, pattern in self.expected_sections if find_section(body, pattern, 2) is None]


class DocumentBuild(BaseModel):
    """What one parsed document contributes to the plan."""
    intent: str
    changes: List[Dict[str, Any]] = Field(default_factory=list)
    warnings: List[AdapterWarning] = Field(default_factory=list)
    evidence: List[Dict[str, Any]] = Field(default_factory=list)


class MarkdownDialectAdapter(FormatAdapter):
    """
    Base class for multi-document markdown dialects.

    Subclasses set ``metadata``, ``indicators``, ``intent_kinds`` and
    ``bundle_required``, and implement ``document_kinds``,
    ``build_document`` and ``fallback_record``.
    """

    indicators: Sequence[Indicator] = ()
    # Kinds that may supply the plan intent, in priority order
    intent_kinds: Tuple[str, ...] = ()
    # A bundle must contain at least one of these kinds
    bundle_required: Tuple[str, ...] = ()

    def __init__(
        self,
        id_generator: Optional[Callable[[], str]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            id_generator: Plan id factory, overridable for deterministic tests
            clock: Time source, overridable for deterministic tests
        """
        self._id_generator = id_generator or generate_plan_id
        self._clock = clock or utc_now
        self._detector = WeightedDetector(self.indicators)
        self._kinds: Dict[str, DocumentKind] = {kind.name: kind for kind in self.document_kinds()}

    @abstractmethod
    def document_kinds(self) -> Sequence[DocumentKind]:
        """Document kinds in canonical order."""

    @abstractmethod
    def build_document(self, kind: str, record: BaseModel, records: Mapping[str, BaseModel],
                       timestamp: str) -> DocumentBuild:
        """Map one parsed record onto intent, changes and evidence."""

    @abstractmethod
    def fallback_record(self, plan: APSPlan) -> Tuple[str, BaseModel]:
        """A placeholder record for plans that carry no records of this dialect."""

    @property
    def kind_names(self) -> List[str]:
        return list(self._kinds)

    def classify(self, content: str) -> Optional[str]:
        """Document kind of ``content`` from its level-1 title, or None."""
        title = find_title(strip_annotations(content))
        if title is None:
            return None
        for kind in self._kinds.values():
            if kind.title_re.match(title.title):
                return kind.name
        return None

    def parse_record(self, kind: str, content: str) -> BaseModel:
        """Run a single document parser, without building a plan."""
        return self._kinds[kind].parse(strip_annotations(content))

    def render_record(self, kind: str, record: BaseModel) -> str:
        return self._kinds[kind].render(record)

    # -- detection -----------------------------------------------------------

    def _detect(self, content: str) -> DetectionResult:
        return self._detector.detect(content)

    # -- parse ---------------------------------------------------------------

    def _parse(self, content: str, context: ParseContext, options: AdapterOptions) -> ParseResult:
        kind = self.classify(content)
        if kind is None:
            return parse_failure([create_error(
                "MISSING_TITLE",
                f"No recognizable {self.metadata.display_name} title found",
                line=1,
                column=1,
            )])
        return self._parse_texts({kind: content}, context, options, source_document=kind)

    def parse_documents(
        self,
        documents: Mapping[str, str],
        context: Optional[ParseContext] = None,
        options: Optional[AdapterOptions] = None,
    ) -> ParseResult:
        """
        Parse several documents of this dialect into one plan.

        Args:
            documents: Document text by kind, e.g. {"spec": ..., "tasks": ...}
            context: Caller-supplied provenance
            options: Parse options

        Returns:
            ParseResult for the combined plan
        """
        context = context or ParseContext()
        options = options or AdapterOptions()
        try:
            errors = self._check_bundle(documents)
            if errors:
                return parse_failure(errors)
            ordered = {name: documents[name] for name in self._kinds if name in documents}
            source_document = "bundle" if len(ordered) > 1 else next(iter(ordered))
            result = self._parse_texts(ordered, context, options, source_document)
        except Exception as e:
            logger.exception("Bundle parse failed in adapter %s", self.name)
            return parse_failure([create_error("PARSE_ERROR", f"Unexpected parse failure: {e}")])
        return apply_strict(result, options)

    def _check_bundle(self, documents: Mapping[str, str]) -> List[AdapterError]:
        errors = []
        for name in documents:
            if name not in self._kinds:
                errors.append(create_error(
                    "UNKNOWN_DOCUMENT",
                    f"Unknown document kind '{name}'; expected one of {', '.join(self._kinds)}",
                    path=name,
                ))
        if self.bundle_required and not any(name in documents for name in self.bundle_required):
            errors.append(create_error(
                "MISSING_DOCUMENT",
                f"A {self.metadata.display_name} bundle needs one of: {', '.join(self.bundle_required)}",
            ))
        for name, text in documents.items():
            if name in self._kinds and self.classify(text) != name:
                errors.append(create_error(
                    "MISSING_TITLE",
                    f"Document '{name}' does not start with a {name} title",
                    path=name,
                    line=1,
                    column=1,
                ))
        return errors

    def _parse_texts(
        self,
        texts: Mapping[str, str],
        context: ParseContext,
        options: AdapterOptions,
        source_document: str,
    ) -> ParseResult:
        warnings: List[AdapterWarning] = []
        header: Optional[Dict[str, Any]] = None
        records: Dict[str, BaseModel] = {}

        for name, text in texts.items():
            if header is None:
                header = self._read_header(text, warnings)
            body = strip_annotations(text)
            kind = self._kinds[name]
            records[name] = kind.parse(body)
            for label in kind.missing_sections(body):
                warnings.append(create_warning("MISSING_SECTION", f"Section '{label}' not found", path=name))

        header = header or {}
        provenance = header.get("provenance") or self._provenance(context, records)
        builds = {
            name: self.build_document(name, record, records, provenance["timestamp"])
            for name, record in records.items()
        }

        intent_source = next((name for name in self.intent_kinds if name in builds), next(iter(builds)))
        changes = [change for build in builds.values() for change in build.changes]
        evidence = [entry for build in builds.values() for entry in build.evidence]
        for build in builds.values():
            warnings.extend(build.warnings)
        warnings.extend(self._clarification_warnings(records))
        if not changes:
            warnings.append(create_warning("NO_CHANGES", "No proposed changes could be derived from the document"))

        metadata: Dict[str, Any] = {"source_format": self.name, "source_document": source_document}
        if options.preserve_metadata:
            for name, record in records.items():
                metadata[name] = record.model_dump(mode="json", exclude_none=True)
        caller_context = header.get(CONTEXT_KEY) or context.metadata
        if caller_context:
            metadata[CONTEXT_KEY] = dict(caller_context)

        document: Dict[str, Any] = {
            "id": header.get("id") or context.plan_id or self._id_generator(),
            "hash": _PLACEHOLDER_HASH,
            "intent": truncate(builds[intent_source].intent, INTENT_MAX_LENGTH),
            "schema_version": SCHEMA_VERSION,
            "proposed_changes": changes,
            "provenance": provenance,
            "validations": header.get("validations") or {"required_checks": list(DEFAULT_REQUIRED_CHECKS)},
            "metadata": metadata,
        }
        for key in ("approval", "executions", "tags"):
            if key in header:
                document[key] = header[key]
        if evidence:
            document["evidence"] = evidence

        try:
            draft = APSPlan.model_validate(document)
        except PydanticValidationError as e:
            errors = [
                create_error("INVALID_PLAN", issue.message, path=issue.path)
                for issue in issues_from_pydantic_errors(e.errors())
            ]
            return parse_failure(errors, warnings)

        plan = draft.model_copy(update={"hash": compute_plan_hash(draft)})
        logger.info("Parsed %s %s into plan %s (%d changes)", self.name, source_document, plan.id,
                    len(plan.proposed_changes))
        return parse_success(plan, warnings)

    def _read_header(self, text: str, warnings: List[AdapterWarning]) -> Optional[Dict[str, Any]]:
        try:
            header = read_plan_header(text)
        except ValueError as e:
            warnings.append(create_warning("INVALID_HEADER", f"Ignoring unreadable aps:document header: {e}"))
            return None
        if header is None:
            return None
        try:
            if not is_valid_plan_id(header.get("id")):
                raise ValueError(f"invalid plan id {header.get('id')!r}")
            Provenance.model_validate(header.get("provenance"))
            Validations.model_validate(header.get("validations", {}))
            if "approval" in header:
                Approval.model_validate(header["approval"])
            for execution in header.get("executions", []):
                Execution.model_validate(execution)
            if not isinstance(header.get(CONTEXT_KEY, {}), dict):
                raise ValueError("context must be a JSON object")
        except (PydanticValidationError, ValueError) as e:
            warnings.append(create_warning("INVALID_HEADER", f"Ignoring invalid aps:document header: {e}"))
            return None
        return header

    def _provenance(self, context: ParseContext, records: Mapping[str, BaseModel]) -> Dict[str, Any]:
        fields: Dict[str, str] = {}
        for record in records.values():
            for key, value in getattr(record, "fields", {}).items():
                fields.setdefault(key, value)

        provenance = {
            "timestamp": context.timestamp or format_timestamp(self._clock()),
            "source": (context.source or ProvenanceSource.CLI).value,
            "version": self.metadata.version,
            "author": context.author or fields.get("author") or None,
            "repository": context.repository_path,
            "branch": context.branch or fields.get("branch") or fields.get("feature_branch") or None,
            "commit": context.commit,
        }
        return {key: value for key, value in provenance.items() if value is not None}

    @staticmethod
    def _clarification_warnings(records: Mapping[str, BaseModel]) -> List[AdapterWarning]:
        warnings = []
        for name, record in records.items():
            for index, question in enumerate(getattr(record, "clarifications", [])):
                warnings.append(create_warning(
                    "UNRESOLVED_CLARIFICATION",
                    f"Unresolved clarification: {question}",
                    path=f"metadata.{name}.clarifications.{index}",
                ))
        return warnings

    # -- serialize -----------------------------------------------------------

    def _serialize(self, plan: Union[APSPlan, Mapping[str, Any]], options: AdapterOptions) -> SerializeResult:
        if not isinstance(plan, APSPlan):
            try:
                plan = APSPlan.model_validate(plan)
            except PydanticValidationError as e:
                return serialize_failure([
                    create_error("INVALID_PLAN", issue.message, path=issue.path)
                    for issue in issues_from_pydantic_errors(e.errors())
                ])

        warnings: List[AdapterWarning] = []
        records = self._records_from_metadata(plan, warnings)
        if not records:
            name, record = self.fallback_record(plan)
            records = {name: record}
            warnings.append(create_warning(
                "LOSSY_EXPORT",
                f"Plan carries no {self.metadata.display_name} records; rendered a placeholder {name} document",
            ))

        header = render_plan_header(plan)
        latest = plan.latest_evidence
        annotation = render_evidence_annotation(latest, plan.hash) if latest is not None else None

        documents: Dict[str, str] = {}
        for name, record in records.items():
            text = header + "\n" + self._kinds[name].render(record)
            if annotation is not None:
                text = text.rstrip("\n") + "\n\n" + annotation + "\n"
            documents[name] = text

        selected = options.format_options.get("document")
        if selected is None:
            selected = next((name for name in self.intent_kinds if name in documents), next(iter(documents)))
        if selected not in documents:
            return serialize_failure([create_error(
                "UNKNOWN_DOCUMENT",
                f"Plan has no '{selected}' document; available: {', '.join(documents)}",
                path=selected,
            )], warnings)

        return serialize_success(
            documents[selected],
            documents=documents,
            warnings=warnings,
            metadata={"document": selected, "plan_id": plan.id, "plan_hash": plan.hash},
        )

    def _records_from_metadata(self, plan: APSPlan, warnings: List[AdapterWarning]) -> Dict[str, BaseModel]:
        metadata = plan.metadata or {}
        if metadata.get("source_format") != self.name:
            return {}
        records = {}
        for name, kind in self._kinds.items():
            if name not in metadata:
                continue
            try:
                records[name] = kind.record_model.model_validate(metadata[name])
            except PydanticValidationError as e:
                warnings.append(create_warning(
                    "INVALID_RECORD",
                    f"Skipping unreadable {name} record: {e.error_count()} error(s)",
                    path=f"metadata.{name}",
                ))
        return records

    # -- validate ------------------------------------------------------------

    def _validate(self, content: str, options: AdapterOptions) -> ValidationResult:
        body = strip_annotations(content)
        issues: List[ValidationIssue] = []
        name = self.classify(content)

        if name is None:
            issues.append(ValidationIssue(
                path=ROOT_PATH,
                message=f"No recognizable {self.metadata.display_name} title found",
                code=IssueCode.MISSING_TITLE,
            ))
        else:
            for label in self._kinds[name].missing_sections(body):
                issues.append(ValidationIssue(
                    path=name,
                    message=f"Section '{label}' not found",
                    code=IssueCode.MISSING_SECTION,
                    severity=IssueSeverity.WARNING,
                ))
            for question in find_clarifications(body):
                issues.append(ValidationIssue(
                    path=name,
                    message=f"Unresolved clarification: {question}",
                    code=IssueCode.UNRESOLVED_CLARIFICATION,
                    severity=IssueSeverity.WARNING,
                ))
            annotation = parse_evidence_annotation(content)
            if annotation is not None and annotation["overall_status"] == "failed":
                issues.append(ValidationIssue(
                    path=name,
                    message="Latest embedded evidence reports a failed gate",
                    code=IssueCode.EVIDENCE_FAILED,
                    severity=IssueSeverity.WARNING,
                ))

        result = ValidationResult(
            valid=not any(i.severity == IssueSeverity.ERROR for i in issues),
            issues=issues,
        )
        result.summary = create_validation_summary(result)
        if issues:
            result.formatted_errors = format_validation_errors(issues)
        return result
