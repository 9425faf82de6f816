"""
Format adapter contract models.

Adapters never raise across their public boundary; every operation
returns one of the result models below.
"""

from typing import Any, Dict, List, Optional, Tuple
from pydantic import BaseModel, Field

from anvil.models.plan import APSPlan, ProvenanceSource


class DetectionResult(BaseModel):
    """How confident an adapter is that content is in its dialect."""
    detected: bool = Field(..., description="Whether the detection threshold was crossed")
    confidence: int = Field(..., ge=0, le=100, description="Accumulated indicator score")
    reason: Optional[str] = Field(None, description="Explanation shown to users")


class AdapterMessage(BaseModel):
    """A coded message with optional position information."""
    code: str = Field(..., description="Stable message code")
    message: str = Field(..., description="Human-readable message")
    path: Optional[str] = Field(None, description="Field path or document kind")
    line: Optional[int] = Field(None, description="1-based line number")
    column: Optional[int] = Field(None, description="1-based column number")
    details: Optional[Dict[str, Any]] = Field(None, description="Structured detail")

    def __str__(self) -> str:
        text = f"[{self.code}] {self.message}"
        if self.path or self.line is not None:
            location = self.path or ""
            if self.line is not None:
                location += f":{self.line}"
                if self.column is not None:
                    location += f":{self.column}"
            text += f" (at {location})"
        return text


class AdapterError(AdapterMessage):
    """A fatal adapter problem."""


class AdapterWarning(AdapterMessage):
    """A non-fatal adapter problem."""


class ParseResult(BaseModel):
    """Outcome of parsing dialect text into a plan."""
    success: bool
    data: Optional[APSPlan] = None
    errors: List[AdapterError] = Field(default_factory=list)
    warnings: List[AdapterWarning] = Field(default_factory=list)


class SerializeResult(BaseModel):
    """Outcome of rendering a plan as dialect text."""
    success: bool
    content: Optional[str] = Field(None, description="The selected document")
    documents: Dict[str, str] = Field(default_factory=dict, description="Every rendered document by kind")
    errors: List[AdapterError] = Field(default_factory=list)
    warnings: List[AdapterWarning] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ParseContext(BaseModel):
    """Caller-supplied provenance for a parse."""
    repository_path: Optional[str] = None
    branch: Optional[str] = None
    commit: Optional[str] = None
    author: Optional[str] = None
    timestamp: Optional[str] = None
    source: Optional[ProvenanceSource] = None
    plan_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class AdapterOptions(BaseModel):
    """Options controlling a parse or serialize."""
    preserve_metadata: bool = Field(True, description="Keep dialect records in plan metadata")
    strict: bool = Field(False, description="Treat warnings as errors")
    format_options: Dict[str, Any] = Field(default_factory=dict, description="Adapter-specific options")


class AdapterMetadata(BaseModel):
    """Static description of an adapter."""
    name: str
    version: str
    display_name: str
    description: str
    extensions: Tuple[str, ...] = ()
    formats: Tuple[str, ...] = ()
