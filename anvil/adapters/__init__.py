"""Format adapters for the Anvil system."""

from anvil.adapters.base import (
    FormatAdapter,
    create_error,
    create_warning,
    format_messages,
    has_errors,
    has_warnings,
)
from anvil.adapters.detection import (
    Indicator,
    WeightedDetector,
    create_detection,
)
from anvil.adapters.dialect import (
    DocumentKind,
    DocumentBuild,
    MarkdownDialectAdapter,
)
from anvil.adapters.speckit import SpecKitAdapter
from anvil.adapters.bmad import BmadAdapter
from anvil.adapters.registry import (
    AdapterRegistry,
    build_default_registry,
)

__all__ = [
    # Contract
    "FormatAdapter",
    "create_error",
    "create_warning",
    "format_messages",
    "has_errors",
    "has_warnings",
    # Detection
    "Indicator",
    "WeightedDetector",
    "create_detection",
    # Markdown dialects
    "DocumentKind",
    "DocumentBuild",
    "MarkdownDialectAdapter",
    "SpecKitAdapter",
    "BmadAdapter",
    # Registry
    "AdapterRegistry",
    "build_default_registry",
]
