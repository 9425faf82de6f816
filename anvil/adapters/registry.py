"""
Adapter registry.

The registry is an ordinary object: the embedding application builds one
at start-up, registers its adapters, then passes it to whatever needs
lookup or detection. Registration is not synchronized; finish it before
sharing the registry between threads.
"""

import logging
from typing import Dict, Iterator, List, Optional, Tuple

from anvil.adapters.base import FormatAdapter
from anvil.adapters.bmad import BmadAdapter
from anvil.adapters.detection import DEFAULT_THRESHOLD
from anvil.adapters.speckit import SpecKitAdapter
from anvil.models.adapter import AdapterMetadata, DetectionResult


logger = logging.getLogger(__name__)


class AdapterRegistry:
    """
    Name-keyed collection of format adapters.

    Iteration order is registration order. It decides ties in
    ``detect_adapter`` (first registered wins) and the order of
    ``get_import_adapters`` / ``get_export_adapters``.
    """

    def __init__(self):
        self._adapters: Dict[str, FormatAdapter] = {}

    def register(self, adapter: FormatAdapter) -> None:
        """
        Register an adapter under its name.

        Raises:
            ValueError: If an adapter with the same name is already registered
        """
        name = adapter.name
        if name in self._adapters:
            raise ValueError(f"Adapter '{name}' is already registered")
        self._adapters[name] = adapter
        logger.debug("Registered adapter %s (%s)", name, adapter.metadata.version)

    def unregister(self, name: str) -> bool:
        """Remove an adapter. Returns False if no adapter had that name."""
        return self._adapters.pop(name, None) is not None

    def get_adapter(self, name: str) -> Optional[FormatAdapter]:
        return self._adapters.get(name)

    def get_adapter_for_format(self, fmt: str) -> Optional[FormatAdapter]:
        """First registered adapter that imports ``fmt``."""
        for adapter in self._adapters.values():
            if adapter.can_import(fmt):
                return adapter
        return None

    def detect_adapter(
        self,
        content: str,
        min_confidence: int = DEFAULT_THRESHOLD,
    ) -> Optional[Tuple[FormatAdapter, DetectionResult]]:
        """
        Pick the adapter most confident about ``content``.

        Only results with confidence at or above ``min_confidence`` (and
        above zero) are considered. A later adapter replaces the current
        best only with a strictly higher confidence, so ties go to the
        first registered adapter.

        Returns:
            (adapter, detection) or None when no adapter qualifies
        """
        best: Optional[Tuple[FormatAdapter, DetectionResult]] = None
        for adapter in list(self._adapters.values()):
            detection = adapter.detect(content)
            if detection.confidence <= 0 or detection.confidence < min_confidence:
                continue
            if best is None or detection.confidence > best[1].confidence:
                best = (adapter, detection)

        if best is None:
            logger.debug("No adapter reached confidence %d", min_confidence)
        else:
            logger.debug("Detected %s with confidence %d", best[0].name, best[1].confidence)
        return best

    def detect_all(self, content: str) -> List[Tuple[FormatAdapter, DetectionResult]]:
        """Every adapter's detection result, highest confidence first (stable on ties)."""
        results = [(adapter, adapter.detect(content)) for adapter in list(self._adapters.values())]
        return sorted(results, key=lambda item: item[1].confidence, reverse=True)

    def list_adapters(self) -> List[AdapterMetadata]:
        return [adapter.metadata for adapter in self._adapters.values()]

    def list_adapter_names(self) -> List[str]:
        return list(self._adapters)

    def list_supported_formats(self) -> List[str]:
        formats = {f for adapter in self._adapters.values() for f in adapter.metadata.formats}
        return sorted(formats)

    def list_supported_extensions(self) -> List[str]:
        extensions = {e for adapter in self._adapters.values() for e in adapter.metadata.extensions}
        return sorted(extensions)

    def get_import_adapters(self, fmt: str) -> List[FormatAdapter]:
        return [adapter for adapter in self._adapters.values() if adapter.can_import(fmt)]

    def get_export_adapters(self, fmt: str) -> List[FormatAdapter]:
        return [adapter for adapter in self._adapters.values() if adapter.can_export(fmt)]

    def is_format_supported(self, fmt: str) -> bool:
        return any(adapter.can_import(fmt) for adapter in self._adapters.values())

    def clear(self) -> None:
        self._adapters.clear()

    def __len__(self) -> int:
        return len(self._adapters)

    def __contains__(self, name: str) -> bool:
        return name in self._adapters

    def __iter__(self) -> Iterator[FormatAdapter]:
        return iter(list(self._adapters.values()))


def build_default_registry() -> AdapterRegistry:
    """Create a registry holding the built-in speckit and bmad adapters."""
    registry = AdapterRegistry()
    registry.register(SpecKitAdapter())
    registry.register(BmadAdapter())
    return registry
