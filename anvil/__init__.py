"""Anvil - deterministic plan documents with format adapters."""

__version__ = "0.1.0"
