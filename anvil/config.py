"""
Configuration management for the Anvil system.

Loads configuration from environment variables and .env file.
"""

from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import Field

from anvil.models.plan import ProvenanceSource


class AnvilConfig(BaseSettings):
    """Configuration settings for the Anvil system."""

    # Data directories
    data_dir: Path = Field(
        default=Path(".anvil"),
        description="Base directory for all anvil data"
    )
    plans_dir: Optional[Path] = Field(None, description="Directory for persisted plans")

    # Logging
    log_level: str = Field("INFO", description="Root log level")
    log_file: Optional[Path] = Field(None, description="Optional log file, in addition to stderr")

    # Detection and validation defaults
    detection_min_confidence: int = Field(
        50, ge=0, le=100, description="Minimum confidence for automatic format detection"
    )
    validate_hash: bool = Field(True, description="Verify plan hashes when validating")
    default_source: ProvenanceSource = Field(
        ProvenanceSource.CLI, description="Provenance source recorded for imported plans"
    )

    model_config = {
        "env_prefix": "ANVIL_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",  # Ignore extra fields from env
    }

    def model_post_init(self, __context) -> None:
        """Initialize derived paths after loading config."""
        if self.plans_dir is None:
            self.plans_dir = self.data_dir / "plans"

    def ensure_directories(self) -> None:
        """Create all necessary directories if they don't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.plans_dir.mkdir(parents=True, exist_ok=True)


# Global config instance - loaded from environment
config = AnvilConfig()
