"""CLI command implementations."""

from __future__ import annotations

from ..config import RegistryConfig
from ..registry import EvidenceRegistry


def open_registry(config: RegistryConfig) -> EvidenceRegistry:
    """Registry for one command invocation. Raises RegistryError on bad state files."""
    return EvidenceRegistry.open(config)
