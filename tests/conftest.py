"""Pytest configuration and fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from custody.config import RegistryConfig
from custody.identity import Identity
from custody.registry import EvidenceRegistry


class StepClock:
    """Deterministic clock: each call is one second after the previous."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def alice() -> Identity:
    return Identity("0xA11CE00000000000000000000000000000000001")


@pytest.fixture
def bob() -> Identity:
    return Identity("0xB0B0000000000000000000000000000000000002")


@pytest.fixture
def carol() -> Identity:
    return Identity("0xCA201000000000000000000000000000000000003")


@pytest.fixture
def registry(clock: StepClock) -> EvidenceRegistry:
    """In-memory registry (no files)."""
    return EvidenceRegistry(clock=clock)


@pytest.fixture
def file_config(tmp_path: Path) -> RegistryConfig:
    """Config pointing at a fresh data directory."""
    return RegistryConfig(data_dir=tmp_path / ".custody")
