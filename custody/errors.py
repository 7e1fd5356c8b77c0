"""
Error taxonomy for the evidence registry.

Every failure is raised synchronously and aborts the operation before any
state is touched, so retrying with unchanged state fails the same way.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from .identity import Identity

InvalidStateReason = Literal[
    "self-request",
    "already-pending",
    "already-granted",
    "not-pending",
    "not-granted",
]


class RegistryError(Exception):
    """Base class for all registry failures."""


class NotFound(RegistryError):
    """Unknown evidence id."""

    def __init__(self, evidence_id: int):
        self.evidence_id = evidence_id
        super().__init__(f"Evidence not found: {evidence_id}")


class Unauthorized(RegistryError):
    """A non-owner attempted an owner-only operation."""

    def __init__(self, evidence_id: int, caller: Identity):
        self.evidence_id = evidence_id
        self.caller = caller
        super().__init__(f"{caller} is not the owner of evidence {evidence_id}")


class InvalidState(RegistryError):
    """The requested transition is not legal from the user's current state."""

    def __init__(self, reason: InvalidStateReason, evidence_id: int, user: Identity):
        self.reason = reason
        self.evidence_id = evidence_id
        self.user = user
        super().__init__(f"Invalid state for {user} on evidence {evidence_id}: {reason}")


class InvalidIdentity(RegistryError, ValueError):
    """An identity string that is empty once normalized."""


class ConfigError(RegistryError):
    """Malformed configuration file or value."""


class PersistenceError(RegistryError):
    """Registry state on disk could not be read."""
