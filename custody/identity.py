"""
Actor identity.

An Identity is opaque: the registry only ever compares two of them. Values are
normalized on construction (surrounding whitespace stripped, case folded) so
that "0xABC" and "0xabc" name the same actor, as wallet addresses do.
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import InvalidIdentity


@dataclass(frozen=True, order=True)
class Identity:
    """Equality-comparable actor identifier."""

    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str):
            raise TypeError(f"Identity value must be str, got {type(self.value).__name__}")
        normalized = self.value.strip().lower()
        if not normalized:
            raise InvalidIdentity("Identity value must be non-empty")
        object.__setattr__(self, "value", normalized)

    def __str__(self) -> str:
        return self.value

    def short(self) -> str:
        """Abbreviated form for tables (0x1234...abcd)."""
        if len(self.value) <= 12:
            return self.value
        return f"{self.value[:6]}...{self.value[-4:]}"


def as_identity(value: Identity | str) -> Identity:
    """Coerce a raw string into an Identity (Identity passes through)."""
    if isinstance(value, Identity):
        return value
    return Identity(value)
