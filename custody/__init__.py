"""
custody - evidence access-control registry.

Records who owns a piece of referenced evidence and who may read its
decryption material, and runs the request -> grant/deny, grant -> revoke
lifecycle for access:

- Registry store: immutable evidence records, append-only owner index
- Permission ledger: one tri-state value per (evidence, user)
- Query layer: redaction-aware views per caller
- Event emitter + journal: observer notifications and an append-only audit log
"""

__version__ = "0.1.0"

from .allocator import IdAllocator
from .config import RegistryConfig, load_config
from .errors import (
    ConfigError,
    InvalidIdentity,
    InvalidState,
    NotFound,
    PersistenceError,
    RegistryError,
    Unauthorized,
)
from .events import EventEmitter, RegistryEvent
from .history import AccessRequest, fold_requests
from .identity import Identity
from .journal import EventJournal
from .ledger import AccessEntry, AccessState, PermissionLedger
from .registry import EvidenceRegistry
from .store import EvidenceRecord, RegistryStore
from .views import EvidenceView, RegistryQueries

__all__ = [
    "__version__",
    # Identity
    "Identity",
    # Components
    "IdAllocator",
    "RegistryStore",
    "EvidenceRecord",
    "PermissionLedger",
    "AccessState",
    "AccessEntry",
    "RegistryQueries",
    "EvidenceView",
    "EventEmitter",
    "RegistryEvent",
    "EventJournal",
    "AccessRequest",
    "fold_requests",
    # Facade
    "EvidenceRegistry",
    # Configuration
    "RegistryConfig",
    "load_config",
    # Errors
    "RegistryError",
    "NotFound",
    "Unauthorized",
    "InvalidIdentity",
    "InvalidState",
    "ConfigError",
    "PersistenceError",
]
