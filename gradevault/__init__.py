"""
GradeVault - encrypted grade records with selective reveal.

Students keep per-subject scores encrypted on an append-only ledger and reveal
them one at a time through an authorization-checked oracle. This package holds
the client-side engine:

- RecordStore: cache of ledger records
- DecryptionCoordinator: per-record reveal state machine
- AggregateEngine: student and global averages over revealed scores
- ViewProjection: push-on-change snapshots for presentation code
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from gradevault.aggregates import AggregateEngine, compute_aggregates
from gradevault.config import Settings, get_settings
from gradevault.coordinator import DecryptionCoordinator
from gradevault.domain.models import (
    AggregateSnapshot,
    DecryptionOutcome,
    DecryptionState,
    FailureReason,
    GradeRecord,
    ViewSnapshot,
)
from gradevault.errors import (
    AuthorizationDenied,
    LedgerRejected,
    LedgerUnavailable,
    OracleError,
    OracleTimeout,
    UnknownRecord,
)
from gradevault.projection import ViewProjection
from gradevault.session import GradeSession, build_session
from gradevault.store import RecordStore
from gradevault.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Core
    "RecordStore",
    "DecryptionCoordinator",
    "AggregateEngine",
    "compute_aggregates",
    "ViewProjection",
    "GradeSession",
    "build_session",
    # Models
    "AggregateSnapshot",
    "DecryptionOutcome",
    "DecryptionState",
    "FailureReason",
    "GradeRecord",
    "ViewSnapshot",
    # Errors
    "AuthorizationDenied",
    "LedgerRejected",
    "LedgerUnavailable",
    "OracleError",
    "OracleTimeout",
    "UnknownRecord",
    # Logging
    "configure_logging",
    "get_logger",
]
