"""
Collaborators package for GradeVault.

Re-exports the ledger/oracle interfaces and their concrete implementations so
callers can import from `gradevault.collaborators` directly.
"""

from gradevault.collaborators.abstract import (
    AbstractLedgerClient,
    Encryptor,
    LedgerClient,
    RevealOracle,
)
from gradevault.collaborators.http_oracle import HttpOracle
from gradevault.collaborators.memory import InMemoryCipher, InMemoryLedger
from gradevault.collaborators.postgres_ledger import PostgresLedger

__all__ = [
    # Interfaces
    "AbstractLedgerClient",
    "Encryptor",
    "LedgerClient",
    "RevealOracle",
    # Implementations
    "HttpOracle",
    "InMemoryCipher",
    "InMemoryLedger",
    "PostgresLedger",
]
