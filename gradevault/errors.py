"""
Error taxonomy for GradeVault.

Ledger errors abort the store operation that raised them. Oracle failures are
absorbed by the decryption coordinator into a per-record FAILED state and
carry the matching FailureReason. UnknownRecord is a contract violation and
always propagates.
"""
from __future__ import annotations

from gradevault.domain.models import FailureReason


class GradeVaultError(RuntimeError):
    """Base error for GradeVault."""


class LedgerError(GradeVaultError):
    """The ledger collaborator failed."""


class LedgerUnavailable(LedgerError):
    """The ledger could not be reached."""


class LedgerRejected(LedgerError):
    """The ledger refused a write."""


class UnknownRecord(GradeVaultError, KeyError):
    """No record with the given id is loaded."""

    def __init__(self, record_id: int) -> None:
        super().__init__(f"unknown record id {record_id}")
        self.record_id = record_id

    def __str__(self) -> str:
        return f"unknown record id {self.record_id}"


class CoordinatorClosed(GradeVaultError):
    """The decryption coordinator was torn down."""


class OracleFailure(GradeVaultError):
    """A reveal attempt failed; the record may be retried."""

    reason: FailureReason = FailureReason.ORACLE_ERROR


class AuthorizationDenied(OracleFailure):
    reason = FailureReason.AUTHORIZATION_DENIED


class OracleTimeout(OracleFailure):
    reason = FailureReason.ORACLE_TIMEOUT


class OracleError(OracleFailure):
    reason = FailureReason.ORACLE_ERROR


__all__ = [
    "GradeVaultError",
    "LedgerError",
    "LedgerUnavailable",
    "LedgerRejected",
    "UnknownRecord",
    "CoordinatorClosed",
    "OracleFailure",
    "AuthorizationDenied",
    "OracleTimeout",
    "OracleError",
]
