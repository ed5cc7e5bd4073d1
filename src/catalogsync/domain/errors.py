"""Exceptions raised by the synchronisation engine."""

from __future__ import annotations


class CatalogSyncError(RuntimeError):
    """Base class for engine failures that unwind to the orchestrator."""


class RemoteServiceError(CatalogSyncError):
    """Raised when the remote catalog answers with an error status."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RetryExhaustedError(CatalogSyncError):
    """Raised once a retryable operation has used up its attempts."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"Failed after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class CorruptLedgerError(CatalogSyncError):
    """Raised when a persisted ledger document cannot be parsed."""


class LedgerPersistenceError(CatalogSyncError):
    """Raised when the ledger cannot be written; idempotency is no longer guaranteed."""


class PhaseAbortedError(CatalogSyncError):
    """Raised when a run cannot continue because a prerequisite phase failed."""

    def __init__(self, phase: str, reason: str) -> None:
        super().__init__(f"Phase {phase} aborted: {reason}")
        self.phase = phase
        self.reason = reason


class SyncFailedError(CatalogSyncError):
    """Raised on demand when a finished run left known issues behind."""

    def __init__(self, issues: list[str]) -> None:
        preview = "; ".join(issues[:3])
        more = f" (+{len(issues) - 3} more)" if len(issues) > 3 else ""
        super().__init__(f"Synchronisation incomplete: {preview}{more}")
        self.issues = issues
