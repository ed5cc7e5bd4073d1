"""Orphan detection and cleanup against the remote catalog."""

from .orphans import ReconcileConfig, Reconciler, ReconciliationReport
from .patterns import KeyMatcher, derive_pattern, extract_prefixes

__all__ = [
    "KeyMatcher",
    "ReconcileConfig",
    "Reconciler",
    "ReconciliationReport",
    "derive_pattern",
    "extract_prefixes",
]
