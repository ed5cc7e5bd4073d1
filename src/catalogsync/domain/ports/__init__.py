"""Domain port definitions for adapters."""

from __future__ import annotations

from .catalog import (
    CatalogService,
    CreateResponse,
    DeleteResponse,
    QueryResponse,
    Rejection,
    ScanResponse,
)
from .ledger import LedgerSnapshot, LedgerStore

__all__ = [
    "CatalogService",
    "CreateResponse",
    "DeleteResponse",
    "LedgerSnapshot",
    "LedgerStore",
    "QueryResponse",
    "Rejection",
    "ScanResponse",
]
