"""Public interface for the remote catalog adapter."""

from __future__ import annotations

from .client import API_PREFIX, HttpCatalogService, resource_path
from .schema import CreateResult, DeleteResult, QueryResult, ScanResult

__all__ = [
    "API_PREFIX",
    "CreateResult",
    "DeleteResult",
    "HttpCatalogService",
    "QueryResult",
    "ScanResult",
    "resource_path",
]
