"""Public domain model surface."""

from __future__ import annotations

from catalogsync.domain.model.entity import DesiredCatalog, Entity, NaturalKey
from catalogsync.domain.model.enums import EntityType, OperationKind, OutcomeStatus
from catalogsync.domain.model.outcome import (
    BatchReport,
    ErrorInfo,
    ItemOutcome,
    OperationOutcome,
)

__all__ = [
    "BatchReport",
    "DesiredCatalog",
    "Entity",
    "EntityType",
    "ErrorInfo",
    "ItemOutcome",
    "NaturalKey",
    "OperationKind",
    "OperationOutcome",
    "OutcomeStatus",
]
