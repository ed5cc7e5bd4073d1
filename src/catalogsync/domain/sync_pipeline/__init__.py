"""Phase pipeline that drives ingest and delete runs."""

from .context import SyncContext, SyncOptions
from .orchestrator import PhaseReport, PhaseStatus, RunSummary, SyncPhase, SyncPipeline
from .phases import DeletePhase, IngestPhase, PhaseSpec, ReconcilePhase
from .runner import (
    INGEST_ORDER,
    build_delete_pipeline,
    build_ingest_pipeline,
    default_phase_specs,
    run_delete,
    run_ingest,
)

__all__ = [
    "INGEST_ORDER",
    "DeletePhase",
    "IngestPhase",
    "PhaseReport",
    "PhaseSpec",
    "PhaseStatus",
    "ReconcilePhase",
    "RunSummary",
    "SyncContext",
    "SyncOptions",
    "SyncPhase",
    "SyncPipeline",
    "build_delete_pipeline",
    "build_ingest_pipeline",
    "default_phase_specs",
    "run_delete",
    "run_ingest",
]
