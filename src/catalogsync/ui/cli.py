from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from catalogsync.app import clear_ledger, delete_catalog, ingest_catalog, show_ledger
from catalogsync.common.logging import configure_logging
from catalogsync.domain.model import EntityType
from catalogsync.domain.sync_pipeline import SyncOptions

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from catalogsync.domain.sync_pipeline import RunSummary

log = logging.getLogger(__name__)


def _add_run_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would be submitted without writing anything",
    )
    parser.add_argument(
        "--skip",
        action="append",
        default=[],
        metavar="TYPE",
        help="Entity type to leave out (repeatable): " + ", ".join(EntityType),
    )
    parser.add_argument(
        "--skip-validation",
        action="store_true",
        help="Do not poll for convergence or reconcile orphans",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Synchronise a catalog data pack")
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser("ingest", help="Create missing entities remotely")
    ingest.add_argument("datapack", type=Path, help="Directory holding the data pack JSON files")
    _add_run_flags(ingest)
    ingest.add_argument(
        "--force-full-scan",
        action="store_true",
        help="Ignore the ledger and resubmit every entity",
    )
    ingest.add_argument(
        "--reconcile",
        action="store_true",
        help="Remove remote leftovers that are no longer in the data pack",
    )

    delete = subparsers.add_parser("delete", help="Delete the data pack and recorded entities")
    delete.add_argument(
        "datapack",
        type=Path,
        nargs="?",
        help="Directory holding the data pack JSON files (ledger only when omitted)",
    )
    _add_run_flags(delete)
    delete.add_argument(
        "--reingest",
        action="store_true",
        help="Ingest the data pack again once the delete succeeded",
    )

    ledger = subparsers.add_parser("ledger", help="Inspect or reset the idempotency ledger")
    ledger_sub = ledger.add_subparsers(dest="ledger_command", required=True)
    ledger_sub.add_parser("show", help="Show recorded key counts per entity type")
    ledger_clear = ledger_sub.add_parser("clear", help="Forget recorded keys")
    ledger_clear.add_argument(
        "--type",
        dest="entity_type",
        type=str,
        help="Only clear this entity type",
    )

    return parser.parse_args(list(argv))


def _parse_entity_type(value: str) -> EntityType:
    normalized = value.strip().lower().replace("-", "_")
    try:
        return EntityType(normalized)
    except ValueError as exc:
        choices = ", ".join(EntityType)
        raise ValueError(f"Unknown entity type: {value} (expected one of {choices})") from exc


def _build_options(args: argparse.Namespace) -> SyncOptions:
    return SyncOptions(
        dry_run=args.dry_run,
        skip_types=frozenset(_parse_entity_type(value) for value in args.skip),
        skip_validation=args.skip_validation,
        force_full_scan=getattr(args, "force_full_scan", False),
        reconcile=getattr(args, "reconcile", False),
        reingest_after_delete=getattr(args, "reingest", False),
    )


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    options: SyncOptions | None = None
    entity_type: EntityType | None = None
    try:
        parsed_args = _parse_args(args_list)
        verbose = getattr(parsed_args, "verbose", False)
        configure_logging(level=logging.DEBUG if verbose else logging.INFO)
        if parsed_args.command in {"ingest", "delete"}:
            options = _build_options(parsed_args)
        elif parsed_args.command == "ledger" and parsed_args.ledger_command == "clear":
            if parsed_args.entity_type is not None:
                entity_type = _parse_entity_type(parsed_args.entity_type)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        if parsed_args.command == "ingest":
            summary = ingest_catalog(datapack_dir=parsed_args.datapack, options=options)
            _exit_on_failure([summary])
        elif parsed_args.command == "delete":
            summaries = delete_catalog(datapack_dir=parsed_args.datapack, options=options)
            _exit_on_failure(summaries)
        elif parsed_args.command == "ledger" and parsed_args.ledger_command == "show":
            snapshot = show_ledger()
            log.info("Ledger last updated: %s", snapshot.last_updated or "never")
            for recorded_type in EntityType:
                log.info("  %-12s %s", recorded_type, len(snapshot.entries.get(recorded_type, [])))
        elif parsed_args.command == "ledger" and parsed_args.ledger_command == "clear":
            dropped = clear_ledger(entity_type=entity_type)
            log.info("Dropped %s ledger entries", dropped)
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301

    except Exception:
        log.exception("Fatal error during sync")
        sys.exit(1)


def _exit_on_failure(summaries: Sequence[RunSummary]) -> None:
    if all(summary.success for summary in summaries):
        return
    log.error("Run finished with outstanding issues")
    sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    """Console script entry point."""
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
