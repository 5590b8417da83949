from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from kbrecon.adapters.jobs_file import (
    constraints_lookup,
    knowledge_base_ids,
    read_constraints,
    read_jobs,
)
from kbrecon.adapters.sqlalchemy import SqlAlchemyReconciliationStore, startup
from kbrecon.app import reconcile_jobs, reconcile_value
from kbrecon.common import configure_logging
from kbrecon.domain.model import (
    AutoAccepted,
    Candidate,
    MatchesAvailable,
    NoMatches,
    ReconciliationFailed,
    ReconciliationJob,
    TemporalValue,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from kbrecon.adapters.jobs_file import ConstraintsRecord
    from kbrecon.domain.model import ReconciliationOutcome
    from kbrecon.domain.ports import ReconciliationStore

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile values against a knowledge base")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--database",
        type=str,
        help="SQLAlchemy database URI for the cell ledger (defaults to config)",
    )
    parser.add_argument(
        "--in-memory",
        action="store_true",
        help="Keep cell state in memory only",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    batch = subparsers.add_parser("batch", help="Reconcile a file of jobs")
    batch.add_argument("jobs", type=Path, help="JSON array or JSON-lines file of jobs")
    batch.add_argument(
        "--constraints",
        type=Path,
        help="JSON file mapping property ids to constraints",
    )
    batch.add_argument(
        "--mode",
        choices=("dataset", "column"),
        default="dataset",
        help="Window size profile (default: %(default)s)",
    )

    one = subparsers.add_parser("one", help="Reconcile a single value")
    one.add_argument("value", type=str, help="Raw value to reconcile")
    one.add_argument("--property", dest="property_id", required=True, help="Property id")
    one.add_argument("--item", dest="item_id", default="cli", help="Item id (default: cli)")
    one.add_argument("--index", dest="value_index", type=int, default=0, help="Value index")
    one.add_argument(
        "--constraints",
        type=Path,
        help="JSON file mapping property ids to constraints",
    )
    one.add_argument("--refresh", action="store_true", help="Ignore stored matches")

    return parser.parse_args(list(argv))


def _build_store(args: argparse.Namespace) -> ReconciliationStore | None:
    if args.in_memory:
        return None
    startup(database_uri=args.database)
    return SqlAlchemyReconciliationStore()


def _load_constraints(path: Path | None) -> dict[str, ConstraintsRecord]:
    if path is None:
        return {}
    return read_constraints(path)


def _describe(outcome: ReconciliationOutcome) -> str:
    match outcome:
        case AutoAccepted(selection=Candidate() as candidate, acceptance=acceptance):
            return f"accepted {candidate.id} ({candidate.label}): {acceptance.reason}"
        case AutoAccepted(selection=TemporalValue() as value, acceptance=acceptance):
            return (
                f"accepted date {value.date} ({value.precision}, code {value.precision.code}): "
                f"{acceptance.reason}"
            )
        case MatchesAvailable(candidates=candidates):
            lines = [f"{len(candidates)} candidates for review:"]
            lines.extend(
                f"  {c.id}  {c.score:6.2f}  {c.label}  [{c.source_tier}]" for c in candidates
            )
            return "\n".join(lines)
        case NoMatches():
            return "no match"
        case ReconciliationFailed(message=message, retryable=retryable):
            return f"error ({'retryable' if retryable else 'permanent'}): {message}"


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args: argparse.Namespace
    try:
        parsed_args = _parse_args(args_list)
        configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)
        records = _load_constraints(parsed_args.constraints)
        jobs: list[ReconciliationJob] = []
        if parsed_args.command == "batch":
            jobs = read_jobs(parsed_args.jobs)
        else:
            jobs = [
                ReconciliationJob(
                    item_id=parsed_args.item_id,
                    property_id=parsed_args.property_id,
                    value_index=parsed_args.value_index,
                    raw_value=parsed_args.value,
                )
            ]
    except (ValueError, OSError):
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        store = _build_store(parsed_args)
        constraints = constraints_lookup(records)
        kb_ids = knowledge_base_ids(records)
        if parsed_args.command == "batch":
            summary = reconcile_jobs(
                jobs,
                mode=parsed_args.mode,
                store=store,
                constraints=constraints,
                knowledge_base_ids=kb_ids,
            )
            print(  # noqa: T201
                f"auto-accepted={summary.auto_accepted} "
                f"matches-available={summary.matches_available} "
                f"no-match={summary.no_matches} errors={summary.errors} "
                f"passed-through={summary.passed_through} "
                f"already-complete={summary.already_complete}"
            )
        elif parsed_args.command == "one":
            outcome = reconcile_value(
                jobs[0],
                refresh=parsed_args.refresh,
                store=store,
                constraints=constraints,
                knowledge_base_ids=kb_ids,
            )
            print(_describe(outcome))  # noqa: T201
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301

    except Exception:
        log.exception("Fatal error during reconciliation")
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
