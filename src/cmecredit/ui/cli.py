from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING
from uuid import UUID

from dotenv import load_dotenv

from cmecredit.adapters.payloads import parse_bulk_submission
from cmecredit.app import (
    Caller,
    approve_submissions,
    compliance_statistics,
    init_database,
    practitioner_compliance,
    preview_bulk_activity,
    reject_submission,
    revoke_submissions,
    submit_bulk_activity,
)
from cmecredit.config import configure_logging
from cmecredit.domain.model import CallerRole

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from cmecredit.domain.lifecycle import BulkTransitionResult

log = logging.getLogger(__name__)

EXIT_VALIDATION = 2
EXIT_FAILURE = 1


def _parse_uuid(value: str) -> UUID:
    try:
        return UUID(value)
    except ValueError as exc:
        raise ValueError(f"Invalid UUID: {value}") from exc


def _parse_iso_datetime(value: str) -> datetime:
    try:
        normalized = value.strip()
        if normalized.endswith("Z"):
            normalized = normalized[:-1] + "+00:00"
        dt = datetime.fromisoformat(normalized)
    except ValueError as exc:
        raise ValueError(f"Invalid ISO timestamp: {value}") from exc
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def _add_bulk_arguments(bulk: argparse.ArgumentParser) -> None:
    bulk.add_argument("--catalog-id", type=_parse_uuid, required=True)
    bulk.add_argument("--actor-id", type=_parse_uuid, required=True)
    bulk.add_argument(
        "--role",
        type=CallerRole,
        choices=list(CallerRole),
        required=True,
        help="Caller role code",
    )
    bulk.add_argument("--unit-id", type=_parse_uuid, help="Caller unit (required for unit roles)")
    bulk.add_argument(
        "--selection",
        type=Path,
        required=True,
        help="JSON file holding the cohort selection",
    )
    bulk.add_argument("--start", type=str, help="ISO-8601 activity start")
    bulk.add_argument("--end", type=str, help="ISO-8601 activity end")
    bulk.add_argument("--organizer", type=str)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Continuing-education credit compliance")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_db = subparsers.add_parser("init-db", help="Create the database schema")
    init_db.add_argument(
        "--database-uri",
        type=str,
        help="SQLAlchemy URI (defaults to DATABASE_URI or the local data dir)",
    )

    cycle = subparsers.add_parser("cycle", help="Show a practitioner's compliance cycle")
    cycle.add_argument("--practitioner-id", type=_parse_uuid, required=True)

    stats = subparsers.add_parser("stats", help="Aggregate compliance over practitioners")
    stats.add_argument("--practitioner-id", type=_parse_uuid, nargs="+", required=True)

    bulk = subparsers.add_parser("bulk-submit", help="Record one activity for a cohort")
    _add_bulk_arguments(bulk)
    preview = subparsers.add_parser(
        "bulk-preview", help="Count what bulk-submit would create, without writing"
    )
    _add_bulk_arguments(preview)

    approve = subparsers.add_parser("approve", help="Approve pending submissions")
    approve.add_argument("--ids", type=_parse_uuid, nargs="+", required=True)
    approve.add_argument("--approver-id", type=_parse_uuid, required=True)
    approve.add_argument("--comment", type=str)
    approve.add_argument("--unit-id", type=_parse_uuid)

    reject = subparsers.add_parser("reject", help="Reject a pending submission")
    reject.add_argument("--id", type=_parse_uuid, required=True)
    reject.add_argument("--approver-id", type=_parse_uuid, required=True)
    reject.add_argument("--reason", type=str, required=True)
    reject.add_argument("--unit-id", type=_parse_uuid)

    revoke = subparsers.add_parser("revoke", help="Send approved submissions back to review")
    revoke.add_argument("--ids", type=_parse_uuid, nargs="+", required=True)
    revoke.add_argument("--actor-id", type=_parse_uuid, required=True)
    revoke.add_argument("--reason", type=str, required=True)
    revoke.add_argument("--unit-id", type=_parse_uuid)

    return parser.parse_args(list(argv))


def _bulk_payload(args: argparse.Namespace) -> dict[str, object]:
    try:
        cohort = json.loads(args.selection.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ValueError(f"Cannot read selection file {args.selection}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ValueError(f"Selection file is not valid JSON: {exc}") from exc
    return {
        "catalogId": str(args.catalog_id),
        "cohort": cohort,
        "startDate": _parse_iso_datetime(args.start).isoformat() if args.start else None,
        "endDate": _parse_iso_datetime(args.end).isoformat() if args.end else None,
        "organizer": args.organizer,
    }


def _log_transitions(verb: str, result: BulkTransitionResult) -> None:
    log.info("%s %d submissions", verb, len(result.updated))
    for rejection in result.skipped:
        log.warning("Skipped %s: %s (%s)", rejection.record_id, rejection.message, rejection.code)


def _run(args: argparse.Namespace) -> int:  # noqa: PLR0911, PLR0912
    if args.command == "init-db":
        init_database(database_uri=args.database_uri)
        log.info("Database schema ready")
        return 0

    if args.command == "cycle":
        compliance = practitioner_compliance(args.practitioner_id)
        cycle = compliance.cycle
        if cycle is None:
            log.info("No cycle: no active credit rule or unknown practitioner")
            return 0
        log.info(
            "Cycle %s -> %s: %.2f/%.2f credits (%.2f%%), %s, %d days remaining",
            cycle.window_start.date(),
            cycle.window_end.date(),
            cycle.achieved_credits,
            cycle.required_credits,
            cycle.completion_pct,
            cycle.status,
            cycle.days_remaining,
        )
        for summary in compliance.categories:
            log.info(
                "  %s: %.2f credits over %d activities (cap=%s, remaining=%s)",
                summary.category,
                summary.total_credits,
                summary.activity_count,
                summary.cap,
                summary.remaining,
            )
        return 0

    if args.command == "stats":
        stats = compliance_statistics(args.practitioner_id)
        log.info(
            "total=%d compliant=%d at_risk=%d non_compliant=%d average=%.2f%%",
            stats.total,
            stats.compliant,
            stats.at_risk,
            stats.non_compliant,
            stats.average_completion,
        )
        return 0

    if args.command == "bulk-submit":
        request = parse_bulk_submission(_bulk_payload(args))
        caller = Caller(actor_id=args.actor_id, role=args.role, unit_id=args.unit_id)
        outcome = submit_bulk_activity(request, caller)
        if not outcome.ok:
            log.error("Bulk submission refused: %s", outcome.message)
            return EXIT_VALIDATION
        log.info("Bulk submission finished: %s", outcome.message)
        for error in outcome.errors:
            log.warning("  %s: %s", error.practitioner_id, error.error)
        return 0

    if args.command == "bulk-preview":
        request = parse_bulk_submission(_bulk_payload(args))
        caller = Caller(actor_id=args.actor_id, role=args.role, unit_id=args.unit_id)
        preview = preview_bulk_activity(request, caller)
        if preview.rejection is not None:
            log.error("Bulk preview refused: %s", preview.rejection.message)
            return EXIT_VALIDATION
        log.info(
            "Would create %d submissions, skip %d duplicates (%d candidates)",
            preview.create_count,
            preview.skip_count,
            preview.total_candidates,
        )
        for error in preview.errors:
            log.warning("  %s: %s", error.practitioner_id, error.error)
        return 0

    if args.command == "approve":
        result = approve_submissions(
            args.ids, args.approver_id, comment=args.comment, unit_id=args.unit_id
        )
        _log_transitions("Approved", result)
        return 0

    if args.command == "reject":
        outcome = reject_submission(
            args.id, args.approver_id, reason=args.reason, unit_id=args.unit_id
        )
        if outcome.rejection is not None:
            log.error("Rejection refused: %s", outcome.rejection.message)
            return EXIT_VALIDATION
        log.info("Rejected submission %s", args.id)
        return 0

    if args.command == "revoke":
        result = revoke_submissions(
            args.ids, args.actor_id, reason=args.reason, unit_id=args.unit_id
        )
        _log_transitions("Revoked", result)
        return 0

    raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    load_dotenv()
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(EXIT_VALIDATION)

    try:
        exit_code = _run(parsed_args)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(EXIT_VALIDATION)
    except Exception:
        log.exception("Fatal error")
        sys.exit(EXIT_FAILURE)
    if exit_code:
        sys.exit(exit_code)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


if __name__ == "__main__":
    signal(SIGINT, sigint_handler)
    main()
