from __future__ import annotations

import argparse
import logging
import sys
from datetime import date
from decimal import Decimal, InvalidOperation
from signal import SIGINT, signal
from typing import TYPE_CHECKING
from uuid import UUID

from dotenv import load_dotenv

from weighbridge.app import WeighbridgeApp, build_app, run_reconciliation
from weighbridge.config import configure_logging
from weighbridge.domain.model import OperationKind, PlanningEntry

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import FrameType

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Weighbridge workflow administration")
    subparsers = parser.add_subparsers(dest="command", required=True)

    reconcile = subparsers.add_parser(
        "reconcile", help="Transfer completed weighings to the historical store"
    )
    reconcile.add_argument(
        "--once",
        action="store_true",
        help="Run a single sweep and exit instead of looping",
    )

    subparsers.add_parser("status", help="Show active sessions and pending transfers")

    plan = subparsers.add_parser("plan", help="Authorize a truck for an operation")
    plan.add_argument("--truck", type=str, required=True, help="Truck identifier (plate)")
    plan.add_argument("--client", type=str, required=True, help="Client name")
    plan.add_argument("--product-id", type=int, required=True, help="Product id")
    plan.add_argument("--product-name", type=str, help="Optional product display name")
    plan.add_argument(
        "--operation",
        type=str,
        choices=[kind.value for kind in OperationKind],
        required=True,
        help="LOAD or UNLOAD",
    )
    plan.add_argument(
        "--date",
        type=str,
        help="ISO date of the planned day (defaults to today)",
    )
    plan.add_argument("--driver", type=str, help="Optional driver name")

    quota = subparsers.add_parser("quota", help="Client quota commands")
    quota_sub = quota.add_subparsers(dest="quota_command", required=True)
    quota_set = quota_sub.add_parser("set", help="Create or reset a client quota")
    quota_set.add_argument("client", type=str, help="Client name")
    quota_set.add_argument("--total", type=str, required=True, help="Allotment in tons")
    quota_set.add_argument(
        "--consumed",
        type=str,
        default="0",
        help="Consumption already used, in tons (default: %(default)s)",
    )
    quota_sub.add_parser("list", help="List all client quotas")

    cancel = subparsers.add_parser("cancel", help="Cancel an active weighing session")
    cancel.add_argument("session_id", type=str, help="Session id")

    return parser.parse_args(list(argv))


def _parse_tons(value: str) -> Decimal:
    try:
        amount = Decimal(value.strip())
    except InvalidOperation as exc:
        raise ValueError(f"Invalid tonnage: {value}") from exc
    if amount < 0:
        raise ValueError(f"Tonnage must be non-negative: {value}")
    return amount


def _parse_date(value: str | None) -> date:
    if value is None:
        return date.today()  # noqa: DTZ011
    try:
        return date.fromisoformat(value.strip())
    except ValueError as exc:
        raise ValueError(f"Invalid ISO date: {value}") from exc


def _parse_uuid(value: str) -> UUID:
    try:
        return UUID(value)
    except ValueError as exc:
        raise ValueError(f"Invalid UUID: {value}") from exc


def _reconcile(app: WeighbridgeApp, args: argparse.Namespace) -> None:
    result = run_reconciliation(app, once=args.once)
    if result is not None:
        log.info(
            "Reconciliation finished: confirmed=%s, duplicate=%s, deferred=%s, quarantined=%s",
            result.confirmed,
            result.duplicate,
            result.deferred,
            result.quarantined,
        )


def _status(app: WeighbridgeApp, _args: argparse.Namespace) -> None:
    sessions = app.orchestrator.active_sessions()
    if not sessions:
        log.info("No active sessions")
    for session in sessions:
        log.info(
            "%s truck=%s client=%s state=%s",
            session.id,
            session.truck_id,
            session.client,
            session.state,
        )
    pending = app.reconciliation.pending_count()
    log.info("Completed weighings awaiting transfer: %s", pending)


def _plan(app: WeighbridgeApp, args: argparse.Namespace) -> None:
    entry = app.orchestrator.schedule_planning(
        PlanningEntry(
            planned_on=_parse_date(args.date),
            truck_id=args.truck,
            client=args.client,
            product_id=args.product_id,
            product_name=args.product_name,
            operation=OperationKind(args.operation),
            driver_name=args.driver,
        )
    )
    log.info("Created planning entry %s", entry.id)


def _quota(app: WeighbridgeApp, args: argparse.Namespace) -> None:
    if args.quota_command == "set":
        record = app.orchestrator.upsert_quota(
            args.client,
            total=_parse_tons(args.total),
            consumed=_parse_tons(args.consumed),
        )
        log.info("Quota for %s: %s of %s t", record.client, record.consumed, record.total)
        return
    for record in app.orchestrator.list_quotas():
        log.info(
            "%s: consumed=%s total=%s remaining=%s%s",
            record.client,
            record.consumed,
            record.total,
            record.remaining,
            " BLOCKED" if record.blocked else "",
        )


def _cancel(app: WeighbridgeApp, args: argparse.Namespace) -> None:
    session = app.orchestrator.request_cancel(_parse_uuid(args.session_id))
    log.info("Session %s is %s", session.id, session.state)


_COMMANDS: dict[str, Callable[[WeighbridgeApp, argparse.Namespace], None]] = {
    "reconcile": _reconcile,
    "status": _status,
    "plan": _plan,
    "quota": _quota,
    "cancel": _cancel,
}


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    parsed_args: argparse.Namespace
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    command = _COMMANDS.get(parsed_args.command)
    if command is None:
        log.error("Unsupported command: %s", parsed_args.command)
        sys.exit(2)

    app: WeighbridgeApp | None = None
    try:
        app = build_app()
        app.start_notifications()
        command(app, parsed_args)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)
    finally:
        if app is not None:
            app.close()


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
