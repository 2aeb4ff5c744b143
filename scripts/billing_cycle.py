#!/usr/bin/env python3
"""
Operate the billing cycle engine from the command line.

Usage:
    python3 scripts/billing_cycle.py <command> [options]

Examples:
    # Create tables (idempotent)
    python3 scripts/billing_cycle.py init-db

    # Cycle settings and whether a reset is owed today
    python3 scripts/billing_cycle.py status

    # Reset the current cycle without the confirmation prompt
    python3 scripts/billing_cycle.py reset --yes

    # Keep two customers out of future resets
    python3 scripts/billing_cycle.py exclude c-101 c-102

    # Save a cable-only snapshot, then restore from a file
    python3 scripts/billing_cycle.py backup "before price change" --scope cable
    python3 scripts/billing_cycle.py restore-file backup.json

    # Run the hourly scheduler in the foreground (Ctrl-C to stop)
    python3 scripts/billing_cycle.py run-scheduler

The database URL comes from --db-url, else $BILLING_DATABASE_URL, else the
active configuration.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from zoneinfo import ZoneInfo

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

SCOPES = ("all", "cable", "internet")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Billing cycle engine: resets, expiry, eligibility, backups.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--config", type=Path, default=None, help="YAML config file.")
    parser.add_argument("--db-url", default=None, help="Database URL override.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging.")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create all tables.")
    sub.add_parser("status", help="Show cycle settings and today's decision.")

    reset = sub.add_parser("reset", help="Reset the current billing cycle.")
    reset.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation.")

    sub.add_parser("auto-expire", help="Mark expired paid customers unpaid.")

    for name, help_text in (
        ("exclude", "Exclude customers from monthly resets."),
        ("include", "Include customers in monthly resets again."),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("ids", nargs="+", help="Customer ids.")

    due = sub.add_parser("set-due-day", help="Save the billing cycle due day (1-28).")
    due.add_argument("day")

    auto = sub.add_parser("auto-reset", help="Turn silent scheduled resets on or off.")
    auto.add_argument("state", choices=("on", "off"))

    backup = sub.add_parser("backup", help="Save a named snapshot in the database.")
    backup.add_argument("name")
    backup.add_argument("--scope", choices=SCOPES, default="all")

    sub.add_parser("backups", help="List saved snapshots.")

    restore_backup = sub.add_parser("restore-backup", help="Restore a saved snapshot.")
    restore_backup.add_argument("snapshot_id")
    restore_backup.add_argument("--yes", "-y", action="store_true")

    restore_file = sub.add_parser("restore-file", help="Restore from a JSON or CSV file.")
    restore_file.add_argument("path", type=Path)
    restore_file.add_argument("--yes", "-y", action="store_true")

    export = sub.add_parser("export-csv", help="Write live customers as CSV.")
    export.add_argument("path", type=Path)
    export.add_argument("--scope", choices=SCOPES, default="all")

    history = sub.add_parser("history", help="Show one customer's history.")
    history.add_argument("customer_id")

    reset_log = sub.add_parser("reset-log", help="Show recent monthly reset entries.")
    reset_log.add_argument("--limit", type=int, default=None)

    sub.add_parser("reminders", help="List unpaid customers with amounts due.")

    expiring = sub.add_parser("expiring", help="List customers by days left in their window.")
    expiring.add_argument("--type", choices=("cable", "internet"), default=None)
    sub.add_parser("run-scheduler", help="Poll the billing cycle gate until stopped.")

    return parser.parse_args(argv)


def _ask(prompt: str) -> bool:
    try:
        return input(f"{prompt} [y/N] ").strip().lower() in ("y", "yes")
    except EOFError:
        return False


def _build_surface(interactive: bool):
    from billing_kernel.services.notifications import (
        LoggingNotificationSurface,
        NotificationSurface,
    )

    class ConsoleNotificationSurface(NotificationSurface):
        def notify(self, title: str, message: str) -> None:
            print(f"{title}: {message}")

        def confirm(self, title: str, message: str) -> bool:
            print(f"{title}\n{message}")
            return _ask("Proceed?")

    return ConsoleNotificationSurface() if interactive else LoggingNotificationSurface()


def _print_restore(result) -> int:
    for outcome in result.outcomes:
        line = f"  {outcome.collection:<10} {outcome.status.value}"
        if outcome.status.value == "restored":
            line += f" (removed {outcome.deleted}, wrote {outcome.inserted})"
        if outcome.error:
            line += f": {outcome.error}"
        print(line)
    if result.failed:
        print("Restore finished with failures; verify the data.", file=sys.stderr)
        return 1
    print("Database restored successfully.")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    # Lazy imports so we fail fast on args first
    from billing_config import get_active_config
    from billing_kernel.db.engine import (
        create_tables,
        get_session_factory,
        init_engine_from_url,
        session_scope,
    )
    from billing_kernel.db.immutability import register_immutability_listeners
    from billing_kernel.domain import snapshot_codec
    from billing_kernel.domain.clock import SystemClock
    from billing_kernel.domain.cycle_gate import evaluate_cycle
    from billing_kernel.domain.values import AuditAction, ServiceType, SnapshotScope
    from billing_kernel.exceptions import BillingKernelError, SchemaMissingError
    from billing_kernel.logging_config import configure_logging
    from billing_kernel.selectors.billing_summary_selector import BillingSummarySelector
    from billing_kernel.selectors.customer_selector import CustomerSelector
    from billing_kernel.services import (
        AuditLog,
        AutoExpireService,
        BillingCycleCoordinator,
        CycleOutcome,
        CycleScheduler,
        CycleTrigger,
        EligibilityService,
        RestoreService,
        SettingsService,
        SnapshotArchiveService,
    )

    try:
        config = get_active_config(args.config)
    except (OSError, ValueError) as e:
        print(f"ERROR: Failed to load config: {e}", file=sys.stderr)
        return 1

    configure_logging(level=logging.DEBUG if args.verbose else getattr(logging, config.log_level, logging.INFO))
    init_engine_from_url(
        args.db_url or config.database.url,
        echo=config.database.echo,
        pool_size=config.database.pool_size,
        max_overflow=config.database.max_overflow,
    )
    register_immutability_listeners()

    clock = SystemClock(tz=ZoneInfo(config.timezone))
    due_default = config.cycle.due_day
    auto_default = config.cycle.auto_reset_enabled

    def coordinator(interactive: bool) -> BillingCycleCoordinator:
        return BillingCycleCoordinator(
            get_session_factory(),
            _build_surface(interactive),
            clock=clock,
            default_due_day=due_default,
            default_auto_reset=auto_default,
        )

    cmd = args.command
    try:
        if cmd == "init-db":
            create_tables()
            print("Tables created.")
            return 0

        if cmd == "status":
            with session_scope() as session:
                cycle = SettingsService(
                    session, default_due_day=due_default, default_auto_reset=auto_default,
                ).load_cycle_config()
            decision = evaluate_cycle(cycle, clock.today())
            print(f"Due day:        {cycle.due_day}")
            print(f"Last reset:     {cycle.last_reset or 'Never'}")
            print(f"Auto reset:     {'on' if cycle.auto_reset_enabled else 'off'}")
            print(f"Today:          {clock.today().isoformat()} ({decision.value})")
            return 0

        if cmd == "reset":
            result = coordinator(interactive=True).evaluate_and_act(
                CycleTrigger.MANUAL, confirmed=args.yes,
            )
            return 1 if result.outcome is CycleOutcome.FAILED else 0

        if cmd == "auto-expire":
            with session_scope() as session:
                expired = AutoExpireService(
                    session, clock, window_days=config.expiry.window_days,
                ).run_auto_expire()
            if expired.count:
                print(f"Updated {expired.count} customers to 'Unpaid'.")
            else:
                print("No expired 'Paid' customers found.")
            return 0

        if cmd in ("exclude", "include"):
            with session_scope() as session:
                updated = EligibilityService(session).set_excluded(args.ids, cmd == "exclude")
            print(f"Updated {updated} of {len(set(args.ids))} customers.")
            return 0

        if cmd == "set-due-day":
            with session_scope() as session:
                day = SettingsService(session).save_due_day(args.day)
            print(f"Common due day saved: {day}")
            return 0

        if cmd == "auto-reset":
            with session_scope() as session:
                SettingsService(session).set_auto_reset(args.state == "on")
            print(f"Auto reset {args.state}.")
            return 0

        if cmd == "backup":
            with session_scope() as session:
                info = SnapshotArchiveService(session, clock).save(
                    args.name, SnapshotScope(args.scope),
                )
            print(f"Backup saved: {info.id} {info.name!r}")
            return 0

        if cmd == "backups":
            with session_scope() as session:
                saved = SnapshotArchiveService(session, clock).list()
            for info in saved:
                print(f"{info.id}  {info.created_at:%Y-%m-%d %H:%M}  {info.name}")
            if not saved:
                print("No backups saved.")
            return 0

        if cmd in ("restore-backup", "restore-file"):
            if not args.yes and not _ask(
                "WARNING: This will DELETE current data and replace it with the backup."
            ):
                print("Restore cancelled.")
                return 0
            with session_scope() as session:
                if cmd == "restore-backup":
                    result = SnapshotArchiveService(session, clock).restore(args.snapshot_id)
                else:
                    text = args.path.read_text(encoding="utf-8")
                    result = RestoreService(session, clock).apply_text(text)
            return _print_restore(result)

        if cmd == "export-csv":
            with session_scope() as session:
                snapshot = SnapshotArchiveService(session, clock).capture(SnapshotScope(args.scope))
            args.path.write_text(
                snapshot_codec.encode_csv(snapshot.customer_rows()), encoding="utf-8",
            )
            print(f"Wrote {len(snapshot.customers)} customers to {args.path}")
            return 0

        if cmd == "history":
            with session_scope() as session:
                name = CustomerSelector(session).get(args.customer_id).name
                entries = AuditLog(session, clock).query(args.customer_id)
            print(f"History for {name}:")
            for entry in entries:
                print(f"  {entry.timestamp:%Y-%m-%d %H:%M}  {entry.tag:<16} {entry.details}")
            return 0

        if cmd == "reset-log":
            with session_scope() as session:
                entries = AuditLog(session, clock).query_by_action(
                    AuditAction.MONTHLY_RESET, limit=args.limit or config.reset_log_limit,
                )
            for entry in entries:
                who = entry.customer_name or entry.customer_id
                print(f"  {entry.timestamp:%Y-%m-%d %H:%M}  {who:<24} {entry.details}")
            if not entries:
                print("No monthly resets recorded.")
            return 0

        if cmd == "reminders":
            with session_scope() as session:
                lines = BillingSummarySelector(session).overdue_reminders()
            if not lines:
                print("No overdue customers found.")
                return 0
            print("Overdue Payment List\n")
            print("\n".join(lines))
            print(f"\nTotal Pending: {len(lines)}")
            return 0

        if cmd == "expiring":
            service_type = ServiceType(args.type) if args.type else None
            with session_scope() as session:
                rows = CustomerSelector(session).with_expiry(
                    clock.today(),
                    service_type=service_type,
                    window_days=config.expiry.window_days,
                    soon_threshold=config.expiry.expiring_soon_days,
                )
            for row in rows:
                print(f"  {row.customer.name:<24} {row.state.value:<14} {row.description}")
            if not rows:
                print("No customers found.")
            return 0

        if cmd == "run-scheduler":
            if not config.scheduler.enabled:
                print("Scheduler is disabled in the configuration.", file=sys.stderr)
                return 1
            scheduler = CycleScheduler(
                coordinator(interactive=False),
                tick_interval_seconds=config.scheduler.tick_interval_seconds,
            )
            scheduler.start()
            try:
                scheduler.wait()
            except KeyboardInterrupt:
                pass
            finally:
                scheduler.stop()
            return 0

    except SchemaMissingError as e:
        print(f"Database Update Required: {e.operator_hint}", file=sys.stderr)
        return 2
    except BillingKernelError as e:
        print(f"ERROR [{e.code}]: {e.user_message}", file=sys.stderr)
        return 1

    print(f"ERROR: unknown command {cmd!r}", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
