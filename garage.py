#!/usr/bin/env python3
"""
Unified CLI for the vehicle expense tracker.

Commands:
  status          - Dashboard: odometer, spend, savings, efficiency
  reminders       - Show maintenance due, overdue, or upcoming
  fuel            - Fuel log with per-interval efficiency
  log-fuel        - Add a fuel fill-up
  log-maintenance - Add a maintenance record
  complete        - Mark a maintenance record (or one service) done
  update-odometer - Correct the current odometer reading
  savings         - Savings totals and breakdown by source
  add-saving      - Add a savings entry
  report          - Savings, fuel or maintenance summary over a date range
  list            - List records of any collection
  delete          - Delete a record
  export          - Write a backup bundle (JSON or CSV)
  import          - Restore a backup bundle
"""

import argparse
import logging
import sys
from datetime import date
from pathlib import Path
from typing import List, Optional

from tabulate import tabulate

from carbook import (
    CarbookError,
    Reminder,
    ReminderMonitor,
    ReminderStatus,
    Tracker,
    ValidationError,
    bundle_to_csv,
    calculate_efficiency,
    export_filename,
    load_config,
)
from carbook.bundle import read_bundle, write_bundle
from carbook.catalog import CAR_SAVINGS, COLLECTIONS, FUEL, MAINTENANCE, SAVINGS_KINDS
from carbook.reports import REPORT_KINDS

# =============================================================================
# Formatting helpers
# =============================================================================


def format_km(km: Optional[float]) -> str:
    """Format an odometer reading for display."""
    return f"{km:,.0f}" if km is not None else "-"


def format_cost(cost: Optional[float]) -> str:
    """Format cost for display."""
    return f"{cost:,.2f}" if cost is not None else "-"


def format_remaining(reminder: Reminder) -> str:
    """Format what is left before a reminder fires (negative when overdue)."""
    sign = "-" if reminder.remaining < 0 else ""
    return f"{sign}{reminder.display_remaining}"


def truncate(text: Optional[str], max_len: int = 30) -> str:
    """Truncate text with ellipsis if too long."""
    if text is None:
        return "-"
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def parse_service(text: str) -> dict:
    """Parse a 'name[:cost]' service argument."""
    name, _, cost = text.partition(":")
    if not name.strip():
        raise argparse.ArgumentTypeError(f"Service needs a name: {text!r}")
    service = {"name": name.strip()}
    if cost:
        try:
            service["cost"] = float(cost)
        except ValueError:
            raise argparse.ArgumentTypeError(f"Invalid service cost: {cost!r}") from None
    return service


def next_service_arg(next_date: Optional[str], next_km: Optional[float]) -> Optional[dict]:
    """Build a nextService trigger from --next-date / --next-km."""
    if next_date and next_km is not None:
        raise ValidationError("--next-date and --next-km cannot be used together")
    if next_date:
        return {"type": "date", "value": next_date}
    if next_km is not None:
        return {"type": "odometer", "value": next_km}
    return None


# =============================================================================
# Tables
# =============================================================================


def make_reminder_table(reminders: List[Reminder]) -> List[List[str]]:
    """Convert reminders to table rows."""
    rows = []
    for reminder in reminders:
        last_done = "-"
        if reminder.original_date or reminder.original_odometer:
            parts = []
            if reminder.original_date:
                parts.append(reminder.original_date)
            if reminder.original_odometer:
                parts.append(f"{reminder.original_odometer:,.0f}")
            last_done = " @ ".join(parts)

        rows.append(
            [
                str(reminder.record_id),
                reminder.service_name,
                last_done,
                reminder.due_date or format_km(reminder.due_km),
                format_remaining(reminder),
                reminder.supplier_name or "-",
            ]
        )
    return rows


def make_fuel_table(entries: List[dict]) -> List[List[str]]:
    """Fuel entries (newest first) with the efficiency of the interval each one closes."""
    ordered = sorted(
        (e for e in entries if e.get("odometer") is not None), key=lambda e: e["odometer"]
    )
    closing = {}
    for prev, curr in zip(ordered, ordered[1:]):
        intervals = calculate_efficiency([prev, curr])
        if intervals:
            closing[id(curr)] = intervals[0]

    rows = []
    for entry in sorted(entries, key=lambda e: e.get("date") or "", reverse=True):
        interval = closing.get(id(entry))
        rows.append(
            [
                str(entry.get("id")),
                entry.get("date") or "-",
                format_km(entry.get("odometer")),
                format_cost(entry.get("liters")),
                format_cost(entry.get("pricePerLiter")),
                format_cost(entry.get("totalCost")),
                f"{interval.km_per_liter:.2f}" if interval else "-",
                f"{interval.liters_per_100km:.2f}" if interval else "-",
            ]
        )
    return rows


def make_record_table(records: List[dict]) -> List[List[str]]:
    """Generic table for any collection: one column per field seen."""
    headers: List[str] = []
    for record in records:
        headers.extend(k for k in record if k not in headers)
    rows = [[truncate(str(r.get(h, "")), 24) for h in headers] for r in records]
    return [headers] + rows


# =============================================================================
# Commands
# =============================================================================


def cmd_status(tracker: Tracker, args) -> int:
    """Dashboard summary."""
    summary = tracker.dashboard_summary()
    print(f"Current odometer:  {format_km(summary.odometer)} km")
    print(f"Fuel spend:        {format_cost(summary.fuel_spend)}")
    print(f"Maintenance spend: {format_cost(summary.maintenance_spend)}")
    print(f"Other expenses:    {format_cost(summary.expense_total)}")
    print(f"Car savings:       {format_cost(summary.savings_total)}")
    if summary.efficiency:
        print(
            f"Average economy:   {summary.efficiency.km_per_liter:.2f} km/l "
            f"({summary.efficiency.liters_per_100km:.2f} l/100km)"
        )
    print(f"Services due:      {summary.due_reminders}")
    print()
    counts = [[name, count] for name, count in summary.record_counts.items()]
    print(tabulate(counts, headers=["Collection", "Records"], tablefmt="simple"))
    return 0


def print_reminders(reminders: List[Reminder], odometer: float) -> None:
    print(f"Current odometer: {format_km(odometer)} km (as of {date.today().isoformat()})")
    print()
    if not reminders:
        print("No upcoming services.")
        return

    headers = ["Id", "Service", "Last Done", "Due", "Remaining", "Supplier"]
    for status in ReminderStatus:
        group = [r for r in reminders if r.status == status]
        if group:
            print(f"{status.name}:")
            print(tabulate(make_reminder_table(group), headers=headers, tablefmt="simple"))
            print()


def cmd_reminders(tracker: Tracker, args) -> int:
    """Show what maintenance is due, overdue, or upcoming."""
    if not args.watch:
        print_reminders(tracker.get_upcoming_services(), tracker.current_odometer)
        return 0

    monitor = ReminderMonitor(
        scan=tracker.get_upcoming_services,
        callback=lambda reminders: print_reminders(reminders, tracker.current_odometer),
        interval=args.interval or tracker.config.refresh_seconds,
    )
    try:
        monitor.run()
    except KeyboardInterrupt:
        monitor.stop()
    return 0


def cmd_fuel(tracker: Tracker, args) -> int:
    """Fuel log with efficiency."""
    entries = tracker.list_records(FUEL)
    summary = tracker.get_efficiency_summary()

    print(f"Fill-ups: {len(entries)}")
    if summary:
        print(
            f"Average: {summary.km_per_liter:.2f} km/l, {summary.liters_per_100km:.2f} l/100km "
            f"over {summary.total_distance:,.0f} km"
        )
    print()
    if not entries:
        print("No fuel entries found.")
        return 0

    headers = ["Id", "Date", "Odometer", "Liters", "Price/l", "Total", "km/l", "l/100km"]
    print(tabulate(make_fuel_table(entries), headers=headers, tablefmt="simple"))
    return 0


def cmd_log_fuel(tracker: Tracker, args) -> int:
    """Add a fuel fill-up."""
    record = {
        "date": args.date or date.today().isoformat(),
        "odometer": args.odometer,
        "liters": args.liters,
        "pricePerLiter": args.price,
        "totalCost": args.total,
        "notes": args.notes,
    }
    print("Adding fuel entry:")
    print(f"  Date:     {record['date']}")
    print(f"  Odometer: {format_km(args.odometer)}")
    print(f"  Liters:   {format_cost(args.liters)}")
    print()

    if args.dry_run:
        print("(dry run - no changes made)")
        return 0

    entry_id = tracker.add_record(FUEL, record)
    print(f"Entry saved (id {entry_id}).")
    return 0


def cmd_log_maintenance(tracker: Tracker, args) -> int:
    """Add a maintenance record."""
    services = args.service or []
    trigger = next_service_arg(args.service_next_date, args.service_next_km)
    if trigger and services:
        services[-1]["nextService"] = trigger
    record = {
        "date": args.date or date.today().isoformat(),
        "odometer": args.odometer,
        "supplier": args.supplier,
        "services": services,
        "totalCost": args.total,
        "nextServiceKm": args.next_km,
        "nextServiceMonths": args.next_months,
    }
    record = {k: v for k, v in record.items() if v is not None}

    print("Adding maintenance record:")
    print(f"  Date:     {record['date']}")
    print(f"  Odometer: {format_km(args.odometer)}")
    for service in services:
        print(f"  Service:  {service['name']} ({format_cost(service.get('cost'))})")
    if args.supplier:
        print(f"  Supplier: {args.supplier}")
    print()

    if args.dry_run:
        print("(dry run - no changes made)")
        return 0

    maintenance_id, expense_id = tracker.add_maintenance(record, create_expense=args.expense)
    print(f"Record saved (id {maintenance_id}).")
    if expense_id is not None:
        print(f"Linked expense saved (id {expense_id}).")
    return 0


def cmd_complete(tracker: Tracker, args) -> int:
    """Mark a service complete."""
    trigger = next_service_arg(args.next_date, args.next_km)
    tracker.mark_complete(
        args.record_id,
        completed_on=args.date,
        odometer=args.odometer,
        next_service=trigger,
        service_name=args.service,
    )
    print(f"Maintenance {args.record_id} marked complete.")
    return 0


def cmd_update_odometer(tracker: Tracker, args) -> int:
    """Update current odometer."""
    old = tracker.current_odometer
    print(f"Current odometer: {format_km(old)}")
    print(f"New odometer:     {format_km(args.odometer)}")
    print()

    if args.dry_run:
        print("(dry run - no changes made)")
        return 0

    tracker.set_odometer(args.odometer)
    print("Odometer updated.")
    return 0


def cmd_savings(tracker: Tracker, args) -> int:
    """Savings totals and breakdown."""
    running = tracker.get_running_total(args.kind)
    breakdown = tracker.get_breakdown(args.kind)
    print(f"Total saved: {format_cost(running.total)} ({running.record_count} entries)")
    print(f"Last entry:  {running.last_updated}")
    if breakdown.goal:
        print(f"Goal:        {format_cost(breakdown.goal)} ({breakdown.progress:.1f}% reached)")
    print()
    rows = [[s.source, format_cost(s.amount), f"{s.percentage:.2f}%"] for s in breakdown.sources]
    if rows:
        print(tabulate(rows, headers=["Source", "Amount", "Share"], tablefmt="simple"))
    return 0


def cmd_report(tracker: Tracker, args) -> int:
    """Date-range report for savings, fuel or maintenance."""
    report = tracker.get_report(
        args.kind,
        start=args.start,
        end=args.end,
        min_price=args.min_price,
        max_price=args.max_price,
        supplier=args.supplier,
        service_type=args.service,
    )
    print(f"{args.kind} report: {report.start or 'first record'} to {report.end or 'latest'}")
    if args.kind == FUEL:
        print(f"Total cost:    {format_cost(report.total_cost)}")
        print(f"Total fuel:    {format_cost(report.total_liters)} l")
        print(f"Average price: {report.average_price:.3f}/l")
        if report.liters_per_100km is not None:
            print(f"Consumption:   {report.liters_per_100km:.2f} l/100km")
    elif args.kind == MAINTENANCE:
        print(f"Total cost:       {format_cost(report.total_cost)}")
        print(f"Visits:           {report.visits}")
        print(f"Services:         {report.service_count}")
        print(f"Unique suppliers: {report.supplier_count}")
    else:
        print(f"Total saved: {format_cost(report.total)} ({report.count} entries)")
    print()

    if not report.entries:
        print("No records in range.")
        return 0
    table = make_record_table(report.entries)
    print(tabulate(table[1:], headers=table[0], tablefmt="simple"))
    return 0


def cmd_add_saving(tracker: Tracker, args) -> int:
    """Add a savings entry."""
    record = {
        "date": args.date or date.today().isoformat(),
        "amount": args.amount,
        "description": args.description,
        "notes": args.notes,
    }
    entry_id = tracker.add_record(args.kind, record)
    total = tracker.get_running_total(args.kind)
    print(f"Entry saved (id {entry_id}). Total now {format_cost(total.total)}.")
    return 0


def cmd_list(tracker: Tracker, args) -> int:
    """List records of a collection."""
    records = tracker.list_records(args.collection, order_by=args.sort, descending=not args.asc)
    if not records:
        print(f"No {args.collection} records found.")
        return 0
    table = make_record_table(records)
    print(tabulate(table[1:], headers=table[0], tablefmt="simple"))
    return 0


def cmd_delete(tracker: Tracker, args) -> int:
    """Delete a record."""
    if tracker.get_record(args.collection, args.record_id) is None:
        print(f"Error: {args.collection} record {args.record_id} not found")
        return 1
    tracker.delete_record(args.collection, args.record_id)
    print(f"Deleted {args.collection} record {args.record_id}.")
    return 0


def cmd_export(tracker: Tracker, args) -> int:
    """Write a backup file."""
    bundle = tracker.export_all()
    output = args.output or Path(export_filename(args.format))
    if args.format == "csv":
        output.write_text(bundle_to_csv(bundle), encoding="utf-8")
    else:
        write_bundle(output, bundle)
    print(f"Exported to {output}")
    return 0


def cmd_import(tracker: Tracker, args) -> int:
    """Restore a backup file."""
    if not args.bundle_file.exists():
        print(f"Error: File not found: {args.bundle_file}")
        return 1
    report = tracker.import_all(read_bundle(args.bundle_file))
    for name in report.succeeded:
        print(f"OK:   {name} ({report.counts.get(name, 0)} records)")
    for name, message in report.failed.items():
        print(f"FAIL: {name}: {message}")
    return 0 if report.ok else 1


COMMANDS = {
    "status": cmd_status,
    "reminders": cmd_reminders,
    "fuel": cmd_fuel,
    "log-fuel": cmd_log_fuel,
    "log-maintenance": cmd_log_maintenance,
    "complete": cmd_complete,
    "update-odometer": cmd_update_odometer,
    "savings": cmd_savings,
    "add-saving": cmd_add_saving,
    "report": cmd_report,
    "list": cmd_list,
    "delete": cmd_delete,
    "export": cmd_export,
    "import": cmd_import,
}


# =============================================================================
# Main
# =============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Vehicle expense tracker",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s status
  %(prog)s reminders --watch
  %(prog)s log-fuel --odometer 41200 --liters 38.5 --price 1.82
  %(prog)s log-maintenance --odometer 41200 --service "Oil change:65" \\
      --service-next-km 51200 --supplier "Corner Garage" --expense
  %(prog)s complete 3 --odometer 51350 --next-km 61350
  %(prog)s add-saving 50 --description "Side job"
  %(prog)s report fuel --start 2025-01-01 --end 2025-03-31
  %(prog)s list maintenance --sort date
  %(prog)s export --format csv
""",
    )
    parser.add_argument("--data-dir", type=Path, help="Data directory (default: ~/.carbook)")
    parser.add_argument("--config", type=Path, help="Path to carbook.yaml")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at INFO level")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("status", help="Dashboard summary")

    reminders_parser = subparsers.add_parser(
        "reminders", help="Show maintenance due, overdue, or upcoming"
    )
    reminders_parser.add_argument(
        "--watch", action="store_true", help="Keep refreshing (Ctrl-C to stop)"
    )
    reminders_parser.add_argument(
        "--interval", type=float, help="Refresh interval in seconds (default: 60)"
    )

    subparsers.add_parser("fuel", help="Fuel log with efficiency")

    fuel_parser = subparsers.add_parser("log-fuel", help="Add a fuel fill-up")
    fuel_parser.add_argument("--date", type=str, help="Date (YYYY-MM-DD, default: today)")
    fuel_parser.add_argument("--odometer", type=float, required=True, help="Odometer (km)")
    fuel_parser.add_argument("--liters", type=float, help="Liters filled")
    fuel_parser.add_argument("--price", type=float, help="Price per liter")
    fuel_parser.add_argument("--total", type=float, help="Total cost")
    fuel_parser.add_argument("--notes", type=str, help="Notes")
    fuel_parser.add_argument("--dry-run", action="store_true", help="Show without saving")

    maint_parser = subparsers.add_parser("log-maintenance", help="Add a maintenance record")
    maint_parser.add_argument("--date", type=str, help="Date (YYYY-MM-DD, default: today)")
    maint_parser.add_argument("--odometer", type=float, required=True, help="Odometer (km)")
    maint_parser.add_argument(
        "--service",
        type=parse_service,
        action="append",
        help="Service as 'name[:cost]' (repeatable)",
    )
    maint_parser.add_argument(
        "--service-next-date", type=str, help="Next due date for the last --service"
    )
    maint_parser.add_argument(
        "--service-next-km", type=float, help="Next due odometer for the last --service"
    )
    maint_parser.add_argument("--supplier", type=str, help="Who did the work")
    maint_parser.add_argument("--total", type=float, help="Total cost (default: sum of services)")
    maint_parser.add_argument("--next-km", type=float, help="Next service after this many km")
    maint_parser.add_argument(
        "--next-months", type=float, help="Next service after this many months"
    )
    maint_parser.add_argument(
        "--expense", action="store_true", help="Also add a linked expense entry"
    )
    maint_parser.add_argument("--dry-run", action="store_true", help="Show without saving")

    complete_parser = subparsers.add_parser("complete", help="Mark a service complete")
    complete_parser.add_argument("record_id", type=int, help="Maintenance record id")
    complete_parser.add_argument("--service", type=str, help="Complete only this service line")
    complete_parser.add_argument("--date", type=str, help="Completion date (default: today)")
    complete_parser.add_argument("--odometer", type=float, help="Odometer at completion")
    complete_parser.add_argument("--next-date", type=str, help="Re-arm: next due date")
    complete_parser.add_argument("--next-km", type=float, help="Re-arm: next due odometer")

    odo_parser = subparsers.add_parser("update-odometer", help="Correct the odometer reading")
    odo_parser.add_argument("odometer", type=float, help="Current odometer (km)")
    odo_parser.add_argument("--dry-run", action="store_true", help="Show without saving")

    savings_parser = subparsers.add_parser("savings", help="Savings totals and breakdown")
    savings_parser.add_argument("--kind", choices=SAVINGS_KINDS, default=CAR_SAVINGS)

    saving_parser = subparsers.add_parser("add-saving", help="Add a savings entry")
    saving_parser.add_argument("amount", type=float, help="Amount saved")
    saving_parser.add_argument("--description", type=str, help="Source of the money")
    saving_parser.add_argument("--date", type=str, help="Date (default: today)")
    saving_parser.add_argument("--notes", type=str, help="Notes")
    saving_parser.add_argument("--kind", choices=SAVINGS_KINDS, default=CAR_SAVINGS)

    report_parser = subparsers.add_parser("report", help="Summary over a date range")
    report_parser.add_argument("kind", choices=REPORT_KINDS)
    report_parser.add_argument("--start", type=str, help="First date (YYYY-MM-DD)")
    report_parser.add_argument("--end", type=str, help="Last date (YYYY-MM-DD)")
    report_parser.add_argument("--min-price", type=float, help="Fuel: minimum price per liter")
    report_parser.add_argument("--max-price", type=float, help="Fuel: maximum price per liter")
    report_parser.add_argument("--supplier", type=str, help="Maintenance: supplier name contains")
    report_parser.add_argument("--service", type=str, help="Maintenance: service name contains")

    list_parser = subparsers.add_parser("list", help="List records of a collection")
    list_parser.add_argument("collection", choices=sorted(COLLECTIONS))
    list_parser.add_argument("--sort", type=str, help="Indexed field to sort by")
    list_parser.add_argument("--asc", action="store_true", help="Sort ascending")

    delete_parser = subparsers.add_parser("delete", help="Delete a record")
    delete_parser.add_argument("collection", choices=sorted(COLLECTIONS))
    delete_parser.add_argument("record_id", type=str, help="Record id")

    export_parser = subparsers.add_parser("export", help="Write a backup bundle")
    export_parser.add_argument("--format", choices=["json", "csv"], default="json")
    export_parser.add_argument("--output", type=Path, help="Output file (default: dated name)")

    import_parser = subparsers.add_parser("import", help="Restore a backup bundle")
    import_parser.add_argument("bundle_file", type=Path, help="JSON bundle file")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config, data_dir=args.data_dir)
        logging.basicConfig(
            level=logging.INFO if args.verbose else config.log_level_number,
            format="%(levelname)s %(name)s: %(message)s",
        )
        tracker = Tracker.open(config)
        return COMMANDS[args.command](tracker, args)
    except CarbookError as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main() or 0)
