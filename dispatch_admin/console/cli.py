#!/usr/bin/env python3
"""
Read-only command line view of the workforce console.

Usage:
    # Active drivers
    python -m dispatch_admin.console.cli --user 1 list drivers

    # Cars of driver 17
    python -m dispatch_admin.console.cli --user 1 cars 17

    # Fired workers, newest first
    python -m dispatch_admin.console.cli --user 1 fired

    # One poll of unread badge counts
    python -m dispatch_admin.console.cli --user 1 unread

Environment:
    API_BASE_URL, API_TOKEN, LOG_LEVEL, LOG_JSON (see dispatch_admin.config)
"""
import argparse
import asyncio
import sys

from dispatch_admin.config import settings, validate_or_warn
from dispatch_admin.console.app import AdminConsole
from dispatch_admin.core.domain import WorkerRole
from dispatch_admin.infra.logging_config import setup_logging


def _print_workers(records) -> None:
    if not records:
        print("(none)")
        return
    for r in records:
        ended = f"  fired {r.end_date.isoformat()[:10]}" if r.end_date else ""
        extra = f"  license={r.license}" if r.role is WorkerRole.DRIVER else ("  admin" if r.is_admin else "")
        print(f"{r.id:>6}  {r.name:<28} {r.email:<32} {r.phone_number:<12}{extra}{ended}")


async def run(args: argparse.Namespace) -> int:
    console = AdminConsole.from_settings(user_id=args.user)
    try:
        if not await console.access.check(args.user):
            print("Access denied. Admin privileges are required.", file=sys.stderr)
            return 2

        if args.command == "list":
            role = WorkerRole.DRIVER if args.category == "drivers" else WorkerRole.DISPATCHER
            records = await console.workforce.list_active(role)
            if args.search:
                records = console.workforce.search(role, args.search)
            _print_workers(records)

        elif args.command == "cars":
            cars = await console.fleet.list_by_driver(args.driver_id)
            if not cars:
                print("(none)")
            for car in cars:
                print(f"{car.id or '-':>6}  {car.year or '':<5} {car.make} {car.model}  {car.license_plate}  {car.vin or ''}")

        elif args.command == "fired":
            state = await console.fired.load()
            if state.error:
                print(state.error, file=sys.stderr)
                return 1
            _print_workers(console.fired.records())

        elif args.command == "unread":
            counts = await console.unread.refresh()
            if not counts:
                print("No unread messages")
            for driver_id, count in sorted(counts.items()):
                print(f"driver {driver_id}: {count} unread")

        return 1 if console.errors else 0
    finally:
        await console.close()


def main():
    parser = argparse.ArgumentParser(
        description="Workforce console (read-only)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--user", "-u", required=True, help="Signed-in admin user id")
    sub = parser.add_subparsers(dest="command", required=True)

    p_list = sub.add_parser("list", help="Active dispatchers or drivers")
    p_list.add_argument("category", choices=["dispatchers", "drivers"])
    p_list.add_argument("--search", "-s", default="", help="Filter by name, email, phone or license")

    p_cars = sub.add_parser("cars", help="Cars of one driver")
    p_cars.add_argument("driver_id", type=int)

    sub.add_parser("fired", help="Fired dispatchers and drivers")
    sub.add_parser("unread", help="Unread message counts per driver")

    args = parser.parse_args()

    setup_logging(settings.log_level, settings.log_json)
    validate_or_warn(settings)

    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
