from __future__ import annotations

import argparse
import logging
import sys
from typing import Sequence

from posledger.application.container import AppContainer, build_container
from posledger.config import get_app_paths, load_settings
from posledger.domain.errors import AppError
from posledger.logging_config import setup_logging

log = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="posledger", description="Local point-of-sale ledger.")
    parser.add_argument("--store", help="Path to the SQLite store (defaults to the app data dir).")
    parser.add_argument("--settings", help="Optional JSON settings file.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Echo warnings to stderr.")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("products", help="List products.")
    sub.add_parser("sales", help="List the main sale log.")
    sub.add_parser("pending", help="List sales queued while offline.")
    sub.add_parser("sync", help="Move queued offline sales into the main log.")
    sub.add_parser("stats", help="Show dashboard totals.")

    p = sub.add_parser("export-products", help="Write the product catalog as CSV.")
    p.add_argument("path")

    p = sub.add_parser("export-sales", help="Write sales as CSV.")
    p.add_argument("path")
    p.add_argument("--month", help="Only sales from YYYY-MM.")
    p.add_argument("--exclude-pending", action="store_true", help="Leave out queued offline sales.")

    p = sub.add_parser("report", help="Write an Excel sales report.")
    p.add_argument("path")
    p.add_argument("--start", required=True, help="ISO start (inclusive).")
    p.add_argument("--end", required=True, help="ISO end (exclusive).")
    return parser


def _run(container: AppContainer, args: argparse.Namespace) -> None:
    if args.command == "products":
        for p in container.inventory.list_products():
            print(f"{p.id}\t{p.name}\t{p.category}\t{p.selling_price:.2f}\tstock={p.stock}")
    elif args.command == "sales":
        for s in container.sales.list_sales():
            print(f"{s.id}\t{s.created_at}\t{s.employee}\t{s.total:.2f}")
    elif args.command == "pending":
        for s in container.sales.list_pending_offline_sales():
            print(f"{s.id}\t{s.created_at}\t{s.employee}\t{s.total:.2f}")
    elif args.command == "sync":
        moved = container.sales.sync_pending_offline_sales()
        print(f"Synced {moved} offline sale(s).")
    elif args.command == "stats":
        stats = container.reporting.dashboard_stats()
        for key, value in stats.__dict__.items():
            print(f"{key}: {value}")
    elif args.command == "export-products":
        print(container.exports.write_products_csv(args.path))
    elif args.command == "export-sales":
        print(container.exports.write_sales_csv(args.path, month=args.month, include_pending=not args.exclude_pending))
    elif args.command == "report":
        container.reporting.export_sales_report_excel(args.path, args.start, args.end)
        print(args.path)


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    paths = get_app_paths()
    setup_logging(paths.logs_dir, level=logging.INFO, console=args.verbose)

    try:
        container = build_container(args.store or paths.store_path, settings=load_settings(args.settings))
        _run(container, args)
    except AppError as e:
        log.error("command_failed command=%s error=%s", args.command, e)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
