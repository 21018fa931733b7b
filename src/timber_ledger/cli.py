"""
Timber Ledger CLI

Command-line interface for the log inventory: purchases, production runs,
stock views and the ledger audit.

Usage Examples:
    # Create the database tables
    timber-ledger init-db

    # Load the default product catalog
    timber-ledger seed-catalog

    # Buy 100 logs of 100cm x 200cm at 1000 per point
    timber-ledger purchase --circumference 100 --length 200 --quantity 100 --price 1000

    # Draw 25 logs from log 1 and produce one piece of product 2
    timber-ledger produce --use 1:25 --output 2:1

    # Let the oldest logs cover 300 points
    timber-ledger produce --auto-volume 300 --output 2:1

    # Stock views and audit
    timber-ledger inventory --search LOG-17
    timber-ledger warehouse
    timber-ledger reconcile
"""

import argparse
import logging
import sys
from typing import List, Optional

from .services import api, log_service, product_service, production_service
from .services.database import get_default_store, init_database, reset_database, verify_database
from .services.exceptions import ServiceError
from .services.logging_utils import configure_logging


def _parse_pairs(values: List[str], first: str, second: str) -> List[dict]:
    """Turn ["3:25", "4:10"] into [{first: 3, second: 25}, ...]."""
    pairs = []
    for value in values or []:
        left, sep, right = value.partition(":")
        if not sep:
            raise argparse.ArgumentTypeError(f"Expected ID:QTY, got '{value}'")
        pairs.append({first: left.strip(), second: right.strip()})
    return pairs


def _print_error(result) -> int:
    print(f"ERROR [{result.error.code.value}]: {result.error.message}")
    for message in result.error.details.get("errors", []):
        print(f"  - {message}")
    return 1


def init_db_cmd(args) -> int:
    """Create all tables in the configured database (drop them first with --reset)."""
    if args.reset:
        reset_database(confirm=True)
    else:
        init_database()
    if not verify_database():
        print("ERROR: database tables are missing after initialization")
        return 1
    print("Database initialized.")
    return 0


def seed_catalog_cmd(store) -> int:
    """Insert the default product catalog (existing names are skipped)."""
    counts = product_service.seed_product_catalog(store)
    print(f"Catalog seeded: {counts['created']} created, {counts['existing']} already present")
    return 0


def purchase_cmd(store, args) -> int:
    payload = {
        "circumference": args.circumference,
        "length": args.length,
        "quantity": args.quantity,
        "market_price_per_unit": args.price,
        "supplier_id": args.supplier_id,
        "wood_type_id": args.wood_type_id,
        "tag_id": args.tag,
    }
    result = api.create_log_record(store, payload)
    if not result.success:
        return _print_error(result)

    log = result.data
    print(f"Recorded {log['tag_id']} (id {log['id']})")
    print(f"  Diameter:     {log['diameter']}")
    print(f"  Volume:       {log['volume_final']} pts (raw {log['volume_raw']})")
    print(f"  Total price:  {log['total_purchase_price']}")
    return 0


def produce_cmd(store, args) -> int:
    if args.auto_volume is not None:
        plan = api.auto_allocate(store, args.auto_volume)
        if not plan.success:
            return _print_error(plan)
        if not plan.data["fulfilled"]:
            print(f"ERROR: in-stock logs are short by {plan.data['shortfall']} pts")
            return 1
        allocations = plan.data["allocations"]
    else:
        allocations = args.use

    payload = {
        "allocations": allocations,
        "outputs": args.output,
        "batch_date": args.date,
    }
    result = api.record_production_run(store, payload)
    if not result.success:
        return _print_error(result)

    run = result.data
    print(f"Production batch {run['batch_id']} recorded")
    print(f"  Input:      {run['total_input']} pts")
    print(f"  Output:     {run['total_output']} pts")
    print(f"  Waste:      {run['waste']} pts")
    print(f"  Efficiency: {run['efficiency']}%")
    for allocation in run["allocations"]:
        print(
            f"  {allocation['tag_id']}: -{allocation['qty_used']} "
            f"-> {allocation['remaining_quantity']} left ({allocation['status']})"
        )
    return 0


def inventory_cmd(store, args) -> int:
    if args.in_stock:
        logs = log_service.get_in_stock_logs(store)
        kpis = None
    else:
        inventory = log_service.get_inventory(store, search=args.search)
        logs, kpis = inventory["logs"], inventory["kpis"]

    for log in logs:
        print(
            f"{log['tag_id']:<22} {log['status']:<9} "
            f"{log['remaining_quantity']:>5}/{log['original_quantity']:<5} "
            f"{log['volume_final']:>8} pts  {log['total_purchase_price']}"
        )
    if kpis is not None:
        print(
            f"Logs: {kpis['total_logs']}  Volume: {kpis['total_volume']} pts  "
            f"Value: {kpis['total_value']}  Remaining value: {kpis['remaining_value']}"
        )
    return 0


def warehouse_cmd(store) -> int:
    warehouse = product_service.get_product_inventory(store)
    for product in warehouse["products"]:
        print(
            f"{product['name']:<24} {product['sku'] or '-':<8} "
            f"{product['stock_count']:>6} pcs  {product['stock_volume']:>10} pts"
        )
    kpis = warehouse["kpis"]
    print(
        f"Products: {kpis['product_count']}  Units: {kpis['total_units']}  "
        f"Volume: {kpis['total_volume']} pts"
    )
    return 0


def history_cmd(store, args) -> int:
    for batch in production_service.get_production_history(store, limit=args.limit):
        print(
            f"#{batch['id']:<5} {batch['batch_date']}  in {batch['target_volume']} pts  "
            f"out {batch['total_output']} pts  efficiency {batch['efficiency']}%"
        )
    return 0


def reconcile_cmd(store, args) -> int:
    result = api.reconcile(store, args.tolerance)
    if not result.success:
        return _print_error(result)

    report = result.data
    print(f"Physical inventory value: {report['physical_value']}")
    print(f"Ledger transaction value: {report['ledger_value']}")
    if report["passed"]:
        print("AUDIT PASSED")
        return 0

    print(f"AUDIT FAILED: discrepancy of {report['discrepancy']}")
    for drift in report["log_discrepancies"]:
        print(
            f"  {drift['tag_id']}: physical {drift['physical_value']} "
            f"vs ledger {drift['ledger_value']}"
        )
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="timber-ledger",
        description="Timber log inventory, production and ledger audit",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__.split("Usage Examples:")[1],
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    init_parser = subparsers.add_parser("init-db", help="Create database tables")
    init_parser.add_argument(
        "--reset", action="store_true", help="Drop all tables first (deletes all data)"
    )
    subparsers.add_parser("seed-catalog", help="Load the default product catalog")

    purchase_parser = subparsers.add_parser("purchase", help="Record a log purchase")
    purchase_parser.add_argument("--circumference", required=True, help="Circumference per log (cm)")
    purchase_parser.add_argument("--length", required=True, help="Length per log (cm)")
    purchase_parser.add_argument("--quantity", required=True, help="Number of logs")
    purchase_parser.add_argument("--price", required=True, help="Market price per point")
    purchase_parser.add_argument("--supplier-id", help="Supplier ID")
    purchase_parser.add_argument("--wood-type-id", help="Wood type ID")
    purchase_parser.add_argument("--tag", help="Tag ID (generated when omitted)")

    produce_parser = subparsers.add_parser("produce", help="Record a production run")
    source = produce_parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--use",
        action="append",
        metavar="LOG_ID:QTY",
        help="Draw QTY logs from LOG_ID (repeatable)",
    )
    source.add_argument(
        "--auto-volume",
        type=float,
        metavar="POINTS",
        help="Draw the oldest logs until POINTS are covered",
    )
    produce_parser.add_argument(
        "--output",
        action="append",
        default=[],
        metavar="PRODUCT_ID:QTY",
        help="Produce QTY pieces of PRODUCT_ID (repeatable)",
    )
    produce_parser.add_argument("--date", help="Batch date (ISO format, default now)")

    inventory_parser = subparsers.add_parser("inventory", help="List logs with KPIs")
    inventory_parser.add_argument("--search", help="Filter by tag substring")
    inventory_parser.add_argument(
        "--in-stock", action="store_true", help="Only logs with units left, oldest first"
    )

    subparsers.add_parser("warehouse", help="Finished goods stock")

    history_parser = subparsers.add_parser("history", help="Production history")
    history_parser.add_argument("--limit", type=int, default=20, help="Batches to show")

    reconcile_parser = subparsers.add_parser("reconcile", help="Audit ledger against stock")
    reconcile_parser.add_argument("--tolerance", help="Accepted discrepancy")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    configure_logging(logging.DEBUG if args.verbose else logging.WARNING)

    if args.command == "init-db":
        return init_db_cmd(args)

    try:
        if args.command == "produce":
            args.use = _parse_pairs(args.use, "log_id", "qty_used")
            args.output = _parse_pairs(args.output, "product_type_id", "quantity")
    except argparse.ArgumentTypeError as e:
        print(f"ERROR: {e}")
        return 1

    store = get_default_store()

    try:
        if args.command == "seed-catalog":
            return seed_catalog_cmd(store)
        elif args.command == "purchase":
            return purchase_cmd(store, args)
        elif args.command == "produce":
            return produce_cmd(store, args)
        elif args.command == "inventory":
            return inventory_cmd(store, args)
        elif args.command == "warehouse":
            return warehouse_cmd(store)
        elif args.command == "history":
            return history_cmd(store, args)
        elif args.command == "reconcile":
            return reconcile_cmd(store, args)
    except ServiceError as e:
        print(f"ERROR [{e.code.value}]: {e}")
        return 1

    print(f"Unknown command: {args.command}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
