"""
Command-line entry point for the GP Inventory production core.

Usage:
    gp-inventory init-db
    gp-inventory stock 1 --store 2
    gp-inventory bom-tree 12
    gp-inventory unit-cost 12 --amount 40
    gp-inventory expiring 1 --days 7
"""

import argparse
import logging
import sys
from typing import List, Optional

from src.services import cost_service, ledger_service, production_service
from src.services.cost_service import BOMTreeNode
from src.services.database import init_database
from src.services.exceptions import ServiceError
from src.utils.config import get_config


def _print_tree(node: BOMTreeNode) -> None:
    indent = "  " * node.level
    optional = " (optional)" if node.is_optional else ""
    print(
        f"{indent}- [{node.type.value}] {node.name}: {node.quantity} {node.unit or ''} "
        f"@ {node.cost}{optional}"
    )
    for child in node.children:
        _print_tree(child)


def init_db_cmd() -> int:
    config = get_config()
    print(f"Initializing database at {config.database_url}...")
    init_database()
    print("Done.")
    return 0


def stock_cmd(business_id: int, store_id: Optional[int]) -> int:
    stocks = ledger_service.get_all_supply_stocks(business_id, store_id=store_id)
    if not stocks:
        print("No supplies found.")
        return 0
    for row in stocks:
        print(
            f"{row['supply_id']:>5}  {row['name']:<30} {row['current_stock']:>12} {row['unit']:<6} "
            f"min {row['minimum_stock']:<10} {row['status'].label}"
        )
    return 0


def bom_tree_cmd(component_id: int) -> int:
    _print_tree(cost_service.get_bom_tree(component_id))
    return 0


def unit_cost_cmd(component_id: int, amount: Optional[str]) -> int:
    unit_cost = cost_service.calculate_unit_cost(component_id)
    print(f"Unit cost: {unit_cost}")
    if amount is not None:
        print(f"Batch cost ({amount}): {cost_service.calculate_batch_cost(component_id, amount)}")
    return 0


def expiring_cmd(business_id: int, days: Optional[int]) -> int:
    batches = production_service.get_expiring_productions(business_id, days_ahead=days)
    if not batches:
        print("No batches expiring.")
        return 0
    for batch in batches:
        print(
            f"{batch.batch_number or '-':<30} component {batch.component_id:<6} "
            f"remaining {batch.remaining_amount:<10} expires {batch.expiration_date.isoformat()}"
        )
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="GP Inventory production core",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Create the database tables:
    gp-inventory init-db

  Stock summary for business 1:
    gp-inventory stock 1

  Cost of 40 units of component 12:
    gp-inventory unit-cost 12 --amount 40
""",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    subparsers.add_parser("init-db", help="Create database tables")

    stock_parser = subparsers.add_parser("stock", help="Supply stock summary for a business")
    stock_parser.add_argument("business_id", type=int)
    stock_parser.add_argument("--store", dest="store_id", type=int, help="Store filter")

    tree_parser = subparsers.add_parser("bom-tree", help="Print a component's BOM tree")
    tree_parser.add_argument("component_id", type=int)

    cost_parser = subparsers.add_parser("unit-cost", help="Unit cost of a component")
    cost_parser.add_argument("component_id", type=int)
    cost_parser.add_argument("--amount", help="Also print the cost of this many units")

    expiring_parser = subparsers.add_parser("expiring", help="Batches expiring soon")
    expiring_parser.add_argument("business_id", type=int)
    expiring_parser.add_argument(
        "--days", type=int, help="Days to look ahead (default: GP_INVENTORY_EXPIRING_DAYS)"
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 1

    try:
        if args.command == "init-db":
            return init_db_cmd()

        init_database()
        if args.command == "stock":
            return stock_cmd(args.business_id, args.store_id)
        elif args.command == "bom-tree":
            return bom_tree_cmd(args.component_id)
        elif args.command == "unit-cost":
            return unit_cost_cmd(args.component_id, args.amount)
        elif args.command == "expiring":
            return expiring_cmd(args.business_id, args.days)
        else:
            print(f"Unknown command: {args.command}")
            return 1
    except ServiceError as e:
        print(f"ERROR: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
