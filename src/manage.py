"""Marketplace management CLI.

Usage:
    python src/manage.py setup-db                      # Create all tables
    python src/manage.py drop-db                       # Drop all tables
    python src/manage.py reconcile-ratings             # Report rating drift
    python src/manage.py reconcile-ratings --fix       # Repair drifted products
    python src/manage.py reconcile-ratings --product P1 --product P2
"""

import argparse
import sys


def _domain():
    from marketplace.domain import marketplace

    print("Initializing marketplace domain...")
    marketplace.init()
    return marketplace


def setup_database():
    """Create database schema, including the active-review unique index."""
    from marketplace.utils.db import setup_db

    domain = _domain()
    print("Creating marketplace database schema...")
    setup_db(domain)
    print("Done.")


def drop_database():
    from marketplace.utils.db import drop_db

    domain = _domain()
    print("Dropping marketplace database schema...")
    drop_db(domain)
    print("Done.")


def reconcile_ratings(product_ids=None, fix=False) -> int:
    """Compare stored rating snapshots with their reviews. Returns an exit code."""
    from marketplace.ratings.reconciliation import RatingReconciler

    domain = _domain()
    with domain.domain_context():
        report = RatingReconciler().run(product_ids=product_ids, fix=fix)

    print(f"Checked {report.checked} product(s), {len(report.drifted)} drifted.")
    for drift in report.drifted:
        state = "repaired" if drift.repaired else "drifted"
        print(f"  {drift.product_id}: {state} ({', '.join(drift.fields)})")
    for product_id in report.failed:
        print(f"  {product_id}: repair failed")

    if report.failed or (report.drifted and not fix):
        return 1
    return 0


def main():
    parser = argparse.ArgumentParser(description="Marketplace management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    reconcile_parser = subparsers.add_parser("reconcile-ratings", help="Detect (and repair) rating drift")
    reconcile_parser.add_argument("--fix", action="store_true", help="Recompute drifted products")
    reconcile_parser.add_argument(
        "--product",
        action="append",
        dest="products",
        help="Product id to check (repeatable, default: all products)",
    )

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "reconcile-ratings":
        sys.exit(reconcile_ratings(args.products, fix=args.fix))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
