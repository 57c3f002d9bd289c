"""
Snapshot Dataset Generator
Writes a synthetic products/orders export for local sync runs
"""

import argparse
from pathlib import Path

from order_cadence.config import get_settings
from order_cadence.config.logging import configure_logging
from order_cadence.data.generators import SnapshotGenerator


def main():
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Generate a synthetic order snapshot")
    parser.add_argument("--products", type=int, default=60, help="Number of products")
    parser.add_argument("--customers", type=int, default=40, help="Number of customers")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    parser.add_argument(
        "--output-dir",
        default=str(Path(settings.sync.orders_path).parent),
        help="Directory for products.json and orders.ndjson",
    )
    args = parser.parse_args()

    configure_logging(verbose=args.verbose)

    print("=" * 60)
    print("Order Snapshot Generator")
    print("=" * 60)

    data = SnapshotGenerator(seed=args.seed).generate_all(
        n_products=args.products,
        n_customers=args.customers,
        output_dir=args.output_dir,
    )

    print(f"\nOutput: {args.output_dir}")
    print(f"   products: {len(data['products']):,}")
    print(f"   orders:   {len(data['orders']):,}")


if __name__ == "__main__":
    main()
