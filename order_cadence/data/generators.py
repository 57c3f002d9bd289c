"""
Synthetic Snapshot Generator

Generates realistic product and order exports for development and for
exercising the synchronization pipeline end to end:
- Products tagged with the category vocabulary (and noise tags)
- Customers with a characteristic reorder cadence per category
- Orders whose line items may span several categories
"""

import random
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import polars as pl
import structlog
from faker import Faker

from order_cadence.config import get_settings

logger = structlog.get_logger(__name__)


# =============================================================================
# CONFIGURATION
# =============================================================================

CATEGORY_TAGS = {
    "automation": ["includeAutomation"],
    "dog_extra": ["dogExtra1"],
}

NOISE_TAGS = ["new", "sale", "bestseller", "bundle", "limited", "organic"]

# (weight, mean days between orders, jitter in days)
CADENCE_PROFILES = {
    "regular": (0.45, 30, 2),
    "occasional": (0.35, 60, 15),
    "erratic": (0.20, 45, 40),
}


# =============================================================================
# GENERATORS
# =============================================================================

class ProductGenerator:
    """Generate products with category and noise tags"""

    def __init__(self, rng: random.Random, fake: Faker):
        self.rng = rng
        self.fake = fake

    def generate(self, n: int = 60) -> List[Dict]:
        products = []
        for i in range(n):
            roll = self.rng.random()
            if roll < 0.3:
                tags = list(CATEGORY_TAGS["automation"])
            elif roll < 0.5:
                tags = list(CATEGORY_TAGS["dog_extra"])
            elif roll < 0.55:
                tags = CATEGORY_TAGS["automation"] + CATEGORY_TAGS["dog_extra"]
            else:
                tags = []
            tags += self.rng.sample(NOISE_TAGS, k=self.rng.randint(0, 2))

            products.append({
                "id": 1000 + i,
                "handle": f"{self.fake.slug()}-{i}",
                "tags": ", ".join(tags),
            })
        return products


class OrderGenerator:
    """Generate customer orders following a per-customer reorder cadence"""

    def __init__(self, rng: random.Random, fake: Faker, products: List[Dict]):
        self.rng = rng
        self.fake = fake
        self.products = products
        self._next_order_id = 500000
        self._next_line_id = 900000

    def _pick_profile(self) -> Tuple[int, int]:
        names = list(CADENCE_PROFILES)
        weights = [CADENCE_PROFILES[name][0] for name in names]
        _, mean_days, jitter = CADENCE_PROFILES[self.rng.choices(names, weights=weights)[0]]
        return mean_days, jitter

    def _customer(self, customer_id: int) -> Dict:
        return {
            "id": customer_id,
            "email": self.fake.email(),
            "first_name": self.fake.first_name(),
            "last_name": self.fake.last_name(),
            "phone": self.fake.phone_number(),
            "tags": [],
        }

    def _line_items(self) -> List[Dict]:
        items = []
        for product in self.rng.sample(self.products, k=self.rng.randint(1, 3)):
            items.append({
                "id": self._next_line_id,
                "product_id": product["id"],
                "title": product["handle"].replace("-", " ").title(),
                "quantity": self.rng.randint(1, 4),
                "price": f"{self.rng.uniform(5, 120):.2f}",
            })
            self._next_line_id += 1
        return items

    def generate(self, n_customers: int = 40, end: Optional[datetime] = None) -> List[Dict]:
        end = end or datetime.now(timezone.utc)
        orders = []

        for customer_index in range(n_customers):
            customer = self._customer(7000 + customer_index)
            mean_days, jitter = self._pick_profile()
            n_orders = self.rng.randint(1, 8)

            created_at = end - timedelta(days=mean_days * n_orders)
            for _ in range(n_orders):
                created_at += timedelta(days=max(1, mean_days + self.rng.randint(-jitter, jitter)))
                if created_at > end:
                    break

                closed = self.rng.random() < 0.7
                cancelled = not closed and self.rng.random() < 0.1
                orders.append({
                    "id": self._next_order_id,
                    "order_number": self._next_order_id - 499000,
                    "customer": customer,
                    "created_at": created_at.isoformat(),
                    "closed_at": (created_at + timedelta(days=3)).isoformat() if closed else None,
                    "cancelled_at": (created_at + timedelta(hours=6)).isoformat() if cancelled else None,
                    "total_price": f"{self.rng.uniform(20, 400):.2f}",
                    "line_items": self._line_items(),
                })
                self._next_order_id += 1

        return orders


class SnapshotGenerator:
    """
    Generate a complete product/order export.

    Example:
        SnapshotGenerator(seed=42).generate_all(output_dir="data/snapshot")
    """

    def __init__(self, seed: int = 42):
        self.rng = random.Random(seed)
        self.fake = Faker()
        self.fake.seed_instance(seed)

    def generate_all(
        self,
        n_products: int = 60,
        n_customers: int = 40,
        output_dir: Optional[str] = None,
        end: Optional[datetime] = None,
    ) -> Dict[str, List[Dict]]:
        products = ProductGenerator(self.rng, self.fake).generate(n_products)
        orders = OrderGenerator(self.rng, self.fake, products).generate(n_customers, end=end)

        logger.info("Generated snapshot", products=len(products), orders=len(orders))

        data = {"products": products, "orders": orders}
        if output_dir is not None:
            self.save(data, Path(output_dir))
        return data

    def save(self, data: Dict[str, List[Dict]], output_dir: Path) -> Tuple[Path, Path]:
        """Write products as JSON and orders as NDJSON"""
        settings = get_settings()
        output_dir.mkdir(parents=True, exist_ok=True)

        products_path = output_dir / Path(settings.sync.products_path).name
        orders_path = output_dir / Path(settings.sync.orders_path).name

        pl.DataFrame(data["products"]).write_json(products_path)
        pl.DataFrame(data["orders"]).write_ndjson(orders_path)

        logger.info("Saved snapshot", products=str(products_path), orders=str(orders_path))
        return products_path, orders_path
