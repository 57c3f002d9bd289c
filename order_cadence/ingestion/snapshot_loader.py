"""
Snapshot File Source

Reads product and order exports from the commerce platform (JSON, NDJSON
or Parquet) and serves them through the ``OrderSource`` interface.

Filters are applied in the order the platform applies them: status and
creation window, then the result limit, then the minimum number of orders
per customer.
"""

import asyncio
from collections import Counter
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Union

import polars as pl
import structlog
from pydantic import ValidationError

from order_cadence.data.models import Order, OrderFilter, OrderStatus, Product
from order_cadence.exceptions import SourceFetchError

logger = structlog.get_logger(__name__)


class FileFormat(str, Enum):
    """Supported export formats"""
    JSON = "json"
    JSONL = "jsonl"
    NDJSON = "ndjson"
    PARQUET = "parquet"


def detect_format(path: Path) -> FileFormat:
    suffix = path.suffix.lstrip(".").lower()
    try:
        return FileFormat(suffix)
    except ValueError:
        raise ValueError(f"Unsupported file format: {path.suffix}") from None


def read_records(path: Union[str, Path]) -> List[Dict[str, Any]]:
    """Read an export file into plain row dictionaries"""
    path = Path(path)
    readers = {
        FileFormat.JSON: pl.read_json,
        FileFormat.JSONL: pl.read_ndjson,
        FileFormat.NDJSON: pl.read_ndjson,
        FileFormat.PARQUET: pl.read_parquet,
    }
    reader = readers[detect_format(path)]
    df = reader(path)
    logger.debug("Read export file", file=str(path), rows=len(df), columns=df.columns)
    return df.to_dicts()


def apply_order_filter(orders: List[Order], filters: OrderFilter) -> List[Order]:
    """Select the snapshot the filter describes"""
    selected = sorted(
        (order for order in orders if filters.matches(order)),
        key=lambda o: o.created_at,
    )

    if filters.limit is not None:
        selected = selected[:filters.limit]

    if filters.min_orders_per_customer:
        counts = Counter(order.customer_id for order in selected)
        selected = [
            order for order in selected
            if counts[order.customer_id] >= filters.min_orders_per_customer
        ]

    return selected


class SnapshotFileSource:
    """
    Order source backed by export files.

    Example:
        source = SnapshotFileSource("exports/products.json", "exports/orders.ndjson")
        orders = await source.fetch_orders(OrderFilter(status="closed"))
    """

    def __init__(
        self,
        products_path: Union[str, Path],
        orders_path: Union[str, Path],
    ):
        self.products_path = Path(products_path)
        self.orders_path = Path(orders_path)

    async def _load(self, path: Path, model):
        try:
            rows = await asyncio.to_thread(read_records, path)
            return [model.model_validate(row) for row in rows]
        except (OSError, pl.exceptions.PolarsError, ValidationError) as e:
            logger.error("Failed to read export", file=str(path), error=str(e))
            raise SourceFetchError(f"Failed to read {path}: {e}") from e

    async def fetch_products(self) -> List[Product]:
        products = await self._load(self.products_path, Product)
        logger.info("Fetched products", count=len(products))
        return products

    async def fetch_orders(self, filters: OrderFilter) -> List[Order]:
        orders = await self._load(self.orders_path, Order)
        selected = apply_order_filter(orders, filters)
        logger.info(
            "Fetched orders",
            total=len(orders),
            selected=len(selected),
            status=OrderStatus(filters.status).value,
        )
        return selected
