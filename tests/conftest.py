"""
Test Suite Configuration
"""
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Set

import pytest
import pytest_asyncio

from order_cadence.config import Settings
from order_cadence.data.models import (
    CategorizedOrdersDocument,
    Category,
    Customer,
    LineItem,
    Order,
    OrderFilter,
    Product,
)
from order_cadence.database.connection import build_engine, build_session_factory
from order_cadence.database.models import Base
from order_cadence.database.repository import CategorizedOrdersRepository
from order_cadence.ingestion.snapshot_loader import apply_order_filter
from order_cadence.transformation.categorizers import CategoryConfig

T0 = datetime(2025, 1, 1, 10, 0, tzinfo=timezone.utc)
RUN_AT = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

AUTOMATION_PRODUCT = 101
DOG_EXTRA_PRODUCT = 202
BOTH_PRODUCT = 303
PLAIN_PRODUCT = 404


def make_order(
    order_id: int,
    customer_id: Optional[int],
    created_at: datetime,
    product_ids: Sequence[int] = (AUTOMATION_PRODUCT,),
    closed: bool = True,
) -> Order:
    """Build an order with one line item per product id"""
    return Order(
        id=order_id,
        order_number=order_id,
        customer=Customer(id=customer_id, email=f"c{customer_id}@example.com") if customer_id else None,
        created_at=created_at,
        closed_at=created_at + timedelta(days=1) if closed else None,
        line_items=[
            LineItem(id=order_id * 10 + i, product_id=pid, title=f"Product {pid}", quantity=1)
            for i, pid in enumerate(product_ids)
        ],
    )


def orders_every(customer_id: int, days: Sequence[int], start_id: int = 1, **kwargs) -> List[Order]:
    """Orders for one customer at T0 + each day offset"""
    return [
        make_order(start_id + i, customer_id, T0 + timedelta(days=d), **kwargs)
        for i, d in enumerate(days)
    ]


class InMemorySource:
    """Order source serving fixed lists"""

    def __init__(self, products: List[Product], orders: List[Order]):
        self.products = products
        self.orders = orders
        self.fetch_calls = 0

    async def fetch_products(self) -> List[Product]:
        self.fetch_calls += 1
        return list(self.products)

    async def fetch_orders(self, filters: OrderFilter) -> List[Order]:
        self.fetch_calls += 1
        return apply_order_filter(self.orders, filters)


class InMemoryStore:
    """Document store keeping documents in a dict"""

    def __init__(self, existing: Optional[Set[int]] = None):
        self.documents: Dict[int, CategorizedOrdersDocument] = {}
        self.existing = set(existing or ())
        self.writes: List[int] = []

    async def upsert(self, document: CategorizedOrdersDocument) -> bool:
        replaced = document.customer_id in self.existing or document.customer_id in self.documents
        self.documents[document.customer_id] = document
        self.existing.add(document.customer_id)
        self.writes.append(document.customer_id)
        return replaced

    async def list_existing_ids(self) -> Set[int]:
        return set(self.existing)


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        app_env="testing",
        debug=True,
    )


@pytest.fixture
def category_config() -> CategoryConfig:
    """Default category vocabulary"""
    return CategoryConfig.from_mapping({
        Category.AUTOMATION: ["includeAutomation"],
        Category.DOG_EXTRA: ["dogExtra1"],
        Category.DEFAULT: [],
    })


@pytest.fixture
def sample_products() -> List[Product]:
    """Products covering each category combination"""
    return [
        Product(id=AUTOMATION_PRODUCT, handle="auto-feeder", tags=["includeAutomation", "new"]),
        Product(id=DOG_EXTRA_PRODUCT, handle="dog-treats", tags="dogExtra1, sale"),
        Product(id=BOTH_PRODUCT, handle="smart-bowl", tags=["includeAutomation", "dogExtra1"]),
        Product(id=PLAIN_PRODUCT, handle="leash", tags=["sale"]),
    ]


@pytest.fixture
def fixed_clock():
    """Clock frozen at RUN_AT"""
    return lambda: RUN_AT


@pytest_asyncio.fixture
async def session_factory():
    """In-memory SQLite session factory with the schema created"""
    engine = build_engine("sqlite+aiosqlite:///:memory:")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield build_session_factory(engine)

    await engine.dispose()


@pytest.fixture
def repository(session_factory) -> CategorizedOrdersRepository:
    return CategorizedOrdersRepository(session_factory)
