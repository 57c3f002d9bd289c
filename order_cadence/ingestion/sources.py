"""
Collaborator interfaces consumed by the synchronizer.
"""

from typing import List, Protocol, Set, runtime_checkable

from order_cadence.data.models import CategorizedOrdersDocument, Order, OrderFilter, Product


@runtime_checkable
class OrderSource(Protocol):
    """Live source of orders and products"""

    async def fetch_orders(self, filters: OrderFilter) -> List[Order]:
        ...

    async def fetch_products(self) -> List[Product]:
        ...


@runtime_checkable
class DocumentStore(Protocol):
    """Persistence for categorized orders documents"""

    async def upsert(self, document: CategorizedOrdersDocument) -> bool:
        ...

    async def list_existing_ids(self) -> Set[int]:
        ...
