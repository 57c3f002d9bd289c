"""
Snapshot Synchronizer

Turns a live fetch of orders and products into one persisted categorized
orders document per customer:

1. Validate filters (before any fetch)
2. Fetch products and orders from the source
3. Capture the persisted customer ids once, before any write
4. Categorize products, bucket orders per customer and category, and
   merge category tag metadata into one lookup
5. Predict the next purchase for every non-empty bucket and upsert the
   customer's document
6. Report which customers were updated and which were created

Fetch and persistence failures propagate unchanged and abort the run.
Every write is a full replace, so a failed run can simply be re-run.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, FrozenSet, List, Optional, Set

import structlog

from order_cadence.data.models import (
    Category,
    CategorizedOrdersDocument,
    LineItem,
    NextPurchasePrediction,
    Order,
    OrderFilter,
    OrderStatus,
    SyncSummary,
)
from order_cadence.ingestion.sources import DocumentStore, OrderSource
from order_cadence.ml.prediction import build_prediction
from order_cadence.transformation.categorizers import (
    CategoryConfig,
    OrderCategorizer,
    ProductCategorizer,
)
from order_cadence.transformation.reconciler import TagLookup, build_tag_lookup

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def embed_product_tags(order: Order, tag_lookup: TagLookup) -> Order:
    """Copy of the order without its customer, line items annotated with merged tags"""
    line_items: List[LineItem] = [
        item.model_copy(update={"product_tags": list(tag_lookup[item.product_id])})
        if item.product_id in tag_lookup else item
        for item in order.line_items
    ]
    return order.model_copy(update={"customer": None, "line_items": line_items})


class SnapshotSynchronizer:
    """
    Orchestrates a full categorized orders synchronization pass.

    Example:
        synchronizer = SnapshotSynchronizer(
            source=SnapshotFileSource(products_path, orders_path),
            repository=CategorizedOrdersRepository(get_session_factory()),
            config=CategoryConfig.from_settings(),
        )
        summary = await synchronizer.synchronize(OrderFilter(status="any"))
    """

    def __init__(
        self,
        source: OrderSource,
        repository: DocumentStore,
        config: CategoryConfig,
        clock: Clock = utc_now,
        max_concurrency: int = 1,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.source = source
        self.repository = repository
        self.config = config
        self.clock = clock
        self.max_concurrency = max_concurrency
        self.product_categorizer = ProductCategorizer(config)
        self.order_categorizer = OrderCategorizer()

    def build_document(
        self,
        customer_orders: Dict[Category, List[Order]],
        tag_lookup: TagLookup,
        category_product_ids: Dict[Category, Set[int]],
        filters: OrderFilter,
        updated_at: datetime,
    ) -> CategorizedOrdersDocument:
        """Assemble one customer's document from its category buckets"""
        orders_by_category: Dict[Category, List[Order]] = {}
        predictions: Dict[Category, Optional[NextPurchasePrediction]] = {}
        customer = None

        for category in self.config.categories:
            bucket = sorted(customer_orders.get(category, []), key=lambda o: o.created_at)
            if customer is None and bucket:
                customer = bucket[0].customer

            orders_by_category[category] = [embed_product_tags(order, tag_lookup) for order in bucket]
            predictions[category] = build_prediction(
                category,
                bucket,
                category_product_ids[category],
                tag_lookup,
                calculated_at=updated_at,
            ) if bucket else None

        return CategorizedOrdersDocument(
            customer_id=customer.id,
            customer=customer,
            orders_by_category=orders_by_category,
            predictions=predictions,
            updated_at=updated_at,
            filters=filters,
        )

    async def synchronize(self, filters: Optional[OrderFilter] = None) -> SyncSummary:
        """
        Run one synchronization pass.

        Args:
            filters: Snapshot selection; out-of-range values raise
                InvalidFilterError before anything is fetched

        Returns:
            SyncSummary with processed, updated and created customer ids
        """
        filters = (filters or OrderFilter()).ensure_valid()
        started_at = self.clock()

        logger.info(
            "Starting categorized orders synchronization",
            status=OrderStatus(filters.status).value,
            limit=filters.limit,
            min_orders_per_customer=filters.min_orders_per_customer,
            created_at_min=filters.created_at_min.isoformat() if filters.created_at_min else None,
            created_at_max=filters.created_at_max.isoformat() if filters.created_at_max else None,
            customer_ids=len(filters.customer_ids) if filters.customer_ids else None,
        )

        products = await self.source.fetch_products()
        orders = await self.source.fetch_orders(filters)
        existing_ids: FrozenSet[int] = frozenset(await self.repository.list_existing_ids())

        products_by_category = self.product_categorizer.products_by_category(products)
        category_index = self.product_categorizer.build_index(products)
        category_product_ids = {
            category: {product.id for product in items}
            for category, items in products_by_category.items()
        }
        tag_lookup = build_tag_lookup(products_by_category)

        buckets = self.order_categorizer.build_buckets(orders, category_index)
        if filters.customer_ids:
            wanted = set(filters.customer_ids)
            buckets = {cid: b for cid, b in buckets.items() if cid in wanted}

        logger.info(
            "Processing customers",
            customers=len(buckets),
            existing_documents=len(existing_ids),
        )

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def process(customer_id: int) -> int:
            async with semaphore:
                document = self.build_document(
                    buckets[customer_id],
                    tag_lookup,
                    category_product_ids,
                    filters,
                    updated_at=started_at,
                )
                await self.repository.upsert(document)
                logger.debug(
                    "Saved categorized orders",
                    customer_id=customer_id,
                    total_orders=document.total_orders,
                )
                return customer_id

        customer_ids = list(buckets)
        if self.max_concurrency == 1:
            processed = [await process(customer_id) for customer_id in customer_ids]
        else:
            # First failure cancels the remaining writes before the error surfaces
            try:
                async with asyncio.TaskGroup() as group:
                    tasks = [group.create_task(process(cid)) for cid in customer_ids]
            except BaseExceptionGroup as failures:
                raise failures.exceptions[0] from None
            processed = [task.result() for task in tasks]

        summary = SyncSummary(
            processed_customer_ids=processed,
            updated_customer_ids=[cid for cid in processed if cid in existing_ids],
            created_customer_ids=[cid for cid in processed if cid not in existing_ids],
            processed_at=self.clock(),
        )

        logger.info(
            "Categorized orders synchronization complete",
            processed=summary.processed_customers_count,
            updated=summary.updated_count,
            created=summary.created_count,
        )
        return summary


async def customers_with_recent_target_orders(
    source: OrderSource,
    config: CategoryConfig,
    lookup_hours: int,
    now: Optional[datetime] = None,
) -> List[int]:
    """
    Customers with an order in the last ``lookup_hours`` touching any category.

    Returns:
        Sorted distinct customer ids
    """
    now = now or utc_now()
    filters = OrderFilter(created_at_min=now - timedelta(hours=lookup_hours), created_at_max=now)

    products = await source.fetch_products()
    orders = await source.fetch_orders(filters)
    index = ProductCategorizer(config).build_index(products)

    customer_ids = {
        order.customer_id
        for order in orders
        if order.customer_id is not None
        and any(product_id in index for product_id in order.product_ids())
    }

    logger.info(
        "Found customers with target products in recent orders",
        customers=len(customer_ids),
        lookup_hours=lookup_hours,
    )
    return sorted(customer_ids)
