"""
Unit Tests - Snapshot Synchronizer
"""
import asyncio
from datetime import timedelta

import pytest

from order_cadence.data.models import Category, OrderFilter, OrderStatus
from order_cadence.exceptions import InvalidFilterError, PersistenceError, SourceFetchError
from order_cadence.sync.synchronizer import (
    SnapshotSynchronizer,
    customers_with_recent_target_orders,
    embed_product_tags,
)
from tests.conftest import (
    AUTOMATION_PRODUCT,
    BOTH_PRODUCT,
    DOG_EXTRA_PRODUCT,
    PLAIN_PRODUCT,
    RUN_AT,
    T0,
    InMemorySource,
    InMemoryStore,
    make_order,
    orders_every,
)


class FailingSource(InMemorySource):
    async def fetch_orders(self, filters):
        raise SourceFetchError("orders export unavailable")


class FailingStore(InMemoryStore):
    async def upsert(self, document):
        raise PersistenceError("store rejected write")


class SlowStoreFailingOnOne(InMemoryStore):
    """Rejects one customer immediately, writes the others after a delay"""

    def __init__(self, failing_id: int):
        super().__init__()
        self.failing_id = failing_id

    async def upsert(self, document):
        if document.customer_id == self.failing_id:
            raise PersistenceError(f"store rejected customer {self.failing_id}")
        await asyncio.sleep(0.05)
        return await super().upsert(document)


def synchronizer_for(source, store, config, clock, **kwargs):
    return SnapshotSynchronizer(source, store, config, clock=clock, **kwargs)


class TestSynchronize:
    """Tests for SnapshotSynchronizer.synchronize"""

    @pytest.mark.asyncio
    async def test_update_versus_create(self, category_config, sample_products, fixed_clock):
        """Test persisted ids {1, 2} against live customers {2, 3}"""
        orders = orders_every(2, [0, 10], start_id=1) + orders_every(3, [0, 10], start_id=10)
        store = InMemoryStore(existing={1, 2})
        sync = synchronizer_for(InMemorySource(sample_products, orders), store, category_config, fixed_clock)

        summary = await sync.synchronize(OrderFilter())

        assert sorted(summary.processed_customer_ids) == [2, 3]
        assert summary.updated_customer_ids == [2]
        assert summary.created_customer_ids == [3]
        assert summary.updated_count == 1
        assert summary.created_count == 1
        assert summary.processed_customers_count == 2
        assert 1 not in store.writes

    @pytest.mark.asyncio
    async def test_document_contents(self, category_config, sample_products, fixed_clock):
        """Test the document carries every category, predictions and filters"""
        orders = [
            make_order(1, 7, T0, product_ids=[AUTOMATION_PRODUCT, DOG_EXTRA_PRODUCT]),
            make_order(2, 7, T0 + timedelta(days=10), product_ids=[AUTOMATION_PRODUCT]),
        ]
        store = InMemoryStore()
        filters = OrderFilter(status=OrderStatus.CLOSED)
        sync = synchronizer_for(InMemorySource(sample_products, orders), store, category_config, fixed_clock)

        await sync.synchronize(filters)
        document = store.documents[7]

        assert document.customer.id == 7
        assert document.orders_per_category == {
            Category.AUTOMATION: 2,
            Category.DOG_EXTRA: 1,
            Category.DEFAULT: 0,
        }
        assert document.total_orders == 3
        assert document.filters == filters
        assert document.updated_at == RUN_AT
        assert document.predictions[Category.DEFAULT] is None
        assert document.predictions[Category.AUTOMATION].has_sufficient_data is True
        assert document.predictions[Category.AUTOMATION].calculated_at == RUN_AT

    @pytest.mark.asyncio
    async def test_single_order_bucket_is_insufficient(self, category_config, sample_products, fixed_clock):
        """Test a one-order bucket gets a prediction without sufficient data"""
        orders = [make_order(1, 7, T0, product_ids=[DOG_EXTRA_PRODUCT])]
        store = InMemoryStore()
        sync = synchronizer_for(InMemorySource(sample_products, orders), store, category_config, fixed_clock)

        await sync.synchronize()
        prediction = store.documents[7].predictions[Category.DOG_EXTRA]

        assert prediction.has_sufficient_data is False
        assert prediction.next_purchase_date is None
        assert prediction.confidence_level == 0.0

    @pytest.mark.asyncio
    async def test_embedded_orders_carry_merged_tags(self, category_config, sample_products, fixed_clock):
        """Test persisted line items carry merged product tags and no customer"""
        orders = [make_order(1, 7, T0, product_ids=[BOTH_PRODUCT, PLAIN_PRODUCT])]
        store = InMemoryStore()
        sync = synchronizer_for(InMemorySource(sample_products, orders), store, category_config, fixed_clock)

        await sync.synchronize()
        [embedded] = store.documents[7].orders_by_category[Category.AUTOMATION]

        assert embedded.customer is None
        assert embedded.line_items[0].product_tags == ["includeAutomation", "dogExtra1"]
        assert embedded.line_items[1].product_tags == []

    @pytest.mark.asyncio
    async def test_buckets_sorted_by_created_at(self, category_config, sample_products, fixed_clock):
        """Test persisted buckets are in ascending creation order"""
        orders = [make_order(1, 7, T0 + timedelta(days=5)), make_order(2, 7, T0)]
        store = InMemoryStore()
        sync = synchronizer_for(InMemorySource(orders=orders, products=sample_products), store, category_config, fixed_clock)

        await sync.synchronize()

        assert [o.id for o in store.documents[7].orders_by_category[Category.AUTOMATION]] == [2, 1]

    @pytest.mark.asyncio
    async def test_idempotent(self, category_config, sample_products):
        """Test two runs over identical data persist identical documents apart from timestamps"""
        orders = orders_every(7, [0, 10, 20, 30, 40]) + orders_every(8, [0, 3], start_id=50)
        store = InMemoryStore()
        times = iter([RUN_AT, RUN_AT, RUN_AT + timedelta(hours=1), RUN_AT + timedelta(hours=1)])
        sync = synchronizer_for(InMemorySource(sample_products, orders), store, category_config, lambda: next(times))

        await sync.synchronize()
        first = {cid: doc.model_dump_json(exclude={"updated_at", "predictions"}) for cid, doc in store.documents.items()}
        first_predictions = {
            cid: {c: p.model_dump(exclude={"calculated_at"}) if p else None for c, p in doc.predictions.items()}
            for cid, doc in store.documents.items()
        }

        summary = await sync.synchronize()
        second = {cid: doc.model_dump_json(exclude={"updated_at", "predictions"}) for cid, doc in store.documents.items()}
        second_predictions = {
            cid: {c: p.model_dump(exclude={"calculated_at"}) if p else None for c, p in doc.predictions.items()}
            for cid, doc in store.documents.items()
        }

        assert first == second
        assert first_predictions == second_predictions
        assert store.documents[7].updated_at == RUN_AT + timedelta(hours=1)
        assert summary.created_count == 0
        assert summary.updated_count == 2

    @pytest.mark.asyncio
    async def test_customer_ids_filter(self, category_config, sample_products, fixed_clock):
        """Test only the requested customers are written"""
        orders = orders_every(7, [0, 10]) + orders_every(8, [0, 10], start_id=20)
        store = InMemoryStore()
        sync = synchronizer_for(InMemorySource(sample_products, orders), store, category_config, fixed_clock)

        summary = await sync.synchronize(OrderFilter(customer_ids=[8]))

        assert summary.processed_customer_ids == [8]
        assert set(store.documents) == {8}

    @pytest.mark.asyncio
    async def test_concurrent_processing(self, category_config, sample_products, fixed_clock):
        """Test bounded concurrency writes each customer once"""
        orders = []
        for customer_id in range(1, 11):
            orders += orders_every(customer_id, [0, 7], start_id=customer_id * 100)
        store = InMemoryStore(existing={1, 2, 3})
        sync = synchronizer_for(
            InMemorySource(sample_products, orders), store, category_config, fixed_clock, max_concurrency=4
        )

        summary = await sync.synchronize()

        assert sorted(store.writes) == list(range(1, 11))
        assert sorted(summary.updated_customer_ids) == [1, 2, 3]
        assert summary.created_count == 7

    @pytest.mark.asyncio
    async def test_min_orders_filter(self, category_config, sample_products, fixed_clock):
        """Test customers below the minimum order count are not processed"""
        orders = orders_every(7, [0, 10, 20]) + orders_every(8, [0], start_id=20)
        store = InMemoryStore()
        sync = synchronizer_for(InMemorySource(sample_products, orders), store, category_config, fixed_clock)

        summary = await sync.synchronize(OrderFilter(min_orders_per_customer=3))

        assert summary.processed_customer_ids == [7]


class TestSynchronizeFailures:
    """Tests for filter validation and failure propagation"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("values", [
        {"limit": 0},
        {"min_orders_per_customer": 0},
        {"status": "shipped"},
        {"created_at_min": T0 + timedelta(days=1), "created_at_max": T0},
    ])
    async def test_invalid_filter_rejected_before_fetch(self, category_config, sample_products, fixed_clock, values):
        """Test out-of-range filters raise before anything is fetched"""
        source = InMemorySource(sample_products, [])
        sync = synchronizer_for(source, InMemoryStore(), category_config, fixed_clock)

        with pytest.raises(InvalidFilterError):
            await sync.synchronize(OrderFilter.model_construct(**values))

        assert source.fetch_calls == 0

    def test_validated_translates_validation_error(self):
        """Test filter construction errors surface as InvalidFilterError"""
        with pytest.raises(InvalidFilterError):
            OrderFilter.validated(limit=-5)

        with pytest.raises(ValueError):
            OrderFilter.validated(status="shipped")

    @pytest.mark.asyncio
    async def test_fetch_failure_propagates(self, category_config, sample_products, fixed_clock):
        """Test source errors abort the run unchanged"""
        store = InMemoryStore()
        sync = synchronizer_for(FailingSource(sample_products, []), store, category_config, fixed_clock)

        with pytest.raises(SourceFetchError):
            await sync.synchronize()

        assert store.writes == []

    @pytest.mark.asyncio
    async def test_persistence_failure_propagates(self, category_config, sample_products, fixed_clock):
        """Test store errors abort the run unchanged"""
        sync = synchronizer_for(
            InMemorySource(sample_products, orders_every(7, [0, 10])),
            FailingStore(),
            category_config,
            fixed_clock,
        )

        with pytest.raises(PersistenceError):
            await sync.synchronize()

    @pytest.mark.asyncio
    async def test_concurrent_failure_stops_remaining_writes(self, category_config, sample_products, fixed_clock):
        """Test a failed write under concurrency leaves no writes landing afterwards"""
        orders = []
        for customer_id in range(1, 6):
            orders += orders_every(customer_id, [0, 7], start_id=customer_id * 100)
        store = SlowStoreFailingOnOne(failing_id=1)
        sync = synchronizer_for(
            InMemorySource(sample_products, orders), store, category_config, fixed_clock, max_concurrency=5
        )

        with pytest.raises(PersistenceError):
            await sync.synchronize()
        await asyncio.sleep(0.2)

        assert store.writes == []

    def test_rejects_non_positive_concurrency(self, category_config, sample_products, fixed_clock):
        """Test concurrency must be at least one"""
        with pytest.raises(ValueError):
            synchronizer_for(InMemorySource(sample_products, []), InMemoryStore(), category_config, fixed_clock, max_concurrency=0)


class TestHelpers:
    """Tests for synchronizer helpers"""

    def test_embed_product_tags_leaves_original_untouched(self):
        """Test embedding returns a copy"""
        order = make_order(1, 7, T0)

        embedded = embed_product_tags(order, {AUTOMATION_PRODUCT: ["includeAutomation"]})

        assert embedded.line_items[0].product_tags == ["includeAutomation"]
        assert order.line_items[0].product_tags == []
        assert order.customer.id == 7

    @pytest.mark.asyncio
    async def test_customers_with_recent_target_orders(self, category_config, sample_products):
        """Test only recent orders touching a category count"""
        now = T0 + timedelta(days=30)
        orders = [
            make_order(1, 9, now - timedelta(hours=2)),
            make_order(2, 5, now - timedelta(hours=30)),
            make_order(3, 6, now - timedelta(hours=1), product_ids=[PLAIN_PRODUCT]),
            make_order(4, 4, now - timedelta(hours=100)),
        ]

        ids = await customers_with_recent_target_orders(
            InMemorySource(sample_products, orders), category_config, lookup_hours=48, now=now
        )

        assert ids == [5, 9]
