"""
Prefect Workflow Orchestration - Categorized Orders Sync

Scheduled workflow that rebuilds every active customer's categorized
orders document from the latest order snapshot:
- Filter window derived from the configured lookback
- Retries on source and database failures
- Summary of updated and created documents
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from prefect import flow, task, get_run_logger

from order_cadence.config import get_settings
from order_cadence.config.logging import configure_logging
from order_cadence.data.models import OrderFilter
from order_cadence.database import (
    CategorizedOrdersRepository,
    close_database,
    create_tables,
    get_session_factory,
    init_database,
)
from order_cadence.ingestion import SnapshotFileSource
from order_cadence.sync import SnapshotSynchronizer
from order_cadence.transformation import CategoryConfig

settings = get_settings()


# =============================================================================
# TASKS
# =============================================================================

@task(
    name="build_filters",
    description="Build the order snapshot filter from sync settings",
)
def build_filters(run_at: Optional[datetime] = None) -> OrderFilter:
    """Lookback window ending at ``run_at``"""
    logger = get_run_logger()
    run_at = run_at or datetime.now(timezone.utc)

    filters = OrderFilter.validated(
        status=settings.sync.order_status,
        limit=settings.sync.max_orders_limit,
        min_orders_per_customer=settings.sync.min_orders_per_customer,
        created_at_min=run_at - timedelta(hours=settings.sync.lookback_hours),
        created_at_max=run_at,
    )

    logger.info(
        f"Sync window: {filters.created_at_min.isoformat()} -> {filters.created_at_max.isoformat()}"
    )
    return filters


@task(
    name="run_synchronization",
    description="Categorize orders and upsert per-customer documents",
    retries=3,
    retry_delay_seconds=60,
)
async def run_synchronization(
    filters: OrderFilter,
    products_path: str,
    orders_path: str,
) -> dict:
    """Run one synchronization pass against the configured database"""
    logger = get_run_logger()

    engine = await init_database()
    try:
        await create_tables(engine)

        synchronizer = SnapshotSynchronizer(
            source=SnapshotFileSource(products_path, orders_path),
            repository=CategorizedOrdersRepository(get_session_factory()),
            config=CategoryConfig.from_settings(settings.categories),
            max_concurrency=settings.sync.max_concurrency,
        )
        summary = await synchronizer.synchronize(filters)
    finally:
        await close_database()

    logger.info(
        f"Synchronization complete: {summary.processed_customers_count} processed, "
        f"{summary.updated_count} updated, {summary.created_count} created"
    )
    return summary.model_dump(mode="json")


# =============================================================================
# FLOWS
# =============================================================================

@flow(
    name="sync_categorized_orders",
    description="Rebuild categorized orders documents and next purchase predictions",
    retries=1,
    retry_delay_seconds=300,
)
async def sync_categorized_orders(
    products_path: Optional[str] = None,
    orders_path: Optional[str] = None,
    run_at: Optional[datetime] = None,
) -> dict:
    """
    Categorized orders synchronization pipeline.

    Steps:
    1. Derive the snapshot filter from the lookback window
    2. Fetch, categorize and predict per customer
    3. Upsert one document per customer
    """
    logger = get_run_logger()
    configure_logging()

    filters = build_filters(run_at)
    try:
        summary = await run_synchronization(
            filters,
            products_path or settings.sync.products_path,
            orders_path or settings.sync.orders_path,
        )
    except Exception as e:
        logger.error(f"Categorized orders sync failed: {e}")
        raise

    return summary


# =============================================================================
# DEPLOYMENT CONFIGURATION
# =============================================================================

if __name__ == "__main__":
    import asyncio

    asyncio.run(sync_categorized_orders())
