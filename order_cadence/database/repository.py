"""
Categorized Orders Repository

Document store for per-customer categorized orders snapshots. Writes are
full replacements keyed by customer id; there is no partial update.
"""

from datetime import datetime
from typing import List, Optional, Set

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from order_cadence.data.models import CategorizedOrdersDocument
from order_cadence.database.models import CategorizedOrdersRecord
from order_cadence.exceptions import PersistenceError

logger = structlog.get_logger(__name__)


class CategorizedOrdersRepository:
    """
    Async SQLAlchemy repository for categorized orders documents.

    Example:
        repository = CategorizedOrdersRepository(get_session_factory())
        replaced = await repository.upsert(document)
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def upsert(self, document: CategorizedOrdersDocument) -> bool:
        """
        Insert the document or fully replace the customer's existing one.

        Returns:
            True if an existing document was replaced, False if inserted
        """
        payload = document.model_dump(mode="json")

        async with self.session_factory() as session:
            try:
                record = await session.get(CategorizedOrdersRecord, document.customer_id)
                replaced = record is not None

                if replaced:
                    record.document = payload
                    record.total_orders = document.total_orders
                    record.updated_at = document.updated_at
                else:
                    session.add(CategorizedOrdersRecord(
                        customer_id=document.customer_id,
                        document=payload,
                        total_orders=document.total_orders,
                        created_at=document.updated_at,
                        updated_at=document.updated_at,
                    ))

                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(
                    "Error saving categorized orders",
                    customer_id=document.customer_id,
                    error=str(e),
                )
                raise PersistenceError(
                    f"Failed to save categorized orders for customer {document.customer_id}"
                ) from e

        logger.info(
            "Updated categorized orders" if replaced else "Saved new categorized orders",
            customer_id=document.customer_id,
            total_orders=document.total_orders,
        )
        return replaced

    async def list_existing_ids(self) -> Set[int]:
        """Customer ids that already have a document"""
        async with self.session_factory() as session:
            try:
                result = await session.execute(select(CategorizedOrdersRecord.customer_id))
            except SQLAlchemyError as e:
                raise PersistenceError("Failed to list existing customer ids") from e
            return set(result.scalars().all())

    async def get_by_customer_id(self, customer_id: int) -> Optional[CategorizedOrdersDocument]:
        async with self.session_factory() as session:
            try:
                record = await session.get(CategorizedOrdersRecord, customer_id)
            except SQLAlchemyError as e:
                raise PersistenceError(f"Failed to read categorized orders for customer {customer_id}") from e

        if record is None:
            return None
        return CategorizedOrdersDocument.model_validate(record.document)

    async def list_all(self, limit: Optional[int] = None) -> List[CategorizedOrdersDocument]:
        """All documents, most recently updated first"""
        query = select(CategorizedOrdersRecord).order_by(CategorizedOrdersRecord.updated_at.desc())
        if limit is not None:
            query = query.limit(limit)
        return await self._fetch_documents(query)

    async def list_updated_between(self, start: datetime, end: datetime) -> List[CategorizedOrdersDocument]:
        """Documents last written within [start, end], most recent first"""
        query = (
            select(CategorizedOrdersRecord)
            .where(CategorizedOrdersRecord.updated_at >= start)
            .where(CategorizedOrdersRecord.updated_at <= end)
            .order_by(CategorizedOrdersRecord.updated_at.desc())
        )
        return await self._fetch_documents(query)

    async def delete_by_customer_id(self, customer_id: int) -> bool:
        """Remove a customer's document; True if one existed"""
        async with self.session_factory() as session:
            try:
                result = await session.execute(
                    delete(CategorizedOrdersRecord).where(CategorizedOrdersRecord.customer_id == customer_id)
                )
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise PersistenceError(f"Failed to delete categorized orders for customer {customer_id}") from e

        deleted = result.rowcount > 0
        if not deleted:
            logger.warning("No document found to delete", customer_id=customer_id)
        return deleted

    async def _fetch_documents(self, query) -> List[CategorizedOrdersDocument]:
        async with self.session_factory() as session:
            try:
                result = await session.execute(query)
            except SQLAlchemyError as e:
                raise PersistenceError("Failed to query categorized orders") from e
            records = result.scalars().all()

        logger.debug("Retrieved categorized orders documents", count=len(records))
        return [CategorizedOrdersDocument.model_validate(record.document) for record in records]
