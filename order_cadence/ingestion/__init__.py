"""
Data Ingestion Module
"""
from .snapshot_loader import SnapshotFileSource, apply_order_filter, read_records
from .sources import DocumentStore, OrderSource

__all__ = [
    "DocumentStore",
    "OrderSource",
    "SnapshotFileSource",
    "apply_order_filter",
    "read_records",
]
