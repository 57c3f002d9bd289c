"""
Synchronization Module
"""
from .synchronizer import SnapshotSynchronizer, customers_with_recent_target_orders

__all__ = [
    "SnapshotSynchronizer",
    "customers_with_recent_target_orders",
]
