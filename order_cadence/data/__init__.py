"""
Domain Models and Synthetic Data Module
"""
from .generators import SnapshotGenerator
from .models import (
    Category,
    CategorizedOrdersDocument,
    ConfidenceLabel,
    Customer,
    LineItem,
    NextPurchasePrediction,
    Order,
    OrderFilter,
    OrderStatus,
    Product,
    ProductSummary,
    PurchaseSummary,
    SyncSummary,
)

__all__ = [
    "Category",
    "CategorizedOrdersDocument",
    "ConfidenceLabel",
    "Customer",
    "LineItem",
    "NextPurchasePrediction",
    "Order",
    "OrderFilter",
    "OrderStatus",
    "Product",
    "ProductSummary",
    "PurchaseSummary",
    "SnapshotGenerator",
    "SyncSummary",
]
