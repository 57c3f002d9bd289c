"""
Categorization Module
"""
from .categorizers import CategoryConfig, CategoryRule, OrderCategorizer, ProductCategorizer
from .reconciler import build_tag_lookup, merge_tag_lookups

__all__ = [
    "CategoryConfig",
    "CategoryRule",
    "OrderCategorizer",
    "ProductCategorizer",
    "build_tag_lookup",
    "merge_tag_lookups",
]
