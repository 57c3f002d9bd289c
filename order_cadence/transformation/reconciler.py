"""
Category Reconciler

Merges product id -> tag list lookups built from overlapping category
product sets. Tags are unioned per product id, de-duplicated, in order of
first occurrence.
"""

from typing import Dict, Iterable, List, Mapping

from order_cadence.data.models import Category, Product

TagLookup = Dict[int, List[str]]


def _dedupe(tags: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(tags))


def merge_tag_lookups(
    lookup_a: Mapping[int, List[str]],
    lookup_b: Mapping[int, List[str]],
) -> TagLookup:
    """
    Merge two tag lookups.

    Ids present in only one input pass through unchanged. Neither input
    is mutated.

    Example:
        merge_tag_lookups({1: ["a", "b"]}, {1: ["b", "c"]})
        # {1: ["a", "b", "c"]}
    """
    merged: TagLookup = {product_id: list(tags) for product_id, tags in lookup_a.items()}
    for product_id, tags in lookup_b.items():
        if product_id in merged:
            merged[product_id] = _dedupe(merged[product_id] + list(tags))
        else:
            merged[product_id] = list(tags)
    return merged


def build_tag_lookup(products_by_category: Mapping[Category, Iterable[Product]]) -> TagLookup:
    """Fold every category's product tags into one merged lookup"""
    lookup: TagLookup = {}
    for products in products_by_category.values():
        lookup = merge_tag_lookups(lookup, {product.id: list(product.tags) for product in products})
    return lookup
