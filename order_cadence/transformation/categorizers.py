"""
Product and Order Categorization

Classifies products into business categories by tag membership and
attributes each customer's orders to every category they touch.

Category membership is an exact, case-sensitive match against a fixed tag
vocabulary per category. The vocabulary is an immutable ``CategoryConfig``
value passed in by the caller.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

import structlog

from order_cadence.config.settings import CategorySettings, get_settings
from order_cadence.data.models import Category, Order, Product

logger = structlog.get_logger(__name__)

CustomerBuckets = Dict[int, Dict[Category, List[Order]]]


@dataclass(frozen=True)
class CategoryRule:
    """Tag predicate for a single category"""
    category: Category
    tags: FrozenSet[str]
    exclude_tags: FrozenSet[str] = frozenset()

    def matches(self, product_tags: Iterable[str]) -> bool:
        tag_set = set(product_tags)
        if tag_set & self.exclude_tags:
            return False
        return bool(tag_set & self.tags)


@dataclass(frozen=True)
class CategoryConfig:
    """Immutable category vocabulary"""
    rules: Tuple[CategoryRule, ...] = field(default_factory=tuple)

    @property
    def categories(self) -> Tuple[Category, ...]:
        return tuple(rule.category for rule in self.rules)

    @classmethod
    def from_mapping(
        cls,
        tags_by_category: Mapping[Category, Iterable[str]],
        exclusions: Optional[Mapping[Category, Iterable[str]]] = None,
    ) -> "CategoryConfig":
        exclusions = exclusions or {}
        return cls(rules=tuple(
            CategoryRule(
                category=category,
                tags=frozenset(tags),
                exclude_tags=frozenset(exclusions.get(category, ())),
            )
            for category, tags in tags_by_category.items()
        ))

    @classmethod
    def from_settings(cls, settings: Optional[CategorySettings] = None) -> "CategoryConfig":
        """Build the vocabulary from application settings"""
        settings = settings or get_settings().categories
        return cls.from_mapping(
            {
                Category.AUTOMATION: settings.automation_tags,
                Category.DOG_EXTRA: settings.dog_extra_tags,
                Category.DEFAULT: settings.default_tags,
            },
            exclusions={Category.AUTOMATION: settings.automation_exclude_tags},
        )


class ProductCategorizer:
    """
    Assigns products to zero or more categories.

    Example:
        categorizer = ProductCategorizer(CategoryConfig.from_settings())
        categorizer.categorize(product)  # frozenset({Category.AUTOMATION})
    """

    def __init__(self, config: CategoryConfig):
        self.config = config

    def categorize(self, product: Product) -> FrozenSet[Category]:
        """Categories whose tag predicate the product satisfies"""
        return frozenset(
            rule.category for rule in self.config.rules if rule.matches(product.tags)
        )

    def build_index(self, products: Iterable[Product]) -> Dict[int, FrozenSet[Category]]:
        """Product id -> categories, for categorized products only"""
        index = {}
        for product in products:
            categories = self.categorize(product)
            if categories:
                index[product.id] = categories
        return index

    def products_by_category(self, products: Iterable[Product]) -> Dict[Category, List[Product]]:
        """Products grouped per configured category, in source order"""
        grouped: Dict[Category, List[Product]] = {c: [] for c in self.config.categories}
        for product in products:
            for category in self.categorize(product):
                grouped[category].append(product)

        logger.info(
            "Products categorized",
            **{category.value: len(items) for category, items in grouped.items()},
        )
        return grouped


class OrderCategorizer:
    """
    Groups orders per customer and category.

    An order is attributed to every category touched by at least one of
    its line items; it is not deduplicated across categories. Line items
    referencing products missing from the index contribute nothing.
    """

    def categories_for(
        self,
        order: Order,
        product_category_index: Mapping[int, FrozenSet[Category]],
    ) -> Tuple[FrozenSet[Category], int]:
        """Categories touched by the order and the count of unknown product references"""
        touched = set()
        unknown = 0
        for product_id in order.product_ids():
            categories = product_category_index.get(product_id)
            if categories is None:
                unknown += 1
                continue
            touched.update(categories)
        return frozenset(touched), unknown

    def build_buckets(
        self,
        orders: Iterable[Order],
        product_category_index: Mapping[int, FrozenSet[Category]],
    ) -> CustomerBuckets:
        """
        Build per-customer category buckets.

        Args:
            orders: Orders in source order
            product_category_index: Product id -> categories

        Returns:
            customer id -> category -> orders, source order preserved
        """
        buckets: CustomerBuckets = defaultdict(lambda: defaultdict(list))
        unknown_references = 0
        orphan_orders = 0

        for order in orders:
            if order.customer_id is None:
                orphan_orders += 1
                continue

            categories, unknown = self.categories_for(order, product_category_index)
            unknown_references += unknown
            if unknown:
                logger.debug(
                    "Order references uncategorized products",
                    order_id=order.id,
                    unknown_line_items=unknown,
                )

            for category in sorted(categories, key=lambda c: c.value):
                buckets[order.customer_id][category].append(order)

        if orphan_orders:
            logger.warning("Skipped orders without customer", count=orphan_orders)

        logger.info(
            "Order buckets built",
            customers=len(buckets),
            unknown_product_references=unknown_references,
        )
        return {customer_id: dict(per_category) for customer_id, per_category in buckets.items()}
