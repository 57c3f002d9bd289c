"""
Domain Models

Pydantic models for the records fetched from the commerce platform and for
the per-customer categorized orders documents built from them.

Fetched records (customers, products, orders) are frozen: they are never
modified within a run. Derived copies are produced with ``model_copy``.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    computed_field,
    field_validator,
    model_validator,
)

from order_cadence.exceptions import InvalidFilterError


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps as UTC so that all comparisons are aware"""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def split_tags(value) -> List[str]:
    """Accept the platform's comma separated tag string; null means no tags"""
    if value is None:
        return []
    if isinstance(value, str):
        return [t.strip() for t in value.split(",") if t.strip()]
    return value


# =============================================================================
# ENUMERATIONS
# =============================================================================

class Category(str, Enum):
    """Business-defined product categories"""
    AUTOMATION = "Automation"
    DOG_EXTRA = "DogExtra"
    DEFAULT = "Default"


class OrderStatus(str, Enum):
    """Order status filter values"""
    ANY = "any"
    OPEN = "open"
    CLOSED = "closed"
    CANCELLED = "cancelled"


class ConfidenceLabel(str, Enum):
    """Human-readable prediction reliability"""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


# =============================================================================
# FETCHED RECORDS
# =============================================================================

class Customer(BaseModel):
    """Customer snapshot as fetched with an order"""
    model_config = ConfigDict(frozen=True)

    id: int
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    tags: List[str] = Field(default_factory=list)

    normalize_tags = field_validator("tags", mode="before")(split_tags)


class Product(BaseModel):
    """Product with its ordered tag list"""
    model_config = ConfigDict(frozen=True)

    id: int
    handle: str = ""
    tags: List[str] = Field(default_factory=list)

    normalize_tags = field_validator("tags", mode="before")(split_tags)


class LineItem(BaseModel):
    """Single order line referencing a product"""
    model_config = ConfigDict(frozen=True)

    id: int
    product_id: Optional[int] = None
    title: str = ""
    quantity: int = 1
    price: str = "0.00"
    product_tags: List[str] = Field(default_factory=list)

    @field_validator("title", "price", "quantity", mode="before")
    @classmethod
    def null_as_default(cls, v, info: ValidationInfo):
        """Exports null-fill fields missing from some line items"""
        if v is None:
            return cls.model_fields[info.field_name].default
        return v


class Order(BaseModel):
    """Order with its line items and owning customer"""
    model_config = ConfigDict(frozen=True)

    id: int
    customer: Optional[Customer] = None
    created_at: datetime
    line_items: List[LineItem] = Field(default_factory=list)
    order_number: Optional[int] = None
    total_price: str = "0.00"
    closed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @field_validator("total_price", "line_items", mode="before")
    @classmethod
    def null_as_empty(cls, v, info: ValidationInfo):
        if v is None:
            return "0.00" if info.field_name == "total_price" else []
        return v

    @field_validator("created_at", "closed_at", "cancelled_at")
    @classmethod
    def normalize_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    @property
    def customer_id(self) -> Optional[int]:
        return self.customer.id if self.customer else None

    @property
    def status(self) -> OrderStatus:
        """Derived platform status"""
        if self.cancelled_at is not None:
            return OrderStatus.CANCELLED
        if self.closed_at is not None:
            return OrderStatus.CLOSED
        return OrderStatus.OPEN

    def product_ids(self) -> List[int]:
        return [item.product_id for item in self.line_items if item.product_id is not None]


# =============================================================================
# FILTERS
# =============================================================================

class OrderFilter(BaseModel):
    """
    Parameters that select the order snapshot for a synchronization run.

    Date bounds are inclusive. Use ``OrderFilter.validated(...)`` to get
    ``InvalidFilterError`` instead of a pydantic ``ValidationError``.
    """

    status: OrderStatus = OrderStatus.ANY
    limit: Optional[int] = None
    min_orders_per_customer: Optional[int] = None
    created_at_min: Optional[datetime] = None
    created_at_max: Optional[datetime] = None
    customer_ids: Optional[List[int]] = None

    @field_validator("created_at_min", "created_at_max")
    @classmethod
    def normalize_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)

    @model_validator(mode="after")
    def check_ranges(self) -> "OrderFilter":
        problems = self.range_problems()
        if problems:
            raise ValueError("; ".join(problems))
        return self

    def range_problems(self) -> List[str]:
        """Describe every out-of-range value"""
        problems = []
        if not isinstance(self.status, OrderStatus):
            try:
                OrderStatus(self.status)
            except ValueError:
                problems.append(f"status must be one of {[s.value for s in OrderStatus]}")
        if self.limit is not None and self.limit < 1:
            problems.append("limit must be at least 1")
        if self.min_orders_per_customer is not None and self.min_orders_per_customer < 1:
            problems.append("min_orders_per_customer must be at least 1")
        low, high = ensure_utc(self.created_at_min), ensure_utc(self.created_at_max)
        if low is not None and high is not None and low > high:
            problems.append("created_at_min must not be after created_at_max")
        return problems

    def ensure_valid(self) -> "OrderFilter":
        """Reject out-of-range values even on instances built without validation"""
        problems = self.range_problems()
        if problems:
            raise InvalidFilterError("; ".join(problems))
        return self

    @classmethod
    def validated(cls, **values) -> "OrderFilter":
        try:
            return cls(**values)
        except ValidationError as e:
            raise InvalidFilterError(str(e)) from e

    def matches(self, order: Order) -> bool:
        """Status and creation window check for a single order"""
        if self.status != OrderStatus.ANY and order.status != self.status:
            return False
        if self.created_at_min is not None and order.created_at < self.created_at_min:
            return False
        if self.created_at_max is not None and order.created_at > self.created_at_max:
            return False
        return True


# =============================================================================
# PREDICTIONS & DOCUMENTS
# =============================================================================

class ProductSummary(BaseModel):
    """Purchase statistics of one product within a category bucket"""
    product_id: int
    title: str
    tags: List[str] = Field(default_factory=list)
    purchase_count: int = 0
    total_quantity_purchased: int = 0
    last_purchase_date: datetime


class NextPurchasePrediction(BaseModel):
    """Predicted next purchase for one customer and category"""
    category: Category
    has_sufficient_data: bool
    reason: str
    calculated_at: datetime
    confidence_level: float = Field(default=0.0, ge=0.0, le=1.0)
    confidence_label: ConfidenceLabel = ConfidenceLabel.LOW
    purchase_dates: List[datetime] = Field(default_factory=list)
    next_purchase_date: Optional[datetime] = None
    average_days_between_purchases: Optional[float] = None
    products_in_category: List[ProductSummary] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_sufficiency(self) -> "NextPurchasePrediction":
        if not self.has_sufficient_data and (
            self.next_purchase_date is not None or self.confidence_level != 0.0
        ):
            raise ValueError("a prediction without sufficient data carries no date and zero confidence")
        return self


class PurchaseSummary(BaseModel):
    """Human-facing next purchase summary for a single customer"""
    customer_id: int
    has_sufficient_data: bool
    reason: str
    predicted_next_purchase_date: Optional[datetime] = None
    total_orders: int
    last_order_date: Optional[datetime] = None
    days_since_last_order: Optional[int] = None
    confidence: ConfidenceLabel


class CategorizedOrdersDocument(BaseModel):
    """Persisted per-customer snapshot, keyed by customer id"""
    customer_id: int
    customer: Customer
    orders_by_category: Dict[Category, List[Order]] = Field(default_factory=dict)
    predictions: Dict[Category, Optional[NextPurchasePrediction]] = Field(default_factory=dict)
    updated_at: datetime
    filters: OrderFilter = Field(default_factory=OrderFilter)

    @computed_field
    @property
    def orders_per_category(self) -> Dict[Category, int]:
        return {category: len(orders) for category, orders in self.orders_by_category.items()}

    @computed_field
    @property
    def total_orders(self) -> int:
        return sum(len(orders) for orders in self.orders_by_category.values())


class SyncSummary(BaseModel):
    """Outcome of one synchronization run"""
    processed_customer_ids: List[int] = Field(default_factory=list)
    updated_customer_ids: List[int] = Field(default_factory=list)
    created_customer_ids: List[int] = Field(default_factory=list)
    processed_at: datetime

    @computed_field
    @property
    def processed_customers_count(self) -> int:
        return len(self.processed_customer_ids)

    @computed_field
    @property
    def updated_count(self) -> int:
        return len(self.updated_customer_ids)

    @computed_field
    @property
    def created_count(self) -> int:
        return len(self.created_customer_ids)
