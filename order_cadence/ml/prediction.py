"""
Next Purchase Prediction

Purchase-interval model for a single customer and category:

- Predicted date: last purchase + rounded mean of all whole-day gaps
- Confidence label: Low / Medium / High from order count and the
  coefficient of variation of the gaps
- Confidence score: 0.5 once two orders exist, else 0.0

The label and the numeric score are independent scales. The score is what
gets persisted; the label is what the per-customer summary shows.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Set

import numpy as np
import structlog

from order_cadence.data.models import (
    Category,
    ConfidenceLabel,
    NextPurchasePrediction,
    Order,
    ProductSummary,
    PurchaseSummary,
)

logger = structlog.get_logger(__name__)

MIN_ORDERS_FOR_PREDICTION = 2
MIN_ORDERS_FOR_MEDIUM = 3
MIN_ORDERS_FOR_VARIANCE = 5
HIGH_CV_THRESHOLD = 0.3
MEDIUM_CV_THRESHOLD = 0.6
SUFFICIENT_DATA_SCORE = 0.5

INSUFFICIENT_DATA_REASON = "insufficient data, need at least 2 orders"


@dataclass
class IntervalPrediction:
    """Result of the purchase interval model"""
    predicted_date: Optional[datetime]
    has_sufficient_data: bool
    reason: str
    average_gap_days: Optional[float] = None


def gap_days(timestamps: Sequence[datetime]) -> List[int]:
    """Whole-day gaps between successive timestamps (n - 1 values)"""
    ordered = sorted(timestamps)
    return [(later - earlier).days for earlier, later in zip(ordered, ordered[1:])]


def predict_next_purchase(timestamps: Sequence[datetime]) -> IntervalPrediction:
    """
    Predict the next purchase from purchase timestamps.

    The mean is taken over all historical gaps. A mean that rounds to
    zero predicts the last purchase date itself.

    Args:
        timestamps: Purchase timestamps; sorted ascending before use

    Returns:
        IntervalPrediction
    """
    ordered = sorted(timestamps)
    if len(ordered) < MIN_ORDERS_FOR_PREDICTION:
        return IntervalPrediction(
            predicted_date=None,
            has_sufficient_data=False,
            reason=INSUFFICIENT_DATA_REASON,
        )

    gaps = gap_days(ordered)
    mean_gap = float(np.mean(gaps))
    predicted = ordered[-1] + timedelta(days=int(round(mean_gap)))

    return IntervalPrediction(
        predicted_date=predicted,
        has_sufficient_data=True,
        reason=f"Based on {len(gaps)} purchase intervals averaging {mean_gap:.1f} days",
        average_gap_days=mean_gap,
    )


def score_confidence(timestamps: Sequence[datetime]) -> ConfidenceLabel:
    """Three-level reliability label for a prediction"""
    n = len(timestamps)
    if n < MIN_ORDERS_FOR_MEDIUM:
        return ConfidenceLabel.LOW
    if n < MIN_ORDERS_FOR_VARIANCE:
        return ConfidenceLabel.MEDIUM

    gaps = np.asarray(gap_days(timestamps), dtype=float)
    mean = gaps.mean()
    # All purchases on the same day: cv is undefined
    if mean == 0:
        return ConfidenceLabel.LOW

    cv = gaps.std() / mean
    if cv < HIGH_CV_THRESHOLD:
        return ConfidenceLabel.HIGH
    if cv < MEDIUM_CV_THRESHOLD:
        return ConfidenceLabel.MEDIUM
    return ConfidenceLabel.LOW


def confidence_score(timestamps: Sequence[datetime]) -> float:
    """Persisted numeric confidence"""
    return SUFFICIENT_DATA_SCORE if len(timestamps) >= MIN_ORDERS_FOR_PREDICTION else 0.0


def summarize_products(
    orders: Iterable[Order],
    category_product_ids: Set[int],
    tag_lookup: Dict[int, List[str]],
) -> List[ProductSummary]:
    """Per-product purchase counts for the products of one category"""
    summaries: Dict[int, ProductSummary] = {}
    for order in orders:
        for item in order.line_items:
            if item.product_id is None or item.product_id not in category_product_ids:
                continue
            summary = summaries.get(item.product_id)
            if summary is None:
                summary = ProductSummary(
                    product_id=item.product_id,
                    title=item.title,
                    tags=list(tag_lookup.get(item.product_id, [])),
                    last_purchase_date=order.created_at,
                )
                summaries[item.product_id] = summary
            summary.purchase_count += 1
            summary.total_quantity_purchased += item.quantity
            if order.created_at > summary.last_purchase_date:
                summary.last_purchase_date = order.created_at
    return list(summaries.values())


def build_prediction(
    category: Category,
    orders: Sequence[Order],
    category_product_ids: Set[int],
    tag_lookup: Dict[int, List[str]],
    calculated_at: datetime,
) -> NextPurchasePrediction:
    """
    Build the persisted prediction for one customer bucket.

    This is the only prediction path: fresh documents and replacements of
    existing documents both go through it.
    """
    ordered = sorted(orders, key=lambda o: o.created_at)
    purchase_dates = [order.created_at for order in ordered]

    interval = predict_next_purchase(purchase_dates)
    label = score_confidence(purchase_dates)

    prediction = NextPurchasePrediction(
        category=category,
        has_sufficient_data=interval.has_sufficient_data,
        reason=interval.reason,
        calculated_at=calculated_at,
        confidence_level=confidence_score(purchase_dates) if interval.has_sufficient_data else 0.0,
        confidence_label=label,
        purchase_dates=purchase_dates,
        next_purchase_date=interval.predicted_date,
        average_days_between_purchases=interval.average_gap_days,
        products_in_category=summarize_products(ordered, category_product_ids, tag_lookup),
    )

    logger.debug(
        "Calculated next purchase prediction",
        category=category.value,
        orders=len(ordered),
        next_purchase_date=prediction.next_purchase_date.isoformat() if prediction.next_purchase_date else None,
        confidence=label.value,
    )
    return prediction


def summarize_customer(
    customer_id: int,
    orders: Sequence[Order],
    now: Optional[datetime] = None,
) -> PurchaseSummary:
    """
    Human-facing next purchase summary for one customer.

    Days since the last order are measured against ``now`` (request time),
    not against the snapshot time.
    """
    now = now or datetime.now(timezone.utc)
    purchase_dates = sorted(order.created_at for order in orders)
    interval = predict_next_purchase(purchase_dates)
    last_order = purchase_dates[-1] if purchase_dates else None

    return PurchaseSummary(
        customer_id=customer_id,
        has_sufficient_data=interval.has_sufficient_data,
        reason=interval.reason,
        predicted_next_purchase_date=interval.predicted_date,
        total_orders=len(purchase_dates),
        last_order_date=last_order,
        days_since_last_order=(now - last_order).days if last_order else None,
        confidence=score_confidence(purchase_dates),
    )
