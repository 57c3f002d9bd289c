"""
Next Purchase Prediction Module
"""
from .prediction import (
    IntervalPrediction,
    build_prediction,
    confidence_score,
    predict_next_purchase,
    score_confidence,
    summarize_customer,
)

__all__ = [
    "IntervalPrediction",
    "build_prediction",
    "confidence_score",
    "predict_next_purchase",
    "score_confidence",
    "summarize_customer",
]
