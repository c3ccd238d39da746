"""Predict item response probabilities with item-focused tree models."""

from ._engine import (
    PredictionResult,
    predict_item_responses,
    item_expression,
    logistic,
    add_total_score,
)

__all__ = [
    "PredictionResult",
    "predict_item_responses",
    "item_expression",
    "logistic",
    "add_total_score",
]
