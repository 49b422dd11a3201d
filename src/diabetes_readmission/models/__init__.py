"""
Model fitting and evaluation for the readmission report.
"""

from .evaluate import (
    ConfusionCounts,
    EvaluationResult,
    classify,
    confusion_counts,
    curve_points,
    evaluate_predictions,
)
from .model import INTERCEPT, FittedModel, ReadmissionModel, add_intercept

__all__ = [
    "INTERCEPT",
    "FittedModel",
    "ReadmissionModel",
    "add_intercept",
    "ConfusionCounts",
    "EvaluationResult",
    "classify",
    "confusion_counts",
    "curve_points",
    "evaluate_predictions",
]
