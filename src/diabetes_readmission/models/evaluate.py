"""
Held-out evaluation of readmission probabilities.

Predictions are classified at a fixed threshold for the confusion matrix and the
accuracy; ROC-AUC and PR-AUC sweep every threshold over the predicted
probabilities. When the held-out labels contain a single class the ranking
metrics are undefined and reported as None.
"""

from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np
import pandas as pd
from sklearn.metrics import (
    accuracy_score,
    average_precision_score,
    confusion_matrix,
    precision_recall_curve,
    roc_auc_score,
    roc_curve,
)

from ..exceptions import DataValidationError
from ..utils import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ConfusionCounts:
    tp: int
    fp: int
    tn: int
    fn: int

    @property
    def total(self) -> int:
        return self.tp + self.fp + self.tn + self.fn

    def as_frame(self) -> pd.DataFrame:
        """2x2 table with actual labels as rows and predicted labels as columns."""
        return pd.DataFrame(
            [[self.tn, self.fp], [self.fn, self.tp]],
            index=pd.Index(["Not Readmitted", "Readmitted <30"], name="Actual"),
            columns=["Predicted Not Readmitted", "Predicted Readmitted <30"],
        )


@dataclass(frozen=True)
class EvaluationResult:
    """Held-out metrics. `roc_auc` and `pr_auc` are None when undefined."""

    n: int
    threshold: float
    accuracy: float
    roc_auc: Optional[float]
    pr_auc: Optional[float]
    confusion: ConfusionCounts

    def as_dict(self) -> Dict[str, Optional[float]]:
        return {
            "Accuracy": self.accuracy,
            "PR-AUC": self.pr_auc,
            "ROC-AUC": self.roc_auc,
        }


def _check_inputs(y_true: np.ndarray, probabilities: np.ndarray) -> None:
    if len(y_true) != len(probabilities):
        raise ValueError(
            f"{len(y_true)} labels but {len(probabilities)} probabilities"
        )
    if len(y_true) == 0:
        raise DataValidationError("Held-out partition is empty")
    if not np.isin(y_true, [0, 1]).all():
        raise ValueError("Labels must be 0 or 1")
    if not np.isfinite(probabilities).all() or (
        (probabilities < 0) | (probabilities > 1)
    ).any():
        raise ValueError("Probabilities must be finite and within [0, 1]")


def classify(
    probabilities: np.ndarray, threshold: float = 0.5, inclusive: bool = True
) -> np.ndarray:
    """
    Turn probabilities into 0/1 predictions.

    Args:
        probabilities (np.ndarray): Predicted probabilities of readmission.
        threshold (float, optional): Decision threshold. Defaults to 0.5.
        inclusive (bool, optional): Predict positive at probability >= threshold;
            False predicts positive only above the threshold. Defaults to True.

    Returns:
        np.ndarray: Integer predictions.
    """
    probabilities = np.asarray(probabilities, dtype=float)
    positive = probabilities >= threshold if inclusive else probabilities > threshold
    return positive.astype(int)


def confusion_counts(y_true: np.ndarray, y_pred: np.ndarray) -> ConfusionCounts:
    """Count true/false positives and negatives for 0/1 labels."""
    tn, fp, fn, tp = confusion_matrix(y_true, y_pred, labels=[0, 1]).ravel()
    return ConfusionCounts(tp=int(tp), fp=int(fp), tn=int(tn), fn=int(fn))


def is_degenerate(y_true: np.ndarray) -> bool:
    """True when the labels hold a single class, leaving ROC/PR curves undefined."""
    return len(np.unique(y_true)) < 2


def curve_points(
    y_true: np.ndarray, probabilities: np.ndarray
) -> Optional[Dict[str, pd.DataFrame]]:
    """
    ROC and precision-recall curves over the full threshold sweep.

    Args:
        y_true (np.ndarray): Actual 0/1 labels.
        probabilities (np.ndarray): Predicted probabilities.

    Returns:
        Optional[Dict[str, pd.DataFrame]]: 'roc' (fpr, tpr, threshold) and
            'pr' (recall, precision, threshold) frames, or None when the labels
            hold a single class.
    """
    y_true = np.asarray(y_true)
    probabilities = np.asarray(probabilities, dtype=float)
    _check_inputs(y_true, probabilities)
    if is_degenerate(y_true):
        return None

    fpr, tpr, roc_thresholds = roc_curve(y_true, probabilities)
    precision, recall, pr_thresholds = precision_recall_curve(y_true, probabilities)
    return {
        "roc": pd.DataFrame({"fpr": fpr, "tpr": tpr, "threshold": roc_thresholds}),
        # precision_recall_curve returns one fewer threshold than points
        "pr": pd.DataFrame(
            {
                "recall": recall,
                "precision": precision,
                "threshold": np.append(pr_thresholds, np.nan),
            }
        ),
    }


def evaluate_predictions(
    y_true: np.ndarray,
    probabilities: np.ndarray,
    threshold: float = 0.5,
    inclusive: bool = True,
) -> EvaluationResult:
    """
    Compute the confusion matrix, accuracy, ROC-AUC and PR-AUC.

    PR-AUC is the average precision, the step-wise area under the
    precision-recall curve.

    Args:
        y_true (np.ndarray): Actual 0/1 labels of the held-out rows.
        probabilities (np.ndarray): Predicted probabilities for the same rows.
        threshold (float, optional): Decision threshold. Defaults to 0.5.
        inclusive (bool, optional): See `classify`. Defaults to True.

    Returns:
        EvaluationResult: The metrics. ROC-AUC and PR-AUC are None when the
                          held-out labels hold a single class.

    Raises:
        DataValidationError: If there are no held-out rows.
        ValueError: On mismatched lengths, non-binary labels or invalid probabilities.
    """
    y_true = np.asarray(y_true)
    probabilities = np.asarray(probabilities, dtype=float)
    _check_inputs(y_true, probabilities)
    y_true = y_true.astype(int)

    y_pred = classify(probabilities, threshold, inclusive)
    counts = confusion_counts(y_true, y_pred)
    accuracy = float(accuracy_score(y_true, y_pred))

    if is_degenerate(y_true):
        logger.warning(
            f"Held-out labels contain only class {int(y_true[0])}; "
            "ROC-AUC and PR-AUC are undefined"
        )
        roc_auc: Optional[float] = None
        pr_auc: Optional[float] = None
    else:
        # Summed recall steps can overshoot 1 by rounding
        roc_auc = float(np.clip(roc_auc_score(y_true, probabilities), 0.0, 1.0))
        pr_auc = float(np.clip(average_precision_score(y_true, probabilities), 0.0, 1.0))

    result = EvaluationResult(
        n=len(y_true),
        threshold=threshold,
        accuracy=accuracy,
        roc_auc=roc_auc,
        pr_auc=pr_auc,
        confusion=counts,
    )

    for metric, value in result.as_dict().items():
        logger.info(f"{metric}: {'undefined' if value is None else f'{value:.4f}'}")
    logger.info(f"Confusion Matrix:\n{counts.as_frame()}")

    return result
