"""
Figures for the readmission report.

Generates and saves:
- Readmission rate per level of a categorical field (`readmission_rate_<field>.png`)
- ROC and precision-recall curves of the held-out predictions (`roc_pr_curves.png`)
- Confusion matrix at the decision threshold (`confusion_matrix.png`)
"""

from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import pandas as pd  # noqa: E402
import seaborn as sns  # noqa: E402

from ..models.evaluate import ConfusionCounts, EvaluationResult  # noqa: E402
from ..utils import get_logger  # noqa: E402

logger = get_logger(__name__)


def _save(fig: plt.Figure, save_path: Path) -> Path:
    save_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(save_path, dpi=150, bbox_inches="tight")
    plt.close(fig)
    logger.info(f"Saved figure to {save_path}")
    return save_path


def plot_readmission_rates(
    rates: pd.DataFrame, field_label: str, save_path: Path
) -> Path:
    """
    Bar chart of the 30-day readmission rate per level.

    Args:
        rates (pd.DataFrame): Output of `readmission_rates` ('level', 'n', 'rate').
        field_label (str): Axis label of the grouping field.
        save_path (Path): Image path.

    Returns:
        Path: The saved image path.
    """
    fig, ax = plt.subplots(figsize=(10, 6))
    sns.barplot(data=rates, x="level", y="rate", color="steelblue", ax=ax)
    for container in ax.containers:
        ax.bar_label(container, fmt="{:.1%}", label_type="edge", padding=2)
    ax.set_xlabel(field_label)
    ax.set_ylabel("Readmitted within 30 days")
    ax.set_title(f"30-Day Readmission Rate by {field_label}")
    ax.grid(axis="y", linestyle="--", alpha=0.6)
    return _save(fig, save_path)


def plot_roc_pr_curves(
    curves: dict, evaluation: EvaluationResult, save_path: Path
) -> Path:
    """
    Side-by-side ROC and precision-recall curves.

    Args:
        curves (dict): Output of `curve_points` ('roc' and 'pr' frames).
        evaluation (EvaluationResult): Metrics shown in the legends.
        save_path (Path): Image path.

    Returns:
        Path: The saved image path.
    """
    fig, (ax_roc, ax_pr) = plt.subplots(1, 2, figsize=(14, 6))

    roc = curves["roc"]
    ax_roc.plot(roc["fpr"], roc["tpr"], lw=2, label=f"ROC AUC = {evaluation.roc_auc:.3f}")
    ax_roc.plot([0, 1], [0, 1], linestyle="--", color="grey", lw=1)
    ax_roc.set_xlabel("False Positive Rate")
    ax_roc.set_ylabel("True Positive Rate")
    ax_roc.set_title("ROC Curve")
    ax_roc.legend(loc="lower right")

    pr = curves["pr"]
    ax_pr.step(pr["recall"], pr["precision"], where="post", lw=2, label=f"PR AUC = {evaluation.pr_auc:.3f}")
    ax_pr.set_xlabel("Recall (Sensitivity)")
    ax_pr.set_ylabel("Precision (PPV)")
    ax_pr.set_title("Precision-Recall Curve")
    ax_pr.legend(loc="upper right")

    for ax in (ax_roc, ax_pr):
        ax.set_xlim([0.0, 1.0])
        ax.set_ylim([0.0, 1.05])
        ax.grid(True, linestyle="--", alpha=0.6)

    plt.tight_layout()
    return _save(fig, save_path)


def plot_confusion_matrix(
    counts: ConfusionCounts, threshold: float, save_path: Path
) -> Path:
    """
    Heatmap of the confusion matrix.

    Args:
        counts (ConfusionCounts): Confusion counts.
        threshold (float): Decision threshold, shown in the title.
        save_path (Path): Image path.

    Returns:
        Path: The saved image path.
    """
    fig, ax = plt.subplots(figsize=(8, 6))
    sns.heatmap(counts.as_frame(), annot=True, fmt="d", cmap="Blues", cbar=False, ax=ax)
    ax.set_title(f"Confusion Matrix (threshold {threshold})")
    ax.set_ylabel("Actual Label")
    ax.set_xlabel("Predicted Label")
    plt.tight_layout()
    return _save(fig, save_path)
