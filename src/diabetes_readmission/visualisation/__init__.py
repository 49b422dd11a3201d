"""
Figures for the readmission report.
"""

from .plots import plot_confusion_matrix, plot_readmission_rates, plot_roc_pr_curves

__all__ = [
    "plot_readmission_rates",
    "plot_roc_pr_curves",
    "plot_confusion_matrix",
]
