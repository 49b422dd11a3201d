"""
Odds ratios and Wald confidence intervals from fitted log-odds coefficients.
"""

import numpy as np
import pandas as pd

from ..models.model import FittedModel

DEFAULT_Z = 1.96


def odds_ratio_table(fitted: FittedModel, z_score: float = DEFAULT_Z) -> pd.DataFrame:
    """
    Exponentiated coefficients with Wald intervals, one row per term.

    odds ratio = exp(b); interval = exp(b -/+ z * se).

    Args:
        fitted (FittedModel): Fitted model.
        z_score (float, optional): Normal quantile of the interval. Defaults to 1.96 (95%).

    Returns:
        pd.DataFrame: Columns 'term', 'coefficient', 'std_error', 'odds_ratio',
                      'ci_lower', 'ci_upper', in model term order.
    """
    coefficient = fitted.params.to_numpy(dtype=float)
    std_error = fitted.bse.reindex(fitted.params.index).to_numpy(dtype=float)
    return pd.DataFrame(
        {
            "term": fitted.params.index,
            "coefficient": coefficient,
            "std_error": std_error,
            "odds_ratio": np.exp(coefficient),
            "ci_lower": np.exp(coefficient - z_score * std_error),
            "ci_upper": np.exp(coefficient + z_score * std_error),
        }
    )


def format_interval(lower: float, upper: float, decimals: int = 2) -> str:
    if not (np.isfinite(lower) and np.isfinite(upper)):
        return "NA"
    return f"{lower:.{decimals}f} - {upper:.{decimals}f}"


def format_odds_ratio_table(table: pd.DataFrame, confidence: str = "95%") -> pd.DataFrame:
    """
    Display form of `odds_ratio_table`: odds ratio to 3 decimals, interval as 'lower - upper'.

    Args:
        table (pd.DataFrame): Output of `odds_ratio_table`.
        confidence (str, optional): Label of the interval column. Defaults to "95%".

    Returns:
        pd.DataFrame: Columns 'Term', 'Odds Ratio', '<confidence> CI'.
    """
    return pd.DataFrame(
        {
            "Term": table["term"].to_numpy(),
            "Odds Ratio": table["odds_ratio"].round(3).to_numpy(),
            f"{confidence} CI": [
                format_interval(lo, hi)
                for lo, hi in zip(table["ci_lower"], table["ci_upper"])
            ],
        }
    )
