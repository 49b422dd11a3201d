"""
Grouped readmission proportions for the exploratory part of the report.
"""

from typing import Optional, Sequence

import pandas as pd


def readmission_rates(
    cohort: pd.DataFrame,
    column: str,
    positive_outcome: str = "<30",
    levels: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    """
    Share of encounters readmitted within 30 days for each level of a field.

    Args:
        cohort (pd.DataFrame): Validated cohort with an 'outcome' column.
        column (str): Grouping column (e.g. 'age_bracket').
        positive_outcome (str, optional): Outcome label counted as readmitted.
                                          Defaults to "<30".
        levels (Optional[Sequence[str]], optional): Level order of the result. Levels
            absent from the cohort appear with n = 0 and an undefined rate. If None,
            levels are sorted as they appear. Defaults to None.

    Returns:
        pd.DataFrame: Columns 'level', 'n', 'readmitted', 'rate'.
    """
    readmitted = (cohort["outcome"] == positive_outcome).astype(int)
    grouped = (
        readmitted.groupby(cohort[column])
        .agg(n="size", readmitted="sum")
        .astype("int64")
    )
    if levels is not None:
        grouped = grouped.reindex(list(levels), fill_value=0)
    else:
        grouped = grouped.sort_index()

    grouped["rate"] = grouped["readmitted"] / grouped["n"].where(grouped["n"] > 0)
    grouped.index.name = "level"
    return grouped.reset_index()


def lowest_rate_level(rates: pd.DataFrame) -> str:
    """
    Level with the lowest observed readmission rate; ties go to the earliest level.

    Args:
        rates (pd.DataFrame): Output of `readmission_rates`.

    Returns:
        str: The level label.

    Raises:
        ValueError: If no level has any observations.
    """
    observed = rates.loc[rates["n"] > 0]
    if observed.empty:
        raise ValueError("No observed levels to choose a reference from")
    # idxmin returns the first occurrence of the minimum
    return str(observed.loc[observed["rate"].idxmin(), "level"])
