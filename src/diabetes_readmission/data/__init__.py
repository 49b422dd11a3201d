"""
Data loading and cohort preparation for the readmission report.
"""

from .make_dataset import (
    CohortData,
    Partition,
    build_cohort_query,
    load_cohort,
    prepare_cohort,
    split_partition,
    validate_cohort,
)
from .session import QuerySession
from .summaries import lowest_rate_level, readmission_rates

__all__ = [
    "QuerySession",
    "CohortData",
    "Partition",
    "build_cohort_query",
    "load_cohort",
    "validate_cohort",
    "prepare_cohort",
    "split_partition",
    "readmission_rates",
    "lowest_rate_level",
]
