"""
Cohort selection, validation and partitioning.

The cohort is selected from the raw encounter table through the query session,
keeping the five fields the model needs under canonical names and excluding the
ambiguous `>30` outcome. Validation then applies the configured missing-value
policy and rejects malformed rows. Finally the encoded design matrix is split into
a training and a held-out partition with a seeded deterministic assignment.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

import pandas as pd
from sklearn.model_selection import train_test_split

from ..exceptions import DataValidationError
from ..utils import get_logger
from .session import QuerySession, quote_identifier, quote_literal

logger = get_logger(__name__)

# Canonical field names used from the cohort onwards
CANONICAL_COLUMNS = [
    "prior_inpatient",
    "length_of_stay",
    "medication",
    "age_bracket",
    "outcome",
]
NUMERIC_FIELDS = ["prior_inpatient", "length_of_stay"]
CATEGORICAL_FIELDS = ["medication", "age_bracket"]
MISSING_POLICIES = ("drop", "raise", "impute")


@dataclass
class CohortData:
    """Validated cohort plus the row counts of each selection step."""

    frame: pd.DataFrame
    flow: pd.DataFrame


@dataclass(frozen=True)
class Partition:
    """Training and held-out partitions of the design matrix and label vector."""

    X_train: pd.DataFrame
    X_test: pd.DataFrame
    y_train: pd.Series
    y_test: pd.Series


def _excluded_outcomes(config: Dict[str, Any]) -> List[str]:
    return [str(v) for v in config.get("cohort", {}).get("excluded_outcomes", [">30"])]


def build_cohort_query(config: Dict[str, Any], table_name: str = "encounters") -> str:
    """
    Build the SQL that selects the cohort from the raw encounter table.

    Rows with a missing outcome are kept so that validation can reject them
    explicitly instead of losing them inside the filter.

    Args:
        config (Dict[str, Any]): Configuration dictionary (uses 'data.columns' and
                                 'cohort.excluded_outcomes').
        table_name (str, optional): Registered name of the raw table. Defaults to "encounters".

    Returns:
        str: SQL query text.
    """
    columns = config["data"]["columns"]
    select_list = ",\n    ".join(
        f"{quote_identifier(columns[field])} AS {field}" for field in CANONICAL_COLUMNS
    )
    query = f"SELECT\n    {select_list}\nFROM {quote_identifier(table_name)}"

    excluded = _excluded_outcomes(config)
    if excluded:
        outcome = quote_identifier(columns["outcome"])
        in_list = ", ".join(quote_literal(v) for v in excluded)
        query += f"\nWHERE {outcome} IS NULL OR {outcome} NOT IN ({in_list})"
    return query


def load_cohort(session: QuerySession, config: Dict[str, Any]) -> CohortData:
    """
    Select the cohort through an open query session.

    Args:
        session (QuerySession): Open session with the raw table registered.
        config (Dict[str, Any]): Configuration dictionary.

    Returns:
        CohortData: Unvalidated cohort frame (canonical columns) and the cohort flow
                    so far (raw rows, rows excluded by outcome).

    Raises:
        DataValidationError: If a configured source column is absent from the input.
    """
    columns = config["data"]["columns"]
    available = set(session.columns())
    missing_columns = [
        columns[field] for field in CANONICAL_COLUMNS if columns[field] not in available
    ]
    if missing_columns:
        raise DataValidationError(
            f"Input file is missing required columns: {missing_columns}"
        )

    table = quote_identifier(session.table_name)
    n_raw = int(session.execute(f"SELECT COUNT(*) AS n FROM {table}").item())

    flow_rows = [{"step": "raw encounters", "n": n_raw}]
    excluded = _excluded_outcomes(config)
    if excluded:
        outcome = quote_identifier(columns["outcome"])
        in_list = ", ".join(quote_literal(v) for v in excluded)
        n_excluded = int(
            session.execute(
                f"SELECT COUNT(*) AS n FROM {table} WHERE {outcome} IN ({in_list})"
            ).item()
        )
        flow_rows.append(
            {"step": f"excluded outcome {', '.join(excluded)}", "n": n_excluded}
        )

    frame = session.execute(build_cohort_query(config, session.table_name)).to_pandas()
    logger.info(f"Selected {len(frame)} of {n_raw} encounters for the cohort")

    return CohortData(frame=frame, flow=pd.DataFrame(flow_rows))


def _check_numeric(frame: pd.DataFrame) -> pd.DataFrame:
    """Reject non-numeric, non-integer or out-of-range counts. Missing values pass through."""
    for column in NUMERIC_FIELDS:
        raw = frame[column]
        numeric = pd.to_numeric(raw, errors="coerce")
        malformed = numeric.isna() & raw.notna()
        if malformed.any():
            examples = raw[malformed].astype(str).unique()[:3].tolist()
            raise DataValidationError(
                f"{int(malformed.sum())} rows have non-numeric '{column}' values, e.g. {examples}"
            )
        non_integer = numeric.notna() & (numeric % 1 != 0)
        if non_integer.any():
            raise DataValidationError(
                f"{int(non_integer.sum())} rows have non-integer '{column}' values"
            )
        frame[column] = numeric

    if (frame["prior_inpatient"] < 0).any():
        raise DataValidationError("Prior inpatient visit counts must be non-negative")
    if (frame["length_of_stay"] < 1).any():
        raise DataValidationError("Length of stay must be at least one day")
    return frame


def _check_domains(frame: pd.DataFrame, config: Dict[str, Any]) -> None:
    cohort_cfg = config.get("cohort", {})
    features_cfg = config.get("features", {})
    domains = {
        "medication": features_cfg.get("medication_levels", []),
        "age_bracket": features_cfg.get("age_brackets", []),
        "outcome": [
            cohort_cfg.get("positive_outcome", "<30"),
            cohort_cfg.get("negative_outcome", "NO"),
        ],
    }
    for column, allowed in domains.items():
        present = frame[column].dropna().astype(str)
        invalid = ~present.isin([str(v) for v in allowed])
        if invalid.any():
            examples = present[invalid].unique()[:3].tolist()
            raise DataValidationError(
                f"{int(invalid.sum())} rows have unexpected '{column}' values {examples}; "
                f"allowed values are {list(allowed)}"
            )


def validate_cohort(
    frame: pd.DataFrame, config: Dict[str, Any]
) -> Tuple[pd.DataFrame, int]:
    """
    Validate the cohort and apply the configured missing-value policy.

    Policies ('data.missing_policy'):
        - 'drop': rows with a missing required field are removed and counted.
        - 'raise': any missing required field aborts with DataValidationError.
        - 'impute': numeric fields take the cohort median, categorical fields the
          cohort mode. Rows without an outcome are always dropped.

    Malformed values (non-numeric or non-integer counts, negative visit counts,
    stays under one day, labels outside the configured domains) always raise.

    Args:
        frame (pd.DataFrame): Cohort frame with canonical columns.
        config (Dict[str, Any]): Configuration dictionary.

    Returns:
        Tuple[pd.DataFrame, int]: The validated cohort (fresh index, integer counts)
                                  and the number of rows removed.

    Raises:
        ValueError: If the missing-value policy is unknown.
        DataValidationError: On malformed rows, on missing values under 'raise',
                             or if no rows remain.
    """
    policy = config.get("data", {}).get("missing_policy", "drop")
    if policy not in MISSING_POLICIES:
        raise ValueError(
            f"missing_policy must be one of {list(MISSING_POLICIES)}, got '{policy}'"
        )

    frame = _check_numeric(frame[CANONICAL_COLUMNS].copy())
    _check_domains(frame, config)

    n_before = len(frame)
    missing = frame.isna()
    rows_with_missing = missing.any(axis=1)

    if rows_with_missing.any():
        per_column = {k: int(v) for k, v in missing.sum().items() if v}
        if policy == "raise":
            raise DataValidationError(
                f"{int(rows_with_missing.sum())} cohort rows have missing required values: {per_column}"
            )
        if policy == "drop":
            frame = frame.loc[~rows_with_missing]
            logger.warning(
                f"Dropped {int(rows_with_missing.sum())} rows with missing required values: {per_column}"
            )
        else:
            frame = frame.loc[frame["outcome"].notna()].copy()
            for column in NUMERIC_FIELDS + CATEGORICAL_FIELDS:
                if frame[column].isna().any() and frame[column].notna().sum() == 0:
                    raise DataValidationError(
                        f"'{column}' has no observed values in the cohort; nothing to impute from"
                    )
            for column in NUMERIC_FIELDS:
                if frame[column].isna().any():
                    fill = int(round(frame[column].median()))
                    logger.warning(
                        f"Imputing {int(frame[column].isna().sum())} missing '{column}' values with median {fill}"
                    )
                    frame[column] = frame[column].fillna(fill)
            for column in CATEGORICAL_FIELDS:
                if frame[column].isna().any():
                    fill = frame[column].mode().iloc[0]
                    logger.warning(
                        f"Imputing {int(frame[column].isna().sum())} missing '{column}' values with mode '{fill}'"
                    )
                    frame[column] = frame[column].fillna(fill)

    if frame.empty:
        raise DataValidationError("No cohort rows remain after validation")

    frame = frame.astype({column: "int64" for column in NUMERIC_FIELDS})
    frame = frame.reset_index(drop=True)
    return frame, n_before - len(frame)


def prepare_cohort(session: QuerySession, config: Dict[str, Any]) -> CohortData:
    """
    Select and validate the cohort, extending the cohort flow with the validation step.

    Args:
        session (QuerySession): Open session with the raw table registered.
        config (Dict[str, Any]): Configuration dictionary.

    Returns:
        CohortData: Validated cohort and complete cohort flow.
    """
    cohort = load_cohort(session, config)
    frame, n_removed = validate_cohort(cohort.frame, config)
    flow = pd.concat(
        [
            cohort.flow,
            pd.DataFrame(
                [
                    {"step": "removed for missing values", "n": n_removed},
                    {"step": "analytic cohort", "n": len(frame)},
                ]
            ),
        ],
        ignore_index=True,
    )
    logger.info(f"Analytic cohort: {len(frame)} encounters")
    return CohortData(frame=frame, flow=flow)


def split_partition(
    X: pd.DataFrame,
    y: pd.Series,
    test_size: float = 0.2,
    random_state: int = 42,
    stratify: bool = False,
) -> Partition:
    """
    Split the design matrix into training and held-out partitions.

    The assignment is a seeded shuffle, so the same seed and row order always give
    the same partition. Every row lands in exactly one partition.

    Args:
        X (pd.DataFrame): Design matrix.
        y (pd.Series): Binary label vector aligned with X.
        test_size (float, optional): Held-out share. Defaults to 0.2.
        random_state (int, optional): Seed of the assignment. Defaults to 42.
        stratify (bool, optional): Preserve the label balance in both partitions.
                                   Defaults to False.

    Returns:
        Partition: The four split frames, with the original row index preserved.

    Raises:
        DataValidationError: If there are too few rows to form both partitions.
    """
    if len(X) != len(y):
        raise ValueError(f"X has {len(X)} rows but y has {len(y)}")
    if len(X) < 2:
        raise DataValidationError("At least two rows are needed to split the cohort")

    X_train, X_test, y_train, y_test = train_test_split(
        X,
        y,
        test_size=test_size,
        random_state=random_state,
        shuffle=True,
        stratify=y if stratify else None,
    )
    logger.info(
        f"Split cohort into {len(X_train)} training and {len(X_test)} held-out rows"
    )
    return Partition(X_train=X_train, X_test=X_test, y_train=y_train, y_test=y_test)
