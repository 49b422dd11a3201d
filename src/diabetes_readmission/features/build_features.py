"""
Design-matrix construction for the readmission model.

Converts the validated cohort into the numeric covariates of the logistic
regression: the two counts as they are, then one indicator column per non-reference
level of the medication dosage change and of the age bracket. The reference level
of each group is the all-zero pattern in that group.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from ..data.summaries import lowest_rate_level, readmission_rates
from ..exceptions import DataValidationError
from ..utils import get_logger, load_config

logger = get_logger(__name__)

NUMERIC_TERMS = ["prior_inpatient", "length_of_stay"]
REFERENCE_STRATEGIES = ("fixed", "lowest_rate")


@dataclass(frozen=True)
class DesignMatrix:
    """Model-ready covariates and binary labels."""

    X: pd.DataFrame
    y: pd.Series
    references: Dict[str, str] = field(default_factory=dict)

    @property
    def feature_names(self) -> List[str]:
        return self.X.columns.tolist()


def indicator_frame(
    values: pd.Series, levels: Sequence[str], prefix: str
) -> pd.DataFrame:
    """
    One indicator column per level, including levels absent from `values`.

    Args:
        values (pd.Series): Categorical labels.
        levels (Sequence[str]): Full, ordered level set of the group.
        prefix (str): Column prefix; columns are named '<prefix>_<level>'.

    Returns:
        pd.DataFrame: Float indicator columns in level order, aligned with `values`.

    Raises:
        DataValidationError: If `values` holds a missing value or a label outside `levels`.
    """
    if values.isna().any():
        raise DataValidationError(
            f"'{prefix}' has {int(values.isna().sum())} missing values; "
            "missing values must be handled before encoding"
        )
    unknown = ~values.astype(str).isin(list(levels))
    if unknown.any():
        raise DataValidationError(
            f"'{prefix}' has labels outside {list(levels)}: "
            f"{values[unknown].astype(str).unique()[:3].tolist()}"
        )
    categorical = pd.Categorical(values.astype(str), categories=list(levels))
    dummies = pd.get_dummies(categorical, prefix=prefix, prefix_sep="_", dtype=float)
    dummies.index = values.index
    return dummies


class DesignMatrixBuilder:
    """
    Encodes cohort rows into the design matrix.

    Follows a fit/transform protocol: `fit` chooses the reference level of each
    categorical group (fixed a priori, or the level with the lowest observed
    readmission proportion), `transform` produces the covariates and labels.

    Attributes:
        config (Dict): The loaded configuration dictionary.
        medication_name (str): Source column of the medication field, used as term prefix.
        medication_levels (List[str]): Dosage change levels in covariate order.
        age_brackets (List[str]): Age bracket labels in covariate order.
        strategy (str): Reference selection strategy ('fixed' or 'lowest_rate').
        references (Optional[Dict[str, str]]): Chosen reference per group. None until fitted.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None) -> None:
        self.config = config if config is not None else load_config()
        features_cfg = self.config.get("features", {})
        cohort_cfg = self.config.get("cohort", {})

        self.medication_name = (
            self.config.get("data", {}).get("columns", {}).get("medication", "medication")
        )
        self.medication_levels = list(
            features_cfg.get("medication_levels", ["No", "Up", "Down", "Steady"])
        )
        self.age_brackets = list(
            features_cfg.get(
                "age_brackets", [f"[{10 * i}-{10 * (i + 1)})" for i in range(10)]
            )
        )
        self.fixed_references = dict(
            features_cfg.get(
                "reference_levels", {"medication": "No", "age_bracket": "[0-10)"}
            )
        )
        self.strategy = features_cfg.get("reference_strategy", "fixed")
        if self.strategy not in REFERENCE_STRATEGIES:
            raise ValueError(
                f"reference_strategy must be one of {list(REFERENCE_STRATEGIES)}, got '{self.strategy}'"
            )
        self.positive_outcome = cohort_cfg.get("positive_outcome", "<30")
        self.references: Optional[Dict[str, str]] = None

    def _groups(self) -> List[Tuple[str, str, List[str]]]:
        """(cohort column, term prefix, ordered levels) per categorical group."""
        return [
            ("medication", self.medication_name, self.medication_levels),
            ("age_bracket", "age", self.age_brackets),
        ]

    def fit(self, cohort: pd.DataFrame) -> "DesignMatrixBuilder":
        """
        Choose the reference level of each categorical group.

        Args:
            cohort (pd.DataFrame): Validated cohort.

        Returns:
            DesignMatrixBuilder: The fitted builder (self).

        Raises:
            ValueError: If a fixed reference is not one of its group's levels.
        """
        references: Dict[str, str] = {}
        for column, _, levels in self._groups():
            if self.strategy == "fixed":
                reference = str(self.fixed_references.get(column, levels[0]))
            else:
                rates = readmission_rates(
                    cohort, column, self.positive_outcome, levels=levels
                )
                reference = lowest_rate_level(rates)
                logger.info(
                    f"Reference for '{column}' chosen by lowest readmission rate: {reference}"
                )
            if reference not in levels:
                raise ValueError(
                    f"Reference level '{reference}' for '{column}' is not one of {levels}"
                )
            references[column] = reference

        self.references = references
        return self

    def transform(self, cohort: pd.DataFrame) -> DesignMatrix:
        """
        Encode cohort rows into covariates and labels.

        Column order: prior_inpatient, length_of_stay, medication indicators
        (non-reference levels in configured order), age indicators (likewise).

        Args:
            cohort (pd.DataFrame): Validated cohort.

        Returns:
            DesignMatrix: Covariates, labels (1 = readmitted within 30 days) and references.

        Raises:
            ValueError: If the builder has not been fitted.
            DataValidationError: If a required field has missing or unknown values.
        """
        if self.references is None:
            raise ValueError("DesignMatrixBuilder must be fitted before transform")

        numeric = cohort[NUMERIC_TERMS]
        if numeric.isna().any().any():
            raise DataValidationError(
                "Numeric fields have missing values; missing values must be handled before encoding"
            )
        if cohort["outcome"].isna().any():
            raise DataValidationError("Outcome has missing values")

        blocks = [numeric.astype(float)]
        for column, prefix, levels in self._groups():
            indicators = indicator_frame(cohort[column], levels, prefix)
            blocks.append(
                indicators.drop(columns=f"{prefix}_{self.references[column]}")
            )

        X = pd.concat(blocks, axis=1)
        y = (cohort["outcome"] == self.positive_outcome).astype(int).rename("readmitted")
        return DesignMatrix(X=X, y=y, references=dict(self.references))

    def fit_transform(self, cohort: pd.DataFrame) -> DesignMatrix:
        return self.fit(cohort).transform(cohort)


def build_features(
    cohort: pd.DataFrame, config: Optional[Dict[str, Any]] = None
) -> DesignMatrix:
    """
    Build the design matrix for a validated cohort.

    Args:
        cohort (pd.DataFrame): Validated cohort.
        config (Optional[Dict[str, Any]], optional): Configuration dictionary.
            If None, loads the default configuration. Defaults to None.

    Returns:
        DesignMatrix: Encoded covariates, labels and chosen references.
    """
    builder = DesignMatrixBuilder(config)
    design = builder.fit_transform(cohort)
    positives = int(design.y.sum())
    logger.info(
        f"Design matrix: {design.X.shape[0]} rows x {design.X.shape[1]} covariates, "
        f"{positives} readmitted within 30 days ({positives / len(design.y):.2%})"
    )
    return design
