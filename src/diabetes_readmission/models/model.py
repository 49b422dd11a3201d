"""
Logistic regression of 30-day readmission.

This module fits a binomial GLM with logit link by iteratively reweighted least
squares (statsmodels) and holds the result in an immutable `FittedModel`. Fits
that do not converge, or whose coefficients run off toward infinity because the
labels are separated, are rejected with `ModelFitError` rather than returned.
Optionally, a separated fit falls back to an L2-penalised logistic regression
(scikit-learn) with standard errors from the penalised information matrix.
"""

import warnings
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
import statsmodels.api as sm
from scipy.special import expit
from sklearn.exceptions import ConvergenceWarning as SklearnConvergenceWarning
from sklearn.linear_model import LogisticRegression
from statsmodels.tools.sm_exceptions import (
    ConvergenceWarning,
    PerfectSeparationError,
    PerfectSeparationWarning,
)

from ..data.make_dataset import Partition, split_partition
from ..exceptions import ModelFitError, SeparationError
from ..features.build_features import DesignMatrix
from ..utils import get_logger, load_config
from ..utils.logger import is_debug_enabled
from .evaluate import EvaluationResult, evaluate_predictions

logger = get_logger(__name__)

INTERCEPT = "Intercept"
SEPARATION_POLICIES = ("raise", "penalize")


def add_intercept(X: pd.DataFrame) -> pd.DataFrame:
    """Prepend a constant 'Intercept' column."""
    exog = X.astype(float).copy()
    exog.insert(0, INTERCEPT, 1.0)
    return exog


@dataclass(frozen=True)
class FittedModel:
    """
    Coefficients of a fitted logistic regression, on the log-odds scale.

    Attributes:
        params (pd.Series): Estimates indexed by term, 'Intercept' first.
        bse (pd.Series): Standard errors indexed by term.
        cov_params (pd.DataFrame): Covariance matrix of the estimates.
        feature_names (Tuple[str, ...]): Covariate names, in design-matrix order.
        n_obs (int): Number of training rows.
        n_iter (int): Optimiser iterations used.
        converged (bool): Whether the optimiser reported convergence.
        method (str): 'irls' or 'penalized'.
        log_likelihood (float): Log-likelihood of the training labels.
    """

    params: pd.Series
    bse: pd.Series
    cov_params: pd.DataFrame
    feature_names: Tuple[str, ...]
    n_obs: int
    n_iter: int
    converged: bool
    method: str
    log_likelihood: float

    @property
    def terms(self) -> List[str]:
        return self.params.index.tolist()

    def _align(self, X: pd.DataFrame) -> pd.DataFrame:
        missing = [name for name in self.feature_names if name not in X.columns]
        if missing:
            raise ValueError(f"Input is missing model features: {missing}")
        return X[list(self.feature_names)]

    def linear_predictor(self, X: pd.DataFrame) -> np.ndarray:
        """Log-odds per row: intercept plus the covariates weighted by the coefficients."""
        exog = add_intercept(self._align(X))
        return exog.to_numpy() @ self.params[exog.columns].to_numpy()

    def predict_proba(self, X: pd.DataFrame) -> np.ndarray:
        """Probability of readmission within 30 days per row."""
        return expit(self.linear_predictor(X))


class ReadmissionModel:
    """
    Logistic regression of the binary readmission label on the design matrix.

    Attributes:
        config (Dict): The loaded configuration dictionary.
        model_config (Dict): The 'models.readmission' section.
        random_state (int): Seed of the train/test split.
        fitted (Optional[FittedModel]): The fitted coefficients. None until trained.
        partition (Optional[Partition]): The split used by `fit`. None until fitted.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None) -> None:
        self.config = config if config is not None else load_config()
        self.model_config = self.config.get("models", {}).get("readmission", {})
        self.test_size = float(self.model_config.get("test_size", 0.2))
        self.random_state = int(self.model_config.get("random_state", 42))
        self.stratify = bool(self.model_config.get("stratify", False))
        self.max_iter = int(self.model_config.get("max_iter", 100))
        self.tol = float(self.model_config.get("tol", 1e-8))
        self.separation_eps = float(self.model_config.get("separation_eps", 1e-8))
        self.separation_policy = self.model_config.get("separation_policy", "raise")
        self.penalty_strength = float(self.model_config.get("penalty_strength", 1.0))
        self.penalized_max_iter = int(
            self.model_config.get("penalized_max_iter", 1000)
        )
        if self.separation_policy not in SEPARATION_POLICIES:
            raise ValueError(
                f"separation_policy must be one of {list(SEPARATION_POLICIES)}, got '{self.separation_policy}'"
            )
        if self.penalty_strength <= 0:
            raise ValueError("penalty_strength must be positive")

        evaluation_cfg = self.config.get("evaluation", {})
        self.threshold = float(evaluation_cfg.get("threshold", 0.5))
        self.inclusive_threshold = bool(evaluation_cfg.get("inclusive_threshold", True))

        self.fitted: Optional[FittedModel] = None
        self.partition: Optional[Partition] = None

    def _check_trainable(self, exog: pd.DataFrame, y: pd.Series) -> None:
        if len(y) == 0:
            raise ModelFitError("Training partition is empty")
        if y.nunique() < 2:
            raise ModelFitError(
                f"Training labels contain a single class ({y.iloc[0]}); "
                "a logistic regression cannot be fitted"
            )
        if np.linalg.matrix_rank(exog.to_numpy()) < exog.shape[1]:
            constant = [
                col for col in exog.columns if col != INTERCEPT and exog[col].nunique() <= 1
            ]
            raise ModelFitError(
                "Design matrix is rank deficient; "
                f"covariates without variation in the training partition: {constant}"
            )

    def _check_separation(self, fitted_values: np.ndarray) -> None:
        eps = self.separation_eps
        at_bound = (fitted_values < eps) | (fitted_values > 1 - eps)
        if at_bound.any():
            raise SeparationError(
                f"{int(at_bound.sum())} fitted probabilities are numerically 0 or 1; "
                "the training labels are separated and the coefficients are not identified"
            )

    def _fit_irls(self, exog: pd.DataFrame, y: pd.Series) -> FittedModel:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            try:
                result = sm.GLM(y, exog, family=sm.families.Binomial()).fit(
                    method="IRLS", maxiter=self.max_iter, tol=self.tol
                )
            except PerfectSeparationError as e:
                raise SeparationError(f"Perfect separation detected: {e}") from e

        if any(issubclass(w.category, PerfectSeparationWarning) for w in caught):
            raise SeparationError(
                "Perfect separation detected; the coefficients are not identified"
            )
        self._check_separation(np.asarray(result.fittedvalues, dtype=float))

        n_iter = int(result.fit_history.get("iteration", self.max_iter))
        if not result.converged or any(
            issubclass(w.category, ConvergenceWarning) for w in caught
        ):
            raise ModelFitError(
                f"IRLS did not converge within {self.max_iter} iterations (tol={self.tol})"
            )

        params = pd.Series(np.asarray(result.params), index=exog.columns)
        bse = pd.Series(np.asarray(result.bse), index=exog.columns)
        if not (np.isfinite(params).all() and np.isfinite(bse).all()):
            raise ModelFitError("Fit produced non-finite coefficients or standard errors")

        cov = pd.DataFrame(
            np.asarray(result.cov_params()), index=exog.columns, columns=exog.columns
        )
        logger.info(f"IRLS converged in {n_iter} iterations")
        if is_debug_enabled(logger):
            logger.debug(f"GLM summary:\n{result.summary()}")
        return FittedModel(
            params=params,
            bse=bse,
            cov_params=cov,
            feature_names=tuple(c for c in exog.columns if c != INTERCEPT),
            n_obs=int(result.nobs),
            n_iter=n_iter,
            converged=True,
            method="irls",
            log_likelihood=float(result.llf),
        )

    def _fit_penalized(self, exog: pd.DataFrame, y: pd.Series) -> FittedModel:
        """L2-penalised fit with an unpenalised intercept."""
        X = exog.drop(columns=INTERCEPT)
        C = 1.0 / self.penalty_strength
        classifier = LogisticRegression(C=C, solver="lbfgs", max_iter=self.penalized_max_iter)

        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            classifier.fit(X.to_numpy(), y.to_numpy())
        if any(issubclass(w.category, SklearnConvergenceWarning) for w in caught):
            raise ModelFitError(
                f"Penalised fit did not converge within {self.penalized_max_iter} iterations"
            )

        params = pd.Series(
            np.concatenate([classifier.intercept_, classifier.coef_[0]]),
            index=exog.columns,
        )
        design = exog.to_numpy()
        prob = expit(design @ params.to_numpy())
        weights = prob * (1.0 - prob)
        # Information of C * loglike + 0.5 * |w|^2, rescaled to the loglike scale
        penalty = np.full(design.shape[1], 1.0 / C)
        penalty[0] = 0.0
        information = design.T @ (design * weights[:, None]) + np.diag(penalty)
        cov = np.linalg.inv(information)

        y_np = y.to_numpy()
        log_likelihood = float(
            np.sum(y_np * np.log(prob) + (1 - y_np) * np.log1p(-prob))
        )
        return FittedModel(
            params=params,
            bse=pd.Series(np.sqrt(np.diag(cov)), index=exog.columns),
            cov_params=pd.DataFrame(cov, index=exog.columns, columns=exog.columns),
            feature_names=tuple(X.columns),
            n_obs=len(y),
            n_iter=int(classifier.n_iter_[0]),
            converged=True,
            method="penalized",
            log_likelihood=log_likelihood,
        )

    def train(self, X_train: pd.DataFrame, y_train: pd.Series) -> FittedModel:
        """
        Fit the logistic regression on the training partition.

        Args:
            X_train (pd.DataFrame): Training covariates.
            y_train (pd.Series): Training labels (0/1).

        Returns:
            FittedModel: The fitted coefficients, also stored on `self.fitted`.

        Raises:
            ModelFitError: On single-class labels, a rank-deficient design, non-convergence,
                           or separation under the 'raise' policy.
        """
        exog = add_intercept(X_train)
        y = y_train.astype(float)
        self._check_trainable(exog, y)

        logger.info(
            f"Fitting logistic regression on {len(y)} rows and {X_train.shape[1]} covariates"
        )
        try:
            fitted = self._fit_irls(exog, y)
        except SeparationError as e:
            if self.separation_policy != "penalize":
                raise
            logger.warning(
                f"{e}. Refitting with L2 penalty (strength={self.penalty_strength})"
            )
            fitted = self._fit_penalized(exog, y)

        self.fitted = fitted
        return fitted

    def predict_proba(self, X: pd.DataFrame) -> np.ndarray:
        if self.fitted is None:
            raise ValueError("Model has not been trained yet.")
        return self.fitted.predict_proba(X)

    def evaluate(self, X_test: pd.DataFrame, y_test: pd.Series) -> EvaluationResult:
        """
        Evaluate the fitted model on held-out rows at the configured threshold.

        Raises:
            ValueError: If the model has not been trained yet.
        """
        if self.fitted is None:
            raise ValueError("Model has not been trained yet.")
        logger.info(f"Evaluating on {len(y_test)} held-out rows")
        return evaluate_predictions(
            y_test.to_numpy(),
            self.predict_proba(X_test),
            threshold=self.threshold,
            inclusive=self.inclusive_threshold,
        )

    def fit(self, design: DesignMatrix) -> EvaluationResult:
        """
        Split, train and evaluate in one pass.

        Args:
            design (DesignMatrix): Encoded covariates and labels of the whole cohort.

        Returns:
            EvaluationResult: Held-out metrics.
        """
        self.partition = split_partition(
            design.X,
            design.y,
            test_size=self.test_size,
            random_state=self.random_state,
            stratify=self.stratify,
        )
        self.train(self.partition.X_train, self.partition.y_train)
        return self.evaluate(self.partition.X_test, self.partition.y_test)
