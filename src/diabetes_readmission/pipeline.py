"""
End-to-end readmission report.

Runs the whole analysis in one pass: opens a query session over the raw encounter
file, selects and validates the cohort, summarises readmission rates, encodes the
design matrix, fits and evaluates the logistic regression, and writes the tables,
figures and markdown report to the output directory. Any failure aborts the run.
"""

import argparse
import copy
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from .data import QuerySession, prepare_cohort, readmission_rates
from .exceptions import ReadmissionReportError
from .features import DesignMatrix, build_features
from .models import EvaluationResult, FittedModel, ReadmissionModel, curve_points
from .reporting import (
    ReportContent,
    format_metrics_table,
    format_odds_ratio_table,
    metrics_table,
    odds_ratio_table,
    write_report,
    write_table,
)
from .utils import get_data_path, get_logger, load_config, save_config
from .utils.config import get_output_dir

logger = get_logger(__name__)

# Cohort fields summarised in the report, with their display labels
RATE_FIELDS = {"age_bracket": "Age Bracket", "medication": "Medication Change"}


@dataclass
class ReportResult:
    """Artefacts of one report run."""

    output_dir: Path
    cohort_flow: pd.DataFrame
    design: DesignMatrix
    fitted: FittedModel
    evaluation: EvaluationResult
    odds_ratios: pd.DataFrame
    metrics: pd.DataFrame
    readmission_rates: Dict[str, pd.DataFrame]
    files: List[Path] = field(default_factory=list)


def _report_notes(config: Dict[str, Any], fitted: FittedModel, evaluation: EvaluationResult) -> List[str]:
    evaluation_cfg = config.get("evaluation", {})
    comparison = ">=" if evaluation_cfg.get("inclusive_threshold", True) else ">"
    notes = [
        f"Predictions are classified as readmitted when the probability is {comparison} "
        f"{evaluation.threshold}. With a rare outcome this threshold can predict the "
        "majority class for nearly every encounter; ROC-AUC and PR-AUC do not depend on it.",
        "Encounters with a readmission after more than 30 days are excluded from the cohort.",
    ]
    if fitted.method == "penalized":
        notes.append(
            "The training labels were separated; coefficients come from an L2-penalised fit "
            "and their intervals are approximate."
        )
    if evaluation.roc_auc is None:
        notes.append(
            "The held-out partition contains a single class; ROC-AUC and PR-AUC are undefined."
        )
    return notes


def run_report(
    config: Optional[Dict[str, Any]] = None,
    source_path: Optional[str] = None,
    output_dir: Optional[str] = None,
    plots: Optional[bool] = None,
) -> ReportResult:
    """
    Produce the readmission report.

    Args:
        config (Optional[Dict[str, Any]], optional): Configuration dictionary.
            If None, loads the default configuration. Defaults to None.
        source_path (Optional[str], optional): Raw encounter file; overrides
            'data.raw.encounters'. Defaults to None.
        output_dir (Optional[str], optional): Output directory; overrides
            'reporting.output_dir'. Defaults to None.
        plots (Optional[bool], optional): Whether to draw figures; overrides
            'reporting.plots'. Defaults to None.

    Returns:
        ReportResult: Tables, fitted model, metrics and the files written.

    Raises:
        FileNotFoundError: If the input file does not exist.
        DataValidationError: On missing columns, missing or malformed values
                             (per policy), or an empty cohort.
        ModelFitError: If the logistic regression cannot be fitted.
    """
    # Copy so that overrides never leak into the cached configuration
    config = copy.deepcopy(config if config is not None else load_config())
    if source_path is not None:
        config["data"]["raw"]["encounters"] = str(Path(source_path).resolve())
    reporting_cfg = config.setdefault("reporting", {})
    if output_dir is not None:
        reporting_cfg["output_dir"] = str(Path(output_dir).resolve())
    if plots is not None:
        reporting_cfg["plots"] = plots

    source = get_data_path("raw", "encounters", config)
    out_dir = get_output_dir(config)
    formats = reporting_cfg.get("formats", ["text", "csv", "markdown"])
    positive_outcome = config.get("cohort", {}).get("positive_outcome", "<30")
    features_cfg = config.get("features", {})
    rate_levels = {
        "age_bracket": features_cfg.get("age_brackets"),
        "medication": features_cfg.get("medication_levels"),
    }

    logger.info("--- Cohort ---")
    with QuerySession(source, na_values=config["data"].get("na_values")) as session:
        cohort = prepare_cohort(session, config)

    rates = {
        column: readmission_rates(
            cohort.frame, column, positive_outcome, levels=rate_levels[column]
        )
        for column in RATE_FIELDS
    }

    logger.info("--- Model ---")
    design = build_features(cohort.frame, config)
    model = ReadmissionModel(config)
    evaluation = model.fit(design)
    fitted = model.fitted

    logger.info("--- Report ---")
    z_score = float(config.get("evaluation", {}).get("z_score", 1.96))
    odds_ratios = odds_ratio_table(fitted, z_score=z_score)
    odds_display = format_odds_ratio_table(odds_ratios)
    metrics = metrics_table(evaluation)

    files: List[Path] = []
    table_formats = [f for f in formats if f in ("text", "csv")]
    files += write_table(odds_ratios, out_dir, "odds_ratios", table_formats, display=odds_display)
    files += write_table(
        metrics, out_dir, "metrics", table_formats, display=format_metrics_table(metrics)
    )
    if "csv" in formats:
        files += write_table(
            evaluation.confusion.as_frame().reset_index(), out_dir, "confusion_matrix", ["csv"]
        )
        files += write_table(cohort.flow, out_dir, "cohort_flow", ["csv"])
        for column, table in rates.items():
            files += write_table(table, out_dir, f"readmission_rates_{column}", ["csv"])

    figures: List[str] = []
    if reporting_cfg.get("plots", True):
        # Imported lazily so that plot-free runs never load matplotlib
        from .visualisation import (
            plot_confusion_matrix,
            plot_readmission_rates,
            plot_roc_pr_curves,
        )

        for column, label in RATE_FIELDS.items():
            figures.append(
                plot_readmission_rates(
                    rates[column], label, out_dir / f"readmission_rate_{column}.png"
                )
            )
        curves = curve_points(
            model.partition.y_test.to_numpy(), model.predict_proba(model.partition.X_test)
        )
        if curves is not None:
            figures.append(
                plot_roc_pr_curves(curves, evaluation, out_dir / "roc_pr_curves.png")
            )
        else:
            logger.warning("Skipping ROC/PR curves: held-out labels hold a single class")
        figures.append(
            plot_confusion_matrix(
                evaluation.confusion, evaluation.threshold, out_dir / "confusion_matrix.png"
            )
        )
        files += figures

    config_path = out_dir / "config_used.yaml"
    save_config(config, str(config_path))
    files.append(config_path)

    if "markdown" in formats:
        content = ReportContent(
            source=source,
            cohort_flow=cohort.flow,
            references=design.references,
            fitted=fitted,
            odds_ratios=odds_display,
            metrics=format_metrics_table(metrics),
            evaluation=evaluation,
            readmission_rates={RATE_FIELDS[c]: t for c, t in rates.items()},
            figures=[Path(f).name for f in figures],
            notes=_report_notes(config, fitted, evaluation),
        )
        files.append(write_report(content, out_dir))

    logger.info(f"Report complete: {len(files)} files written to {out_dir}")
    return ReportResult(
        output_dir=out_dir,
        cohort_flow=cohort.flow,
        design=design,
        fitted=fitted,
        evaluation=evaluation,
        odds_ratios=odds_ratios,
        metrics=metrics,
        readmission_rates=rates,
        files=files,
    )


def main() -> None:
    """
    Command-line entry point.

    Parses the optional config path, input file, output directory and plot switch,
    then runs the report. Exits with status 1 if the run fails.
    """
    parser = argparse.ArgumentParser(
        description="Logistic regression report of 30-day readmission for diabetic encounters"
    )
    parser.add_argument(
        "--config", type=str, default=None, help="Path to configuration file"
    )
    parser.add_argument(
        "--input", type=str, default=None, help="Path to the raw encounter CSV file"
    )
    parser.add_argument(
        "--output-dir", type=str, default=None, help="Directory for the report outputs"
    )
    parser.add_argument(
        "--no-plots", action="store_true", help="Skip figure generation"
    )
    args = parser.parse_args()

    try:
        if args.config is not None:
            config = load_config(args.config)
        else:
            config = load_config()

        result = run_report(
            config,
            source_path=args.input,
            output_dir=args.output_dir,
            plots=False if args.no_plots else None,
        )
    except (ReadmissionReportError, FileNotFoundError, ValueError, KeyError) as e:
        logger.error(f"Report failed: {e}", exc_info=True)
        sys.exit(1)

    logger.info("--- Held-out Metrics ---")
    for metric_name, metric_value in result.evaluation.as_dict().items():
        shown = "undefined" if metric_value is None else f"{metric_value:.4f}"
        logger.info(f"  {metric_name}: {shown}")


if __name__ == "__main__":
    main()
