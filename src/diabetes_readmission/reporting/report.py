"""
Report rendering: metric tables, plain-text and CSV tables, and the markdown report.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pandas as pd

from ..models.evaluate import EvaluationResult
from ..models.model import FittedModel
from ..utils import get_logger

logger = get_logger(__name__)

REPORT_FORMATS = ("text", "csv", "markdown")


def metrics_table(result: EvaluationResult) -> pd.DataFrame:
    """Rows 'Accuracy', 'PR-AUC', 'ROC-AUC'; undefined metrics hold NaN."""
    return pd.DataFrame(
        [
            {"metric": name, "value": float("nan") if value is None else value}
            for name, value in result.as_dict().items()
        ]
    )


def format_metrics_table(table: pd.DataFrame, decimals: int = 4) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "Metric": table["metric"].to_numpy(),
            "Value": [
                "undefined" if pd.isna(v) else f"{v:.{decimals}f}" for v in table["value"]
            ],
        }
    )


def render_text(table: pd.DataFrame) -> str:
    return table.to_string(index=False)


def markdown_table(table: pd.DataFrame, index: bool = False) -> str:
    """Render a frame as a GitHub-flavoured markdown table."""
    frame = table.reset_index() if index else table
    header = "| " + " | ".join(str(c) for c in frame.columns) + " |"
    divider = "|" + "|".join("---" for _ in frame.columns) + "|"
    rows = [
        "| " + " | ".join("" if pd.isna(v) else str(v) for v in row) + " |"
        for row in frame.itertuples(index=False)
    ]
    return "\n".join([header, divider, *rows])


def write_table(
    table: pd.DataFrame,
    output_dir: Path,
    name: str,
    formats: Sequence[str] = ("text", "csv"),
    display: Optional[pd.DataFrame] = None,
) -> List[Path]:
    """
    Write a table as CSV and/or plain text.

    Args:
        table (pd.DataFrame): Numeric table, written to '<name>.csv'.
        output_dir (Path): Destination directory (created if needed).
        name (str): File stem.
        formats (Sequence[str], optional): Any of 'csv' and 'text'. Defaults to both.
        display (Optional[pd.DataFrame], optional): Rounded display form written to
            '<name>.txt'; defaults to `table`.

    Returns:
        List[Path]: Paths written.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    written: List[Path] = []
    if "csv" in formats:
        path = output_dir / f"{name}.csv"
        table.to_csv(path, index=False, na_rep="undefined")
        written.append(path)
    if "text" in formats:
        path = output_dir / f"{name}.txt"
        path.write_text(render_text(display if display is not None else table) + "\n", encoding="utf-8")
        written.append(path)
    for path in written:
        logger.info(f"Saved {path.name}")
    return written


@dataclass
class ReportContent:
    """Everything the markdown report shows."""

    source: str
    cohort_flow: pd.DataFrame
    references: Dict[str, str]
    fitted: FittedModel
    odds_ratios: pd.DataFrame
    metrics: pd.DataFrame
    evaluation: EvaluationResult
    readmission_rates: Dict[str, pd.DataFrame] = field(default_factory=dict)
    figures: List[str] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)


def write_report(content: ReportContent, output_dir: Path) -> Path:
    """
    Write REPORT.md summarising the cohort, the model and the held-out evaluation.

    Args:
        content (ReportContent): Report content.
        output_dir (Path): Destination directory (created if needed).

    Returns:
        Path: Path of the written report.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    report_path = output_dir / "REPORT.md"
    fitted = content.fitted
    evaluation = content.evaluation

    lines: List[str] = []
    lines.append("# 30-Day Readmission of Diabetic Inpatient Encounters")
    lines.append("")
    lines.append(f"Source: `{content.source}`")
    lines.append("")

    lines.append("## Cohort Flow")
    for _, row in content.cohort_flow.iterrows():
        lines.append(f"- {row['step']}: {row['n']}")
    lines.append("")

    if content.readmission_rates:
        lines.append("## Readmission Rates")
        for field_name, rates in content.readmission_rates.items():
            shown = rates.assign(
                rate=[("NA" if pd.isna(r) else f"{r:.2%}") for r in rates["rate"]]
            )
            lines.append(f"### {field_name}")
            lines.append("")
            lines.append(markdown_table(shown))
            lines.append("")

    lines.append("## Model")
    lines.append(
        "- Logistic regression (binomial family, logit link), "
        f"fitted by {'IRLS' if fitted.method == 'irls' else 'L2-penalised maximum likelihood'}"
    )
    lines.append(f"- Training rows: {fitted.n_obs}; iterations: {fitted.n_iter}")
    lines.append(f"- Log-likelihood: {fitted.log_likelihood:.3f}")
    for group, reference in content.references.items():
        lines.append(f"- Reference category for {group}: `{reference}`")
    lines.append("")

    lines.append("## Odds Ratios")
    lines.append("")
    lines.append(markdown_table(content.odds_ratios))
    lines.append("")

    lines.append("## Held-out Evaluation")
    lines.append("")
    lines.append(markdown_table(content.metrics))
    lines.append("")
    lines.append(
        f"Confusion matrix at threshold {evaluation.threshold} ({evaluation.n} held-out rows):"
    )
    lines.append("")
    lines.append(markdown_table(evaluation.confusion.as_frame(), index=True))
    lines.append("")

    if content.figures:
        lines.append("## Figures")
        for fig in content.figures:
            lines.append(f"- ![{Path(fig).stem}]({fig})")
        lines.append("")

    lines.append("## Notes")
    notes = list(content.notes) or ["None."]
    for note in notes:
        lines.append(f"- {note}")
    lines.append("")

    report_path.write_text("\n".join(lines), encoding="utf-8")
    logger.info(f"Saved report to {report_path}")
    return report_path
