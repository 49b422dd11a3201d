"""
Inference tables and report writing for the readmission report.
"""

from .inference import format_interval, format_odds_ratio_table, odds_ratio_table
from .report import (
    ReportContent,
    format_metrics_table,
    markdown_table,
    metrics_table,
    render_text,
    write_report,
    write_table,
)

__all__ = [
    "odds_ratio_table",
    "format_odds_ratio_table",
    "format_interval",
    "metrics_table",
    "format_metrics_table",
    "render_text",
    "markdown_table",
    "write_table",
    "ReportContent",
    "write_report",
]
