"""
Exception types raised by the readmission report.

Every failure during data preparation or model fitting aborts the run; callers
catch `ReadmissionReportError` at the command-line boundary only.
"""


class ReadmissionReportError(Exception):
    """Base class for errors that abort a report run."""


class DataValidationError(ReadmissionReportError, ValueError):
    """Input rows are missing required values, malformed, or leave nothing to model."""


class ModelFitError(ReadmissionReportError, RuntimeError):
    """The logistic regression could not be fitted to a stable, identified solution."""


class SeparationError(ModelFitError):
    """The training labels are (quasi-)perfectly separated by the covariates."""
