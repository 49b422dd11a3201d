"""
Feature engineering for the readmission report.
"""

from .build_features import (
    DesignMatrix,
    DesignMatrixBuilder,
    build_features,
    indicator_frame,
)

__all__ = [
    "DesignMatrix",
    "DesignMatrixBuilder",
    "build_features",
    "indicator_frame",
]
