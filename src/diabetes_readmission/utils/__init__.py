"""
Utility functions for the readmission report.
"""

from .config import get_data_path, get_project_root, load_config, save_config
from .logger import get_logger, setup_logger

__all__ = [
    "load_config",
    "save_config",
    "get_project_root",
    "get_data_path",
    "setup_logger",
    "get_logger",
]
