"""
Configuration utilities for the readmission report.

Provides functions to:
- Get the project root directory.
- Load and validate the main configuration file (`config.yaml`).
- Construct absolute paths to data files and report directories based on the configuration.
- Save configuration dictionaries back to YAML files.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

import yaml
from yaml.parser import ParserError
from yaml.scanner import ScannerError

# Expected configuration structure (top-level keys and required sub-keys)
CONFIG_SCHEMA: Dict[str, Set[str]] = {
    "logging": {"level", "file_output", "console_output"},
    "data": {"raw", "processed", "na_values", "missing_policy", "columns"},
    "cohort": {"positive_outcome", "negative_outcome", "excluded_outcomes"},
    "features": {
        "medication_levels",
        "age_brackets",
        "reference_levels",
        "reference_strategy",
    },
    "models": {"readmission"},
    "evaluation": {"threshold", "inclusive_threshold", "z_score"},
    "reporting": {"output_dir", "plots"},
}

# Project root sits three levels above the package (src/diabetes_readmission/utils/config.py)
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent.parent


def get_project_root() -> Path:
    """
    Get the absolute path to the project root directory.

    Returns:
        Path: Path object representing the project root directory.
    """
    return PROJECT_ROOT


def validate_config_structure(
    config: Dict[str, Any], schema: Dict[str, Set[str]], path: str = ""
) -> List[str]:
    """
    Validate the structure of a configuration dictionary against a schema.

    Checks for missing required sections and subsections defined in the schema.

    Args:
        config (Dict[str, Any]): Configuration dictionary to validate.
        schema (Dict[str, Set[str]]): Schema dictionary where keys are section names
                                      and values are sets of required subsection keys.
        path (str, optional): Current path in the configuration for error messages.
                              Defaults to "".

    Returns:
        List[str]: A list of validation error messages. Empty if the structure is valid.
    """
    errors: List[str] = []
    current_path_prefix = f"{path}." if path else ""

    for section in schema:
        if section not in config:
            errors.append(f"Missing required section '{current_path_prefix}{section}'")

    for section, value in config.items():
        if section not in schema:
            continue
        if isinstance(value, dict):
            for subsection in schema[section]:
                if subsection not in value:
                    errors.append(
                        f"Missing required subsection '{subsection}' in '{current_path_prefix}{section}'"
                    )
        else:
            errors.append(
                f"Section '{current_path_prefix}{section}' should be a dictionary, but found {type(value).__name__}"
            )

    return errors


@lru_cache(maxsize=None)  # Cache the result to avoid repeated file reads and parsing
def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from a YAML file, validate its structure, and cache the result.

    Args:
        config_path (Optional[str], optional): Path to the configuration file.
            If None, uses the default 'configs/config.yaml' relative to the project root.
            Defaults to None.

    Returns:
        Dict[str, Any]: The loaded configuration dictionary.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ValueError: If the configuration file is empty or malformed (not valid YAML
                    or not a dictionary).
    """
    if config_path is None:
        config_path_obj = get_project_root() / "configs" / "config.yaml"
    else:
        config_path_obj = Path(config_path)

    config_path_str = str(config_path_obj.resolve())

    if not config_path_obj.exists():
        # Cannot use logger here reliably due to potential recursion during startup
        print(f"ERROR: Configuration file not found: {config_path_str}")
        raise FileNotFoundError(f"Configuration file not found: {config_path_str}")

    try:
        with config_path_obj.open("r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except (ParserError, ScannerError) as e:
        error_msg = (
            f"YAML syntax error in configuration file {config_path_str}: {str(e)}"
        )
        print(f"ERROR: Config loading: {error_msg}")
        raise ValueError(error_msg) from e

    if config is None:
        raise ValueError(f"Configuration file is empty: {config_path_str}")
    if not isinstance(config, dict):
        raise ValueError(
            f"Configuration must be a dictionary, got {type(config).__name__} in {config_path_str}"
        )

    errors = validate_config_structure(config, CONFIG_SCHEMA)
    if errors:
        error_msg = "Configuration validation errors:\n" + "\n".join(
            f"- {e}" for e in errors
        )
        print(f"WARNING: Config validation: {error_msg}")

    return config


def get_data_path(
    data_type: str,
    dataset: Optional[str] = None,
    config: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Construct the absolute path to a data file or directory based on the configuration.

    Resolves paths relative to the project root if they are not absolute in the config.

    Args:
        data_type (str): Type of data ('raw' or 'processed').
        dataset (Optional[str], optional): Specific key within the data_type section
                                           (e.g., 'encounters'). If None, returns the
                                           'base_path' for the data_type. Defaults to None.
        config (Optional[Dict[str, Any]], optional): Configuration dictionary.
                                                     If None, loads the default configuration.

    Returns:
        str: Absolute path to the data file or directory.

    Raises:
        ValueError: If `data_type` is not 'raw' or 'processed'.
        KeyError: If the 'data' section, the `data_type` section, or the requested
                  key is not found in the configuration.
    """
    if config is None:
        config = load_config()

    valid_data_types = ["raw", "processed"]
    if data_type not in valid_data_types:
        raise ValueError(
            f"data_type must be one of {valid_data_types}, got '{data_type}'"
        )

    if "data" not in config:
        raise KeyError("'data' section not found in configuration")
    if data_type not in config["data"]:
        raise KeyError(f"'{data_type}' section not found in data configuration")

    lookup_key = dataset if dataset is not None else "base_path"

    try:
        path = Path(config["data"][data_type][lookup_key])
    except KeyError:
        raise KeyError(
            f"Dataset key '{lookup_key}' not found in configuration for '{data_type}' data"
        )
    except TypeError as e:
        raise KeyError(
            f"Configuration for '{data_type}' data is not structured correctly: {e}"
        ) from e

    if not path.is_absolute():
        path = get_project_root() / path

    return str(path.resolve())


def get_output_dir(config: Optional[Dict[str, Any]] = None) -> Path:
    """
    Resolve the report output directory, relative to the project root if needed.

    Args:
        config (Optional[Dict[str, Any]], optional): Configuration dictionary.
                                                     If None, loads the default configuration.

    Returns:
        Path: Absolute path of the report output directory (not created).
    """
    if config is None:
        config = load_config()
    path = Path(config.get("reporting", {}).get("output_dir", "reports"))
    if not path.is_absolute():
        path = get_project_root() / path
    return path.resolve()


def save_config(config: Dict[str, Any], config_path: Optional[str] = None) -> None:
    """
    Save a configuration dictionary to a YAML file.

    Creates the directory if it doesn't exist.

    Args:
        config (Dict[str, Any]): Configuration dictionary to save.
        config_path (Optional[str], optional): Path to save the configuration file.
            If None, uses the default 'configs/config.yaml'. Defaults to None.
    """
    if config_path is None:
        config_path_obj = get_project_root() / "configs" / "config.yaml"
    else:
        config_path_obj = Path(config_path)

    os.makedirs(config_path_obj.parent, exist_ok=True)

    errors = validate_config_structure(config, CONFIG_SCHEMA)
    if errors:
        error_msg = "Configuration validation errors (saving anyway):\n" + "\n".join(
            f"- {e}" for e in errors
        )
        print(f"WARNING: Config validation: {error_msg}")

    with config_path_obj.open("w", encoding="utf-8") as f:
        yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False)
