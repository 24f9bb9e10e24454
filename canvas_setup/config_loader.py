# canvas_setup/config_loader.py
# -*- coding: utf-8 -*-
"""
Configuration loader for the installer.

Handles loading settings from Pydantic model defaults, environment variables,
a YAML file and command-line arguments, applying this order of precedence
(later wins):
1. Pydantic Model Defaults
2. Environment Variables (via Pydantic's BaseSettings initialization)
3. YAML Configuration File
4. Command-Line Arguments
"""

import argparse
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from canvas_setup.exceptions import InstallerError

from .config_models import AppSettings

module_logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "config.yaml"

# argparse destination -> (settings section or None for top level, field)
CLI_FIELD_MAP: Dict[str, tuple] = {
    "domain": ("install", "domain"),
    "email_sender": ("install", "email_sender"),
    "admin_email": ("install", "admin_email"),
    "use_ssl": ("install", "use_ssl"),
    "branch": ("canvas", "branch"),
    "ruby_version": ("ruby", "version"),
    "log_prefix": (None, "log_prefix"),
    "assume_yes": (None, "assume_yes"),
    "non_interactive": (None, "non_interactive"),
}


def _deep_update(
    source: Dict[str, Any], overrides: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Recursively updates `source` with values from `overrides`. Nested
    dictionaries are merged; None values in `overrides` never replace an
    existing value.

    Returns:
        Dict[str, Any]: The updated `source` dictionary.
    """
    for key, value in overrides.items():
        if (
            isinstance(value, dict)
            and key in source
            and isinstance(source[key], dict)
        ):
            source[key] = _deep_update(source[key], value)
        elif value is not None:
            source[key] = value
        elif key not in source:
            source[key] = value
    return source


def _read_yaml_config(
    yaml_config_path: Path, logger_to_use: logging.Logger, required: bool
) -> Dict[str, Any]:
    if not (yaml_config_path.exists() and yaml_config_path.is_file()):
        if required:
            raise InstallerError(f"Configuration file '{yaml_config_path}' not found.")
        logger_to_use.info(
            f"Configuration file '{yaml_config_path}' not found. Using defaults, environment variables, and CLI args."
        )
        return {}
    try:
        with open(yaml_config_path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise InstallerError(
            f"Could not parse YAML config file '{yaml_config_path}': {e}"
        ) from e
    except OSError as e:
        raise InstallerError(
            f"Could not read config file '{yaml_config_path}': {e}"
        ) from e
    if yaml_data is None:
        return {}
    if not isinstance(yaml_data, dict):
        logger_to_use.warning(
            f"Config file '{yaml_config_path}' does not contain a valid YAML dictionary. Ignoring."
        )
        return {}
    logger_to_use.info(f"Loaded configuration from {yaml_config_path}")
    return yaml_data


def _cli_overrides(cli_args: argparse.Namespace) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for cli_key, cli_value in vars(cli_args).items():
        if cli_value is None or cli_key not in CLI_FIELD_MAP:
            continue
        # store_true flags only override when actually given
        if cli_value is False and cli_key in ("assume_yes", "non_interactive"):
            continue
        section, field = CLI_FIELD_MAP[cli_key]
        if section is None:
            overrides[field] = cli_value
        else:
            overrides.setdefault(section, {})[field] = cli_value
    return overrides


def load_app_settings(
    cli_args: Optional[argparse.Namespace] = None,
    config_file_path: Optional[str] = None,
    current_logger: Optional[logging.Logger] = None,
) -> AppSettings:
    """
    Loads application settings with the precedence documented in the module
    docstring.

    Args:
        cli_args: Parsed command-line arguments (from argparse).
        config_file_path: Path to the YAML configuration file. When given
            explicitly the file must exist; otherwise `config.yaml` in the
            current directory is used if present.
        current_logger: Optional logger to use instead of the module logger.

    Returns:
        An instance of AppSettings with the fully resolved configuration.

    Raises:
        InstallerError: The YAML file is unreadable or the merged values fail
            validation.
    """
    logger_to_use = current_logger if current_logger else module_logger

    # Model defaults < environment variables
    try:
        settings_after_env_and_defaults = AppSettings()
    except ValidationError as e:
        raise InstallerError(f"Invalid configuration in environment: {e}") from e
    current_values_dict = settings_after_env_and_defaults.model_dump(
        exclude_defaults=False
    )

    yaml_path = Path(config_file_path or DEFAULT_CONFIG_FILE)
    yaml_data = _read_yaml_config(
        yaml_path, logger_to_use, required=config_file_path is not None
    )
    current_values_dict = _deep_update(current_values_dict, yaml_data)

    if cli_args:
        current_values_dict = _deep_update(
            current_values_dict, _cli_overrides(cli_args)
        )

    try:
        final_settings = AppSettings(**current_values_dict)
    except ValidationError as e:
        logger_to_use.error(f"Configuration validation failed: {e}")
        raise InstallerError(f"Configuration error: {e}") from e

    logger_to_use.debug(
        "Successfully loaded and validated application settings"
    )
    return final_settings
