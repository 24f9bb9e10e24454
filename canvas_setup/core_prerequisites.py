# canvas_setup/core_prerequisites.py
# -*- coding: utf-8 -*-
"""
Functions for installing the core system prerequisites: the apt base
packages, Node.js with Yarn, and the Apache modules Canvas needs.
"""

import logging
import re
import subprocess
from typing import Optional

from canvas_setup import config as static_config
from canvas_setup.config_models import AppSettings
from canvas_setup.exceptions import FatalStepError
from common.command_utils import (
    command_exists,
    log_installer,
    run_command,
    run_elevated_command,
)
from common.debian.apt_manager import AptManager

module_logger = logging.getLogger(__name__)

NODE_VERSION_PATTERN = re.compile(r"v?(\d+)\.")


def install_system_packages(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> None:
    """Refresh apt, upgrade the system and install the base package list."""
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    apt = AptManager(logger=logger_to_use)

    log_installer(
        f"{symbols.get('package', '📦')} Updating system packages...",
        "info",
        logger_to_use,
        app_settings,
    )
    apt.update(app_settings, raise_error=True)
    if not apt.upgrade(app_settings):
        raise FatalStepError("apt-get upgrade failed.")

    log_installer(
        f"{symbols.get('package', '📦')} Installing {len(static_config.BASE_PACKAGES)} base packages...",
        "info",
        logger_to_use,
        app_settings,
    )
    if not apt.install(static_config.BASE_PACKAGES, app_settings, update_first=False):
        raise FatalStepError("Installation of the base packages failed.")


def get_node_major_version(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> Optional[int]:
    """Major version of the installed `node`, or None if it is absent."""
    logger_to_use = current_logger if current_logger else module_logger
    if not command_exists("node"):
        return None
    result = run_command(
        ["node", "-v"],
        app_settings,
        check=False,
        capture_output=True,
        current_logger=logger_to_use,
    )
    match = NODE_VERSION_PATTERN.match((result.stdout or "").strip())
    return int(match.group(1)) if match else None


def install_nodejs_yarn(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> None:
    """
    Install Node.js from NodeSource when it is missing or too old, then make
    Yarn available through corepack (npm as a fallback).
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    required_major = app_settings.node.major_version

    current_major = get_node_major_version(app_settings, logger_to_use)
    if current_major is not None and current_major >= required_major:
        log_installer(
            f"{symbols.get('info', 'ℹ️')} Node.js {current_major}.x already installed.",
            "info",
            logger_to_use,
            app_settings,
        )
    else:
        setup_url = app_settings.node.nodesource_setup_url_template.format(
            major=required_major
        )
        log_installer(
            f"{symbols.get('gear', '⚙️')} Installing Node.js {required_major}.x from {setup_url}...",
            "info",
            logger_to_use,
            app_settings,
        )
        curl_res = run_command(
            ["curl", "-fsSL", setup_url],
            app_settings,
            capture_output=True,
            current_logger=logger_to_use,
        )
        run_elevated_command(
            ["bash", "-"],
            app_settings,
            cmd_input=curl_res.stdout,
            current_logger=logger_to_use,
        )
        if not AptManager(logger=logger_to_use).install("nodejs", app_settings):
            raise FatalStepError("Installation of the nodejs package failed.")

        installed_major = get_node_major_version(app_settings, logger_to_use)
        if installed_major is None or installed_major < required_major:
            raise FatalStepError(
                f"Node.js {required_major}.x or newer is required, found: {installed_major}."
            )

    try:
        run_elevated_command(
            ["corepack", "enable"], app_settings, current_logger=logger_to_use
        )
    except (subprocess.CalledProcessError, FileNotFoundError):
        log_installer(
            f"{symbols.get('warning', '!')} corepack enable failed.",
            "warning",
            logger_to_use,
            app_settings,
        )

    if not command_exists("yarn"):
        log_installer(
            f"{symbols.get('package', '📦')} Yarn not found, installing it with npm...",
            "info",
            logger_to_use,
            app_settings,
        )
        run_elevated_command(
            ["npm", "install", "-g", "yarn"],
            app_settings,
            current_logger=logger_to_use,
        )

    yarn_res = run_command(
        ["yarn", "--version"],
        app_settings,
        check=False,
        capture_output=True,
        current_logger=logger_to_use,
    )
    log_installer(
        f"{symbols.get('success', '✅')} Node.js and Yarn ready (yarn {(yarn_res.stdout or 'N/A').strip()}).",
        "success",
        logger_to_use,
        app_settings,
    )


def enable_apache_modules(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> None:
    """Enable the Apache modules the Canvas virtual host relies on."""
    logger_to_use = current_logger if current_logger else module_logger
    log_installer(
        f"{app_settings.symbols.get('gear', '⚙️')} Enabling Apache modules: {', '.join(static_config.APACHE_MODULES)}",
        "info",
        logger_to_use,
        app_settings,
    )
    run_elevated_command(
        ["a2enmod"] + static_config.APACHE_MODULES,
        app_settings,
        current_logger=logger_to_use,
    )
