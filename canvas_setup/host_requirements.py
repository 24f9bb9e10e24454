# canvas_setup/host_requirements.py
# -*- coding: utf-8 -*-
"""
Host requirement checks run before anything on the host is changed.
"""

import logging
import os
from typing import Optional

from canvas_setup.cli_handler import cli_confirm
from canvas_setup.config_models import AppSettings, HostInfo
from canvas_setup.exceptions import HostRequirementError
from common.command_utils import command_exists, log_installer
from common.debian.apt_manager import AptManager
from common.system_utils import (
    get_current_user_and_home,
    get_os_release,
    get_total_ram_mb,
)

module_logger = logging.getLogger(__name__)


def check_not_root(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> None:
    """Refuse to run as root; privileged commands go through sudo one by one."""
    if os.geteuid() == 0:
        raise HostRequirementError(
            "Please don't run this installer as root. It will use sudo when needed."
        )


def ensure_lsb_release(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> None:
    """Install lsb-release when the lsb_release command is missing."""
    logger_to_use = current_logger if current_logger else module_logger
    if command_exists("lsb_release"):
        return
    log_installer(
        f"{app_settings.symbols.get('package', '📦')} lsb_release not found, installing lsb-release...",
        "info",
        logger_to_use,
        app_settings,
    )
    if not AptManager(logger=logger_to_use).install("lsb-release", app_settings):
        raise HostRequirementError("lsb-release installation failed.")


def check_os_release(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> str:
    """
    Compare the OS release with the expected one. A mismatch only warns, but
    the operator has to confirm before the run continues.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    expected = app_settings.host.expected_os_release
    release = get_os_release(app_settings, logger_to_use) or "unknown"

    if release == expected:
        log_installer(
            f"{symbols.get('success', '✅')} OS release {release} matches the supported release.",
            "success",
            logger_to_use,
            app_settings,
        )
        return release

    log_installer(
        f"{symbols.get('warning', '!')} This installer is optimized for Ubuntu {expected}. You're running: {release}",
        "warning",
        logger_to_use,
        app_settings,
    )
    if not cli_confirm("Continue anyway?", app_settings, logger_to_use, default=False):
        raise HostRequirementError(
            f"Installation aborted on unsupported OS release {release}."
        )
    return release


def check_memory(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> int:
    """Abort when total RAM is below the configured minimum."""
    logger_to_use = current_logger if current_logger else module_logger
    min_ram_mb = app_settings.host.min_ram_mb
    ram_mb = get_total_ram_mb(app_settings, logger_to_use)
    if ram_mb is None:
        raise HostRequirementError("Could not determine the amount of installed RAM.")
    if ram_mb < min_ram_mb:
        raise HostRequirementError(
            f"Insufficient RAM ({ram_mb} MB). Canvas LMS requires at least {min_ram_mb} MB."
        )
    log_installer(
        f"{app_settings.symbols.get('success', '✅')} RAM check passed: {ram_mb} MB available.",
        "success",
        logger_to_use,
        app_settings,
    )
    return ram_mb


def check_required_commands(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> None:
    missing = [
        cmd for cmd in app_settings.host.required_commands if not command_exists(cmd)
    ]
    if missing:
        raise HostRequirementError(
            f"Required command(s) not installed: {', '.join(missing)}. Please install them and try again."
        )


def check_host_requirements(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> HostInfo:
    """
    Validate the host: identity, home directory, OS release, memory and
    required tools. Memory is checked before any package is installed.

    Returns:
        HostInfo describing the invoking account and the host.

    Raises:
        HostRequirementError: A required check failed or the operator
            declined to continue on an unexpected OS release.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    log_installer(
        f"{symbols.get('step', '➡️')} Checking system requirements...",
        "info",
        logger_to_use,
        app_settings,
    )

    check_not_root(app_settings, logger_to_use)
    user, home = get_current_user_and_home()
    if not home:
        raise HostRequirementError(f"Could not determine home directory for user {user}.")
    log_installer(
        f"{symbols.get('info', 'ℹ️')} Installer running as user: {user} (Home: {home})",
        "info",
        logger_to_use,
        app_settings,
    )

    ram_mb = check_memory(app_settings, logger_to_use)
    check_required_commands(app_settings, logger_to_use)
    ensure_lsb_release(app_settings, logger_to_use)
    release = check_os_release(app_settings, logger_to_use)

    log_installer(
        f"{symbols.get('success', '✅')} System requirements check completed.",
        "success",
        logger_to_use,
        app_settings,
    )
    return HostInfo(user=user, home=home, os_release=release, ram_mb=ram_mb)
