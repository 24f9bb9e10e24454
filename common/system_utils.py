# common/system_utils.py
# -*- coding: utf-8 -*-
"""
System-level utility functions for the Canvas installer.

This module wraps systemd service management and the probes used by the host
requirement checks (memory, OS release, home directory).
"""

import logging
import os
import pwd
import subprocess
from pathlib import Path
from typing import Optional

from canvas_setup.config_models import AppSettings
from common.command_utils import (
    get_symbols,
    log_installer,
    run_command,
    run_elevated_command,
)

module_logger = logging.getLogger(__name__)


def systemd_reload(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> None:
    """
    Reload the systemd daemon.

    Raises:
        subprocess.CalledProcessError: daemon-reload failed.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    log_installer(
        f"{symbols.get('gear', '⚙️')} Reloading systemd daemon...",
        "info",
        logger_to_use,
        app_settings,
    )
    run_elevated_command(
        ["systemctl", "daemon-reload"],
        app_settings,
        current_logger=logger_to_use,
    )
    log_installer(
        f"{symbols.get('success', '✅')} Systemd daemon reloaded.",
        "success",
        logger_to_use,
        app_settings,
    )


def start_and_enable_service(
    service_name: str,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """Start a systemd service now and enable it on boot."""
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    run_elevated_command(
        ["systemctl", "start", service_name],
        app_settings,
        current_logger=logger_to_use,
    )
    run_elevated_command(
        ["systemctl", "enable", service_name],
        app_settings,
        current_logger=logger_to_use,
    )
    log_installer(
        f"{symbols.get('success', '✅')} Service {service_name} started and enabled on boot.",
        "success",
        logger_to_use,
        app_settings,
    )


def restart_service(
    service_name: str,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
    action: str = "restart",
) -> None:
    """Restart (or reload, with action="reload") a systemd service."""
    logger_to_use = current_logger if current_logger else module_logger
    run_elevated_command(
        ["systemctl", action, service_name],
        app_settings,
        current_logger=logger_to_use,
    )
    log_installer(
        f"{app_settings.symbols.get('success', '✅')} Service {service_name} {action}ed.",
        "success",
        logger_to_use,
        app_settings,
    )


def get_service_state(
    service_name: str,
    app_settings: Optional[AppSettings],
    current_logger: Optional[logging.Logger] = None,
) -> str:
    """Return the output of `systemctl is-active` ("active", "failed", ...)."""
    logger_to_use = current_logger if current_logger else module_logger
    try:
        result = run_command(
            ["systemctl", "is-active", service_name],
            app_settings,
            check=False,
            capture_output=True,
            current_logger=logger_to_use,
        )
    except FileNotFoundError:
        return "unknown"
    state = (result.stdout or "").strip()
    return state or "unknown"


def get_total_ram_mb(
    app_settings: Optional[AppSettings],
    current_logger: Optional[logging.Logger] = None,
) -> Optional[int]:
    """
    Total physical memory in MB as reported by `free -m`.

    Returns None when the output has no parsable "Mem:" line.
    """
    logger_to_use = current_logger if current_logger else module_logger
    result = run_command(
        ["free", "-m"],
        app_settings,
        capture_output=True,
        check=True,
        current_logger=logger_to_use,
    )
    for line in (result.stdout or "").splitlines():
        if line.startswith("Mem:"):
            fields = line.split()
            if len(fields) > 1 and fields[1].isdigit():
                return int(fields[1])
    log_installer(
        f"{get_symbols(app_settings).get('warning', '!')} Could not parse memory size from `free -m` output.",
        "warning",
        logger_to_use,
        app_settings,
    )
    return None


def get_os_release(
    app_settings: Optional[AppSettings],
    current_logger: Optional[logging.Logger] = None,
) -> Optional[str]:
    """
    Get the distribution release number (e.g. '24.04') via `lsb_release -rs`.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols_to_use = get_symbols(app_settings)

    try:
        result: subprocess.CompletedProcess = run_command(
            ["lsb_release", "-rs"],
            app_settings,
            capture_output=True,
            check=True,
            current_logger=logger_to_use,
        )
        stdout_val: Optional[str] = result.stdout
        if stdout_val is not None:
            return stdout_val.strip()
        return None
    except FileNotFoundError:
        log_installer(
            f"{symbols_to_use.get('warning', '!')} lsb_release command not found. Cannot determine OS release.",
            "warning",
            logger_to_use,
            app_settings,
        )
        return None
    except subprocess.CalledProcessError:
        return None


def get_current_user_and_home() -> tuple[str, Optional[Path]]:
    """Name and home directory of the account running the installer."""
    entry = pwd.getpwuid(os.getuid())
    home = Path(entry.pw_dir) if entry.pw_dir else None
    return entry.pw_name, home


def get_cpu_count() -> int:
    return os.cpu_count() or 1
