# configure/permissions_configurator.py
# -*- coding: utf-8 -*-
"""
Final ownership and permission pass over the Canvas tree, plus the access
the service user needs to the installer's rbenv.
"""
import logging
from typing import Optional

from canvas_setup.cli_handler import cli_confirm
from canvas_setup.config_models import AppSettings, InstallContext
from common.command_utils import log_installer, run_as_user, run_elevated_command

module_logger = logging.getLogger(__name__)

RUNTIME_DIRS = ["tmp/pids", "tmp/cache", "log", "public/assets"]
PRIVATE_DIRS = ["tmp", "log"]


def set_tree_permissions(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> None:
    logger_to_use = current_logger if current_logger else module_logger
    app_root = app_settings.canvas.install_dir
    service_user = app_settings.canvas.service_user
    owner = f"{service_user}:{service_user}"

    run_elevated_command(
        ["chown", "-R", owner, str(app_root)], app_settings, current_logger=logger_to_use
    )
    for rel in RUNTIME_DIRS:
        run_as_user(
            service_user,
            ["mkdir", "-p", str(app_root / rel)],
            app_settings,
            current_logger=logger_to_use,
        )
    run_elevated_command(
        ["chmod", "-R", "u=rwX,g=rX,o=rX", str(app_root / "public")],
        app_settings,
        current_logger=logger_to_use,
    )
    for rel in PRIVATE_DIRS:
        target = str(app_root / rel)
        run_elevated_command(
            ["find", target, "-type", "d", "-exec", "chmod", "0750", "{}", "+"],
            app_settings,
            current_logger=logger_to_use,
        )
        run_elevated_command(
            ["find", target, "-type", "f", "-exec", "chmod", "0640", "{}", "+"],
            app_settings,
            current_logger=logger_to_use,
        )


def grant_rbenv_access(
    context: InstallContext,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """
    Let the service user traverse the home directory and read rbenv.

    Only `--yes` or a typed yes grants access; any other answer declines.
    Declining is not fatal, but the worker and Passenger will not find Ruby.

    Returns:
        True if access was granted.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    service_user = app_settings.canvas.service_user
    home = context.host.home
    rbenv_root = context.rbenv_root

    if not rbenv_root.is_dir():
        log_installer(
            f"{symbols.get('warning', '!')} rbenv not found at {rbenv_root}.",
            "warning",
            logger_to_use,
            app_settings,
        )
        log_installer(
            f"{symbols.get('error', '❌')} {service_user} will not be able to run Ruby; "
            f"the {app_settings.delayed_jobs.service_name} service will likely fail.",
            "error",
            logger_to_use,
            app_settings,
        )
        return False

    if not cli_confirm(
        f"Grant {service_user} read/execute access to {home} and {rbenv_root}?",
        app_settings,
        logger_to_use,
        default=False,
    ):
        log_installer(
            f"{symbols.get('error', '❌')} Access not granted. {service_user} cannot reach rbenv; "
            f"the {app_settings.delayed_jobs.service_name} service will likely fail.",
            "error",
            logger_to_use,
            app_settings,
        )
        return False

    run_elevated_command(["chmod", "o+x", str(home)], app_settings, current_logger=logger_to_use)
    run_elevated_command(
        ["chmod", "-R", "go+rx", str(rbenv_root)], app_settings, current_logger=logger_to_use
    )
    log_installer(
        f"{symbols.get('success', '✅')} {service_user} can now use {rbenv_root}.",
        "success",
        logger_to_use,
        app_settings,
    )
    return True


def finalize_permissions(
    context: InstallContext,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    logger_to_use = current_logger if current_logger else module_logger
    set_tree_permissions(app_settings, logger_to_use)
    grant_rbenv_access(context, app_settings, logger_to_use)
