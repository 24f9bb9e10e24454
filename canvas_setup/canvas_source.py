# canvas_setup/canvas_source.py
# -*- coding: utf-8 -*-
"""
Fetches the Canvas source tree and checks that the configuration templates
the rest of the pipeline relies on are present.
"""

import logging
import subprocess
from pathlib import Path
from typing import List, Optional

from canvas_setup.cli_handler import cli_confirm
from canvas_setup.config_models import AppSettings, InstallContext
from canvas_setup.exceptions import FatalStepError, TemplateIntegrityError
from common.command_utils import log_installer, run_command, run_elevated_command

module_logger = logging.getLogger(__name__)


def required_template_paths(app_settings: AppSettings) -> List[Path]:
    config_dir = app_settings.canvas.install_dir / "config"
    return [
        config_dir / f"{name}.yml.example"
        for name in app_settings.canvas.required_config_templates
    ]


def verify_required_templates(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> None:
    """
    Raises:
        TemplateIntegrityError: One or more required templates are missing.
    """
    logger_to_use = current_logger if current_logger else module_logger
    missing = [str(p) for p in required_template_paths(app_settings) if not p.is_file()]
    if missing:
        for path in missing:
            log_installer(
                f"{app_settings.symbols.get('error', '❌')} Required template missing: {path}",
                "error",
                logger_to_use,
                app_settings,
            )
        raise TemplateIntegrityError(
            f"Canvas checkout is incomplete; missing template(s): {', '.join(missing)}"
        )
    log_installer(
        f"{app_settings.symbols.get('success', '✅')} All required configuration templates are present.",
        "success",
        logger_to_use,
        app_settings,
    )


def _current_branch(
    install_dir: Path, app_settings: AppSettings, logger_to_use: logging.Logger
) -> str:
    result = run_command(
        ["git", "-C", str(install_dir), "rev-parse", "--abbrev-ref", "HEAD"],
        app_settings,
        capture_output=True,
        current_logger=logger_to_use,
    )
    return (result.stdout or "").strip()


def _ensure_branch(
    install_dir: Path, app_settings: AppSettings, logger_to_use: logging.Logger
) -> None:
    """Make sure the checkout is on the configured branch."""
    branch = app_settings.canvas.branch
    current = _current_branch(install_dir, app_settings, logger_to_use)
    if current == branch:
        return
    log_installer(
        f"{app_settings.symbols.get('warning', '!')} Checkout is on '{current}', switching to '{branch}'.",
        "warning",
        logger_to_use,
        app_settings,
    )
    run_command(
        ["git", "-C", str(install_dir), "fetch", "origin", "--prune"],
        app_settings,
        current_logger=logger_to_use,
    )
    run_command(
        ["git", "-C", str(install_dir), "checkout", "-B", branch, f"origin/{branch}"],
        app_settings,
        current_logger=logger_to_use,
    )


def fetch_canvas_source(
    context: InstallContext,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """
    Clone the configured Canvas branch into the install directory.

    An existing directory is removed after confirmation so the clone starts
    clean. If the operator keeps it, the existing tree is reused as long as
    the required templates are present.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    install_dir = app_settings.canvas.install_dir
    owner = f"{context.host.user}:{context.host.user}"

    reuse_existing = False
    if install_dir.exists():
        if cli_confirm(
            f"Directory {install_dir} already exists. Remove it for a fresh clone?",
            app_settings,
            logger_to_use,
            default=True,
        ):
            run_elevated_command(
                ["rm", "-rf", str(install_dir)], app_settings, current_logger=logger_to_use
            )
        else:
            log_installer(
                f"{symbols.get('warning', '!')} Reusing existing directory {install_dir}.",
                "warning",
                logger_to_use,
                app_settings,
            )
            run_elevated_command(
                ["chown", "-R", owner, str(install_dir)],
                app_settings,
                current_logger=logger_to_use,
            )
            reuse_existing = True

    if not reuse_existing:
        run_elevated_command(
            ["mkdir", "-p", str(install_dir)], app_settings, current_logger=logger_to_use
        )
        run_elevated_command(
            ["chown", owner, str(install_dir)], app_settings, current_logger=logger_to_use
        )
        log_installer(
            f"{symbols.get('gear', '⚙️')} Cloning Canvas LMS ({app_settings.canvas.branch}) into {install_dir}...",
            "info",
            logger_to_use,
            app_settings,
        )
        try:
            run_command(
                [
                    "git", "clone", "--branch", app_settings.canvas.branch,
                    app_settings.canvas.repo_url, str(install_dir),
                ],
                app_settings,
                current_logger=logger_to_use,
            )
        except subprocess.CalledProcessError as e:
            raise FatalStepError(
                f"Failed to clone {app_settings.canvas.repo_url} (branch {app_settings.canvas.branch})."
            ) from e

    if (install_dir / ".git").is_dir():
        _ensure_branch(install_dir, app_settings, logger_to_use)
    verify_required_templates(app_settings, logger_to_use)
