# canvas_setup/ruby_installer.py
# -*- coding: utf-8 -*-
"""
Installs the pinned Ruby through rbenv and ruby-build in the invoking
user's home directory.
"""

import logging
import os
import subprocess
from pathlib import Path
from typing import Dict, List, Optional

from canvas_setup.config_models import AppSettings, InstallContext
from canvas_setup.exceptions import FatalStepError
from common.command_utils import log_installer, run_command

module_logger = logging.getLogger(__name__)

BASHRC_LINES: List[str] = [
    'export PATH="$HOME/.rbenv/bin:$PATH"',
    'eval "$(rbenv init - bash)"',
]


def rbenv_env(
    context: InstallContext, extra: Optional[Dict[str, str]] = None
) -> Dict[str, str]:
    """
    Environment for commands that must resolve ruby, gem and bundle through
    the installer's rbenv.
    """
    rbenv_root = context.rbenv_root
    env = dict(os.environ)
    env["RBENV_ROOT"] = str(rbenv_root)
    env["PATH"] = os.pathsep.join(
        [str(rbenv_root / "shims"), str(rbenv_root / "bin"), env.get("PATH", "")]
    )
    env["RAILS_ENV"] = "production"
    if extra:
        env.update(extra)
    return env


def rbenv_executable(context: InstallContext) -> str:
    return str(context.rbenv_root / "bin" / "rbenv")


def _ensure_bashrc_lines(
    home: Path, app_settings: AppSettings, logger_to_use: logging.Logger
) -> None:
    """Append the rbenv init lines to ~/.bashrc unless already present."""
    bashrc = home / ".bashrc"
    existing = bashrc.read_text(encoding="utf-8") if bashrc.exists() else ""
    missing = [line for line in BASHRC_LINES if line not in existing]
    if not missing:
        return
    with open(bashrc, "a", encoding="utf-8") as f:
        if existing and not existing.endswith("\n"):
            f.write("\n")
        f.write("\n".join(missing) + "\n")
    log_installer(
        f"{app_settings.symbols.get('info', 'ℹ️')} Added rbenv initialisation to {bashrc}.",
        "info",
        logger_to_use,
        app_settings,
    )


def _installed_ruby_versions(
    context: InstallContext,
    app_settings: AppSettings,
    logger_to_use: logging.Logger,
) -> List[str]:
    result = run_command(
        [rbenv_executable(context), "versions", "--bare"],
        app_settings,
        check=False,
        capture_output=True,
        current_logger=logger_to_use,
        env=rbenv_env(context),
    )
    return [line.strip() for line in (result.stdout or "").splitlines() if line.strip()]


def _update_checkout(
    path: Path, app_settings: AppSettings, logger_to_use: logging.Logger
) -> None:
    try:
        run_command(
            ["git", "-C", str(path), "pull", "--ff-only"],
            app_settings,
            current_logger=logger_to_use,
        )
    except subprocess.CalledProcessError:
        log_installer(
            f"{app_settings.symbols.get('warning', '!')} Could not update {path}; continuing with the current checkout.",
            "warning",
            logger_to_use,
            app_settings,
        )


def install_rbenv(
    context: InstallContext,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """Clone rbenv and the ruby-build plugin when they are missing."""
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    rbenv_root = context.rbenv_root
    ruby_build_dir = rbenv_root / "plugins" / "ruby-build"

    if rbenv_root.is_dir():
        log_installer(
            f"{symbols.get('info', 'ℹ️')} rbenv already present at {rbenv_root}.",
            "info",
            logger_to_use,
            app_settings,
        )
    else:
        run_command(
            ["git", "clone", app_settings.ruby.rbenv_repo_url, str(rbenv_root)],
            app_settings,
            current_logger=logger_to_use,
        )
    if not ruby_build_dir.is_dir():
        run_command(
            ["git", "clone", app_settings.ruby.ruby_build_repo_url, str(ruby_build_dir)],
            app_settings,
            current_logger=logger_to_use,
        )
    _ensure_bashrc_lines(context.host.home, app_settings, logger_to_use)


def install_ruby_runtime(
    context: InstallContext,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """
    Install rbenv and the pinned Ruby, make it the global version, verify
    `ruby -v` and install bundler.

    Raises:
        FatalStepError: The Ruby build failed or the active Ruby does not
            match the pinned version.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    version = app_settings.ruby.version
    rbenv = rbenv_executable(context)
    env = rbenv_env(context)

    install_rbenv(context, app_settings, logger_to_use)

    if version in _installed_ruby_versions(context, app_settings, logger_to_use):
        log_installer(
            f"{symbols.get('info', 'ℹ️')} Ruby {version} already installed.",
            "info",
            logger_to_use,
            app_settings,
        )
    else:
        _update_checkout(context.rbenv_root, app_settings, logger_to_use)
        _update_checkout(
            context.rbenv_root / "plugins" / "ruby-build", app_settings, logger_to_use
        )
        log_installer(
            f"{symbols.get('gear', '⚙️')} Building Ruby {version}. This can take a while...",
            "info",
            logger_to_use,
            app_settings,
        )
        try:
            run_command(
                [rbenv, "install", "-s", version],
                app_settings,
                current_logger=logger_to_use,
                env=env,
            )
        except subprocess.CalledProcessError as e:
            raise FatalStepError(
                f"Failed to install Ruby {version} with rbenv.",
                last_action=f"rbenv install -s {version}",
            ) from e

    run_command([rbenv, "global", version], app_settings, current_logger=logger_to_use, env=env)

    ruby_res = run_command(
        ["ruby", "-v"],
        app_settings,
        capture_output=True,
        current_logger=logger_to_use,
        env=env,
    )
    if version not in (ruby_res.stdout or ""):
        raise FatalStepError(
            f"Ruby {version} is not active after installation (ruby -v: {(ruby_res.stdout or '').strip()}).",
            last_action="ruby -v",
        )

    run_command(
        ["gem", "install", "bundler", "--no-document"],
        app_settings,
        current_logger=logger_to_use,
        env=env,
    )
    run_command([rbenv, "rehash"], app_settings, current_logger=logger_to_use, env=env)
    log_installer(
        f"{symbols.get('success', '✅')} Ruby {version} and bundler installed.",
        "success",
        logger_to_use,
        app_settings,
    )
