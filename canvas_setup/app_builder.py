# canvas_setup/app_builder.py
# -*- coding: utf-8 -*-
"""
Builds the Canvas application: gems, JavaScript packages, compiled assets
and the database schema.
"""

import logging
import subprocess
from typing import Dict, List, Optional

from canvas_setup.config_models import AppSettings, InstallContext
from canvas_setup.exceptions import FatalStepError
from canvas_setup.ruby_installer import rbenv_env, rbenv_executable
from common.command_utils import log_installer, run_command
from common.system_utils import get_cpu_count

module_logger = logging.getLogger(__name__)


def node_env(
    context: InstallContext, app_settings: AppSettings
) -> Dict[str, str]:
    return rbenv_env(
        context,
        {
            "NODE_OPTIONS": f"--max-old-space-size={app_settings.node.max_old_space_size_mb}",
            "NODE_ENV": "production",
        },
    )


def install_gems(
    context: InstallContext,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    logger_to_use = current_logger if current_logger else module_logger
    app_root = str(app_settings.canvas.install_dir)
    env = rbenv_env(context)

    run_command(
        [rbenv_executable(context), "local", app_settings.ruby.version],
        app_settings,
        current_logger=logger_to_use,
        cwd=app_root,
        env=env,
    )
    run_command(
        ["bundle", "config", "set", "--local", "path", "vendor/bundle"],
        app_settings,
        current_logger=logger_to_use,
        cwd=app_root,
        env=env,
    )
    try:
        run_command(
            ["bundle", "install", f"--jobs={get_cpu_count()}", "--retry", "3"],
            app_settings,
            current_logger=logger_to_use,
            cwd=app_root,
            env=env,
        )
    except subprocess.CalledProcessError as e:
        raise FatalStepError(
            f"bundle install failed. Check that Ruby {app_settings.ruby.version} matches "
            f"the version required by {app_root}/Gemfile.",
        ) from e


def install_js_packages(
    context: InstallContext,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
    strategies: Optional[List[List[str]]] = None,
) -> List[str]:
    """
    Run `yarn install` with each strategy in order until one succeeds.

    Returns:
        The arguments of the strategy that succeeded.

    Raises:
        FatalStepError: Every strategy failed.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    app_root = str(app_settings.canvas.install_dir)
    env = node_env(context, app_settings)
    strategies = strategies if strategies is not None else app_settings.node.yarn_install_strategies

    try:
        run_command(
            ["yarn", "cache", "clean", "--force"],
            app_settings,
            current_logger=logger_to_use,
            cwd=app_root,
            env=env,
        )
    except subprocess.CalledProcessError:
        log_installer(
            f"{symbols.get('warning', '!')} yarn cache clean failed; continuing.",
            "warning",
            logger_to_use,
            app_settings,
        )

    for attempt, args in enumerate(strategies, start=1):
        log_installer(
            f"{symbols.get('package', '📦')} yarn install attempt {attempt}/{len(strategies)}: {' '.join(args)}",
            "info",
            logger_to_use,
            app_settings,
        )
        try:
            run_command(
                ["yarn", "install"] + list(args),
                app_settings,
                current_logger=logger_to_use,
                cwd=app_root,
                env=env,
            )
        except subprocess.CalledProcessError:
            log_installer(
                f"{symbols.get('warning', '!')} yarn install attempt {attempt} failed.",
                "warning",
                logger_to_use,
                app_settings,
            )
            continue
        log_installer(
            f"{symbols.get('success', '✅')} JavaScript dependencies installed.",
            "success",
            logger_to_use,
            app_settings,
        )
        return list(args)

    raise FatalStepError(
        f"All {len(strategies)} yarn install strategies failed. Check network access and the Node.js version."
    )


def install_app_dependencies(
    context: InstallContext,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    logger_to_use = current_logger if current_logger else module_logger
    install_gems(context, app_settings, logger_to_use)
    install_js_packages(context, app_settings, logger_to_use)


def compile_assets(
    context: InstallContext,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    logger_to_use = current_logger if current_logger else module_logger
    log_installer(
        f"{app_settings.symbols.get('gear', '⚙️')} Compiling assets. This can take a long time...",
        "info",
        logger_to_use,
        app_settings,
    )
    try:
        run_command(
            ["bundle", "exec", "rake", "canvas:compile_assets"],
            app_settings,
            current_logger=logger_to_use,
            cwd=str(app_settings.canvas.install_dir),
            env=node_env(context, app_settings),
        )
    except subprocess.CalledProcessError as e:
        raise FatalStepError(
            "Asset compilation failed. Re-run `RAILS_ENV=production bundle exec rake "
            f"canvas:compile_assets --trace` in {app_settings.canvas.install_dir} for details."
        ) from e


def migrate_database(
    context: InstallContext,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """
    Run db:migrate and then db:initial_setup. The initial administrator is
    taken from the environment so no prompt is shown.
    """
    logger_to_use = current_logger if current_logger else module_logger
    install = context.install
    app_root = str(app_settings.canvas.install_dir)

    run_command(
        ["bundle", "exec", "rake", "db:migrate"],
        app_settings,
        current_logger=logger_to_use,
        cwd=app_root,
        env=rbenv_env(context),
    )
    run_command(
        ["bundle", "exec", "rake", "db:initial_setup"],
        app_settings,
        current_logger=logger_to_use,
        cwd=app_root,
        env=rbenv_env(
            context,
            {
                "CANVAS_LMS_ADMIN_EMAIL": install.admin_email,
                "CANVAS_LMS_ADMIN_PASSWORD": install.admin_password,
                "CANVAS_LMS_ACCOUNT_NAME": f"Canvas LMS at {install.domain}",
                "CANVAS_LMS_STATS_COLLECTION": "opt_out",
            },
        ),
    )
    log_installer(
        f"{app_settings.symbols.get('success', '✅')} Database migrated and initialised.",
        "success",
        logger_to_use,
        app_settings,
    )
