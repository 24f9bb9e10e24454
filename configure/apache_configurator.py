# configure/apache_configurator.py
# -*- coding: utf-8 -*-
"""
Handles configuration of the Apache virtual host that serves Canvas through
Passenger.
"""
import logging
import subprocess
from pathlib import Path
from typing import Optional

from canvas_setup import config as static_config
from canvas_setup.config_models import AppSettings, InstallContext
from canvas_setup.exceptions import FatalStepError
from common.command_utils import log_installer, run_elevated_command
from common.file_utils import write_elevated_file
from common.system_utils import restart_service

module_logger = logging.getLogger(__name__)


def passenger_ruby_path(context: InstallContext, app_settings: AppSettings) -> Path:
    """The pinned Ruby binary if installed, else the rbenv shim."""
    versioned = context.rbenv_root / "versions" / app_settings.ruby.version / "bin" / "ruby"
    if versioned.exists():
        return versioned
    return context.rbenv_root / "shims" / "ruby"


def render_vhost(context: InstallContext, app_settings: AppSettings) -> str:
    return app_settings.apache.vhost_template.format(
        server_name=context.install.domain,
        server_admin=context.install.admin_email,
        app_root=app_settings.canvas.install_dir,
        passenger_ruby=passenger_ruby_path(context, app_settings),
        script_version=static_config.SCRIPT_VERSION,
    )


def configure_apache_site(
    context: InstallContext,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """
    Write the Canvas site, switch it on in place of the default site and
    restart Apache once the configuration test passes.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    apache = app_settings.apache

    write_elevated_file(
        apache.site_conf_path,
        render_vhost(context, app_settings),
        app_settings,
        current_logger=logger_to_use,
    )

    dissite = run_elevated_command(
        ["a2dissite", apache.default_site],
        app_settings,
        check=False,
        capture_output=True,
        current_logger=logger_to_use,
    )
    if dissite.returncode != 0:
        log_installer(
            f"{symbols.get('warning', '!')} Could not disable the default site '{apache.default_site}'.",
            "warning",
            logger_to_use,
            app_settings,
        )
    run_elevated_command(
        ["a2ensite", apache.site_name], app_settings, current_logger=logger_to_use
    )

    try:
        run_elevated_command(
            ["apache2ctl", "configtest"],
            app_settings,
            capture_output=True,
            current_logger=logger_to_use,
        )
    except subprocess.CalledProcessError as e:
        raise FatalStepError(
            f"Apache configuration test failed: {(e.stderr or '').strip()}",
            last_action="apache2ctl configtest",
        ) from e

    restart_service(static_config.APACHE_SERVICE, app_settings, logger_to_use)
