# configure/delayed_jobs_configurator.py
# -*- coding: utf-8 -*-
"""
Installs the systemd unit for the Canvas delayed_job worker.
"""
import logging
from typing import Optional

from canvas_setup import config as static_config
from canvas_setup.config_models import AppSettings, InstallContext
from common.command_utils import log_installer, run_elevated_command
from common.file_utils import write_elevated_file
from common.system_utils import systemd_reload

module_logger = logging.getLogger(__name__)


def render_unit(context: InstallContext, app_settings: AppSettings) -> str:
    service_user = app_settings.canvas.service_user
    return app_settings.delayed_jobs.unit_template.format(
        service_user=service_user,
        service_group=service_user,
        app_root=app_settings.canvas.install_dir,
        rbenv_root=context.rbenv_root,
        bundle_path=context.rbenv_root / "shims" / "bundle",
        script_version=static_config.SCRIPT_VERSION,
    )


def configure_delayed_jobs_service(
    context: InstallContext,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    logger_to_use = current_logger if current_logger else module_logger
    jobs = app_settings.delayed_jobs

    write_elevated_file(
        jobs.unit_path,
        render_unit(context, app_settings),
        app_settings,
        current_logger=logger_to_use,
    )
    systemd_reload(app_settings, logger_to_use)
    run_elevated_command(
        ["systemctl", "enable", jobs.service_name],
        app_settings,
        current_logger=logger_to_use,
    )
    log_installer(
        f"{app_settings.symbols.get('success', '✅')} {jobs.service_name} service installed and enabled.",
        "success",
        logger_to_use,
        app_settings,
    )
