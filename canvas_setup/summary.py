# canvas_setup/summary.py
# -*- coding: utf-8 -*-
"""
Final summary of the installation and installation of the health-check
wrapper.
"""

import logging
import subprocess
import sys
from typing import Optional

from canvas_setup import config as static_config
from canvas_setup.config_models import AppSettings, InstallContext
from canvas_setup.ruby_installer import rbenv_env
from common.command_utils import log_installer, run_command, run_elevated_command
from common.file_utils import write_elevated_file

module_logger = logging.getLogger(__name__)


def certificate_exists(
    domain: str, app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> bool:
    logger_to_use = current_logger if current_logger else module_logger
    fullchain = f"{static_config.LETSENCRYPT_LIVE_DIR}/{domain}/fullchain.pem"
    result = run_elevated_command(
        ["test", "-e", fullchain],
        app_settings,
        check=False,
        capture_output=True,
        current_logger=logger_to_use,
    )
    return result.returncode == 0


def site_protocol(
    context: InstallContext,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> str:
    """https only when TLS was requested and the certificate is in place."""
    if context.install.use_ssl and certificate_exists(
        context.install.domain, app_settings, current_logger
    ):
        return "https"
    return "http"


def _version_of(
    command: list, context: InstallContext, app_settings: AppSettings, logger_to_use: logging.Logger
) -> str:
    try:
        result = run_command(
            command,
            app_settings,
            check=False,
            capture_output=True,
            current_logger=logger_to_use,
            env=rbenv_env(context),
        )
    except FileNotFoundError:
        return "not found"
    return (result.stdout or "").strip() or "unknown"


def install_health_check(
    context: InstallContext,
    protocol: str,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> str:
    logger_to_use = current_logger if current_logger else module_logger
    content = app_settings.health_check_wrapper_template.format(
        python_executable=sys.executable,
        domain=context.install.domain,
        protocol=protocol,
        app_root=app_settings.canvas.install_dir,
        database=app_settings.pg.database,
        worker_service=app_settings.delayed_jobs.service_name,
        login_path=app_settings.canvas.login_path,
        project_root=static_config.INSTALLER_PROJECT_ROOT,
        script_version=static_config.SCRIPT_VERSION,
    )
    write_elevated_file(
        app_settings.health_check_path,
        content,
        app_settings,
        current_logger=logger_to_use,
        mode="0755",
    )
    return app_settings.health_check_path


def print_summary(
    context: InstallContext,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> str:
    """
    Log the installation summary and install the health-check wrapper.

    Returns:
        The URL the site is served at.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    protocol = site_protocol(context, app_settings, logger_to_use)
    url = f"{protocol}://{context.install.domain}"

    try:
        health_check = install_health_check(context, protocol, app_settings, logger_to_use)
    except (subprocess.CalledProcessError, RuntimeError) as e:
        health_check = None
        log_installer(
            f"{symbols.get('warning', '!')} Could not install the health check script: {e}",
            "warning",
            logger_to_use,
            app_settings,
        )

    lines = [
        f"{symbols.get('sparkles', '✨')} Canvas LMS installation complete!",
        f"  URL:               {url}",
        f"  Admin email:       {context.install.admin_email}",
        f"  Install directory: {app_settings.canvas.install_dir} (branch {app_settings.canvas.branch})",
        f"  Ruby:              {_version_of(['ruby', '-v'], context, app_settings, logger_to_use)}",
        f"  Node.js:           {_version_of(['node', '-v'], context, app_settings, logger_to_use)}",
        f"  Application log:   {app_settings.canvas.log_file}",
        f"  Apache logs:       {static_config.APACHE_LOG_GLOB}",
        f"  Worker logs:       journalctl -u {app_settings.delayed_jobs.service_name}",
    ]
    if health_check:
        lines.append(f"  Health check:      {health_check}")
    if context.install.use_ssl and protocol == "http":
        lines.append(
            f"  {symbols.get('warning', '!')} TLS was requested but no certificate was found; the site is served over HTTP."
        )
    log_installer("\n".join(lines), "success", logger_to_use, app_settings)
    return url
