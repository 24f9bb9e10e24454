# configure/certbot_configurator.py
# -*- coding: utf-8 -*-
"""
Handles configuration of SSL certificates using Certbot with the Apache plugin.
"""
import logging
import re
import subprocess
from typing import Optional

from canvas_setup import config as static_config
from canvas_setup.config_models import AppSettings, InstallContext
from common.command_utils import log_installer, run_elevated_command
from common.system_utils import restart_service

module_logger = logging.getLogger(__name__)

IPV4_PATTERN = re.compile(r"^\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}$")


def is_certifiable_domain(domain: str) -> bool:
    """Certbot needs a public FQDN: not an IP, not localhost, at least one dot."""
    lowered = domain.lower()
    if IPV4_PATTERN.fullmatch(domain) or ":" in domain:
        return False
    if lowered == "localhost" or lowered.endswith(".localhost"):
        return False
    return "." in domain


def run_certbot_apache(
    context: InstallContext,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """
    Obtain and install a Let's Encrypt certificate for the domain.

    Failure is reported as a warning and Canvas stays on HTTP. Apache is
    reloaded afterwards in every case.

    Returns:
        True if certbot succeeded.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    domain = context.install.domain

    if not is_certifiable_domain(domain):
        log_installer(
            f"{symbols.get('warning', '!')} Skipping Certbot: '{domain}' is an IP address, localhost "
            "or not a fully qualified domain name.",
            "warning",
            logger_to_use,
            app_settings,
        )
        return False

    log_installer(
        f"{symbols.get('info', 'ℹ️')} Requesting a certificate for {domain} "
        f"(registration email {context.install.admin_email})...",
        "info",
        logger_to_use,
        app_settings,
    )
    certbot_cmd = [
        "certbot",
        "--apache",
        "-d", domain,
        "--non-interactive",
        "--agree-tos",
        "-m", context.install.admin_email,
        "--redirect",
        "--hsts",
        "--uir",
    ]
    obtained = True
    try:
        run_elevated_command(certbot_cmd, app_settings, current_logger=logger_to_use)
        log_installer(
            f"{symbols.get('success', '✅')} Certificate installed for {domain}.",
            "success",
            logger_to_use,
            app_settings,
        )
    except subprocess.CalledProcessError:
        obtained = False
        log_installer(
            f"{symbols.get('warning', '!')} Certbot failed. Canvas stays on HTTP; "
            f"run `sudo certbot --apache -d {domain}` manually once DNS points here.",
            "warning",
            logger_to_use,
            app_settings,
        )

    restart_service(static_config.APACHE_SERVICE, app_settings, logger_to_use, action="reload")
    return obtained
