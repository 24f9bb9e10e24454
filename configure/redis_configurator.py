# configure/redis_configurator.py
# -*- coding: utf-8 -*-
"""
Starts Redis and checks that it answers.
"""
import logging
from typing import Optional

from canvas_setup import config as static_config
from canvas_setup.config_models import AppSettings
from canvas_setup.exceptions import FatalStepError
from common.command_utils import log_installer, run_command
from common.system_utils import start_and_enable_service

module_logger = logging.getLogger(__name__)


def redis_ping(
    app_settings: Optional[AppSettings], current_logger: Optional[logging.Logger] = None
) -> bool:
    """True when `redis-cli ping` answers PONG."""
    logger_to_use = current_logger if current_logger else module_logger
    try:
        result = run_command(
            ["redis-cli", "ping"],
            app_settings,
            check=False,
            capture_output=True,
            current_logger=logger_to_use,
        )
    except FileNotFoundError:
        return False
    return "PONG" in (result.stdout or "")


def configure_redis(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> None:
    logger_to_use = current_logger if current_logger else module_logger
    start_and_enable_service(static_config.REDIS_SERVICE, app_settings, logger_to_use)
    if not redis_ping(app_settings, logger_to_use):
        raise FatalStepError(
            "Redis is not responding to PING.", last_action="redis-cli ping"
        )
    log_installer(
        f"{app_settings.symbols.get('success', '✅')} Redis is running and responding.",
        "success",
        logger_to_use,
        app_settings,
    )
