# canvas_setup/step_executor.py
# -*- coding: utf-8 -*-
"""
Provides functionality to execute individual provisioning steps.

A step is a callable taking (app_settings, logger). It signals failure by
raising; whatever it returns is kept on the StepResult. execute_step turns the
outcome into a StepResult so the pipeline can stop at the first failure
without terminating the process.
"""

import logging
import subprocess
from dataclasses import dataclass
from typing import Any, Callable, Optional

from canvas_setup.config_models import AppSettings
from canvas_setup.exceptions import FatalStepError, InstallerError
from common.command_utils import get_last_command, log_installer

module_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepResult:
    """Outcome of one pipeline step."""

    step_tag: str
    description: str
    success: bool
    message: str = ""
    last_action: Optional[str] = None
    skipped: bool = False
    value: Any = None


def _last_action_for(error: BaseException) -> Optional[str]:
    if isinstance(error, subprocess.CalledProcessError):
        cmd = error.cmd
        return subprocess.list2cmdline(cmd) if isinstance(cmd, list) else str(cmd)
    if isinstance(error, FatalStepError) and error.last_action:
        return error.last_action
    return get_last_command()


def skipped_step(
    step_tag: str,
    step_description: str,
    reason: str,
    app_settings: AppSettings,
    current_logger_instance: Optional[logging.Logger] = None,
) -> StepResult:
    """Record a step that was not run because its condition was not met."""
    logger_to_use = (
        current_logger_instance if current_logger_instance else module_logger
    )
    log_installer(
        f"{app_settings.symbols.get('info', 'ℹ️')} Skipping: {step_description} ({step_tag}). {reason}",
        "info",
        logger_to_use,
        app_settings,
    )
    return StepResult(
        step_tag, step_description, success=True, message=reason, skipped=True
    )


def execute_step(
    step_tag: str,
    step_description: str,
    step_function: Callable[[AppSettings, Optional[logging.Logger]], Any],
    app_settings: AppSettings,
    current_logger_instance: Optional[logging.Logger],
) -> StepResult:
    """
    Execute a single provisioning step.

    Args:
        step_tag: A unique string identifier for the step.
        step_description: A human-readable description of the step.
        step_function: The function to call to execute the step.
                       Expected signature: (app_settings: AppSettings, current_logger: Optional[logging.Logger]) -> Any
                       Any exception is treated as a failure; the return
                       value is stored on the result.
        app_settings: The application settings object.
        current_logger_instance: The logger instance to use.

    Returns:
        A StepResult. On failure it carries the error message and the last
        command the step attempted.
    """
    logger_to_use = (
        current_logger_instance if current_logger_instance else module_logger
    )
    symbols = app_settings.symbols

    log_installer(
        f"--- {symbols.get('step', '➡️')} Executing: {step_description} ({step_tag}) ---",
        "info",
        logger_to_use,
        app_settings,
    )
    try:
        value = step_function(app_settings, logger_to_use)
    except Exception as e:
        last_action = _last_action_for(e)
        log_installer(
            f"{symbols.get('error', '❌')} FAILED: {step_description} ({step_tag})",
            "error",
            logger_to_use,
            app_settings,
        )
        log_installer(
            f"   Error details: {str(e)}",
            "error",
            logger_to_use,
            app_settings,
            exc_info=not isinstance(e, (InstallerError, subprocess.CalledProcessError)),
        )
        if last_action:
            log_installer(
                f"   Last attempted action: {last_action}",
                "error",
                logger_to_use,
                app_settings,
            )
        return StepResult(
            step_tag,
            step_description,
            success=False,
            message=str(e),
            last_action=last_action,
        )

    log_installer(
        f"--- {symbols.get('success', '✅')} Successfully completed: {step_description} ({step_tag}) ---",
        "success",
        logger_to_use,
        app_settings,
    )
    return StepResult(step_tag, step_description, success=True, value=value)
