# canvas_setup/cli_handler.py
# -*- coding: utf-8 -*-
"""
Handles Command Line Interface (CLI) interactions for the Canvas installer:
yes/no confirmations, the interactive collection of the InstallConfig, and
the configuration viewer.
"""

import datetime
import getpass
import logging
from typing import Callable, Optional

from pydantic import ValidationError

from canvas_setup import config as static_config
from canvas_setup.config_models import AppSettings, InstallConfig
from canvas_setup.exceptions import FatalStepError, UserAbortError
from common.command_utils import log_installer

module_logger = logging.getLogger(__name__)

YES_ANSWERS = ("y", "yes")
NO_ANSWERS = ("n", "no")


def cli_confirm(
    prompt_message: str,
    app_settings: AppSettings,
    current_logger_instance: Optional[logging.Logger] = None,
    default: bool = False,
) -> bool:
    """
    Ask the operator a yes/no question.

    `--yes` answers yes without asking. In non-interactive mode, or when
    stdin is closed (EOF), the default answer is used.

    Parameters:
    prompt_message : str
        The question to display.
    app_settings : AppSettings
        Settings providing symbols and the assume_yes/non_interactive flags.
    current_logger_instance : Optional[logging.Logger]
        Logger to use.
    default : bool
        Answer used for an empty reply, EOF and non-interactive runs.

    Returns:
    bool
        True if the answer is yes.
    """
    logger_to_use = (
        current_logger_instance if current_logger_instance else module_logger
    )
    symbols = app_settings.symbols
    if app_settings.assume_yes:
        log_installer(
            f"{symbols.get('info', 'ℹ️')} {prompt_message} -> yes (--yes)",
            "info",
            logger_to_use,
            app_settings,
        )
        return True
    if app_settings.non_interactive:
        log_installer(
            f"{symbols.get('info', 'ℹ️')} {prompt_message} -> {'yes' if default else 'no'} (non-interactive default)",
            "info",
            logger_to_use,
            app_settings,
        )
        return default

    hint = "(Y/n)" if default else "(y/N)"
    try:
        user_input = (
            input(f"   {symbols.get('info', 'ℹ️')} {prompt_message} {hint}: ")
            .strip()
            .lower()
        )
    except EOFError:
        log_installer(
            f"{symbols.get('warning', '!')} No user input (EOF), defaulting to '{'Y' if default else 'N'}' for prompt: '{prompt_message}'",
            "warning",
            logger_to_use,
            app_settings,
        )
        return default
    if not user_input:
        return default
    return user_input in YES_ANSWERS


def _prompt_until_valid(
    prompt: str,
    read: Callable[[str], str],
    validate: Callable[[str], Optional[str]],
    app_settings: AppSettings,
    logger_to_use: logging.Logger,
) -> str:
    """Re-prompt until validate() returns None for the reply."""
    while True:
        try:
            reply = read(prompt)
        except (EOFError, KeyboardInterrupt) as e:
            raise UserAbortError("Configuration input aborted by the operator.") from e
        error = validate(reply)
        if error is None:
            return reply.strip()
        log_installer(
            f"{app_settings.symbols.get('error', '❌')} {error}",
            "error",
            logger_to_use,
            app_settings,
        )


def _not_empty(label: str) -> Callable[[str], Optional[str]]:
    def validate(reply: str) -> Optional[str]:
        return None if reply.strip() else f"{label} cannot be empty."
    return validate


def parse_yes_no(value: str, default: Optional[bool] = None) -> Optional[bool]:
    """Map 'yes'/'no' (any case, empty -> default) to a bool, else None."""
    normalised = value.strip().lower()
    if not normalised:
        return default
    if normalised == "yes":
        return True
    if normalised == "no":
        return False
    return None


def collect_install_config(
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
    read_line: Callable[[str], str] = input,
    read_secret: Callable[[str], str] = getpass.getpass,
) -> InstallConfig:
    """
    Build the InstallConfig from pre-supplied inputs, prompting for the rest.

    Values already present in app_settings.install (YAML, environment or CLI)
    are used as-is. Missing values are prompted for with validation loops;
    passwords are read without echo. With non_interactive set, a missing
    value is fatal instead.

    Raises:
        UserAbortError: The operator ended input (EOF or Ctrl-C).
        FatalStepError: A value is missing in non-interactive mode, or the
            supplied values are invalid.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    supplied = app_settings.install

    log_installer(
        f"{symbols.get('gear', '⚙️')} Configuring Canvas LMS installation parameters...",
        "info",
        logger_to_use,
        app_settings,
    )

    missing = [
        name for name, value in supplied.model_dump().items() if value is None or value == ""
    ]
    if missing and app_settings.non_interactive:
        raise FatalStepError(
            "Missing installation parameters in non-interactive mode: "
            + ", ".join(missing)
        )

    values = {}

    def ask(name: str, prompt: str, label: str, secret: bool = False) -> None:
        if name not in missing:
            values[name] = getattr(supplied, name)
            return
        values[name] = _prompt_until_valid(
            prompt,
            read_secret if secret else read_line,
            _not_empty(label),
            app_settings,
            logger_to_use,
        )

    ask("domain", "Enter domain name for Canvas LMS (e.g., canvas.example.com): ", "Domain name")
    ask(
        "db_password",
        f"Enter PostgreSQL password for {app_settings.pg.user}: ",
        "PostgreSQL password",
        secret=True,
    )
    ask(
        "email_sender",
        f"Enter email sender address (e.g., no-reply@{values['domain']}): ",
        "Email sender address",
    )
    if "use_ssl" in missing:
        reply = _prompt_until_valid(
            "Use SSL (Let's Encrypt)? (yes/no) [yes]: ",
            read_line,
            lambda r: None if parse_yes_no(r, default=True) is not None else "Please enter 'yes' or 'no'.",
            app_settings,
            logger_to_use,
        )
        values["use_ssl"] = parse_yes_no(reply, default=True)
    else:
        values["use_ssl"] = supplied.use_ssl
    ask("admin_email", "Enter Canvas admin email address: ", "Admin email")
    ask("admin_password", "Enter Canvas admin password: ", "Admin password", secret=True)

    try:
        install_config = InstallConfig(**values)
    except ValidationError as e:
        raise FatalStepError(f"Invalid installation parameters: {e}") from e

    log_installer(
        f"{symbols.get('success', '✅')} Configuration parameters collected "
        f"(domain={install_config.domain}, ssl={'yes' if install_config.use_ssl else 'no'}).",
        "success",
        logger_to_use,
        app_settings,
    )
    return install_config


def view_configuration(
    app_config: AppSettings, current_logger: Optional[logging.Logger] = None
) -> None:
    """
    Displays the effective configuration values (CLI > YAML > ENV > Defaults).
    Secrets are never printed, only whether they are set.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_config.symbols
    install = app_config.install

    def secret_state(value: Optional[str]) -> str:
        return "[SET]" if value else "[NOT SET - will prompt]"

    def plain(value) -> str:
        return "[NOT SET - will prompt]" if value is None else str(value)

    config_text = f"{symbols.get('info', 'ℹ️')} Current effective configuration values (CLI > YAML > ENV > Defaults):\n\n"
    config_text += "  Installation Inputs (install.*):\n"
    config_text += f"    Domain:                      {plain(install.domain)}\n"
    config_text += f"    Database Password:           {secret_state(install.db_password)}\n"
    config_text += f"    Email Sender:                {plain(install.email_sender)}\n"
    config_text += f"    Use SSL:                     {plain(install.use_ssl)}\n"
    config_text += f"    Admin Email:                 {plain(install.admin_email)}\n"
    config_text += f"    Admin Password:              {secret_state(install.admin_password)}\n\n"

    config_text += "  Canvas (canvas.*):\n"
    config_text += f"    Repository:                  {app_config.canvas.repo_url}\n"
    config_text += f"    Branch:                      {app_config.canvas.branch}\n"
    config_text += f"    Install Directory:           {app_config.canvas.install_dir}\n"
    config_text += f"    Service User:                {app_config.canvas.service_user}\n\n"

    config_text += "  Runtimes:\n"
    config_text += f"    Ruby Version (pinned):       {app_config.ruby.version}\n"
    config_text += f"    Node.js Major (minimum):     {app_config.node.major_version}\n\n"

    config_text += "  PostgreSQL (pg.*):\n"
    config_text += f"    User:                        {app_config.pg.user}\n"
    config_text += f"    Database:                    {app_config.pg.database}\n\n"

    config_text += "  Host Requirements (host.*):\n"
    config_text += f"    Minimum RAM (MB):            {app_config.host.min_ram_mb}\n"
    config_text += f"    Expected OS Release:         {app_config.host.expected_os_release}\n\n"

    config_text += f"  Apache Site File:              {app_config.apache.site_conf_path}\n"
    config_text += f"  Worker Unit File:              {app_config.delayed_jobs.unit_path}\n"
    config_text += f"  Health Check Path:             {app_config.health_check_path}\n"
    config_text += f"  Log Prefix:                    {app_config.log_prefix}\n"
    config_text += f"  Script Version (static):       {static_config.SCRIPT_VERSION}\n"
    config_text += f"  Timestamp (current view):      {datetime.datetime.now().strftime('%Y-%m-%d-%H%M%S')}\n"

    log_installer(
        "Displaying current configuration:", "info", logger_to_use, app_config
    )
    log_installer(f"\n{config_text}", "info", logger_to_use, app_config)
