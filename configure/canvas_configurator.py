# configure/canvas_configurator.py
# -*- coding: utf-8 -*-
"""
Writes the Canvas application configuration: the config/*.yml files,
environments/production.rb and the .env file.

YAML files are rendered structurally: the shipped `.yml.example` is parsed,
its `production` section updated and the result dumped again.
"""
import logging
import os
import re
import secrets
import shutil
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import yaml
from dotenv import set_key

from canvas_setup import config as static_config
from canvas_setup.config_models import ENV_EXAMPLE_DEFAULTS, AppSettings, InstallContext
from canvas_setup.exceptions import FatalStepError, TemplateIntegrityError
from common.command_utils import log_installer
from common.file_utils import backup_file

module_logger = logging.getLogger(__name__)

ENCRYPTION_KEY_PATTERN = re.compile(r"^[0-9a-f]{64,}$")
ENCRYPTION_KEY_BYTES = 64

FALLBACK_PRODUCTION_RB = """\
# Minimal production environment written by canvas-installer V{script_version}.
# Review against the production.rb shipped with your Canvas release.
Rails.application.configure do
  config.cache_classes = true
  config.eager_load = true
  config.consider_all_requests_local = false
  config.action_controller.perform_caching = true
  config.public_file_server.enabled = true
  config.log_level = :info
  config.i18n.fallbacks = true
  config.active_support.deprecation = :notify
end
"""


def _token_hex_key() -> str:
    return secrets.token_hex(ENCRYPTION_KEY_BYTES)


def _urandom_key() -> str:
    with open("/dev/urandom", "rb") as f:
        return f.read(ENCRYPTION_KEY_BYTES).hex()


KEY_GENERATORS: List[Callable[[], str]] = [_token_hex_key, _urandom_key]


def is_valid_encryption_key(value: Any) -> bool:
    return isinstance(value, str) and bool(ENCRYPTION_KEY_PATTERN.match(value))


def generate_encryption_key(
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
    generators: Optional[List[Callable[[], str]]] = None,
) -> str:
    """
    Produce a hex encryption key from the first generator that yields a
    valid one.

    Raises:
        FatalStepError: No generator produced a key of at least 64 hex
            characters.
    """
    logger_to_use = current_logger if current_logger else module_logger
    for generator in generators if generators is not None else KEY_GENERATORS:
        try:
            key = generator()
        except OSError as e:
            log_installer(
                f"{app_settings.symbols.get('warning', '!')} Key source {generator.__name__} failed: {e}",
                "warning",
                logger_to_use,
                app_settings,
            )
            continue
        if is_valid_encryption_key(key):
            return key
        log_installer(
            f"{app_settings.symbols.get('warning', '!')} Key source {generator.__name__} returned an invalid key.",
            "warning",
            logger_to_use,
            app_settings,
        )
    raise FatalStepError("Failed to generate a valid encryption key.")


def existing_encryption_key(security_yml: Path) -> Optional[str]:
    """Valid key already stored in security.yml, if any."""
    if not security_yml.is_file():
        return None
    try:
        data = yaml.safe_load(security_yml.read_text(encoding="utf-8"))
    except (yaml.YAMLError, OSError):
        return None
    if not isinstance(data, dict) or not isinstance(data.get("production"), dict):
        return None
    key = data["production"].get("encryption_key")
    return key if is_valid_encryption_key(key) else None


def load_template(template_path: Path) -> Dict[str, Any]:
    """
    Parse a YAML template.

    Raises:
        TemplateIntegrityError: The template is missing, unparsable or not a
            mapping.
    """
    if not template_path.is_file():
        raise TemplateIntegrityError(f"Template {template_path} not found.")
    try:
        data = yaml.safe_load(template_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise TemplateIntegrityError(f"Template {template_path} is not valid YAML: {e}") from e
    if not isinstance(data, dict):
        raise TemplateIntegrityError(f"Template {template_path} does not contain a YAML mapping.")
    return data


def _backup_if_present(
    target: Path, app_settings: AppSettings, logger_to_use: logging.Logger
) -> None:
    if target.exists() and not backup_file(
        target, app_settings, current_logger=logger_to_use, elevated=False
    ):
        raise FatalStepError(f"Failed to backup {target}; refusing to overwrite it.")


def render_production_yaml(
    name: str,
    production: Dict[str, Any],
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> Path:
    """
    Render config/<name>.yml from its example with `production` keys updated.
    """
    logger_to_use = current_logger if current_logger else module_logger
    config_dir = app_settings.canvas.install_dir / "config"
    data = load_template(config_dir / f"{name}.yml.example")
    section = data.get("production")
    if not isinstance(section, dict):
        section = {}
    section.update(production)
    data["production"] = section

    target = config_dir / f"{name}.yml"
    _backup_if_present(target, app_settings, logger_to_use)
    target.write_text(
        yaml.safe_dump(data, default_flow_style=False, sort_keys=False),
        encoding="utf-8",
    )
    log_installer(
        f"{app_settings.symbols.get('success', '✅')} Wrote {target}",
        "success",
        logger_to_use,
        app_settings,
    )
    return target


def copy_validated_template(
    name: str, app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> Path:
    """Copy config/<name>.yml.example verbatim after checking it parses."""
    logger_to_use = current_logger if current_logger else module_logger
    config_dir = app_settings.canvas.install_dir / "config"
    source = config_dir / f"{name}.yml.example"
    load_template(source)
    target = config_dir / f"{name}.yml"
    _backup_if_present(target, app_settings, logger_to_use)
    shutil.copyfile(source, target)
    log_installer(
        f"{app_settings.symbols.get('success', '✅')} Wrote {target}",
        "success",
        logger_to_use,
        app_settings,
    )
    return target


def write_production_environment(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> Path:
    """
    Install config/environments/production.rb.

    Prefers production.rb.example, then an existing production.rb. Without
    either, writing a fallback requires allow_fallback_production_env.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    env_dir = app_settings.canvas.install_dir / "config" / "environments"
    target = env_dir / "production.rb"
    example = env_dir / "production.rb.example"

    if example.is_file():
        _backup_if_present(target, app_settings, logger_to_use)
        shutil.copyfile(example, target)
        log_installer(
            f"{symbols.get('success', '✅')} Wrote {target} from {example.name}",
            "success",
            logger_to_use,
            app_settings,
        )
        return target

    if target.is_file():
        log_installer(
            f"{symbols.get('info', 'ℹ️')} Using the production.rb shipped with the checkout.",
            "info",
            logger_to_use,
            app_settings,
        )
        return target

    if not app_settings.canvas.allow_fallback_production_env:
        raise TemplateIntegrityError(
            f"Neither {example} nor {target} exists. Set canvas.allow_fallback_production_env "
            "to write a minimal fallback."
        )
    log_installer(
        f"{symbols.get('warning', '!')} No production.rb found; writing a minimal fallback. Review it before going live.",
        "warning",
        logger_to_use,
        app_settings,
    )
    env_dir.mkdir(parents=True, exist_ok=True)
    target.write_text(
        FALLBACK_PRODUCTION_RB.format(script_version=static_config.SCRIPT_VERSION),
        encoding="utf-8",
    )
    return target


def dotenv_values_for(context: InstallContext, encryption_key: str) -> Dict[str, str]:
    install = context.install
    return {
        "CANVAS_LMS_ADMIN_EMAIL": install.admin_email,
        "CANVAS_LMS_ADMIN_PASSWORD": install.admin_password,
        "CANVAS_LMS_ACCOUNT_NAME": f"Canvas LMS at {install.domain}",
        "CANVAS_LMS_STATS_COLLECTION": "opt_out",
        "RAILS_ENV": "production",
        "NODE_ENV": "production",
        "ENCRYPTION_KEY": encryption_key,
    }


def write_dotenv(
    context: InstallContext,
    encryption_key: str,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> Path:
    """Create .env from .env.example (synthesized if absent) and set the keys."""
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    app_root = app_settings.canvas.install_dir
    example = app_root / ".env.example"
    target = app_root / ".env"

    if not example.is_file():
        log_installer(
            f"{symbols.get('info', 'ℹ️')} {example.name} not found; creating one with default values.",
            "info",
            logger_to_use,
            app_settings,
        )
        example.write_text(
            "".join(f"{key}={value}\n" for key, value in ENV_EXAMPLE_DEFAULTS.items()),
            encoding="utf-8",
        )

    if target.exists():
        _backup_if_present(target, app_settings, logger_to_use)
    else:
        shutil.copyfile(example, target)

    for key, value in dotenv_values_for(context, encryption_key).items():
        set_key(str(target), key, value, quote_mode="auto")
    os.chmod(target, 0o600)
    log_installer(
        f"{symbols.get('success', '✅')} Wrote {target}",
        "success",
        logger_to_use,
        app_settings,
    )
    return target


def write_canvas_config(
    context: InstallContext,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """Write every Canvas configuration artifact for the production environment."""
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    install = context.install
    config_dir = app_settings.canvas.install_dir / "config"

    for name in app_settings.canvas.required_config_templates:
        load_template(config_dir / f"{name}.yml.example")

    render_production_yaml(
        "database",
        {
            "adapter": "postgresql",
            "encoding": "utf8",
            "database": app_settings.pg.database,
            "host": "localhost",
            "username": app_settings.pg.user,
            "password": install.db_password,
        },
        app_settings,
        logger_to_use,
    )

    render_production_yaml(
        "domain",
        {"domain": install.domain, "ssl": install.use_ssl},
        app_settings,
        logger_to_use,
    )

    render_production_yaml(
        "outgoing_mail",
        {
            "address": app_settings.canvas.smtp_placeholder_address,
            "port": 25,
            "user_name": "",
            "password": "",
            "domain": install.domain,
            "outgoing_address": install.email_sender,
            "sender_address": install.email_sender,
        },
        app_settings,
        logger_to_use,
    )
    log_installer(
        f"{symbols.get('warning', '!')} outgoing_mail.yml uses placeholder SMTP settings. "
        f"Edit {config_dir / 'outgoing_mail.yml'} before relying on email.",
        "warning",
        logger_to_use,
        app_settings,
    )

    encryption_key = existing_encryption_key(config_dir / "security.yml")
    if encryption_key:
        log_installer(
            f"{symbols.get('info', 'ℹ️')} Reusing the existing encryption key from security.yml.",
            "info",
            logger_to_use,
            app_settings,
        )
    else:
        encryption_key = generate_encryption_key(app_settings, logger_to_use)
    render_production_yaml(
        "security", {"encryption_key": encryption_key}, app_settings, logger_to_use
    )

    for name in app_settings.canvas.required_config_templates:
        if name not in ("database", "domain", "outgoing_mail", "security"):
            copy_validated_template(name, app_settings, logger_to_use)

    write_production_environment(app_settings, logger_to_use)
    write_dotenv(context, encryption_key, app_settings, logger_to_use)
