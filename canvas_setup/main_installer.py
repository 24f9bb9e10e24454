# canvas_setup/main_installer.py
# -*- coding: utf-8 -*-
"""
Main entry point and orchestrator for the Canvas LMS installer.

Handles argument parsing, logging setup, and runs the provisioning steps in
their fixed order, stopping at the first step that fails.
"""

import argparse
import logging
import os
import sys
from functools import partial
from typing import Callable, List, Optional, Tuple

from canvas_setup import config as static_config
from canvas_setup.app_builder import (
    compile_assets,
    install_app_dependencies,
    migrate_database,
)
from canvas_setup.canvas_source import fetch_canvas_source
from canvas_setup.cli_handler import (
    cli_confirm,
    collect_install_config,
    parse_yes_no,
    view_configuration,
)
from canvas_setup.config_loader import load_app_settings
from canvas_setup.config_models import AppSettings, InstallContext
from canvas_setup.core_prerequisites import (
    enable_apache_modules,
    install_nodejs_yarn,
    install_system_packages,
)
from canvas_setup.exceptions import InstallerError
from canvas_setup.host_requirements import check_host_requirements
from canvas_setup.ruby_installer import install_ruby_runtime
from canvas_setup.step_executor import StepResult, execute_step, skipped_step
from canvas_setup.summary import print_summary
from common.command_utils import log_installer
from common.core_utils import log_level_from_name, setup_logging
from common.system_utils import restart_service
from configure.apache_configurator import configure_apache_site
from configure.canvas_configurator import write_canvas_config
from configure.certbot_configurator import run_certbot_apache
from configure.delayed_jobs_configurator import configure_delayed_jobs_service
from configure.permissions_configurator import finalize_permissions
from configure.postgres_configurator import configure_postgres
from configure.redis_configurator import configure_redis

logger = logging.getLogger(__name__)

HOST_REQUIREMENTS_TAG = "HOST_REQUIREMENTS"
COLLECT_CONFIG_TAG = "COLLECT_CONFIG"
TLS_CERTIFICATE_TAG = "TLS_CERTIFICATE"

PipelineStep = Tuple[str, str, Callable[[AppSettings, Optional[logging.Logger]], object]]


def restart_all_services(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> None:
    for service in (
        static_config.POSTGRES_SERVICE,
        static_config.REDIS_SERVICE,
        static_config.APACHE_SERVICE,
        app_settings.delayed_jobs.service_name,
    ):
        restart_service(service, app_settings, current_logger)


def build_steps(context: InstallContext) -> List[PipelineStep]:
    """The provisioning steps that follow configuration collection, in order."""
    return [
        ("SYSTEM_PACKAGES", "Install system packages", install_system_packages),
        ("NODEJS_YARN", "Install Node.js and Yarn", install_nodejs_yarn),
        ("RUBY_RUNTIME", "Install Ruby via rbenv", partial(install_ruby_runtime, context)),
        ("APACHE_MODULES", "Enable Apache modules", enable_apache_modules),
        ("POSTGRES_SETUP", "Configure PostgreSQL", partial(configure_postgres, context)),
        ("REDIS_SETUP", "Configure Redis", configure_redis),
        ("FETCH_SOURCE", "Fetch Canvas LMS source", partial(fetch_canvas_source, context)),
        ("WRITE_CONFIG", "Write Canvas configuration", partial(write_canvas_config, context)),
        ("APP_DEPENDENCIES", "Install Ruby gems and JavaScript packages",
         partial(install_app_dependencies, context)),
        ("COMPILE_ASSETS", "Compile assets", partial(compile_assets, context)),
        ("DB_MIGRATE", "Migrate and initialise the database", partial(migrate_database, context)),
        ("APACHE_SITE", "Configure the Apache site", partial(configure_apache_site, context)),
        (TLS_CERTIFICATE_TAG, "Obtain a Let's Encrypt certificate", partial(run_certbot_apache, context)),
        ("DELAYED_JOBS_SERVICE", "Install the delayed jobs service",
         partial(configure_delayed_jobs_service, context)),
        ("PERMISSIONS", "Set file ownership and permissions", partial(finalize_permissions, context)),
        ("RESTART_SERVICES", "Restart services", restart_all_services),
        ("SUMMARY", "Installation summary", partial(print_summary, context)),
    ]


def run_pipeline(
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
    collect_config: Callable = collect_install_config,
) -> List[StepResult]:
    """
    Run every step in order and return the results collected so far. The
    last result is the failing one when the run stopped early.
    """
    logger_to_use = current_logger if current_logger else logger
    results: List[StepResult] = []

    host_result = execute_step(
        HOST_REQUIREMENTS_TAG, "Check system requirements",
        check_host_requirements, app_settings, logger_to_use,
    )
    results.append(host_result)
    if not host_result.success:
        return results

    config_result = execute_step(
        COLLECT_CONFIG_TAG, "Collect installation parameters",
        collect_config, app_settings, logger_to_use,
    )
    results.append(config_result)
    if not config_result.success:
        return results

    context = InstallContext(install=config_result.value, host=host_result.value)
    for tag, description, step_function in build_steps(context):
        if tag == TLS_CERTIFICATE_TAG and not context.install.use_ssl:
            results.append(
                skipped_step(tag, description, "SSL was not requested.", app_settings, logger_to_use)
            )
            continue
        result = execute_step(tag, description, step_function, app_settings, logger_to_use)
        results.append(result)
        if not result.success:
            break
    return results


def _yes_no_arg(value: str) -> bool:
    parsed = parse_yes_no(value)
    if parsed is None:
        raise argparse.ArgumentTypeError("expected 'yes' or 'no'")
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Canvas LMS installer for Ubuntu.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--config", dest="config_file", default=None,
                        help="YAML configuration file (default: ./config.yaml if present).")
    parser.add_argument("-y", "--yes", dest="assume_yes", action="store_true",
                        help="Answer yes to every confirmation.")
    parser.add_argument("--non-interactive", action="store_true",
                        help="Never prompt; missing installation parameters are fatal.")
    parser.add_argument("--view-config", action="store_true",
                        help="View current configuration settings and exit.")
    parser.add_argument("--log-file", default=None, help="Also write the log to this file.")

    config_group = parser.add_argument_group("Configuration Overrides")
    config_group.add_argument("--domain", default=None, help="Domain name of the Canvas site.")
    config_group.add_argument("--email-sender", default=None, help="Sender address for outgoing mail.")
    config_group.add_argument("--admin-email", default=None, help="Email of the Canvas administrator.")
    config_group.add_argument("--use-ssl", type=_yes_no_arg, default=None, metavar="yes|no",
                              help="Obtain a Let's Encrypt certificate.")
    config_group.add_argument("--branch", default=None, help="Canvas branch to install.")
    config_group.add_argument("--ruby-version", default=None, help="Ruby version to install.")
    config_group.add_argument("-l", "--log-prefix", default=None, help="Prefix for log messages.")
    return parser


def main(args: Optional[List[str]] = None) -> int:
    parser = build_parser()
    parsed_args = parser.parse_args(args)

    log_level = log_level_from_name(os.environ.get("LOGLEVEL"))
    setup_logging(log_level=log_level, log_file=parsed_args.log_file)

    try:
        app_settings = load_app_settings(parsed_args, parsed_args.config_file, logger)
    except InstallerError as e:
        logger.critical(f"Could not load configuration: {e}")
        return 1

    setup_logging(
        log_level=log_level,
        log_file=parsed_args.log_file,
        log_prefix=app_settings.log_prefix,
        symbols=app_settings.symbols,
    )
    symbols = app_settings.symbols

    if parsed_args.view_config:
        view_configuration(app_settings, logger)
        return 0

    log_installer(
        f"{symbols.get('rocket', '🚀')} Canvas LMS installer V{static_config.SCRIPT_VERSION}",
        "info", logger, app_settings,
    )
    try:
        if not cli_confirm("Proceed with the Canvas LMS installation?", app_settings, logger, default=True):
            log_installer("Installation cancelled.", "info", logger, app_settings)
            return 0
        results = run_pipeline(app_settings, logger)
    except KeyboardInterrupt:
        log_installer(
            f"{symbols.get('error', '❌')} Installation interrupted by the operator.",
            "critical", logger, app_settings,
        )
        return 1

    failed = next((r for r in results if not r.success), None)
    if failed:
        log_installer(
            f"{symbols.get('critical', '🔥')} Installation stopped at {failed.step_tag}: {failed.message}",
            "critical", logger, app_settings,
        )
        if failed.last_action:
            log_installer(f"   Last attempted action: {failed.last_action}", "critical", logger, app_settings)
        return 1

    log_installer(
        f"{symbols.get('sparkles', '✨')} All steps completed successfully.",
        "success", logger, app_settings,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
