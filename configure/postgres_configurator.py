# configure/postgres_configurator.py
# -*- coding: utf-8 -*-
"""
Handles configuration of PostgreSQL for Canvas: the service, the Canvas role
and database, and the tuning block in postgresql.conf.
"""
import logging
import re
import subprocess
from typing import Optional

import psycopg

from canvas_setup import config as static_config
from canvas_setup.config_models import AppSettings, InstallContext
from canvas_setup.exceptions import FatalStepError
from common.command_utils import (
    log_installer,
    run_as_user,
    run_elevated_command,
)
from common.file_utils import backup_file
from common.system_utils import restart_service, start_and_enable_service

module_logger = logging.getLogger(__name__)

POSTGRES_SYSTEM_USER = "postgres"
PG_MAJOR_VERSION_PATTERN = re.compile(r"^(\d+)")


def sql_literal(value: str) -> str:
    """Quote a value as an SQL string literal."""
    return "'" + value.replace("'", "''") + "'"


def sql_identifier(value: str) -> str:
    """Quote a value as an SQL identifier."""
    return '"' + value.replace('"', '""') + '"'


def _psql_query(
    query: str,
    app_settings: AppSettings,
    logger_to_use: logging.Logger,
) -> str:
    """Run a single query as the postgres superuser; returns trimmed output."""
    result = run_as_user(
        POSTGRES_SYSTEM_USER,
        ["psql", "-tAc", query],
        app_settings,
        capture_output=True,
        current_logger=logger_to_use,
        cwd="/tmp",
    )
    return (result.stdout or "").strip()


def role_exists(
    role: str, app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> bool:
    logger_to_use = current_logger if current_logger else module_logger
    return _psql_query(
        f"SELECT 1 FROM pg_roles WHERE rolname={sql_literal(role)}",
        app_settings,
        logger_to_use,
    ) == "1"


def database_exists(
    database: str, app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> bool:
    logger_to_use = current_logger if current_logger else module_logger
    return _psql_query(
        f"SELECT 1 FROM pg_database WHERE datname={sql_literal(database)}",
        app_settings,
        logger_to_use,
    ) == "1"


def create_canvas_role(
    context: InstallContext,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """
    Create the Canvas role with CREATEDB unless it already exists.

    The statement is passed on stdin so the password never shows up in the
    process list or the log.

    Returns:
        True if the role was created, False if it already existed.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    pg_user = app_settings.pg.user

    if role_exists(pg_user, app_settings, logger_to_use):
        log_installer(
            f"{symbols.get('warning', '!')} PostgreSQL user '{pg_user}' already exists. Skipping creation.",
            "warning",
            logger_to_use,
            app_settings,
        )
        return False

    log_installer(
        f"{symbols.get('gear', '⚙️')} Creating PostgreSQL user '{pg_user}'...",
        "info",
        logger_to_use,
        app_settings,
    )
    run_as_user(
        POSTGRES_SYSTEM_USER,
        ["psql", "-v", "ON_ERROR_STOP=1"],
        app_settings,
        capture_output=True,
        cmd_input=(
            f"CREATE USER {sql_identifier(pg_user)} WITH PASSWORD "
            f"{sql_literal(context.install.db_password)} CREATEDB;\n"
        ),
        current_logger=logger_to_use,
        cwd="/tmp",
    )
    log_installer(
        f"{symbols.get('success', '✅')} PostgreSQL user '{pg_user}' created.",
        "success",
        logger_to_use,
        app_settings,
    )
    return True


def create_canvas_database(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> bool:
    """
    Create the Canvas database owned by the Canvas role unless it exists.

    Returns:
        True if the database was created, False if it already existed.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    pg_user = app_settings.pg.user
    pg_database = app_settings.pg.database

    if database_exists(pg_database, app_settings, logger_to_use):
        log_installer(
            f"{symbols.get('warning', '!')} PostgreSQL database '{pg_database}' already exists. Skipping creation.",
            "warning",
            logger_to_use,
            app_settings,
        )
        return False

    run_as_user(
        POSTGRES_SYSTEM_USER,
        ["createdb", "--owner", pg_user, pg_database],
        app_settings,
        current_logger=logger_to_use,
        cwd="/tmp",
    )
    log_installer(
        f"{symbols.get('success', '✅')} PostgreSQL database '{pg_database}' created, owned by '{pg_user}'.",
        "success",
        logger_to_use,
        app_settings,
    )
    return True


def verify_canvas_login(
    context: InstallContext,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """
    Connect as the Canvas role over TCP the same way Rails will.

    Raises:
        FatalStepError: The role cannot log in, typically because an existing
            role has a different password.
    """
    logger_to_use = current_logger if current_logger else module_logger
    pg_user = app_settings.pg.user
    pg_database = app_settings.pg.database
    try:
        with psycopg.connect(
            host="localhost",
            dbname=pg_database,
            user=pg_user,
            password=context.install.db_password,
            connect_timeout=10,
        ) as conn:
            conn.execute("SELECT 1")
    except psycopg.Error as e:
        raise FatalStepError(
            f"Could not connect to '{pg_database}' as '{pg_user}': {e}. "
            f"If the role already existed, check that its password matches the one entered.",
            last_action=f"connect postgresql://{pg_user}@localhost/{pg_database}",
        ) from e
    log_installer(
        f"{app_settings.symbols.get('success', '✅')} Verified login to '{pg_database}' as '{pg_user}'.",
        "success",
        logger_to_use,
        app_settings,
    )


def get_server_major_version(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> Optional[str]:
    logger_to_use = current_logger if current_logger else module_logger
    try:
        output = _psql_query("SHOW server_version", app_settings, logger_to_use)
    except subprocess.CalledProcessError:
        return None
    match = PG_MAJOR_VERSION_PATTERN.match(output)
    return match.group(1) if match else None


def tune_postgresql_conf(
    app_settings: AppSettings, current_logger: Optional[logging.Logger] = None
) -> bool:
    """
    Append the tuning block to postgresql.conf once and restart PostgreSQL.

    A marker line identifies an already tuned file. An unknown server
    version or a missing file only produces a warning.

    Returns:
        True if the file was changed.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    marker = app_settings.pg.conf_marker

    version = get_server_major_version(app_settings, logger_to_use)
    if not version:
        log_installer(
            f"{symbols.get('warning', '!')} Could not determine the PostgreSQL version. Skipping performance tuning.",
            "warning",
            logger_to_use,
            app_settings,
        )
        return False

    pg_conf_file = static_config.PG_CONF_FILE_TEMPLATE.format(version=version)
    if run_elevated_command(
        ["test", "-f", pg_conf_file],
        app_settings,
        check=False,
        capture_output=True,
        current_logger=logger_to_use,
    ).returncode != 0:
        log_installer(
            f"{symbols.get('warning', '!')} PostgreSQL configuration file not found at {pg_conf_file}. Skipping tuning.",
            "warning",
            logger_to_use,
            app_settings,
        )
        return False

    if run_elevated_command(
        ["grep", "-qF", marker, pg_conf_file],
        app_settings,
        check=False,
        capture_output=True,
        current_logger=logger_to_use,
    ).returncode == 0:
        log_installer(
            f"{symbols.get('info', 'ℹ️')} PostgreSQL configuration in {pg_conf_file} already tuned.",
            "info",
            logger_to_use,
            app_settings,
        )
        return False

    if not backup_file(pg_conf_file, app_settings, current_logger=logger_to_use):
        raise FatalStepError(f"Failed to backup {pg_conf_file}.")

    additions = app_settings.pg.conf_additions_template.format(
        marker=marker, script_version=static_config.SCRIPT_VERSION
    )
    run_elevated_command(
        ["tee", "-a", pg_conf_file],
        app_settings,
        cmd_input=additions,
        capture_output=True,
        current_logger=logger_to_use,
    )
    log_installer(
        f"{symbols.get('success', '✅')} Appended performance settings to {pg_conf_file}.",
        "success",
        logger_to_use,
        app_settings,
    )
    restart_service(static_config.POSTGRES_SERVICE, app_settings, logger_to_use)
    return True


def configure_postgres(
    context: InstallContext,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """Start PostgreSQL, create the role and database, verify login and tune."""
    logger_to_use = current_logger if current_logger else module_logger
    start_and_enable_service(static_config.POSTGRES_SERVICE, app_settings, logger_to_use)
    create_canvas_role(context, app_settings, logger_to_use)
    create_canvas_database(app_settings, logger_to_use)
    verify_canvas_login(context, app_settings, logger_to_use)
    tune_postgresql_conf(app_settings, logger_to_use)
