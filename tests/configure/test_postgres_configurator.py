import subprocess

import psycopg
import pytest
from pytest_mock import MockerFixture

from canvas_setup.exceptions import FatalStepError
from configure.postgres_configurator import (
    configure_postgres,
    create_canvas_database,
    create_canvas_role,
    sql_literal,
    tune_postgresql_conf,
    verify_canvas_login,
)


class FakePostgres:
    """Minimal stand-in for `sudo -u postgres psql/createdb`."""

    def __init__(self, version="16.2 (Ubuntu 16.2-1)"):
        self.roles = set()
        self.databases = {}
        self.version = version
        self.commands = []

    def __call__(self, user, command, app_settings, **kwargs):
        self.commands.append(command)
        stdout = ""
        if command[0] == "psql" and "-tAc" in command:
            query = command[-1]
            if "pg_roles" in query:
                stdout = "1" if any(f"'{r}'" in query for r in self.roles) else ""
            elif "pg_database" in query:
                stdout = "1" if any(f"'{d}'" in query for d in self.databases) else ""
            elif query == "SHOW server_version":
                stdout = self.version
        elif command[0] == "psql":
            self.roles.add(app_settings.pg.user)
        elif command[0] == "createdb":
            self.databases[command[-1]] = command[2]
        return subprocess.CompletedProcess(command, 0, stdout=stdout)


def test_sql_literal_escapes_quotes():
    assert sql_literal("it's") == "'it''s'"


def test_role_and_database_created_once(mocker: MockerFixture, context, app_settings, mock_logger):
    fake = FakePostgres()
    mocker.patch("configure.postgres_configurator.run_as_user", side_effect=fake)

    assert create_canvas_role(context, app_settings, mock_logger) is True
    assert create_canvas_database(app_settings, mock_logger) is True
    mock_logger.warning.assert_not_called()

    assert create_canvas_role(context, app_settings, mock_logger) is False
    assert create_canvas_database(app_settings, mock_logger) is False

    assert fake.roles == {"canvasuser"}
    assert fake.databases == {"canvas_production": "canvasuser"}
    assert mock_logger.warning.call_count == 2
    assert sum(1 for c in fake.commands if c[0] == "createdb") == 1


def test_role_password_goes_through_stdin(mocker: MockerFixture, context, app_settings, mock_logger):
    mock_run_as_user = mocker.patch(
        "configure.postgres_configurator.run_as_user",
        return_value=subprocess.CompletedProcess([], 0, stdout=""),
    )

    create_canvas_role(context, app_settings, mock_logger)

    create_call = mock_run_as_user.call_args_list[-1]
    assert create_call[0][1] == ["psql", "-v", "ON_ERROR_STOP=1"]
    assert create_call.kwargs["cmd_input"] == (
        "CREATE USER \"canvasuser\" WITH PASSWORD 'x' CREATEDB;\n"
    )


def test_verify_canvas_login_failure_is_fatal(mocker: MockerFixture, context, app_settings, mock_logger):
    mocker.patch(
        "configure.postgres_configurator.psycopg.connect",
        side_effect=psycopg.OperationalError("password authentication failed"),
    )

    with pytest.raises(FatalStepError, match="password"):
        verify_canvas_login(context, app_settings, mock_logger)


def test_tune_appends_once(mocker: MockerFixture, app_settings, mock_logger):
    mocker.patch("configure.postgres_configurator.run_as_user", side_effect=FakePostgres())
    mock_backup = mocker.patch("configure.postgres_configurator.backup_file", return_value=True)
    mock_restart = mocker.patch("configure.postgres_configurator.restart_service")

    def elevated(cmd, *args, **kwargs):
        returncode = 1 if cmd[0] == "grep" else 0
        return subprocess.CompletedProcess(cmd, returncode)

    mock_elevated = mocker.patch(
        "configure.postgres_configurator.run_elevated_command", side_effect=elevated
    )

    assert tune_postgresql_conf(app_settings, mock_logger) is True

    mock_backup.assert_called_once()
    assert mock_backup.call_args[0][0] == "/etc/postgresql/16/main/postgresql.conf"
    tee_call = mock_elevated.call_args_list[-1]
    assert tee_call[0][0] == ["tee", "-a", "/etc/postgresql/16/main/postgresql.conf"]
    assert "shared_buffers = 512MB" in tee_call.kwargs["cmd_input"]
    assert app_settings.pg.conf_marker in tee_call.kwargs["cmd_input"]
    mock_restart.assert_called_once()


def test_tune_skips_when_marker_present(mocker: MockerFixture, app_settings, mock_logger):
    mocker.patch("configure.postgres_configurator.run_as_user", side_effect=FakePostgres())
    mock_backup = mocker.patch("configure.postgres_configurator.backup_file")
    mocker.patch(
        "configure.postgres_configurator.run_elevated_command",
        return_value=subprocess.CompletedProcess([], 0),
    )

    assert tune_postgresql_conf(app_settings, mock_logger) is False
    mock_backup.assert_not_called()


def test_tune_unknown_version_warns(mocker: MockerFixture, app_settings, mock_logger):
    mocker.patch("configure.postgres_configurator.run_as_user", side_effect=FakePostgres(version=""))
    mock_elevated = mocker.patch("configure.postgres_configurator.run_elevated_command")

    assert tune_postgresql_conf(app_settings, mock_logger) is False
    mock_logger.warning.assert_called()
    mock_elevated.assert_not_called()


def test_tune_missing_conf_warns(mocker: MockerFixture, app_settings, mock_logger):
    mocker.patch("configure.postgres_configurator.run_as_user", side_effect=FakePostgres())
    mocker.patch(
        "configure.postgres_configurator.run_elevated_command",
        return_value=subprocess.CompletedProcess([], 1),
    )

    assert tune_postgresql_conf(app_settings, mock_logger) is False
    mock_logger.warning.assert_called()


def test_configure_postgres_order(mocker: MockerFixture, context, app_settings, mock_logger):
    manager = mocker.MagicMock()
    for name in (
        "start_and_enable_service",
        "create_canvas_role",
        "create_canvas_database",
        "verify_canvas_login",
        "tune_postgresql_conf",
    ):
        manager.attach_mock(mocker.patch(f"configure.postgres_configurator.{name}"), name)

    configure_postgres(context, app_settings, mock_logger)

    assert [c[0] for c in manager.mock_calls] == [
        "start_and_enable_service",
        "create_canvas_role",
        "create_canvas_database",
        "verify_canvas_login",
        "tune_postgresql_conf",
    ]
