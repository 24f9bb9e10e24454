import subprocess

import pytest
from pytest_mock import MockerFixture

from common import command_utils
from common.command_utils import (
    get_last_command,
    log_installer,
    run_as_user,
    run_command,
    run_elevated_command,
)


def test_log_installer_success_logs_at_info(mock_logger):
    log_installer("done", "success", mock_logger)
    mock_logger.info.assert_called_once_with("done", exc_info=False)


def test_log_installer_warning(mock_logger):
    log_installer("careful", "warning", mock_logger)
    mock_logger.warning.assert_called_once_with("careful", exc_info=False)


def test_run_command_records_last_command(mocker: MockerFixture, app_settings, mock_logger):
    mock_run = mocker.patch(
        "common.command_utils.subprocess.run",
        return_value=subprocess.CompletedProcess(["echo", "hi"], 0, stdout="hi\n", stderr=""),
    )

    result = run_command(["echo", "hi there"], app_settings, capture_output=True, current_logger=mock_logger)

    assert result.stdout == "hi\n"
    assert get_last_command() == 'echo "hi there"'
    assert mock_run.call_args[0][0] == ["echo", "hi there"]


def test_run_command_does_not_log_stdin_by_default(mocker: MockerFixture, app_settings, mock_logger):
    mocker.patch(
        "common.command_utils.subprocess.run",
        return_value=subprocess.CompletedProcess(["psql"], 0, stdout="", stderr=""),
    )

    run_command(["psql"], app_settings, cmd_input="secret-password", current_logger=mock_logger)

    logged = " ".join(str(c) for c in mock_logger.method_calls)
    assert "secret-password" not in logged


def test_run_command_reraises_called_process_error(mocker: MockerFixture, app_settings, mock_logger):
    mocker.patch(
        "common.command_utils.subprocess.run",
        side_effect=subprocess.CalledProcessError(2, ["false"], output="", stderr="boom"),
    )

    with pytest.raises(subprocess.CalledProcessError):
        run_command(["false"], app_settings, current_logger=mock_logger)
    mock_logger.error.assert_called()


def test_run_elevated_command_adds_sudo_when_not_root(mocker: MockerFixture, app_settings):
    mocker.patch("common.command_utils.os.geteuid", return_value=1000)
    mock_run_command = mocker.patch("common.command_utils.run_command")

    run_elevated_command(["systemctl", "restart", "apache2"], app_settings)

    assert mock_run_command.call_args[0][0] == ["sudo", "systemctl", "restart", "apache2"]


def test_run_elevated_command_without_sudo_as_root(mocker: MockerFixture, app_settings):
    mocker.patch("common.command_utils.os.geteuid", return_value=0)
    mock_run_command = mocker.patch("common.command_utils.run_command")

    run_elevated_command(["a2enmod", "ssl"], app_settings)

    assert mock_run_command.call_args[0][0] == ["a2enmod", "ssl"]


def test_run_as_user_prefixes_sudo_u(mocker: MockerFixture, app_settings):
    mock_run_command = mocker.patch("common.command_utils.run_command")

    run_as_user("postgres", ["psql", "-tAc", "SELECT 1"], app_settings, cmd_input="x")

    assert mock_run_command.call_args[0][0] == ["sudo", "-u", "postgres", "psql", "-tAc", "SELECT 1"]
    assert mock_run_command.call_args.kwargs["cmd_input"] == "x"


def test_command_exists(mocker: MockerFixture):
    mocker.patch("common.command_utils.shutil.which", side_effect=lambda n: "/usr/bin/git" if n == "git" else None)
    assert command_utils.command_exists("git") is True
    assert command_utils.command_exists("nope") is False
