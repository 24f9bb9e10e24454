import subprocess

import pytest
from pytest_mock import MockerFixture

from canvas_setup.core_prerequisites import (
    enable_apache_modules,
    get_node_major_version,
    install_nodejs_yarn,
    install_system_packages,
)
from canvas_setup.exceptions import FatalStepError


@pytest.fixture
def mock_apt(mocker: MockerFixture):
    apt_class = mocker.patch("canvas_setup.core_prerequisites.AptManager")
    apt = apt_class.return_value
    apt.update.return_value = True
    apt.upgrade.return_value = True
    apt.install.return_value = True
    return apt


def test_system_packages_installed_after_update(mock_apt, app_settings, mock_logger):
    install_system_packages(app_settings, mock_logger)

    mock_apt.update.assert_called_once_with(app_settings, raise_error=True)
    mock_apt.upgrade.assert_called_once()
    packages = mock_apt.install.call_args[0][0]
    assert "postgresql" in packages
    assert "redis-server" in packages
    assert mock_apt.install.call_args.kwargs["update_first"] is False


def test_system_packages_failure_is_fatal(mock_apt, app_settings, mock_logger):
    mock_apt.install.return_value = False
    with pytest.raises(FatalStepError):
        install_system_packages(app_settings, mock_logger)


@pytest.mark.parametrize("stdout,expected", [("v20.11.1\n", 20), ("v18.19.0", 18), ("garbage", None)])
def test_get_node_major_version(mocker: MockerFixture, app_settings, stdout, expected):
    mocker.patch("canvas_setup.core_prerequisites.command_exists", return_value=True)
    mocker.patch(
        "canvas_setup.core_prerequisites.run_command",
        return_value=subprocess.CompletedProcess([], 0, stdout=stdout),
    )
    assert get_node_major_version(app_settings) == expected


def test_current_node_is_kept(mocker: MockerFixture, mock_apt, app_settings, mock_logger):
    mocker.patch("canvas_setup.core_prerequisites.command_exists", return_value=True)
    mock_run = mocker.patch(
        "canvas_setup.core_prerequisites.run_command",
        return_value=subprocess.CompletedProcess([], 0, stdout="v22.3.0\n"),
    )
    mock_elevated = mocker.patch("canvas_setup.core_prerequisites.run_elevated_command")

    install_nodejs_yarn(app_settings, mock_logger)

    assert not any(c[0][0][0] == "curl" for c in mock_run.call_args_list)
    mock_apt.install.assert_not_called()
    assert [c[0][0] for c in mock_elevated.call_args_list] == [["corepack", "enable"]]


def test_old_node_replaced_and_yarn_from_npm(mocker: MockerFixture, mock_apt, app_settings, mock_logger):
    node_versions = iter(["v16.20.0", "v20.11.1"])

    def run(cmd, *args, **kwargs):
        if cmd[0] == "node":
            return subprocess.CompletedProcess(cmd, 0, stdout=next(node_versions))
        if cmd[0] == "curl":
            return subprocess.CompletedProcess(cmd, 0, stdout="#!/bin/bash\necho setup\n")
        return subprocess.CompletedProcess(cmd, 0, stdout="1.22.22\n")

    mocker.patch("canvas_setup.core_prerequisites.run_command", side_effect=run)
    mocker.patch(
        "canvas_setup.core_prerequisites.command_exists",
        side_effect=lambda name: name == "node",
    )

    def elevated(cmd, *args, **kwargs):
        if cmd[0] == "corepack":
            raise subprocess.CalledProcessError(1, cmd)
        return subprocess.CompletedProcess(cmd, 0)

    mock_elevated = mocker.patch(
        "canvas_setup.core_prerequisites.run_elevated_command", side_effect=elevated
    )

    install_nodejs_yarn(app_settings, mock_logger)

    commands = [c[0][0] for c in mock_elevated.call_args_list]
    assert commands == [["bash", "-"], ["corepack", "enable"], ["npm", "install", "-g", "yarn"]]
    assert mock_elevated.call_args_list[0].kwargs["cmd_input"].startswith("#!/bin/bash")
    mock_apt.install.assert_called_once_with("nodejs", app_settings)
    mock_logger.warning.assert_called_once()


def test_node_still_too_old_is_fatal(mocker: MockerFixture, mock_apt, app_settings, mock_logger):
    mocker.patch("canvas_setup.core_prerequisites.command_exists", return_value=True)
    mocker.patch(
        "canvas_setup.core_prerequisites.run_command",
        return_value=subprocess.CompletedProcess([], 0, stdout="v18.0.0"),
    )
    mocker.patch("canvas_setup.core_prerequisites.run_elevated_command")

    with pytest.raises(FatalStepError, match="20"):
        install_nodejs_yarn(app_settings, mock_logger)


def test_enable_apache_modules(mocker: MockerFixture, app_settings, mock_logger):
    mock_elevated = mocker.patch("canvas_setup.core_prerequisites.run_elevated_command")

    enable_apache_modules(app_settings, mock_logger)

    command = mock_elevated.call_args[0][0]
    assert command[0] == "a2enmod"
    assert {"passenger", "rewrite", "headers"} <= set(command[1:])
