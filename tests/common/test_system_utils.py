import subprocess

from pytest_mock import MockerFixture

from common.system_utils import (
    get_os_release,
    get_service_state,
    get_total_ram_mb,
    restart_service,
)

FREE_OUTPUT = """\
               total        used        free      shared  buff/cache   available
Mem:            7936        1520        4210          12        2205        6140
Swap:           2047           0        2047
"""


def test_get_total_ram_mb_parses_free(mocker: MockerFixture, app_settings):
    mocker.patch(
        "common.system_utils.run_command",
        return_value=subprocess.CompletedProcess(["free", "-m"], 0, stdout=FREE_OUTPUT),
    )
    assert get_total_ram_mb(app_settings) == 7936


def test_get_total_ram_mb_unparsable(mocker: MockerFixture, app_settings, mock_logger):
    mocker.patch(
        "common.system_utils.run_command",
        return_value=subprocess.CompletedProcess(["free", "-m"], 0, stdout="garbage"),
    )
    assert get_total_ram_mb(app_settings, mock_logger) is None
    mock_logger.warning.assert_called()


def test_get_os_release(mocker: MockerFixture, app_settings):
    mocker.patch(
        "common.system_utils.run_command",
        return_value=subprocess.CompletedProcess(["lsb_release"], 0, stdout="24.04\n"),
    )
    assert get_os_release(app_settings) == "24.04"


def test_get_os_release_missing_command(mocker: MockerFixture, app_settings):
    mocker.patch("common.system_utils.run_command", side_effect=FileNotFoundError("lsb_release"))
    assert get_os_release(app_settings) is None


def test_get_service_state(mocker: MockerFixture, app_settings):
    mocker.patch(
        "common.system_utils.run_command",
        return_value=subprocess.CompletedProcess(["systemctl"], 3, stdout="inactive\n"),
    )
    assert get_service_state("redis-server", app_settings) == "inactive"


def test_get_service_state_empty_output(mocker: MockerFixture, app_settings):
    mocker.patch(
        "common.system_utils.run_command",
        return_value=subprocess.CompletedProcess(["systemctl"], 4, stdout=""),
    )
    assert get_service_state("nope", app_settings) == "unknown"


def test_restart_service_reload(mocker: MockerFixture, app_settings):
    mock_run_elevated_command = mocker.patch("common.system_utils.run_elevated_command")
    restart_service("apache2", app_settings, action="reload")
    assert mock_run_elevated_command.call_args[0][0] == ["systemctl", "reload", "apache2"]
