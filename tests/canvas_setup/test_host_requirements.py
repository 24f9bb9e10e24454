from pathlib import Path

import pytest
from pytest_mock import MockerFixture

from canvas_setup import host_requirements
from canvas_setup.exceptions import HostRequirementError
from canvas_setup.host_requirements import check_host_requirements


@pytest.fixture
def healthy_host(mocker: MockerFixture):
    """Patch every probe to describe a host that meets the requirements."""
    return {
        "geteuid": mocker.patch("canvas_setup.host_requirements.os.geteuid", return_value=1000),
        "user": mocker.patch(
            "canvas_setup.host_requirements.get_current_user_and_home",
            return_value=("deploy", Path("/home/deploy")),
        ),
        "ram": mocker.patch("canvas_setup.host_requirements.get_total_ram_mb", return_value=8000),
        "release": mocker.patch("canvas_setup.host_requirements.get_os_release", return_value="24.04"),
        "exists": mocker.patch("canvas_setup.host_requirements.command_exists", return_value=True),
        "apt": mocker.patch("canvas_setup.host_requirements.AptManager"),
    }


def test_healthy_host_returns_host_info(healthy_host, app_settings, mock_logger):
    info = check_host_requirements(app_settings, mock_logger)

    assert info.user == "deploy"
    assert info.home == Path("/home/deploy")
    assert info.os_release == "24.04"
    assert info.ram_mb == 8000
    healthy_host["apt"].assert_not_called()


def test_refuses_root(healthy_host, app_settings, mock_logger):
    healthy_host["geteuid"].return_value = 0
    with pytest.raises(HostRequirementError, match="root"):
        check_host_requirements(app_settings, mock_logger)


def test_insufficient_ram_aborts_before_any_install(healthy_host, app_settings, mock_logger):
    healthy_host["ram"].return_value = 2000
    healthy_host["exists"].side_effect = lambda name: name != "lsb_release"

    with pytest.raises(HostRequirementError, match="2000"):
        check_host_requirements(app_settings, mock_logger)

    healthy_host["apt"].assert_not_called()


def test_missing_home_is_fatal(healthy_host, app_settings, mock_logger):
    healthy_host["user"].return_value = ("deploy", None)
    with pytest.raises(HostRequirementError, match="home"):
        check_host_requirements(app_settings, mock_logger)


def test_missing_required_command(healthy_host, app_settings, mock_logger):
    healthy_host["exists"].side_effect = lambda name: name != "git"
    with pytest.raises(HostRequirementError, match="git"):
        check_host_requirements(app_settings, mock_logger)


def test_installs_lsb_release_when_missing(healthy_host, app_settings, mock_logger):
    healthy_host["exists"].side_effect = lambda name: name != "lsb_release"
    healthy_host["apt"].return_value.install.return_value = True

    check_host_requirements(app_settings, mock_logger)

    healthy_host["apt"].return_value.install.assert_called_once_with("lsb-release", app_settings)


def test_os_mismatch_declined(mocker: MockerFixture, healthy_host, app_settings, mock_logger):
    healthy_host["release"].return_value = "22.04"
    mocker.patch.object(host_requirements, "cli_confirm", return_value=False)

    with pytest.raises(HostRequirementError, match="22.04"):
        check_host_requirements(app_settings, mock_logger)
    mock_logger.warning.assert_called()


def test_os_mismatch_accepted(mocker: MockerFixture, healthy_host, app_settings, mock_logger):
    healthy_host["release"].return_value = "22.04"
    mocker.patch.object(host_requirements, "cli_confirm", return_value=True)

    assert check_host_requirements(app_settings, mock_logger).os_release == "22.04"
