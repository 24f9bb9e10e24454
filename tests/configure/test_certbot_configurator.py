import subprocess

import pytest
from pytest_mock import MockerFixture

from configure.certbot_configurator import is_certifiable_domain, run_certbot_apache


@pytest.mark.parametrize(
    "domain,expected",
    [
        ("canvas.example.org", True),
        ("192.168.1.20", False),
        ("localhost", False),
        ("canvas.localhost", False),
        ("canvas", False),
        ("::1", False),
    ],
)
def test_is_certifiable_domain(domain, expected):
    assert is_certifiable_domain(domain) is expected


def _with_domain(context, domain):
    return context.model_copy(
        update={"install": context.install.model_copy(update={"domain": domain, "use_ssl": True})}
    )


def test_ip_address_is_skipped(mocker: MockerFixture, context, app_settings, mock_logger):
    mock_elevated = mocker.patch("configure.certbot_configurator.run_elevated_command")
    mock_restart = mocker.patch("configure.certbot_configurator.restart_service")

    assert run_certbot_apache(_with_domain(context, "10.0.0.5"), app_settings, mock_logger) is False
    mock_elevated.assert_not_called()
    mock_restart.assert_not_called()
    mock_logger.warning.assert_called_once()


def test_certbot_command(mocker: MockerFixture, context, app_settings, mock_logger):
    mock_elevated = mocker.patch("configure.certbot_configurator.run_elevated_command")
    mock_restart = mocker.patch("configure.certbot_configurator.restart_service")

    assert run_certbot_apache(_with_domain(context, "canvas.example.org"), app_settings, mock_logger) is True

    assert mock_elevated.call_args[0][0] == [
        "certbot", "--apache", "-d", "canvas.example.org", "--non-interactive",
        "--agree-tos", "-m", "admin@example.org", "--redirect", "--hsts", "--uir",
    ]
    mock_restart.assert_called_once_with("apache2", app_settings, mock_logger, action="reload")


def test_certbot_failure_warns_and_reloads(mocker: MockerFixture, context, app_settings, mock_logger):
    mocker.patch(
        "configure.certbot_configurator.run_elevated_command",
        side_effect=subprocess.CalledProcessError(1, ["certbot"]),
    )
    mock_restart = mocker.patch("configure.certbot_configurator.restart_service")

    assert run_certbot_apache(_with_domain(context, "canvas.example.org"), app_settings, mock_logger) is False

    mock_logger.warning.assert_called_once()
    mock_restart.assert_called_once()
