import subprocess

from pytest_mock import MockerFixture

from canvas_setup.exceptions import FatalStepError
from canvas_setup.step_executor import execute_step, skipped_step


def test_execute_step_success_keeps_return_value(app_settings, mock_logger):
    result = execute_step("TAG", "Do it", lambda s, l: 42, app_settings, mock_logger)

    assert result.success is True
    assert result.value == 42
    assert result.step_tag == "TAG"
    assert result.last_action is None


def test_execute_step_failure_captures_failing_command(app_settings, mock_logger):
    def step(settings, logger):
        raise subprocess.CalledProcessError(1, ["bundle", "exec", "rake", "db:migrate"])

    result = execute_step("DB_MIGRATE", "Migrate", step, app_settings, mock_logger)

    assert result.success is False
    assert result.last_action == "bundle exec rake db:migrate"
    mock_logger.error.assert_called()


def test_execute_step_fatal_error_last_action(app_settings, mock_logger):
    def step(settings, logger):
        raise FatalStepError("Redis is not responding", last_action="redis-cli ping")

    result = execute_step("REDIS_SETUP", "Redis", step, app_settings, mock_logger)

    assert result.success is False
    assert result.message == "Redis is not responding"
    assert result.last_action == "redis-cli ping"


def test_execute_step_falls_back_to_last_command(mocker: MockerFixture, app_settings, mock_logger):
    mocker.patch("canvas_setup.step_executor.get_last_command", return_value="git clone x")

    def step(settings, logger):
        raise RuntimeError("unexpected")

    result = execute_step("FETCH_SOURCE", "Fetch", step, app_settings, mock_logger)

    assert result.success is False
    assert result.last_action == "git clone x"


def test_skipped_step(app_settings, mock_logger):
    result = skipped_step("TLS_CERTIFICATE", "TLS", "SSL was not requested.", app_settings, mock_logger)

    assert result.success is True
    assert result.skipped is True
    mock_logger.info.assert_called()
