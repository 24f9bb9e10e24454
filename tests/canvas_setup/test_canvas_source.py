import subprocess

import pytest
from pytest_mock import MockerFixture

from canvas_setup.canvas_source import fetch_canvas_source, verify_required_templates
from canvas_setup.exceptions import TemplateIntegrityError


def test_verify_required_templates_passes(canvas_tree, app_settings, mock_logger):
    verify_required_templates(app_settings, mock_logger)


def test_verify_required_templates_missing(canvas_tree, app_settings, mock_logger):
    (canvas_tree / "config" / "redis.yml.example").unlink()

    with pytest.raises(TemplateIntegrityError, match="redis.yml.example"):
        verify_required_templates(app_settings, mock_logger)
    mock_logger.error.assert_called()


def test_fresh_clone(mocker: MockerFixture, context, app_settings, mock_logger):
    install_dir = app_settings.canvas.install_dir

    def run(cmd, *args, **kwargs):
        if cmd[:2] == ["git", "clone"]:
            # simulate the checkout by creating the templates
            config_dir = install_dir / "config"
            config_dir.mkdir(parents=True)
            for name in app_settings.canvas.required_config_templates:
                (config_dir / f"{name}.yml.example").write_text("production: {}\n")
        return subprocess.CompletedProcess(cmd, 0, stdout="prod\n")

    mock_run_command = mocker.patch("canvas_setup.canvas_source.run_command", side_effect=run)
    mock_elevated = mocker.patch("canvas_setup.canvas_source.run_elevated_command")

    fetch_canvas_source(context, app_settings, mock_logger)

    clone_cmd = mock_run_command.call_args_list[0][0][0]
    assert clone_cmd == [
        "git", "clone", "--branch", "prod", app_settings.canvas.repo_url, str(install_dir),
    ]
    elevated_cmds = [c[0][0] for c in mock_elevated.call_args_list]
    assert ["mkdir", "-p", str(install_dir)] in elevated_cmds
    assert ["chown", "deploy:deploy", str(install_dir)] in elevated_cmds


def test_existing_directory_removed_after_confirmation(mocker: MockerFixture, canvas_tree, context, app_settings, mock_logger):
    mocker.patch("canvas_setup.canvas_source.cli_confirm", return_value=True)
    mock_elevated = mocker.patch("canvas_setup.canvas_source.run_elevated_command")
    mocker.patch(
        "canvas_setup.canvas_source.run_command",
        return_value=subprocess.CompletedProcess([], 0, stdout="prod\n"),
    )

    fetch_canvas_source(context, app_settings, mock_logger)

    assert mock_elevated.call_args_list[0][0][0] == ["rm", "-rf", str(canvas_tree)]


def test_existing_directory_kept_when_declined(mocker: MockerFixture, canvas_tree, context, app_settings, mock_logger):
    mocker.patch("canvas_setup.canvas_source.cli_confirm", return_value=False)
    mock_elevated = mocker.patch("canvas_setup.canvas_source.run_elevated_command")
    mock_run_command = mocker.patch("canvas_setup.canvas_source.run_command")

    fetch_canvas_source(context, app_settings, mock_logger)

    assert mock_elevated.call_args_list[0][0][0] == ["chown", "-R", "deploy:deploy", str(canvas_tree)]
    mock_run_command.assert_not_called()
    mock_logger.warning.assert_called()


def test_switches_to_configured_branch(mocker: MockerFixture, canvas_tree, context, app_settings, mock_logger):
    (canvas_tree / ".git").mkdir()
    mocker.patch("canvas_setup.canvas_source.cli_confirm", return_value=False)
    mocker.patch("canvas_setup.canvas_source.run_elevated_command")

    def run(cmd, *args, **kwargs):
        return subprocess.CompletedProcess(cmd, 0, stdout="master\n")

    mock_run_command = mocker.patch("canvas_setup.canvas_source.run_command", side_effect=run)

    fetch_canvas_source(context, app_settings, mock_logger)

    commands = [c[0][0] for c in mock_run_command.call_args_list]
    assert commands[-1] == ["git", "-C", str(canvas_tree), "checkout", "-B", "prod", "origin/prod"]
