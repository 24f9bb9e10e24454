from pytest_mock import MockerFixture

from configure.delayed_jobs_configurator import configure_delayed_jobs_service, render_unit


def test_render_unit(context, app_settings):
    unit = render_unit(context, app_settings)
    rbenv_root = context.rbenv_root

    assert "User=www-data" in unit
    assert "Group=www-data" in unit
    assert f"WorkingDirectory={app_settings.canvas.install_dir}" in unit
    assert "Environment=RAILS_ENV=production" in unit
    assert f"Environment=RBENV_ROOT={rbenv_root}" in unit
    assert f"ExecStart={rbenv_root}/shims/bundle exec script/delayed_job run" in unit
    assert "Restart=always" in unit
    assert "WantedBy=multi-user.target" in unit


def test_service_installed_and_enabled(mocker: MockerFixture, context, app_settings, mock_logger):
    manager = mocker.MagicMock()
    for name in ("write_elevated_file", "systemd_reload", "run_elevated_command"):
        manager.attach_mock(mocker.patch(f"configure.delayed_jobs_configurator.{name}"), name)

    configure_delayed_jobs_service(context, app_settings, mock_logger)

    assert [c[0] for c in manager.mock_calls] == [
        "write_elevated_file",
        "systemd_reload",
        "run_elevated_command",
    ]
    write_args = manager.write_elevated_file.call_args[0]
    assert write_args[0] == "/etc/systemd/system/canvas_delayed_jobs.service"
    assert manager.run_elevated_command.call_args[0][0] == [
        "systemctl", "enable", "canvas_delayed_jobs",
    ]
