import re
from subprocess import CalledProcessError

import pytest
from pytest_mock import MockerFixture

from common.file_utils import (
    backup_file,
    backup_path_for,
    read_text_if_exists,
    write_elevated_file,
)


def test_backup_path_for_uses_timestamp_suffix():
    path = backup_path_for("/etc/apache2/sites-available/canvas.conf")
    assert re.fullmatch(
        r"/etc/apache2/sites-available/canvas\.conf\.bak\.\d{8}-\d{6}", path
    )


def test_backup_file_elevated_success(mocker: MockerFixture, app_settings):
    """Test successful backup of a file."""
    mock_run_elevated_command = mocker.patch("common.file_utils.run_elevated_command")
    mock_log_installer = mocker.patch("common.file_utils.log_installer")

    result = backup_file("/path/to/file.txt", app_settings)

    assert result is True
    assert mock_run_elevated_command.call_count == 2
    copy_cmd = mock_run_elevated_command.call_args_list[1][0][0]
    assert copy_cmd[:3] == ["cp", "-a", "/path/to/file.txt"]
    assert re.fullmatch(r"/path/to/file\.txt\.bak\.\d{8}-\d{6}", copy_cmd[3])
    mock_log_installer.assert_called_with(
        mocker.ANY, "success", mocker.ANY, app_settings
    )


def test_backup_file_nonexistent(mocker: MockerFixture, app_settings):
    """Test when file doesn't exist, no backup needed."""
    mock_run_elevated_command = mocker.patch(
        "common.file_utils.run_elevated_command",
        side_effect=CalledProcessError(1, ["test", "-f", "/nope"]),
    )

    assert backup_file("/nope", app_settings) is True
    mock_run_elevated_command.assert_called_once()


def test_backup_file_copy_failure(mocker: MockerFixture, app_settings, mock_logger):
    mocker.patch(
        "common.file_utils.run_elevated_command",
        side_effect=[None, Exception("Backup failed")],
    )

    assert backup_file("/path/to/file.txt", app_settings, mock_logger) is False
    mock_logger.error.assert_called()


def test_backup_file_local_copy(tmp_path, app_settings):
    target = tmp_path / "database.yml"
    target.write_text("old: value\n")

    assert backup_file(target, app_settings, elevated=False) is True

    backups = list(tmp_path.glob("database.yml.bak.*"))
    assert len(backups) == 1
    assert backups[0].read_text() == "old: value\n"


def test_read_text_if_exists(tmp_path):
    existing = tmp_path / "a.txt"
    existing.write_text("hello")
    assert read_text_if_exists(existing) == "hello"
    assert read_text_if_exists(tmp_path / "missing.txt") is None


def test_write_elevated_file_skips_identical_content(mocker: MockerFixture, app_settings, tmp_path):
    target = tmp_path / "canvas.conf"
    target.write_text("same")
    mock_run_elevated_command = mocker.patch("common.file_utils.run_elevated_command")

    assert write_elevated_file(target, "same", app_settings) is False
    mock_run_elevated_command.assert_not_called()


def test_write_elevated_file_backs_up_before_overwrite(mocker: MockerFixture, app_settings, tmp_path):
    target = tmp_path / "canvas.conf"
    target.write_text("old")
    calls = []
    mocker.patch(
        "common.file_utils.backup_file",
        side_effect=lambda *a, **kw: calls.append("backup") or True,
    )
    mock_run_elevated_command = mocker.patch(
        "common.file_utils.run_elevated_command",
        side_effect=lambda cmd, *a, **kw: calls.append(cmd[0]),
    )

    assert write_elevated_file(target, "new", app_settings, mode="0755") is True

    assert calls == ["backup", "tee", "chmod"]
    tee_call = mock_run_elevated_command.call_args_list[0]
    assert tee_call.kwargs["cmd_input"] == "new"


def test_write_elevated_file_refuses_when_backup_fails(mocker: MockerFixture, app_settings, tmp_path):
    mocker.patch("common.file_utils.backup_file", return_value=False)
    mock_run_elevated_command = mocker.patch("common.file_utils.run_elevated_command")

    with pytest.raises(RuntimeError):
        write_elevated_file(tmp_path / "x.conf", "content", app_settings)
    mock_run_elevated_command.assert_not_called()
