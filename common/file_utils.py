# common/file_utils.py
# -*- coding: utf-8 -*-
"""
File system utility functions: timestamped backups and writing root-owned
files through the elevated command runner.
"""

import datetime
import logging
import shutil
import subprocess
from pathlib import Path
from typing import Optional, Union

from canvas_setup.config_models import AppSettings

from .command_utils import get_symbols, log_installer, run_elevated_command

module_logger = logging.getLogger(__name__)

BACKUP_TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"


def backup_path_for(file_path: Union[str, Path]) -> str:
    """Return the timestamped backup name used for file_path."""
    timestamp = datetime.datetime.now().strftime(BACKUP_TIMESTAMP_FORMAT)
    return f"{file_path}.bak.{timestamp}"


def backup_file(
    file_path: Union[str, Path],
    app_settings: Optional[AppSettings],
    current_logger: Optional[logging.Logger] = None,
    elevated: bool = True,
) -> bool:
    """
    Backup a specified file to a timestamped backup file.

    The copy is named `<file>.bak.<YYYYmmdd-HHMMSS>`. With `elevated` the
    existence check and the copy run through sudo, which is needed for files
    under /etc; otherwise the copy is done in-process.

    Parameters:
        file_path (Union[str, Path]): The path of the file to be backed up.
        app_settings (Optional[AppSettings]): Settings providing log symbols.
        current_logger (Optional[logging.Logger]): Logger to use.
        elevated (bool): Use sudo for the check and the copy.

    Returns:
        bool: True if the backup succeeded or no backup was needed (the file
            does not exist). False if an error occurred.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    file_path = str(file_path)

    if elevated:
        try:
            run_elevated_command(
                ["test", "-f", file_path],
                app_settings,
                check=True,
                capture_output=True,
                current_logger=logger_to_use,
            )
        except subprocess.CalledProcessError:
            log_installer(
                f"{symbols.get('info', 'ℹ️')} File {file_path} does not exist or is not a regular file. No backup needed.",
                "info",
                logger_to_use,
                app_settings,
            )
            return True
        except Exception as e:
            log_installer(
                f"{symbols.get('error', '❌')} Error pre-checking file existence for backup of {file_path}: {e}",
                "error",
                logger_to_use,
                app_settings,
            )
            return False
    elif not Path(file_path).is_file():
        log_installer(
            f"{symbols.get('info', 'ℹ️')} File {file_path} does not exist or is not a regular file. No backup needed.",
            "info",
            logger_to_use,
            app_settings,
        )
        return True

    backup_path = backup_path_for(file_path)
    try:
        if elevated:
            run_elevated_command(
                ["cp", "-a", file_path, backup_path],
                app_settings,
                current_logger=logger_to_use,
            )
        else:
            shutil.copy2(file_path, backup_path)
        log_installer(
            f"{symbols.get('success', '✅')} Backed up {file_path} to {backup_path}",
            "success",
            logger_to_use,
            app_settings,
        )
        return True
    except Exception as e:
        log_installer(
            f"{symbols.get('error', '❌')} Failed to backup {file_path} to {backup_path}: {e}",
            "error",
            logger_to_use,
            app_settings,
        )
        return False


def read_text_if_exists(file_path: Union[str, Path]) -> Optional[str]:
    """Return the file content, or None when it is missing or unreadable."""
    try:
        return Path(file_path).read_text(encoding="utf-8")
    except (FileNotFoundError, PermissionError, IsADirectoryError):
        return None


def write_elevated_file(
    file_path: Union[str, Path],
    content: str,
    app_settings: AppSettings,
    current_logger: Optional[logging.Logger] = None,
    mode: Optional[str] = None,
) -> bool:
    """
    Write a root-owned file, backing up any different existing version first.

    Returns:
        bool: True if the file was (re)written, False if the existing file
            already had exactly this content and was left untouched.

    Raises:
        RuntimeError: The existing file could not be backed up.
        subprocess.CalledProcessError: Writing or chmod failed.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = app_settings.symbols
    file_path = str(file_path)

    if read_text_if_exists(file_path) == content:
        log_installer(
            f"{symbols.get('info', 'ℹ️')} {file_path} is already up to date.",
            "info",
            logger_to_use,
            app_settings,
        )
        return False

    if not backup_file(file_path, app_settings, current_logger=logger_to_use):
        raise RuntimeError(f"Failed to backup {file_path}; refusing to overwrite it.")

    run_elevated_command(
        ["tee", file_path],
        app_settings,
        cmd_input=content,
        capture_output=True,
        current_logger=logger_to_use,
    )
    if mode:
        run_elevated_command(
            ["chmod", mode, file_path],
            app_settings,
            current_logger=logger_to_use,
        )
    log_installer(
        f"{symbols.get('success', '✅')} Wrote {file_path}",
        "success",
        logger_to_use,
        app_settings,
    )
    return True
