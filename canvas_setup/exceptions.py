# canvas_setup/exceptions.py
# -*- coding: utf-8 -*-
"""Exceptions raised by provisioning steps."""

from typing import Optional


class InstallerError(Exception):
    """Base class for installer errors."""


class FatalStepError(InstallerError):
    """A step hit a condition that must stop the pipeline."""

    def __init__(self, message: str, last_action: Optional[str] = None):
        self.last_action = last_action
        super().__init__(message)


class HostRequirementError(FatalStepError):
    """The host does not meet a minimum requirement."""


class TemplateIntegrityError(FatalStepError):
    """A configuration template is missing or unreadable after the fetch."""


class UserAbortError(InstallerError):
    """The operator declined a confirmation or ended input."""
