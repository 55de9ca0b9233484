"""Exception hierarchy for feedauth.

All exceptions inherit from :class:`FeedAuthError`. Failures raised below
:class:`~feedauth.auth.resolver.AuthHeaderResolver` are converted into one
of these kinds before they reach the host, so nothing escapes as an
unrelated exception type.

Subclass hierarchy::

    FeedAuthError
    +-- ConfigError
    +-- RunError                   (exit_code, output)
    |   +-- CommandNotFoundError   (exit 127 / 9009)
    |   +-- SpawnError
    |   +-- CommandTimeoutError
    +-- CliMissingError
    +-- AcquisitionFailedError
    |   +-- LoginRequiredError
    |   +-- TokenParseError
    +-- PersistError
"""

from __future__ import annotations

from typing import Optional


class FeedAuthError(Exception):
    """Base exception for all feedauth errors.

    Args:
        message: Human-readable error description printed to stderr.
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigError(FeedAuthError):
    """Raised for configuration problems (invalid JSON, bad settings values)."""


class RunError(FeedAuthError):
    """Raised when an external command does not complete successfully.

    Args:
        message: Human-readable error description.
        exit_code: The process exit status, or ``None`` when the process
            never produced one (spawn failure, timeout).
        output: Whatever the process wrote to stdout before it ended.
    """

    def __init__(
        self,
        message: str,
        exit_code: Optional[int] = None,
        output: str = "",
    ):
        super().__init__(message)
        self.exit_code = exit_code
        self.output = output


class CommandNotFoundError(RunError):
    """Raised when the shell reports that the command does not exist (exit 127)."""


class SpawnError(RunError):
    """Raised when the child process could not be started at all."""


class CommandTimeoutError(RunError):
    """Raised when a command exceeds its timeout and is terminated."""


class CliMissingError(FeedAuthError):
    """Raised when the Azure CLI is not installed or not on ``PATH``."""


class AcquisitionFailedError(FeedAuthError):
    """Raised when no token could be obtained, even after a login retry."""


class LoginRequiredError(AcquisitionFailedError):
    """Raised when the interactive login command itself fails."""


class TokenParseError(AcquisitionFailedError):
    """Raised when the CLI output is not the expected token document."""


class PersistError(FeedAuthError):
    """Raised when the token cache cannot be written to the host configuration."""
