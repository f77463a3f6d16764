"""Error taxonomy for package inspection.

Every failure the command can report is an ``InfoError``. The entrypoint maps
``exit_code`` to the process exit status; nothing below it retries.
"""

from __future__ import annotations

from typing import Optional

from constants import ExitCodes


class InfoError(Exception):
    """Base class for all errors reported to the user."""

    exit_code = ExitCodes.CLI_ERROR.value


class UsageError(InfoError):
    """Invalid invocation, detected before any network access."""


class AmbiguousSourceError(InfoError):
    """A user-configured source replacement disagrees with the builtin one."""

    def __init__(self, message: str, replacement: str):
        super().__init__(message)
        self.replacement = replacement


class NotFoundError(InfoError):
    """No published version matches the query."""

    def __init__(self, spec: str, source_url: str, reason: Optional[str] = None):
        message = f"could not find `{spec}` in registry `{source_url}`"
        if reason:
            message = f"{message}\n{reason}"
        super().__init__(message)
        self.spec = spec
        self.source_url = source_url


class TransportError(InfoError):
    """Network or registry failure, already retried by the transport."""

    exit_code = ExitCodes.CONNECTION_ERROR.value


class AuthError(InfoError):
    """Credentials exist but could not be read or were rejected."""


class CredentialsMissingError(AuthError):
    """No token is configured for the registry."""
