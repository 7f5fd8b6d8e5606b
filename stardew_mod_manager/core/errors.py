"""Exception and warning types shared by the Steam and SMAPI services.

Absence (a missing key, user or release) is never an exception; it is
returned as None or an empty result. The types below mark failures that
abort the current operation.
"""

from __future__ import annotations

__all__ = [
    "ParseWarning",
    "SteamEnvironmentError",
    "SteamUserdataNotFoundError",
    "LocalConfigNotFoundError",
    "NoSteamUserError",
    "SmapiInstallError",
    "InstallerNotFoundError",
    "InstallerFailedError",
    "InstallCancelledError",
    "DownloadCancelledError",
    "ReleaseLookupError",
]


class ParseWarning(UserWarning):
    """A VDF line was skipped or dropped while parsing."""


class SteamEnvironmentError(Exception):
    """The local Steam installation is missing something the operation needs."""


class SteamUserdataNotFoundError(SteamEnvironmentError):
    """The userdata directory (or a user's subdirectory) does not exist."""


class LocalConfigNotFoundError(SteamEnvironmentError):
    """No localconfig.vdf was found where one was expected."""


class NoSteamUserError(SteamEnvironmentError):
    """An operation needs a current Steam user but none is selected."""


class SmapiInstallError(Exception):
    """Fatal error of the SMAPI install workflow."""


class InstallerNotFoundError(SmapiInstallError, FileNotFoundError):
    """The extracted release does not contain the platform installer."""


class InstallerFailedError(SmapiInstallError):
    """The installer process could not be started or exited with an error.

    Attributes:
        exit_code: Process exit code, or None if the process never started.
    """

    def __init__(self, message: str, exit_code: int | None = None) -> None:
        super().__init__(message)
        self.exit_code = exit_code


class InstallCancelledError(SmapiInstallError):
    """The workflow was cancelled by the caller."""


class DownloadCancelledError(InstallCancelledError):
    """A streamed download was stopped before completion."""


class ReleaseLookupError(Exception):
    """The release API could not be queried (network, HTTP or payload error).

    A repository without releases is not an error; the lookup returns None.
    """
