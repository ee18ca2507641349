"""Exception hierarchy.

Only ``ManifestError`` and a ``FilesystemError`` on the ROM root abort a run;
everything else is caught per descriptor and recorded in the report.
"""

from __future__ import annotations

from pathlib import Path


class AutopatcherError(Exception):
    """Base class for all errors raised by this package."""


class FilesystemError(AutopatcherError):
    """A file or directory could not be read."""


class NetworkError(AutopatcherError):
    """Transport-level failure (DNS, connect, read timeout ...)."""


class HttpError(AutopatcherError):
    """Non-success HTTP status."""

    def __init__(self, status: int, url: str) -> None:
        super().__init__(f"HTTP {status} for {url}")
        self.status = status
        self.url = url

    @property
    def transient(self) -> bool:
        return self.status == 429 or self.status >= 500


class ManifestError(AutopatcherError):
    """Manifest could not be parsed or failed schema validation."""


class PatchFormatError(AutopatcherError):
    """Malformed, truncated or inconsistent IPS data."""


class OutputConflict(AutopatcherError):
    """Destination file already exists."""

    def __init__(self, path: Path) -> None:
        super().__init__(f"Output already exists: {path}")
        self.path = path


class Cancelled(AutopatcherError):
    """The run was cancelled before this work completed."""

    def __init__(self, message: str = "cancelled") -> None:
        super().__init__(message)
