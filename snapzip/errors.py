"""
Exception hierarchy for snapzip.

Every fatal condition raised by the pipeline derives from BackupError so the
CLI can translate it into a message and exit code 1 in one place.
"""


class BackupError(Exception):
    """Base class for all backup pipeline failures."""

    pass


class UsageError(BackupError):
    """A required flag is missing or an argument value is invalid."""

    pass


class BackupNotFoundError(BackupError):
    """A referenced archive, archive directory or source is absent."""

    pass


class ExternalToolError(BackupError):
    """The compression, extraction or sync step failed."""

    def __init__(self, message: str, output: str | None = None) -> None:
        super().__init__(message)
        self.output = output


class NetworkError(BackupError):
    """An HTTP fetch failed (refused, timeout, or non-2xx status)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
