"""
snapzip - Zip up your home, share it, restore it anywhere.

"Control is an illusion. But backups? Those are real."
"""

__version__ = "0.1.0"
__license__ = "MIT"

from .errors import (
    BackupError,
    BackupNotFoundError,
    ExternalToolError,
    NetworkError,
    UsageError,
)
from .models import ArchiveInfo, BackupConfig, CreateResult, OperationState, RestoreResult

__all__ = [
    "ArchiveInfo",
    "BackupConfig",
    "BackupError",
    "BackupNotFoundError",
    "CreateResult",
    "ExternalToolError",
    "NetworkError",
    "OperationState",
    "RestoreResult",
    "UsageError",
    "__version__",
]
