"""
errors.py
Fatal conditions of an archive run. Each carries the process exit code it maps to.

Recoverable conditions (skipped or failed category, webhook or umount failure)
are logged and folded into the verdict instead of being raised.
"""


class ArchiveError(Exception):
    """Base exception for fatal archive-run errors."""
    exit_code = 1


class ConfigError(ArchiveError):
    """Required environment missing or config invalid."""
    exit_code = 2


class LockBusy(ArchiveError):
    """Raised when another run holds the lock."""
    exit_code = 3


class DeviceNotFound(ArchiveError):
    """Device identifier does not resolve to a block device."""
    exit_code = 4


class MountFailed(ArchiveError):
    exit_code = 5


class DestinationError(ArchiveError):
    """Mount point or snapshot directory could not be created."""
    exit_code = 6
