"""
roadarchive package
- Device-triggered archival: lock, mount by UUID, mirror workspace data into a timestamped snapshot, notify.
"""
__all__ = ["cli", "config", "orchestrator", "locker", "mounter", "archiver", "syncer", "notifier", "logsetup", "util", "types", "errors", "bundle"]
__version__ = "2.1.0"
