"""
mounter.py
Idempotent mount/umount of the archive volume by filesystem UUID.

The device is resolved through /dev/disk/by-uuid so kernel renumbering of
/dev/sdX does not matter. Whether this run performed the mount is returned
in the MountHandle; only an owned mount is ever unmounted, so a volume that a
user or another service mounted stays where it is.
"""

from __future__ import annotations
import os, re, stat
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from .errors import DeviceNotFound, MountFailed
from .logsetup import log
from .types import Config, MountHandle
from .util import run, RC_TIMEOUT

MOUNTINFO = Path("/proc/self/mountinfo")


def is_block_device(path: Path) -> bool:
    try:
        return stat.S_ISBLK(os.stat(path).st_mode)
    except OSError:
        return False


def _unescape_mountinfo(field: str) -> str:
    # The kernel writes space, tab, newline and backslash as \ooo octal escapes.
    return re.sub(r"\\([0-7]{3})", lambda m: chr(int(m.group(1), 8)), field)


def mounted_targets(mountinfo: Path = MOUNTINFO) -> set[str]:
    """Mount points listed in mountinfo; field 5 is the mount point."""
    targets = set()
    with open(mountinfo, encoding="utf-8", errors="replace") as f:
        for line in f:
            fields = line.split()
            if len(fields) >= 5:
                targets.add(_unescape_mountinfo(fields[4]))
    return targets


def is_mounted(mp: Path) -> bool:
    """
    Like mountpoint(1): consult the mount table so bind mounts on the same
    device count too. Falls back to os.path.ismount without procfs.
    """
    try:
        targets = mounted_targets(MOUNTINFO)
    except OSError:
        return os.path.ismount(mp)
    return os.path.realpath(mp) in targets


def resolve_device(uuid: str, device_dir: Path) -> Path:
    dev = Path(device_dir) / uuid
    if not is_block_device(dev):
        log.error("Device path '%s' does not exist. Please check the device UUID.", dev)
        raise DeviceNotFound(f"Device path '{dev}' is not a block device")
    return dev


def mount_cmd(dev: Path, mp: Path, cfg: Config) -> list[str]:
    cmd = ["mount"]
    if cfg.mount_fstype:
        cmd += ["-t", cfg.mount_fstype]
    if cfg.mount_options:
        cmd += ["-o", cfg.mount_options]
    return cmd + [str(dev), str(mp)]


def ensure_mounted(uuid: str, mp: Path, cfg: Config, dry: bool = False) -> MountHandle:
    dev = resolve_device(uuid, cfg.device_dir)
    if is_mounted(mp):
        log.info("Device '%s' is already mounted on '%s'; leaving it mounted afterwards", dev, mp)
        return MountHandle(str(dev), mp, owned=False)

    log.info("Mounting device '%s' to '%s'", dev, mp)
    rc, out = run(mount_cmd(dev, mp, cfg), capture=True, dry=dry, timeout=cfg.mount_timeout_sec)
    if rc != 0:
        reason = "timed out" if rc == RC_TIMEOUT else f"rc={rc}"
        log.error("Failed to mount device '%s' to '%s' (%s) %s", dev, mp, reason, out.strip())
        raise MountFailed(f"mount {dev} -> {mp} failed ({reason})")
    return MountHandle(str(dev), mp, owned=True)


def release_if_owned(handle: MountHandle, cfg: Config, dry: bool = False) -> bool:
    """Unmount a volume this run mounted. Failures are logged, never raised."""
    if not handle.owned:
        log.info("Leaving '%s' mounted; this run did not mount it", handle.mount_point)
        return False
    log.info("Unmounting '%s'", handle.mount_point)
    rc, out = run(
        ["umount", str(handle.mount_point)],
        capture=True,
        dry=dry,
        timeout=cfg.umount_timeout_sec,
    )
    if rc != 0:
        log.warning("Failed to unmount '%s' (rc=%s) %s", handle.mount_point, rc, out.strip())
        return False
    handle.owned = False
    return True


@contextmanager
def mounted(uuid: str, mp: Path, cfg: Config, dry: bool = False) -> Iterator[MountHandle]:
    handle = ensure_mounted(uuid, mp, cfg, dry=dry)
    try:
        yield handle
    finally:
        release_if_owned(handle, cfg, dry=dry)
