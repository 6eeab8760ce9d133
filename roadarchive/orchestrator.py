"""
orchestrator.py
Coordinates one archive run end-to-end:
  - acquire the run lock (fail fast if another run holds it)
  - ensure the mount point exists and the volume is mounted
  - archive every category into a fresh snapshot
  - notify the webhook with the verdict
  - unmount only if this run mounted
Lock release and unmount sit in with-blocks so every exit path runs them.
"""

from __future__ import annotations
import signal
from datetime import datetime
from pathlib import Path
from typing import Optional

from .archiver import ArchiveEngine, mount_point_of
from .bundle import prepend_bin_to_path
from .errors import ArchiveError, DestinationError
from .locker import RunLock
from .logsetup import log
from .mounter import mounted
from .notifier import notify
from .types import Config, RunContext
from .util import ensure_dir


def install_signal_handlers() -> None:
    """Turn SIGTERM/SIGHUP into SystemExit so with/finally cleanup still runs."""

    def _terminate(signum, _frame):
        log.warning("Received %s, cleaning up", signal.Signals(signum).name)
        raise SystemExit(128 + signum)

    for sig in (signal.SIGTERM, signal.SIGHUP):
        signal.signal(sig, _terminate)


def ensure_mount_point(mp: Path, dry: bool = False) -> None:
    if mp.is_dir():
        return
    log.info("Mount point directory '%s' does not exist, creating it.", mp)
    if dry:
        return
    try:
        ensure_dir(mp)
    except OSError as e:
        log.error("Failed to create mount point directory '%s': %s", mp, e)
        raise DestinationError(str(e))


def run_archive(
    ctx: RunContext,
    cfg: Config,
    dry: bool = False,
    engine: Optional[ArchiveEngine] = None,
) -> int:
    prepend_bin_to_path()
    engine = engine or ArchiveEngine(cfg, dry=dry)
    mp = mount_point_of(ctx, cfg)
    log.info("WORKSPACE : %s", ctx.workspace)
    log.info("DEVICE_UUID : %s", ctx.device_uuid)

    code = 1
    try:
        with RunLock(cfg.lock_file):
            ensure_mount_point(mp, dry=dry)
            with mounted(ctx.device_uuid, mp, cfg, dry=dry):
                started = datetime.now()
                verdict = engine.run(ctx)
                ended = datetime.now()
                notify(
                    ctx.webhook_url,
                    verdict,
                    started,
                    ended,
                    timeout=cfg.notify_timeout_sec,
                    dry=dry,
                )
            code = 0 if verdict.ok else 1
    except ArchiveError as e:
        code = e.exit_code
        log.error("%s", e)

    if code != 0:
        log.warning("Script failed with exit code %d", code)
    else:
        log.info("Script completed successfully")
    return code
