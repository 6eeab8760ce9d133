"""
archiver.py
Archive engine: one timestamped snapshot per run on the mounted volume.

  <mount_point>/<YYYY-MM-DD_HH-MM-SS>/
      log/  bag/  core/     mirrors of <workspace>/data/<category>
      archive.log           this run's log lines

Categories are synced independently; a failure in one is recorded and the rest
still run. Outcomes are reduced into a single Verdict by reduce_verdict().
"""

from __future__ import annotations
import concurrent.futures, os, time
from contextlib import ExitStack
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from .errors import DestinationError
from .logsetup import log, run_log
from .syncer import rsync_dir
from .types import (
    CATEGORIES,
    Category,
    CategoryOutcome,
    Config,
    RunContext,
    Verdict,
    SYNCED,
    SKIPPED,
    FAILED,
    STATUS_SUCCESS,
    STATUS_FAIL,
)
from .util import local_datestr, RC_TIMEOUT, RC_NOT_FOUND

SNAPSHOT_FMT = "%Y-%m-%d_%H-%M-%S"
RUN_LOG_NAME = "archive.log"
# Second-resolution names collide only within the same second, so a couple of
# retries after waiting out the current second is always enough.
SNAPSHOT_ATTEMPTS = 3


def mount_point_of(ctx: RunContext, cfg: Config) -> Path:
    return ctx.archive_base / cfg.mount_subdir


def reduce_verdict(
    outcomes: Iterable[CategoryOutcome],
    empty_policy: str = STATUS_SUCCESS,
    snapshot: Optional[str] = None,
) -> Verdict:
    """
    Fold per-category outcomes into the run verdict.
    - any failed category -> fail
    - nothing synced (every source missing) -> empty_policy
    - otherwise -> success
    Skipped categories never count as failures.
    """
    outcomes = list(outcomes)
    if any(o.status == FAILED for o in outcomes):
        status = STATUS_FAIL
    elif not any(o.status == SYNCED for o in outcomes):
        status = empty_policy
    else:
        status = STATUS_SUCCESS
    return Verdict(status=status, outcomes=outcomes, snapshot=snapshot)


def describe_rc(rc: int) -> str:
    if rc == RC_TIMEOUT:
        return "rsync timed out"
    if rc == RC_NOT_FOUND:
        return "rsync not found"
    return f"rsync exited with rc={rc}"


class ArchiveEngine:
    def __init__(
        self,
        cfg: Config,
        dry: bool = False,
        sync: Callable[..., int] = rsync_dir,
        clock: Callable[[], datetime] = datetime.now,
        sleep: Callable[[float], None] = time.sleep,
        flush: Callable[[], None] = os.sync,
    ):
        self.cfg = cfg
        self.dry = dry
        self._sync = sync
        self._clock = clock
        self._sleep = sleep
        self._flush = flush

    def create_snapshot(self, mount_point: Path) -> Path:
        """Create a fresh, never-reused snapshot directory under mount_point."""
        for _ in range(SNAPSHOT_ATTEMPTS):
            now = self._clock()
            target = mount_point / local_datestr(SNAPSHOT_FMT, now)
            if self.dry:
                log.info("[dry-run] would create archive directory '%s'", target)
                return target
            try:
                target.mkdir()
                return target
            except FileExistsError:
                log.debug("Archive directory '%s' already exists; waiting for the next second", target)
                self._sleep(1.0 - now.microsecond / 1_000_000)
            except OSError as e:
                log.error("Failed to create archive directory '%s': %s", target, e)
                raise DestinationError(f"Cannot create archive directory {target}: {e}")
        raise DestinationError(f"Could not find an unused archive directory under {mount_point}")

    def sync_category(self, ctx: RunContext, snapshot: Path, category: Category) -> CategoryOutcome:
        src = ctx.source_of(category)
        dst = snapshot / category.value
        started = time.time()
        if not src.is_dir():
            log.warning("Source directory missing: '%s'", src)
            return CategoryOutcome(category, SKIPPED, str(src), str(dst), detail="source missing")

        log.info("Syncing directory: '%s' -> '%s'", src, dst)
        try:
            rc = self._sync(src, dst, self.cfg, dry=self.dry)
        except OSError as e:
            rc, detail = -1, str(e)
        else:
            detail = "" if rc == 0 else describe_rc(rc)
        duration = round(time.time() - started, 2)
        if rc != 0:
            log.warning("Failed to sync directory: '%s' (%s)", src, detail)
            return CategoryOutcome(category, FAILED, str(src), str(dst), detail, duration)
        return CategoryOutcome(category, SYNCED, str(src), str(dst), duration_sec=duration)

    def _sync_all(self, ctx: RunContext, snapshot: Path) -> List[CategoryOutcome]:
        if not self.cfg.parallel:
            return [self.sync_category(ctx, snapshot, c) for c in CATEGORIES]
        with concurrent.futures.ThreadPoolExecutor(max_workers=len(CATEGORIES)) as ex:
            futs = [ex.submit(self.sync_category, ctx, snapshot, c) for c in CATEGORIES]
            # Report in category order regardless of completion order.
            return [f.result() for f in futs]

    def run(self, ctx: RunContext) -> Verdict:
        snapshot = self.create_snapshot(mount_point_of(ctx, self.cfg))
        with ExitStack() as stack:
            if not self.dry:
                try:
                    stack.enter_context(run_log(snapshot / RUN_LOG_NAME))
                except OSError as e:
                    log.error("Failed to create run log in '%s': %s", snapshot, e)
                    raise DestinationError(f"Cannot create run log in {snapshot}: {e}")

            log.info("Archiving data to: '%s'", snapshot)
            outcomes = self._sync_all(ctx, snapshot)

            if not self.dry:
                log.info("Flushing disk buffers")
                self._flush()

            verdict = reduce_verdict(outcomes, self.cfg.empty_archive, str(snapshot))
            if not verdict.count(SYNCED) and not verdict.count(FAILED):
                log.warning(
                    "No category sources found under '%s'; empty archive reported as '%s'",
                    ctx.data_root,
                    verdict.status,
                )
            log.info(
                "Archive process completed for directory: '%s' (status=%s, synced=%d, skipped=%d, failed=%d)",
                snapshot,
                verdict.status,
                verdict.count(SYNCED),
                verdict.count(SKIPPED),
                verdict.count(FAILED),
            )
        return verdict
