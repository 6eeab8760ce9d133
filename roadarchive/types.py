"""
types.py
Dataclasses and enums used across modules: Category, RunContext, Config,
CategoryOutcome, Verdict, MountHandle.

These are intentionally lightweight, serializable, and stable for logging.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional


class Category(str, Enum):
    """Closed set of workspace data directories that get archived."""
    LOG = "log"
    BAG = "bag"
    CORE = "core"


# Archive order; adding a category here is a deliberate change.
CATEGORIES = (Category.LOG, Category.BAG, Category.CORE)

SYNCED = "synced"
SKIPPED = "skipped"
FAILED = "failed"

STATUS_SUCCESS = "success"
STATUS_DEGRADED = "degraded"
STATUS_FAIL = "fail"

EMPTY_POLICIES = (STATUS_SUCCESS, STATUS_DEGRADED, STATUS_FAIL)


@dataclass(frozen=True)
class RunContext:
    workspace: Path
    device_uuid: str
    webhook_url: str
    archive_base: Path

    @property
    def data_root(self) -> Path:
        return self.workspace / "data"

    def source_of(self, category: Category) -> Path:
        return self.data_root / category.value


@dataclass
class Config:
    # lock
    lock_file: Path
    # mount
    device_dir: Path
    mount_subdir: str
    mount_fstype: str
    mount_options: str
    mount_timeout_sec: int
    umount_timeout_sec: int
    # sync
    preserve_permissions: bool
    parallel: bool
    bwlimit_kbps: int
    sync_timeout_sec: int
    # notify
    notify_timeout_sec: int
    # policy
    empty_archive: str
    # runtime
    log_level: str
    syslog: bool


@dataclass
class CategoryOutcome:
    category: Category
    status: str
    source: str
    destination: str
    detail: str = ""
    duration_sec: float = 0.0


@dataclass
class Verdict:
    status: str
    outcomes: List[CategoryOutcome] = field(default_factory=list)
    snapshot: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status != STATUS_FAIL

    def count(self, status: str) -> int:
        return sum(1 for o in self.outcomes if o.status == status)


@dataclass
class MountHandle:
    device: str
    mount_point: Path
    owned: bool
