"""
config.py
Two inputs make up a run:
- RunContext from the environment contract set by the udev/systemd unit
  (WORKSPACE, DEVICE_UUID, WEBHOOK_URL, ARCHIVE_BASE_DIR), optionally
  overridden on the command line.
- Config tuning from TOML (Python 3.11+ tomllib). The file is optional.
  Search order:
    1) explicit --config path (must exist)
    2) adjacent DEFAULT_CONFIG_PATH (bundle root / 'roadarchive.toml')
    3) /etc/road-test-archive.toml
  When none exists, built-in defaults apply.
"""

from __future__ import annotations
import os
import tomllib
from pathlib import Path
from typing import Any, Dict, Mapping, Optional
from .types import Config, RunContext, EMPTY_POLICIES
from .bundle import DEFAULT_CONFIG_PATH, SYSTEM_CONFIG_PATH
from .errors import ConfigError

ENV_WORKSPACE = "WORKSPACE"
ENV_WORKSPACE_FALLBACK = "APOLLO_WORKSPACE"
ENV_DEVICE_UUID = "DEVICE_UUID"
ENV_WEBHOOK_URL = "WEBHOOK_URL"
ENV_ARCHIVE_BASE = "ARCHIVE_BASE_DIR"


def _gv(d: Dict[str, Any], path: list[str], default=None):
    cur = d
    for k in path:
        if not isinstance(cur, dict) or k not in cur:
            return default
        cur = cur[k]
    return cur


def _as_bool(value, key: str) -> bool:
    # TOML has real booleans; a quoted "false" would otherwise read as True.
    if not isinstance(value, bool):
        raise ConfigError(f"{key} must be true or false, got {value!r}")
    return value


def _load_toml(path: Path) -> Dict[str, Any]:
    with open(path, "rb") as f:
        return tomllib.load(f)


def find_config(path_arg: str | None) -> Optional[Path]:
    """Pick the config path based on CLI arg and availability; None means defaults."""
    if path_arg:
        p = Path(path_arg)
        if not p.exists():
            raise FileNotFoundError(f"Specified config file does not exist: {path_arg}")
        return p
    for candidate in (DEFAULT_CONFIG_PATH, SYSTEM_CONFIG_PATH):
        p = Path(candidate)
        if p.exists():
            return p
    return None


def load_config(path: Optional[Path]) -> Config:
    cfg = _load_toml(path) if path else {}

    def gv(keys, default=None):
        return _gv(cfg, keys, default)

    config = Config(
        lock_file=Path(gv(["lock", "path"], "/var/lock/road-test-archive.lock")),
        device_dir=Path(gv(["mount", "device_dir"], "/dev/disk/by-uuid")),
        mount_subdir=gv(["mount", "subdir"], "road_test"),
        mount_fstype=gv(["mount", "fstype"], ""),
        mount_options=gv(["mount", "options"], ""),
        mount_timeout_sec=int(gv(["mount", "timeout_sec"], 60)),
        umount_timeout_sec=int(gv(["mount", "umount_timeout_sec"], 60)),
        preserve_permissions=_as_bool(gv(["sync", "preserve_permissions"], True), "sync.preserve_permissions"),
        parallel=_as_bool(gv(["sync", "parallel"], False), "sync.parallel"),
        bwlimit_kbps=int(gv(["sync", "bwlimit_kbps"], 0)),
        sync_timeout_sec=int(gv(["sync", "timeout_sec"], 3600)),
        notify_timeout_sec=int(gv(["notify", "timeout_sec"], 10)),
        empty_archive=str(gv(["policy", "empty_archive"], "success")).lower(),
        log_level=gv(["runtime", "log_level"], "INFO"),
        syslog=_as_bool(gv(["runtime", "syslog"], True), "runtime.syslog"),
    )
    validate_config(config)
    return config


def validate_config(config: Config) -> None:
    if config.empty_archive not in EMPTY_POLICIES:
        raise ConfigError(
            f"policy.empty_archive must be one of {', '.join(EMPTY_POLICIES)}, "
            f"got {config.empty_archive!r}"
        )
    if not config.mount_subdir or "/" in config.mount_subdir:
        raise ConfigError(f"mount.subdir must be a single path component, got {config.mount_subdir!r}")
    for name in ("mount_timeout_sec", "umount_timeout_sec", "sync_timeout_sec", "notify_timeout_sec"):
        if getattr(config, name) <= 0:
            raise ConfigError(f"{name} must be a positive number of seconds")
    if config.bwlimit_kbps < 0:
        raise ConfigError("sync.bwlimit_kbps must not be negative")


def load_context(
    env: Mapping[str, str] | None = None,
    workspace: str | None = None,
    device_uuid: str | None = None,
    webhook_url: str | None = None,
    archive_base: str | None = None,
) -> RunContext:
    """
    Build the immutable RunContext. Explicit arguments win over the environment.
    Missing or empty workspace, device UUID or webhook URL raises ConfigError.
    """
    env = os.environ if env is None else env

    def pick(explicit: str | None, *names: str) -> str:
        if explicit and explicit.strip():
            return explicit.strip()
        for n in names:
            v = env.get(n, "")
            if v and v.strip():
                return v.strip()
        return ""

    ws = pick(workspace, ENV_WORKSPACE, ENV_WORKSPACE_FALLBACK)
    uuid = pick(device_uuid, ENV_DEVICE_UUID)
    url = pick(webhook_url, ENV_WEBHOOK_URL)

    missing = [
        name
        for name, value in (
            (ENV_WORKSPACE, ws),
            (ENV_DEVICE_UUID, uuid),
            (ENV_WEBHOOK_URL, url),
        )
        if not value
    ]
    if missing:
        raise ConfigError(f"Environment variable(s) missing or empty: {', '.join(missing)}")

    if not url.startswith(("http://", "https://")):
        raise ConfigError(f"{ENV_WEBHOOK_URL} must be an http(s) URL, got {url!r}")

    base = pick(archive_base, ENV_ARCHIVE_BASE)
    ws_path = Path(ws)
    return RunContext(
        workspace=ws_path,
        device_uuid=uuid,
        webhook_url=url,
        archive_base=Path(base) if base else ws_path / "archive",
    )
