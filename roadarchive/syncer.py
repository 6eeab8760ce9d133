"""
syncer.py
Mirror one workspace data directory into the snapshot with rsync.
Uses --delete so the destination matches the source exactly, and
--copy-links so symlinked files land on the removable media as real files.
"""

from __future__ import annotations
from pathlib import Path
from .logsetup import log
from .types import Config
from .util import stream


def build_rsync_cmd(src: Path, dst: Path, cfg: Config) -> list[str]:
    cmd = ["rsync", "-rt", "--copy-links", "--delete", "--no-o", "--no-g"]
    cmd.append("-p" if cfg.preserve_permissions else "--no-p")
    if cfg.bwlimit_kbps > 0:
        cmd.append(f"--bwlimit={cfg.bwlimit_kbps}")
    cmd.append("--stats")
    # Trailing slashes: copy the contents of src into dst, not src itself.
    cmd += [f"{src}/", f"{dst}/"]
    return cmd


def rsync_dir(src: Path, dst: Path, cfg: Config, dry: bool = False) -> int:
    """Run the mirror and return rsync's exit code; output is logged line by line."""
    return stream(
        build_rsync_cmd(src, dst, cfg),
        lambda line: log.info("    %s", line),
        dry=dry,
        timeout=cfg.sync_timeout_sec,
    )
