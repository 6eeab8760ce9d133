"""
bundle.py
Locate the install directory so the archiver runs the same way from a source
checkout and from an unpacked copy under e.g. /usr/local/lib/road-test-archive.

Responsibilities
- Determine the "bundle root": the directory holding main.py or roadarchive.toml.
- Prefer a local ./bin directory (next to main.py) for helper tools such as rsync.
- Provide DEFAULT_CONFIG_PATH that points to an adjacent `roadarchive.toml`.
"""
from __future__ import annotations
import os
from pathlib import Path

CONFIG_NAME = "roadarchive.toml"
SYSTEM_CONFIG_PATH = "/etc/road-test-archive.toml"


def bundle_root(start: Path | None = None) -> Path:
    """Walk up from the package to the first directory with main.py or roadarchive.toml."""
    current = (start or Path(__file__)).resolve()
    for parent in current.parents:
        if (parent / "main.py").exists() or (parent / CONFIG_NAME).exists():
            return parent
    return current.parent.parent

BUNDLE_DIR: Path = bundle_root()
BIN_DIR: Path = (BUNDLE_DIR / "bin")
DEFAULT_CONFIG_PATH: str = str(BUNDLE_DIR / CONFIG_NAME)

def prepend_bin_to_path() -> None:
    """Prepend ./bin (next to main.py) to PATH so bundled helpers are preferred."""
    if BIN_DIR.is_dir():
        os.environ["PATH"] = str(BIN_DIR) + ":" + os.environ.get("PATH", "")
