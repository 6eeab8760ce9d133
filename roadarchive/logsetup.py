"""
logsetup.py
Process-wide logging for road-test-archive.

Every line goes to stdout and, when /dev/log is available, to syslog under the
program tag. While a snapshot is being written, run_log() mirrors the same lines
into <snapshot>/archive.log so the archive carries its own history.
"""

from __future__ import annotations
import logging, logging.handlers, os, sys
from contextlib import contextmanager
from pathlib import Path

LOG_TAG = "road-test-archive"
LINE_FORMAT = f"[%(asctime)s] [{LOG_TAG}] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
SYSLOG_SOCKET = "/dev/log"

log = logging.getLogger(LOG_TAG)


def _formatter() -> logging.Formatter:
    return logging.Formatter(LINE_FORMAT, datefmt=DATE_FORMAT)


def setup_logging(level: str = "INFO", syslog: bool = True) -> logging.Logger:
    """Configure the program logger; safe to call more than once."""
    for h in list(log.handlers):
        log.removeHandler(h)
        h.close()
    log.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    log.propagate = False

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(_formatter())
    log.addHandler(console)

    if syslog and os.path.exists(SYSLOG_SOCKET):
        try:
            sh = logging.handlers.SysLogHandler(address=SYSLOG_SOCKET)
        except OSError as e:
            log.warning("Syslog unavailable (%s); logging to stdout only", e)
        else:
            sh.ident = f"{LOG_TAG}: "
            sh.setFormatter(logging.Formatter("%(message)s"))
            log.addHandler(sh)
    return log


@contextmanager
def run_log(path: Path):
    """Mirror log lines into a run-local file for the duration of the block."""
    fh = logging.FileHandler(path, encoding="utf-8")
    fh.setFormatter(_formatter())
    log.addHandler(fh)
    try:
        yield fh
    finally:
        log.removeHandler(fh)
        fh.close()
