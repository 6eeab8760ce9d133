"""
util.py
Cross-cutting utilities:
- Process execution (list-of-args) with dry-run support and bounded timeouts
- Line-streaming execution for long-running tools (rsync)
- Small helpers: time formatting, directory creation
"""

from __future__ import annotations
import os, shlex, signal, subprocess, threading
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from .logsetup import log

# Exit codes coreutils timeout(1) and the shell use; callers log them as-is.
RC_TIMEOUT = 124
RC_NOT_FOUND = 127


def quote_cmd(cmd) -> str:
    return " ".join(shlex.quote(str(c)) for c in cmd)


def _kill_group(proc: subprocess.Popen) -> None:
    """Kill the child and everything it forked (rsync spawns a receiver and generator)."""
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        pass


def run(cmd, capture=False, env=None, dry=False, timeout: Optional[float] = None):
    """
    Execute a command in its own process group.
    - Returns (rc, output_str); output is only collected when capture=True.
    - A timeout kills the whole process group and returns RC_TIMEOUT.
    - A missing executable returns RC_NOT_FOUND.
    """
    cmd_list = [str(c) for c in cmd]
    if dry:
        log.info("[dry-run] %s", quote_cmd(cmd_list))
        return 0, ""
    pipe = subprocess.PIPE if capture else None
    try:
        proc = subprocess.Popen(
            cmd_list,
            stdout=pipe,
            stderr=subprocess.STDOUT if capture else None,
            env=env,
            start_new_session=True,
        )
    except FileNotFoundError:
        log.error("Command not found: %s", cmd_list[0])
        return RC_NOT_FOUND, ""
    try:
        out, _ = proc.communicate(timeout=timeout)
    except subprocess.TimeoutExpired:
        _kill_group(proc)
        proc.communicate()
        log.error("Command timed out after %ss: %s", timeout, quote_cmd(cmd_list))
        return RC_TIMEOUT, ""
    finally:
        if proc.poll() is None:
            _kill_group(proc)
            proc.wait()
    return proc.returncode, out.decode("utf-8", "replace") if out else ""


def stream(
    cmd,
    on_line: Callable[[str], None],
    dry=False,
    timeout: Optional[float] = None,
) -> int:
    """
    Run a command and hand each line of its combined stdout/stderr to on_line
    as it is produced. A watchdog timer kills the child's process group once
    timeout expires, so grandchildren holding the pipe cannot stall the read.
    """
    cmd_list = [str(c) for c in cmd]
    if dry:
        log.info("[dry-run] %s", quote_cmd(cmd_list))
        return 0
    try:
        proc = subprocess.Popen(
            cmd_list,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
            start_new_session=True,
        )
    except FileNotFoundError:
        log.error("Command not found: %s", cmd_list[0])
        return RC_NOT_FOUND

    expired = threading.Event()

    def _kill():
        expired.set()
        _kill_group(proc)

    timer = threading.Timer(timeout, _kill) if timeout else None
    if timer:
        timer.daemon = True
        timer.start()
    try:
        assert proc.stdout is not None
        for line in proc.stdout:
            line = line.rstrip("\r\n")
            if line:
                on_line(line)
        rc = proc.wait()
    finally:
        if timer:
            timer.cancel()
        if proc.poll() is None:
            _kill_group(proc)
            proc.wait()
        proc.stdout.close()
    if expired.is_set():
        log.error("Command timed out after %ss: %s", timeout, quote_cmd(cmd_list))
        return RC_TIMEOUT
    return rc


def local_datestr(fmt: str, when: Optional[datetime] = None) -> str:
    return (when or datetime.now()).strftime(fmt)


def ensure_dir(p: Path):
    """Create directory with better error reporting."""
    try:
        p.mkdir(parents=True, exist_ok=True)
    except PermissionError:
        raise PermissionError(f"Cannot create directory {p} - insufficient permissions")
    except OSError as e:
        raise OSError(f"Cannot create directory {p}: {e}")
