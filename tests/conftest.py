"""
Pytest configuration and shared fixtures.
"""
import pytest
from pathlib import Path
from roadarchive.logsetup import setup_logging
from roadarchive.types import Config, RunContext


@pytest.fixture(autouse=True)
def quiet_logging():
    """Route the program logger to stdout only; no syslog from the test run."""
    setup_logging("DEBUG", syslog=False)


@pytest.fixture
def temp_config_file(tmp_path):
    """Create a temporary configuration file for testing."""
    toml_content = """
[lock]
path = "/tmp/road-test-archive-test.lock"

[mount]
device_dir = "/tmp/by-uuid"
subdir = "road_test"
fstype = "exfat"
options = "rw,noatime"
timeout_sec = 30
umount_timeout_sec = 15

[sync]
preserve_permissions = false
parallel = true
bwlimit_kbps = 2048
timeout_sec = 600

[notify]
timeout_sec = 5

[policy]
empty_archive = "degraded"

[runtime]
log_level = "DEBUG"
syslog = false
"""
    path = tmp_path / "roadarchive.toml"
    path.write_text(toml_content)
    return path


@pytest.fixture
def sample_config(tmp_path):
    """Create a sample configuration object for testing."""
    return Config(
        lock_file=tmp_path / "lock" / "road-test-archive.lock",
        device_dir=tmp_path / "by-uuid",
        mount_subdir="road_test",
        mount_fstype="",
        mount_options="",
        mount_timeout_sec=5,
        umount_timeout_sec=5,
        preserve_permissions=True,
        parallel=False,
        bwlimit_kbps=0,
        sync_timeout_sec=60,
        notify_timeout_sec=2,
        empty_archive="success",
        log_level="DEBUG",
        syslog=False,
    )


@pytest.fixture
def workspace(tmp_path):
    """Workspace with data/log and data/bag populated; data/core is absent."""
    ws = tmp_path / "workspace"
    (ws / "data" / "log").mkdir(parents=True)
    (ws / "data" / "bag" / "2025-04-17").mkdir(parents=True)
    (ws / "data" / "log" / "planning.INFO").write_text("planning started\n")
    (ws / "data" / "log" / "control.INFO").write_text("control started\n")
    (ws / "data" / "bag" / "2025-04-17" / "record.00000").write_bytes(b"\x00\x01bagdata" * 64)
    return ws


@pytest.fixture
def ctx(workspace, tmp_path):
    return RunContext(
        workspace=workspace,
        device_uuid="76C8-9244",
        webhook_url="https://hooks.example.com/archive",
        archive_base=tmp_path / "mnt",
    )


@pytest.fixture
def mount_point(ctx, sample_config) -> Path:
    mp = ctx.archive_base / sample_config.mount_subdir
    mp.mkdir(parents=True)
    return mp
