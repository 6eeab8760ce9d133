"""
Tests for the mount controller. Device checks and mount(8)/umount(8) are faked.
"""
import pytest
from pathlib import Path

import roadarchive.mounter as mounter
from roadarchive.errors import DeviceNotFound, MountFailed
from roadarchive.types import MountHandle
from roadarchive.util import RC_TIMEOUT


@pytest.fixture
def fake_run(monkeypatch):
    calls = []
    results = {}

    def _run(cmd, capture=False, env=None, dry=False, timeout=None):
        calls.append(list(cmd))
        return results.get(cmd[0], (0, ""))

    monkeypatch.setattr(mounter, "run", _run)
    _run.calls = calls
    _run.results = results
    return _run


@pytest.fixture
def device_present(monkeypatch):
    monkeypatch.setattr(mounter, "is_block_device", lambda p: True)


def test_resolve_device_by_uuid(sample_config, device_present):
    dev = mounter.resolve_device("76C8-9244", sample_config.device_dir)
    assert dev == sample_config.device_dir / "76C8-9244"


def test_resolve_device_missing(sample_config):
    with pytest.raises(DeviceNotFound):
        mounter.resolve_device("76C8-9244", sample_config.device_dir)


def test_regular_file_is_not_a_block_device(tmp_path):
    f = tmp_path / "76C8-9244"
    f.write_text("")
    assert mounter.is_block_device(f) is False


def test_already_mounted_is_not_owned(sample_config, device_present, fake_run, monkeypatch, tmp_path):
    monkeypatch.setattr(mounter, "is_mounted", lambda mp: True)
    handle = mounter.ensure_mounted("76C8-9244", tmp_path, sample_config)
    assert handle.owned is False
    assert fake_run.calls == []


def test_mount_sets_ownership(sample_config, device_present, fake_run, monkeypatch, tmp_path):
    monkeypatch.setattr(mounter, "is_mounted", lambda mp: False)
    handle = mounter.ensure_mounted("76C8-9244", tmp_path, sample_config)
    assert handle.owned is True
    assert fake_run.calls == [["mount", str(sample_config.device_dir / "76C8-9244"), str(tmp_path)]]


def test_mount_cmd_with_type_and_options(sample_config, tmp_path):
    sample_config.mount_fstype = "exfat"
    sample_config.mount_options = "rw,noatime"
    cmd = mounter.mount_cmd(Path("/dev/disk/by-uuid/x"), tmp_path, sample_config)
    assert cmd == ["mount", "-t", "exfat", "-o", "rw,noatime", "/dev/disk/by-uuid/x", str(tmp_path)]


@pytest.mark.parametrize("rc", [32, RC_TIMEOUT])
def test_mount_failure_is_fatal(sample_config, device_present, fake_run, monkeypatch, tmp_path, rc):
    monkeypatch.setattr(mounter, "is_mounted", lambda mp: False)
    fake_run.results["mount"] = (rc, "mount: wrong fs type")
    with pytest.raises(MountFailed):
        mounter.ensure_mounted("76C8-9244", tmp_path, sample_config)


def test_missing_device_never_mounts(sample_config, fake_run, tmp_path):
    with pytest.raises(DeviceNotFound):
        mounter.ensure_mounted("76C8-9244", tmp_path, sample_config)
    assert fake_run.calls == []


def test_release_skips_foreign_mount(sample_config, fake_run, tmp_path):
    handle = MountHandle("/dev/sdb1", tmp_path, owned=False)
    assert mounter.release_if_owned(handle, sample_config) is False
    assert fake_run.calls == []


def test_release_unmounts_owned(sample_config, fake_run, tmp_path):
    handle = MountHandle("/dev/sdb1", tmp_path, owned=True)
    assert mounter.release_if_owned(handle, sample_config) is True
    assert fake_run.calls == [["umount", str(tmp_path)]]
    assert handle.owned is False


def test_release_failure_is_not_raised(sample_config, fake_run, tmp_path):
    fake_run.results["umount"] = (32, "umount: target is busy")
    handle = MountHandle("/dev/sdb1", tmp_path, owned=True)
    assert mounter.release_if_owned(handle, sample_config) is False


def test_mounted_context_unmounts_on_error(sample_config, device_present, fake_run, monkeypatch, tmp_path):
    monkeypatch.setattr(mounter, "is_mounted", lambda mp: False)
    with pytest.raises(RuntimeError):
        with mounter.mounted("76C8-9244", tmp_path, sample_config):
            raise RuntimeError("archive blew up")
    assert [c[0] for c in fake_run.calls] == ["mount", "umount"]


MOUNTINFO_SAMPLE = """\
22 1 8:2 / / rw,relatime shared:1 - ext4 /dev/sda2 rw
95 22 8:2 /srv/archive /mnt/road_test rw,relatime shared:1 - ext4 /dev/sda2 rw
96 22 8:17 / /media/usb\\040stick rw,relatime - exfat /dev/sdb1 rw
"""


@pytest.fixture
def mountinfo(monkeypatch, tmp_path):
    path = tmp_path / "mountinfo"
    path.write_text(MOUNTINFO_SAMPLE)
    monkeypatch.setattr(mounter, "MOUNTINFO", path)
    return path


def test_bind_mount_counts_as_mounted(mountinfo):
    assert mounter.is_mounted(Path("/mnt/road_test")) is True


def test_escaped_mount_point(mountinfo):
    assert mounter.is_mounted(Path("/media/usb stick")) is True


def test_unlisted_path_is_not_mounted(mountinfo, tmp_path):
    assert mounter.is_mounted(tmp_path) is False


def test_without_procfs_falls_back_to_ismount(monkeypatch, tmp_path):
    monkeypatch.setattr(mounter, "MOUNTINFO", tmp_path / "absent")
    assert mounter.is_mounted(Path("/")) is True
    assert mounter.is_mounted(tmp_path) is False
