"""
Tests for the webhook notifier.
"""
import pytest
import requests
from datetime import datetime

import roadarchive.notifier as notifier
from roadarchive.notifier import build_message, notify
from roadarchive.types import Category, CategoryOutcome, Verdict

START = datetime(2025, 4, 17, 14, 30, 5)
END = datetime(2025, 4, 17, 14, 42, 51)


def verdict(status="success"):
    return Verdict(
        status=status,
        outcomes=[
            CategoryOutcome(Category.LOG, "synced", "/ws/data/log", "/mnt/s/log"),
            CategoryOutcome(Category.BAG, "failed", "/ws/data/bag", "/mnt/s/bag", detail="rsync exited with rc=23"),
            CategoryOutcome(Category.CORE, "skipped", "/ws/data/core", "/mnt/s/core", detail="source missing"),
        ],
        snapshot="/mnt/road_test/2025-04-17_14-30-05",
    )


class FakeResponse:
    def __init__(self, status_code=200):
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")


def test_message_shape():
    msg = build_message(verdict("fail"), START, END)
    assert msg["msg_type"] == "text"
    lines = msg["content"]["text"].splitlines()
    assert lines[0] == "Archive Status: fail"
    assert lines[1] == "Start Time: 2025-04-17 14:30:05"
    assert lines[2] == "End Time: 2025-04-17 14:42:51"
    assert lines[3] == "Snapshot: /mnt/road_test/2025-04-17_14-30-05"
    assert "  bag: failed (rsync exited with rc=23)" in lines
    assert "  core: skipped (source missing)" in lines


def test_notify_posts_json(monkeypatch):
    sent = {}

    def fake_post(url, json=None, timeout=None):
        sent.update(url=url, json=json, timeout=timeout)
        return FakeResponse(200)

    monkeypatch.setattr(notifier.requests, "post", fake_post)
    assert notify("https://hooks.example.com/x", verdict(), START, END, timeout=3) is True
    assert sent["url"] == "https://hooks.example.com/x"
    assert sent["timeout"] == 3
    assert sent["json"]["content"]["text"].startswith("Archive Status: success")


def test_notify_connection_error_is_swallowed(monkeypatch):
    def fake_post(url, json=None, timeout=None):
        raise requests.ConnectionError("network unreachable")

    monkeypatch.setattr(notifier.requests, "post", fake_post)
    assert notify("https://hooks.example.com/x", verdict(), START, END) is False


def test_notify_http_error_is_swallowed(monkeypatch):
    monkeypatch.setattr(notifier.requests, "post", lambda url, json=None, timeout=None: FakeResponse(502))
    assert notify("https://hooks.example.com/x", verdict(), START, END) is False


def test_notify_dry_run_does_not_post(monkeypatch):
    monkeypatch.setattr(notifier.requests, "post", lambda *a, **k: pytest.fail("posted"))
    assert notify("https://hooks.example.com/x", verdict(), START, END, dry=True) is True
