"""
notifier.py
Report the run verdict to a chat webhook as a JSON text message.

Delivery is observability only: any failure is logged and swallowed so it
never changes the outcome of the archive run.
"""

from __future__ import annotations
from datetime import datetime
from typing import Any, Dict

import requests

from .logsetup import log, DATE_FORMAT
from .types import Verdict


def build_message(verdict: Verdict, start: datetime, end: datetime) -> Dict[str, Any]:
    lines = [
        f"Archive Status: {verdict.status}",
        f"Start Time: {start.strftime(DATE_FORMAT)}",
        f"End Time: {end.strftime(DATE_FORMAT)}",
    ]
    if verdict.snapshot:
        lines.append(f"Snapshot: {verdict.snapshot}")
    for o in verdict.outcomes:
        detail = f" ({o.detail})" if o.detail else ""
        lines.append(f"  {o.category.value}: {o.status}{detail}")
    return {"msg_type": "text", "content": {"text": "\n".join(lines)}}


def notify(
    url: str,
    verdict: Verdict,
    start: datetime,
    end: datetime,
    timeout: float = 10,
    dry: bool = False,
) -> bool:
    payload = build_message(verdict, start, end)
    if dry:
        log.info("[dry-run] would notify %s: %s", url, payload["content"]["text"].replace("\n", " | "))
        return True
    try:
        resp = requests.post(url, json=payload, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as e:
        log.warning("Failed to send notification: %s", e)
        return False
    log.info("Notification sent (status=%s, http=%s)", verdict.status, resp.status_code)
    return True
