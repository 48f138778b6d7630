"""Structured combat log entries kept on the encounter aggregate."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from questcombat.backend.models import Encounter


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def append_log(encounter: Encounter, actor: str | None, event: str, **details: Any) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "round": encounter.round,
        "turn": encounter.turn_cursor,
        "actor": actor,
        "event": event,
        "timestamp": utc_now_iso(),
    }
    entry.update(details)
    encounter.log.append(entry)
    return entry
