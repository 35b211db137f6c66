"""
splitstore_agent.logging
AUTHOR: carter-vin

JSON-lines event log on stdout

Contract:
- closed event vocabulary; each event type carries a fixed default severity
- every line has event_type, severity, utc_now, agent_version
- keys sorted, compact separators, flushed per line for log shippers
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

# event type -> default severity
EVENT_SEVERITY = {
    "agent_start": "info",
    "config_invalid": "error",
    "metrics_endpoint_started": "info",
    "probe_failed": "warning",
    "metrics_updated": "info",
    "agent_failed": "error",
    "agent_shutdown": "info",
}

VALID_EVENT_TYPES = frozenset(EVENT_SEVERITY)

MESSAGE_LIMIT = 200


def _clip(message: str) -> str:
    overflow = len(message) - MESSAGE_LIMIT
    if overflow <= 0:
        return message
    return f"{message[:MESSAGE_LIMIT]}...[truncated {overflow} chars]"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def emit_event(event_type: str, *, agent_version: str, **fields: Any) -> None:
    """
    Write one event line

    Raises ValueError for event types outside the vocabulary.
    Callers may override severity explicitly.
    """
    severity = EVENT_SEVERITY.get(event_type)
    if severity is None:
        raise ValueError(f"invalid event_type: {event_type}")

    message = fields.get("message")
    if isinstance(message, str):
        fields["message"] = _clip(message)

    fields.setdefault("severity", severity)
    line = json.dumps(
        {
            "event_type": event_type,
            "utc_now": utc_now_iso(),
            "agent_version": agent_version,
            **fields,
        },
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
    print(line, flush=True)
