"""
splitstore_agent.collectors.base
AUTHOR: carter-vin

Failure-as-data wrapper so one broken target never aborts a tick
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional


@dataclass(frozen=True)
class CollectorOutcome:
    """
    Normalized probe result
    - ok=False: error_type/error_message describe the failure, value is None
    - elapsed_ms: wall time spent in the call
    """

    name: str
    ok: bool
    value: Optional[Any] = None
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    elapsed_ms: int = 0


def run_collector(name: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> CollectorOutcome:
    """
    Call fn and capture any Exception as an outcome

    KeyboardInterrupt/SystemExit are not Exceptions and pass through.
    """
    started = time.monotonic()
    try:
        value = fn(*args, **kwargs)
    except Exception as e:
        return CollectorOutcome(
            name=name,
            ok=False,
            error_type=type(e).__name__,
            error_message=str(e),
            elapsed_ms=int((time.monotonic() - started) * 1000),
        )
    return CollectorOutcome(
        name=name,
        ok=True,
        value=value,
        elapsed_ms=int((time.monotonic() - started) * 1000),
    )
