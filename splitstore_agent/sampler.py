"""
splitstore_agent.sampler
AUTHOR: carter-vin

Disk usage sampler
- Probes three fixed splitstore targets under the repo root
- Never raises: a failed probe leaves its field at 0 and is logged
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from splitstore_agent import AGENT_VERSION
from splitstore_agent.collectors.base import run_collector
from splitstore_agent.collectors.du import probe
from splitstore_agent.config import AgentConfig
from splitstore_agent.logging import emit_event

# target name -> (result field, path relative to repo root)
# These paths are a compatibility surface; changing them changes what is measured.
TARGETS: dict[str, tuple[str, str]] = {
    "cold-store": ("cold", "chain"),
    "hot-store": ("hot", "splitstore/hot.badger"),
    "markset": ("markset", "splitstore/markset.badger"),
}


@dataclass(frozen=True)
class SampleResult:
    """
    One tick's measurements in bytes
    - failed: target names whose probe failed (their field is 0)
    """

    cold: int = 0
    hot: int = 0
    markset: int = 0
    failed: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, object]:
        return {
            "cold": self.cold,
            "hot": self.hot,
            "markset": self.markset,
            "failed": list(self.failed),
        }


def sample(
    config: AgentConfig,
    *,
    prober: Callable[[Path, str], int] = probe,
) -> SampleResult:
    """
    Measure every target; failures degrade per field
    """
    values = {"cold": 0, "hot": 0, "markset": 0}
    failed: list[str] = []

    for target, (field, sub_path) in TARGETS.items():
        out = run_collector(target, prober, config.repo_path, sub_path)

        if not out.ok:
            emit_event(
                "probe_failed",
                agent_version=AGENT_VERSION,
                target=target,
                path=str(config.repo_path / sub_path),
                error_type=out.error_type,
                message=out.error_message,
                elapsed_ms=out.elapsed_ms,
            )
            failed.append(target)
            continue

        values[field] = int(out.value)

    return SampleResult(failed=tuple(failed), **values)
