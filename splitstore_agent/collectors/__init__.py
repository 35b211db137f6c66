"""splitstore_agent.collectors package exports."""

from splitstore_agent.collectors.base import CollectorOutcome, run_collector
from splitstore_agent.collectors.du import ProbeError, TargetNotFound, probe

__all__ = [
    "CollectorOutcome",
    "ProbeError",
    "TargetNotFound",
    "probe",
    "run_collector",
]
