"""
splitstore_agent.main
------------
AUTHOR: carter-vin

PURPOSE:
- Long-running splitstore disk usage exporter
- Stable CLI entrypoint for operators

Key contract:
- `splitstore-diskusage run --repo-path <repo>` samples every --interval and
  serves gauges at --metrics-endpoint/--metrics-path
- configuration errors exit 2 before anything binds
- bind or metrics registry failures exit 1
"""

from __future__ import annotations

import json
import platform
import signal
import sys
import threading
from typing import Callable, Optional

import typer
from prometheus_client import CollectorRegistry

from splitstore_agent import AGENT_VERSION
from splitstore_agent.config import (
    DEFAULT_INTERVAL,
    DEFAULT_METRICS_ENDPOINT,
    DEFAULT_METRICS_PATH,
    AgentConfig,
    ConfigError,
    build_config,
)
from splitstore_agent.logging import emit_event
from splitstore_agent.metrics import DiskUsageMetrics, PublishError
from splitstore_agent.sampler import sample
from splitstore_agent.scheduler import Scheduler
from splitstore_agent.server import MetricsServer, serve

# Explicit multi-command CLI
app = typer.Typer(
    add_completion=False,
    help="splitstore-diskusage: splitstore disk usage exporter",
)


# -----------------------------
# AGENT LIFECYCLE
# -----------------------------
def _install_signal_handlers(cancel: threading.Event) -> dict[int, object]:
    """
    Route SIGTERM/SIGINT to the cancel event

    Only possible from the main thread; elsewhere the caller owns cancel.
    """
    previous: dict[int, object] = {}
    if threading.current_thread() is not threading.main_thread():
        return previous

    def _handle(signum, frame) -> None:
        cancel.set()

    for signum in (signal.SIGTERM, signal.SIGINT):
        previous[signum] = signal.signal(signum, _handle)
    return previous


def _restore_signal_handlers(previous: dict[int, object]) -> None:
    for signum, handler in previous.items():
        signal.signal(signum, handler)


def run_agent(
    config: AgentConfig,
    *,
    cancel: threading.Event,
    registry: Optional[CollectorRegistry] = None,
    on_started: Optional[Callable[[MetricsServer], None]] = None,
) -> None:
    """
    Bind the endpoint, then run the sampling loop until cancel is set

    Failure semantics:
    - OSError from bind propagates before any tick runs
    - PublishError from a tick propagates after the endpoint is shut down
    """
    registry = registry if registry is not None else CollectorRegistry()
    metrics = DiskUsageMetrics(registry)

    server = serve(config.metrics_endpoint, config.metrics_path, registry)
    emit_event(
        "metrics_endpoint_started",
        agent_version=AGENT_VERSION,
        endpoint=config.metrics_endpoint,
        bound_port=server.port,
        path=config.metrics_path,
    )

    def _tick() -> None:
        result = sample(config)
        updated_at = metrics.publish(result)
        emit_event(
            "metrics_updated",
            agent_version=AGENT_VERSION,
            updated_at=updated_at,
            **result.to_dict(),
        )

    scheduler = Scheduler(config.interval_s, _tick)

    try:
        if on_started is not None:
            on_started(server)
        scheduler.start(cancel)
    finally:
        server.shutdown()


# -----------------------------
# ROOT COMMAND BEHAVIOR
# -----------------------------
@app.callback(invoke_without_command=True)
def main(ctx: typer.Context) -> None:
    """
    Root command behavior: print a short hint when no subcommand is given.
    """
    if ctx.invoked_subcommand is None:
        typer.echo("No command provided. Try: splitstore-diskusage --help")


# -----------------------------
# CLI COMMANDS
# -----------------------------
@app.command()
def version() -> None:
    """
    Print agent version & runtime env
    """
    typer.echo(f"splitstore-diskusage v{AGENT_VERSION}")
    typer.echo(f"python={sys.version.split()[0]}")
    typer.echo(f"os={platform.system()} {platform.release()}")


@app.command("run")
def run(
    interval: str = typer.Option(
        DEFAULT_INTERVAL,
        envvar="SPLITSTORE_DU_INTERVAL",
        help="The interval at which to check the disk usage (e.g. 10m, 1h30m).",
    ),
    repo_path: Optional[str] = typer.Option(
        None,
        envvar="SPLITSTORE_DU_REPO_PATH",
        help="The path to the splitstore repo (required).",
    ),
    metrics_endpoint: str = typer.Option(
        DEFAULT_METRICS_ENDPOINT,
        envvar="SPLITSTORE_DU_METRICS_ENDPOINT",
        help="The host:port to expose metrics on.",
    ),
    metrics_path: str = typer.Option(
        DEFAULT_METRICS_PATH,
        envvar="SPLITSTORE_DU_METRICS_PATH",
        help="The URL path to expose metrics on.",
    ),
) -> None:
    """
    Run the disk usage exporter until SIGTERM/SIGINT.
    """
    try:
        config = build_config(
            interval=interval,
            repo_path=repo_path,
            metrics_endpoint=metrics_endpoint,
            metrics_path=metrics_path,
        )
    except ConfigError as e:
        emit_event(
            "config_invalid",
            agent_version=AGENT_VERSION,
            mode="run",
            error_type=type(e).__name__,
            message=str(e),
        )
        raise typer.Exit(code=2)

    emit_event(
        "agent_start",
        agent_version=AGENT_VERSION,
        mode="run",
        interval_s=config.interval_s,
        repo_path=str(config.repo_path),
        metrics_endpoint=config.metrics_endpoint,
        metrics_path=config.metrics_path,
    )

    cancel = threading.Event()
    previous = _install_signal_handlers(cancel)

    try:
        run_agent(config, cancel=cancel)
    except (OSError, PublishError) as e:
        emit_event(
            "agent_failed",
            agent_version=AGENT_VERSION,
            mode="run",
            error_type=type(e).__name__,
            message=str(e),
        )
        raise typer.Exit(code=1)
    finally:
        _restore_signal_handlers(previous)
        emit_event(
            "agent_shutdown",
            agent_version=AGENT_VERSION,
            mode="run",
        )


@app.command("oneshot")
def oneshot(
    repo_path: Optional[str] = typer.Option(
        None,
        envvar="SPLITSTORE_DU_REPO_PATH",
        help="The path to the splitstore repo (required).",
    ),
) -> None:
    """
    Sample once, print the result as JSON and exit

    Deterministic harness for validating probing and gauge recording
    without binding the endpoint.
    """
    try:
        config = build_config(interval=DEFAULT_INTERVAL, repo_path=repo_path)
    except ConfigError as e:
        emit_event(
            "config_invalid",
            agent_version=AGENT_VERSION,
            mode="oneshot",
            error_type=type(e).__name__,
            message=str(e),
        )
        raise typer.Exit(code=2)

    metrics = DiskUsageMetrics(CollectorRegistry())
    result = sample(config)

    try:
        updated_at = metrics.publish(result)
    except PublishError as e:
        emit_event(
            "agent_failed",
            agent_version=AGENT_VERSION,
            mode="oneshot",
            error_type=type(e).__name__,
            message=str(e),
        )
        raise typer.Exit(code=1)

    payload = {"updated_at": updated_at, **result.to_dict()}
    typer.echo(json.dumps(payload, sort_keys=True, separators=(",", ":")))


if __name__ == "__main__":
    app()
