"""
Contract tests for the metrics endpoint and its interaction with the tick loop
"""

import shutil
import threading
import time
import urllib.error
import urllib.request
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest
from prometheus_client import CollectorRegistry

import splitstore_agent.main as agent_main
from splitstore_agent.config import AgentConfig
from splitstore_agent.metrics import DiskUsageMetrics
from splitstore_agent.sampler import SampleResult
from splitstore_agent.server import parse_address, serve


def _scrape(port: int, path: str = "/metrics") -> str:
    with urllib.request.urlopen(f"http://127.0.0.1:{port}{path}", timeout=5) as resp:
        return resp.read().decode("utf-8")


@pytest.mark.parametrize(
    "address, expected",
    [
        (":8080", ("", 8080)),
        ("127.0.0.1:9100", ("127.0.0.1", 9100)),
        ("[::1]:9100", ("::1", 9100)),
        ("localhost:0", ("localhost", 0)),
    ],
)
def test_parse_address(address: str, expected: tuple) -> None:
    assert parse_address(address) == expected


@pytest.mark.parametrize("address", ["8080", "host:", "host:http", ":70000", "::1:9100"])
def test_parse_address_rejects_malformed(address: str) -> None:
    with pytest.raises(ValueError):
        parse_address(address)


def test_serves_registry_at_configured_path() -> None:
    registry = CollectorRegistry()
    DiskUsageMetrics(registry).publish(SampleResult(cold=4096, hot=0, markset=8192), now=42)

    server = serve("127.0.0.1:0", "/metrics", registry)
    try:
        text = _scrape(server.port)
        assert "coldstore_badger_size 4096.0" in text
        assert "markset_badger_size 8192.0" in text
        assert "diskusage_last_updated_at 42.0" in text

        with pytest.raises(urllib.error.HTTPError) as excinfo:
            _scrape(server.port, "/other")
        assert excinfo.value.code == 404
    finally:
        server.shutdown()


def test_bind_failure_is_synchronous() -> None:
    registry = CollectorRegistry()
    first = serve("127.0.0.1:0", "/metrics", registry)
    try:
        with pytest.raises(OSError):
            serve(f"127.0.0.1:{first.port}", "/metrics", registry)
    finally:
        first.shutdown()


def test_scrapes_during_sampling_see_previous_values(tmp_path: Path, monkeypatch) -> None:
    """
    A tick blocked in sampling must not expose partial data to scrapers
    """
    in_progress = threading.Event()
    gate = threading.Event()
    calls: list[int] = []

    def fake_sample(config):
        calls.append(1)
        if len(calls) == 1:
            return SampleResult(cold=1, hot=1, markset=1)
        in_progress.set()
        gate.wait(timeout=10)
        return SampleResult(cold=2, hot=2, markset=2)

    monkeypatch.setattr(agent_main, "sample", fake_sample)

    config = AgentConfig(
        interval_s=0.01,
        repo_path=tmp_path,
        metrics_endpoint="127.0.0.1:0",
        metrics_path="/metrics",
    )
    registry = CollectorRegistry()
    cancel = threading.Event()
    started: list = []

    worker = threading.Thread(
        target=agent_main.run_agent,
        args=(config,),
        kwargs={"cancel": cancel, "registry": registry, "on_started": started.append},
    )
    worker.start()

    try:
        assert in_progress.wait(timeout=5)
        port = started[0].port

        with ThreadPoolExecutor(max_workers=2) as pool:
            bodies = list(pool.map(lambda _: _scrape(port), range(2)))

        for body in bodies:
            assert "coldstore_badger_size 1.0" in body
            assert "hotstore_badger_size 1.0" in body
            assert "markset_badger_size 1.0" in body

        gate.set()
        deadline = time.monotonic() + 5
        while registry.get_sample_value("coldstore_badger_size") != 2:
            assert time.monotonic() < deadline
            time.sleep(0.01)
    finally:
        gate.set()
        cancel.set()
        worker.join(timeout=5)

    assert not worker.is_alive()


def _gauges(registry: CollectorRegistry) -> dict:
    return {
        name: registry.get_sample_value(name)
        for name in (
            "coldstore_badger_size",
            "hotstore_badger_size",
            "markset_badger_size",
            "diskusage_last_updated_at",
        )
    }


def _run_ticks(tmp_path: Path, monkeypatch, ticks: int, before_tick=None) -> tuple[list, bool]:
    """
    Drive run_agent for `ticks` ticks over the real sampler

    Returns the registry snapshot taken at the start of each tick (so entry
    i holds what tick i-1 published) and whether the loop was still alive
    when the last tick started.
    """
    real_sample = agent_main.sample
    registry = CollectorRegistry()
    snapshots: list = []
    reached = threading.Event()

    def recording_sample(config):
        snapshots.append(_gauges(registry))
        if before_tick is not None:
            before_tick(len(snapshots))
        if len(snapshots) == ticks:
            reached.set()
        return real_sample(config)

    monkeypatch.setattr(agent_main, "sample", recording_sample)

    config = AgentConfig(
        interval_s=0.02,
        repo_path=tmp_path,
        metrics_endpoint="127.0.0.1:0",
        metrics_path="/metrics",
    )
    cancel = threading.Event()
    worker = threading.Thread(
        target=agent_main.run_agent,
        args=(config,),
        kwargs={"cancel": cancel, "registry": registry},
    )
    worker.start()

    try:
        assert reached.wait(timeout=10)
        alive = worker.is_alive()
    finally:
        cancel.set()
        worker.join(timeout=5)

    assert not worker.is_alive()
    return snapshots, alive


def _make_repo(root: Path) -> None:
    for sub in ("chain", "splitstore/hot.badger", "splitstore/markset.badger"):
        (root / sub).mkdir(parents=True)
        (root / sub / "000001.sst").write_bytes(b"z" * 4096)


def test_markset_removed_between_ticks_keeps_loop_running(tmp_path: Path, monkeypatch) -> None:
    """
    Deleting markset mid-run zeroes only that field; cold/hot keep updating
    """
    _make_repo(tmp_path)

    def before_tick(n: int) -> None:
        if n == 2:
            shutil.rmtree(tmp_path / "splitstore" / "markset.badger")

    snapshots, alive = _run_ticks(tmp_path, monkeypatch, ticks=4, before_tick=before_tick)

    after_first, after_second, after_third = snapshots[1], snapshots[2], snapshots[3]

    assert alive
    assert after_first["markset_badger_size"] > 0
    assert after_second["markset_badger_size"] == 0
    assert after_third["markset_badger_size"] == 0

    for later in (after_second, after_third):
        assert later["coldstore_badger_size"] == after_first["coldstore_badger_size"] > 0
        assert later["hotstore_badger_size"] == after_first["hotstore_badger_size"] > 0

    assert (
        after_first["diskusage_last_updated_at"]
        < after_second["diskusage_last_updated_at"]
        < after_third["diskusage_last_updated_at"]
    )


def test_last_updated_strictly_increases_across_ticks(tmp_path: Path, monkeypatch) -> None:
    _make_repo(tmp_path)
    started = time.time()

    snapshots, _ = _run_ticks(tmp_path, monkeypatch, ticks=5)

    stamps = [snap["diskusage_last_updated_at"] for snap in snapshots[1:]]
    assert stamps[0] >= started
    assert all(earlier < later for earlier, later in zip(stamps, stamps[1:]))
    assert stamps[-1] <= time.time()
