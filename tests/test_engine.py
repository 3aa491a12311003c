"""Tests for the collector engine."""
import logging
import sys
import threading
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from graftopstat.config import Config
from graftopstat.engine import CollectorEngine, run_engine_thread
from graftopstat.self_metrics import SelfMetrics
from graftopstat.series import MetricName
from graftopstat.sources import CommandResult, NetstatSource, TopSource
from graftopstat.store import SnapshotStore

TOP_OUTPUT = (
    b"%Cpu(s):  3.2 us,  1.1 sy,  0.0 ni, 95.7 id\n"
    b"MiB Mem :  15843.4 total,   1043.2 free,   8123.5 used,   6676.7 buff/cache\n"
    b"      1 root      20   0  167744  11484   8324 S   0.0   0.1   0:02.31 systemd\n"
    b"      2 root      20   0       0      0      0 S   bad   0.0   0:00.00 kthreadd\n"
)
NETSTAT_OUTPUT = b"Tcp:\n    1403 active connections openings\n"


def runner_for(*results):
    """Async runner returning the given results in turn, repeating the last one."""
    results = list(results)

    async def runner(argv):
        return results.pop(0) if len(results) > 1 else results[0]
    return runner


def make_engine(top_results, netstat_results, store=None, self_metrics=None, interval_s=5):
    config = Config(**{"collector": {"interval_s": interval_s}})
    store = store or SnapshotStore()
    sources = [
        TopSource(["top"], runner=runner_for(*top_results)),
        NetstatSource(["netstat", "-s"], runner=runner_for(*netstat_results)),
    ]
    return CollectorEngine(config, store, sources, self_metrics=self_metrics)


def test_tick_publishes_all_sources():
    engine = make_engine([CommandResult(0, TOP_OUTPUT)], [CommandResult(0, NETSTAT_OUTPUT)])
    reports = engine.tick()

    assert [r.source for r in reports] == ["top", "netstat"]
    assert all(r.ok for r in reports)
    snapshot = engine.store.snapshot()
    assert len(snapshot) == 4 + 4 + 2 + 1
    assert engine.store.generation == 1
    assert engine.tick_count == 1

    netstat = [r for r in snapshot if r.name == MetricName.NETSTAT_INFO]
    assert netstat[0].label_dict() == {"category": "Tcp", "desc": "active connections openings"}
    assert netstat[0].value == 1403.0


def test_failed_source_is_omitted_from_snapshot(caplog):
    engine = make_engine(
        [CommandResult(0, TOP_OUTPUT)],
        [CommandResult(0, NETSTAT_OUTPUT), CommandResult(2, b"", b"netstat: no support for `AF INET (tcp)'")],
    )
    engine.tick()
    assert any(r.name == MetricName.NETSTAT_INFO for r in engine.store.snapshot())

    with caplog.at_level(logging.WARNING):
        reports = engine.tick()

    assert [r.ok for r in reports] == [True, False]
    snapshot = engine.store.snapshot()
    assert not any(r.name == MetricName.NETSTAT_INFO for r in snapshot)
    assert any(r.name == MetricName.CPU_USER for r in snapshot)
    assert "no support" in caplog.text


def test_readers_see_previous_snapshot_during_cycle():
    store = SnapshotStore()
    seen = []

    async def observing_runner(argv):
        seen.append(store.snapshot())
        return CommandResult(0, NETSTAT_OUTPUT)

    config = Config()
    engine = CollectorEngine(config, store, [NetstatSource(["netstat", "-s"], runner=observing_runner)])
    engine.tick()
    first = store.snapshot()
    engine.tick()

    assert seen[0] == ()
    assert seen[1] == first
    assert len(first) == 1


def test_source_exception_does_not_abort_cycle(caplog):
    class BrokenSource(NetstatSource):
        name = "broken"

        def line_tasks(self, lines):
            raise RuntimeError("classifier exploded")

    store = SnapshotStore()
    sources = [
        TopSource(["top"], runner=runner_for(CommandResult(0, TOP_OUTPUT))),
        BrokenSource(["netstat"], runner=runner_for(CommandResult(0, NETSTAT_OUTPUT))),
    ]
    engine = CollectorEngine(Config(), store, sources)

    with caplog.at_level(logging.ERROR):
        reports = engine.tick()

    assert [r.ok for r in reports] == [True, False]
    assert "classifier exploded" in reports[1].errors[0]
    assert len(store.snapshot()) == 10
    assert "broken" in caplog.text


def test_empty_output_publishes_empty_snapshot():
    engine = make_engine([CommandResult(0, b"")], [CommandResult(0, b"")])
    reports = engine.tick()
    assert all(r.ok and r.records == 0 and not r.errors for r in reports)
    assert engine.store.snapshot() == ()
    assert engine.store.generation == 1


def test_self_metrics_recorded():
    self_metrics = SelfMetrics()
    engine = make_engine(
        [CommandResult(0, TOP_OUTPUT)],
        [CommandResult(1, b"", b"boom")],
        self_metrics=self_metrics,
    )
    engine.tick()

    registry = self_metrics.registry
    assert registry.get_sample_value("graftopstat_collection_cycles_total") == 1.0
    assert registry.get_sample_value("graftopstat_snapshot_records") == 10.0
    assert registry.get_sample_value(
        "graftopstat_command_failures_total", {"source": "netstat"}
    ) == 1.0
    assert registry.get_sample_value(
        "graftopstat_parse_errors_total", {"source": "top"}
    ) == 1.0


def test_run_loop_until_stopped():
    engine = make_engine(
        [CommandResult(0, TOP_OUTPUT)],
        [CommandResult(0, NETSTAT_OUTPUT)],
        interval_s=0.01,
    )
    thread = threading.Thread(target=run_engine_thread, args=(engine,), daemon=True)
    thread.start()

    deadline = time.time() + 10
    while engine.store.generation < 3 and time.time() < deadline:
        time.sleep(0.01)

    engine.stop()
    thread.join(timeout=5)

    assert engine.store.generation >= 3
    assert not thread.is_alive()
    assert not engine.running
