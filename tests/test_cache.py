import subprocess
from unittest.mock import patch

import pytest

from ksysguard_nvsmi.collector.cache import SnapshotCache
from ksysguard_nvsmi.collector.poller import NvidiaSmiCollector
from ksysguard_nvsmi.errors import CollectionError, ParseError
from tests.conftest import completed


class StubCollector:
    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    def collect(self):
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def test_one_collection_per_window(clock):
    stub = StubCollector(("first",), ("second",))
    cache = SnapshotCache(stub, refresh_interval=2, clock=clock)
    assert cache.get() == ("first",)
    clock.advance(1.9)
    assert cache.get() == ("first",)
    assert stub.calls == 1
    clock.advance(0.1)
    assert cache.get() == ("second",)
    assert stub.calls == 2
    assert cache.entry.captured_at == clock.now


def test_explicit_now_overrides_clock(clock):
    stub = StubCollector(("a",), ("b",))
    cache = SnapshotCache(stub, refresh_interval=2, clock=clock)
    assert cache.get(now=10) == ("a",)
    assert cache.get(now=11) == ("a",)
    assert cache.get(now=12) == ("b",)


def test_first_failure_is_remembered_for_the_window(clock):
    error = CollectionError(2, "boom")
    stub = StubCollector(error, CollectionError(2, "again"), ("ok",))
    cache = SnapshotCache(stub, refresh_interval=2, clock=clock)

    with pytest.raises(CollectionError) as first:
        cache.get()
    assert first.value is error
    assert cache.entry is None

    with pytest.raises(CollectionError) as second:
        cache.get()
    assert second.value is error
    assert stub.calls == 1

    clock.advance(2)
    with pytest.raises(CollectionError, match="again"):
        cache.get()
    assert stub.calls == 2

    clock.advance(2)
    assert cache.get() == ("ok",)


def test_failed_refresh_keeps_previous_snapshot(clock):
    stub = StubCollector(("old",), ParseError("garbled"), ("new",))
    cache = SnapshotCache(stub, refresh_interval=2, clock=clock)
    cache.get()

    clock.advance(5)
    with pytest.raises(ParseError):
        cache.get()
    assert cache.entry.snapshot == ("old",)

    # same window: no new attempt, stale data is served
    clock.advance(1)
    assert cache.get() == ("old",)
    assert stub.calls == 2

    clock.advance(1)
    assert cache.get() == ("new",)


def test_unexpected_errors_are_not_cached(clock):
    stub = StubCollector(RuntimeError("bug"), ("ok",))
    cache = SnapshotCache(stub, refresh_interval=2, clock=clock)
    with pytest.raises(RuntimeError):
        cache.get()
    assert cache.get() == ("ok",)


def test_default_interval_from_config(monkeypatch, collector):
    from ksysguard_nvsmi import config

    monkeypatch.setattr(config, "REFRESH_SECONDS", 7.5)
    assert SnapshotCache(collector).refresh_interval == 7.5


def test_with_real_collector(nvidia_smi, cache, clock):
    first = cache.get()
    assert cache.get() is first
    clock.advance(2)
    nvidia_smi.return_value = completed("temperature.gpu\n50\n")
    second = cache.get()
    assert second is not first
    assert second[0].value("temperature.gpu") == "50"
    assert nvidia_smi.call_count == 2


def test_unreadable_binary_runs_once_per_window(tmp_path, clock):
    script = tmp_path / "nvidia-smi"
    script.write_text("#!/bin/sh\nexit 0\n")
    script.chmod(0o644)
    cache = SnapshotCache(NvidiaSmiCollector(str(script)), refresh_interval=2, clock=clock)
    with patch(
        "ksysguard_nvsmi.collector.poller.subprocess.run", wraps=subprocess.run
    ) as run:
        for _ in range(3):
            with pytest.raises(CollectionError):
                cache.get()
    assert run.call_count == 1


def test_undecodable_output_runs_once_per_window(tmp_path, clock):
    script = tmp_path / "nvidia-smi"
    script.write_text("#!/bin/sh\nprintf '\\377\\376\\n'\n")
    script.chmod(0o755)
    cache = SnapshotCache(NvidiaSmiCollector(str(script)), refresh_interval=2, clock=clock)
    with patch(
        "ksysguard_nvsmi.collector.poller.subprocess.run", wraps=subprocess.run
    ) as run:
        for _ in range(3):
            with pytest.raises(ParseError):
                cache.get()
        clock.advance(2)
        with pytest.raises(ParseError):
            cache.get()
    assert run.call_count == 2
