import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from ksysguard_nvsmi.collector.cache import SnapshotCache
from ksysguard_nvsmi.collector.poller import NvidiaSmiCollector
from ksysguard_nvsmi.router import QueryRouter

DATA = Path(__file__).parent / "data"


def read_data(name: str) -> str:
    return (DATA / name).read_text(encoding="utf-8")


def completed(stdout: str = "", returncode: int = 0, stderr: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(["nvidia-smi"], returncode, stdout, stderr)


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def nvidia_smi():
    """Patched subprocess.run; set ``.return_value`` / ``.side_effect`` per test."""
    with patch("ksysguard_nvsmi.collector.poller.subprocess.run") as run:
        run.return_value = completed(read_data("two_gpus.csv"))
        yield run


@pytest.fixture
def collector() -> NvidiaSmiCollector:
    return NvidiaSmiCollector("/usr/bin/nvidia-smi")


@pytest.fixture
def cache(collector, clock) -> SnapshotCache:
    return SnapshotCache(collector, refresh_interval=2, clock=clock)


@pytest.fixture
def router(cache) -> QueryRouter:
    return QueryRouter(cache)
