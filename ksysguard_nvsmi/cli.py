#!/usr/bin/env python
"""
ksysguard-nvsmi serve        # speak the ksysguardd protocol on stdin/stdout
ksysguard-nvsmi snapshot     # one nvidia-smi run, printed as sensor → value

In KSysGuard: File → Monitor Remote Machine, host "nvidia-smi" (anything but
localhost), connection type "Custom command", command "ksysguard-nvsmi serve".
KSysGuard does not expand ~, so use an absolute path if it is not on PATH.
"""
from __future__ import annotations

import io
import logging
import sys
from typing import Optional

import typer

from . import config
from .collector.cache import SnapshotCache
from .collector.poller import NvidiaSmiCollector
from .errors import AdapterError
from .protocol import sensor_name
from .router import QueryRouter
from .session import Session

app = typer.Typer(add_completion=False, help="KSysGuard sensor daemon backed by nvidia-smi")

NVIDIA_SMI_OPTION = typer.Option(None, "--nvidia-smi", help="path to the nvidia-smi executable")


def _setup_logging() -> None:
    # stdout carries the protocol, keep logs on stderr
    logging.basicConfig(level=config.LOG_LEVEL, format=config.LOG_FORMAT, stream=sys.stderr)


def build_session(nvidia_smi: Optional[str] = None, refresh: Optional[float] = None) -> Session:
    cache = SnapshotCache(NvidiaSmiCollector(nvidia_smi), refresh_interval=refresh)
    return Session(QueryRouter(cache), sys.stdin, sys.stdout)


@app.command()
def serve(
    nvidia_smi: Optional[str] = NVIDIA_SMI_OPTION,
    refresh: Optional[float] = typer.Option(
        None, "--refresh", min=0, help="seconds between nvidia-smi runs (default: 2)"
    ),
):
    """Run one ksysguardd session on stdin/stdout."""
    _setup_logging()
    if isinstance(sys.stdout, io.TextIOWrapper):
        sys.stdout.reconfigure(encoding="utf-8")
    raise typer.Exit(build_session(nvidia_smi, refresh).run())


@app.command()
def snapshot(
    nvidia_smi: Optional[str] = NVIDIA_SMI_OPTION,
    metadata: bool = typer.Option(False, "--metadata", help="print metadata lines instead of values"),
):
    """Collect once and print every sensor, for troubleshooting outside KSysGuard."""
    _setup_logging()
    try:
        devices = NvidiaSmiCollector(nvidia_smi).collect()
    except AdapterError as exc:
        print(f"[ksysguard-nvsmi] {exc}", file=sys.stderr)
        raise typer.Exit(1)

    for record in devices:
        for identifier in sorted(record):
            text = record.metadata_line(identifier) if metadata else record.value(identifier)
            typer.echo(f"{sensor_name(record.index, identifier)}\t{text}")


if __name__ == "__main__":
    app()          # `python -m ksysguard_nvsmi.cli serve`
