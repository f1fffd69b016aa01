"""ksysguard_nvsmi.collector
Telemetry collection from `nvidia-smi`.

Modules
-------
poller : runs `nvidia-smi --query-gpu --format=csv` and builds per-GPU records
parsers: helpers to turn the CSV output into columns, rows and unit-less values
cache  : time-windowed snapshot cache (one `nvidia-smi` run per refresh window)
"""

__all__ = ["poller", "parsers", "cache"]
