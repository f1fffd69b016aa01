# collector/poller.py
from __future__ import annotations

import logging
import subprocess
from typing import Dict, List, Optional

from .. import config
from ..errors import CollectionError, ParseError
from ..fields import REGISTRY, FieldId, FieldRegistry
from ..records import DeviceRecord, Field, Snapshot
from .parsers import parse_csv, split_unit

log = logging.getLogger(__name__)

# exit statuses a shell reports for a missing or non-executable command
COMMAND_NOT_FOUND = 127
COMMAND_NOT_EXECUTABLE = 126


class NvidiaSmiCollector:
    """Runs `nvidia-smi --query-gpu` once per :meth:`collect` and builds a Snapshot."""

    def __init__(self, nvidia_smi: Optional[str] = None, registry: FieldRegistry = REGISTRY) -> None:
        self.nvidia_smi = nvidia_smi or config.NVIDIA_SMI
        self.registry = registry

    @property
    def query(self) -> str:
        return ",".join(self.registry.queried_identifiers())

    def command(self) -> List[str]:
        return [self.nvidia_smi, "--format=csv", f"--query-gpu={self.query}"]

    def _run_nvidia_smi(self) -> str:
        cmd = self.command()
        log.debug("running %s", " ".join(cmd))
        try:
            proc = subprocess.run(cmd, check=False, capture_output=True, encoding="utf-8")
        except FileNotFoundError as exc:
            raise CollectionError(COMMAND_NOT_FOUND, str(exc)) from exc
        except OSError as exc:
            raise CollectionError(COMMAND_NOT_EXECUTABLE, str(exc)) from exc
        except UnicodeDecodeError as exc:
            raise ParseError(f"nvidia-smi output is not valid UTF-8: {exc}") from exc

        if proc.returncode != 0:
            diagnostic = "\n".join(s.strip() for s in (proc.stdout, proc.stderr) if s and s.strip())
            raise CollectionError(proc.returncode, diagnostic)
        return proc.stdout

    def collect(self) -> Snapshot:
        columns, rows = parse_csv(self._run_nvidia_smi())
        unknown = [c.identifier for c in columns if c.identifier not in self.registry]
        if unknown:
            log.debug("ignoring columns not in the registry: %s", ", ".join(unknown))
        units = {col.identifier: col.unit for col in columns}
        snapshot = tuple(
            self.build_record(idx, raw, units) for idx, raw in enumerate(rows)
        )
        log.debug("collected %d device(s) from %s", len(snapshot), self.nvidia_smi)
        return snapshot

    def build_record(self, index: int, raw: Dict[FieldId, str], units: Dict[FieldId, str]) -> DeviceRecord:
        """Turn one CSV row into a DeviceRecord.

        Registry fields the row does not report are left out, and so are
        derived fields whose required inputs are missing.
        """
        fields: Dict[FieldId, Field] = {}
        for spec in self.registry.specs():
            if spec.is_derived:
                if all(req in raw for req in spec.requires):
                    fields[spec.identifier] = Field(spec)
                continue
            if spec.identifier not in raw:
                log.debug("device%d: nvidia-smi did not report %s", index, spec.identifier)
                continue

            value = raw[spec.identifier]
            if spec.transform is not None:
                value = spec.transform(value)
            suffix = ""
            if isinstance(value, str):
                value, suffix = split_unit(value)
            unit = spec.unit or units.get(spec.identifier) or suffix
            fields[spec.identifier] = Field(spec, value, unit)

        record = DeviceRecord(index, fields)
        record.resolve_maxima()
        return record
