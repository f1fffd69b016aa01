# ksysguard_nvsmi/router.py
from __future__ import annotations

import logging
import re
from typing import List

from pydantic import BaseModel

from .collector.cache import SnapshotCache
from .errors import InvalidRequest, UnknownDevice
from .protocol import from_path, sensor_name
from .records import Snapshot

log = logging.getLogger(__name__)

# device<N>/<segment>[/<segment>…], optionally followed by '?' for metadata
_REQUEST_RE = re.compile(
    r"^device(?P<device>\d+)/(?P<path>[^/?\s]+(?:/[^/?\s]+)*)(?P<meta>\?)?$"
)


# ---------- I/O schema -------------------------------------------------
class QueryRequest(BaseModel):
    device_index: int
    field_id: str
    wants_metadata: bool = False


class MonitorEntry(BaseModel):
    name: str
    value_type: str


# ---------- Router -----------------------------------------------------
class QueryRouter:
    """Answers sensor requests from the snapshots held by a SnapshotCache."""

    def __init__(self, cache: SnapshotCache) -> None:
        self.cache = cache

    def list_monitors(self, snapshot: Snapshot) -> List[MonitorEntry]:
        return [
            MonitorEntry(
                name=sensor_name(record.index, identifier),
                value_type=record.field(identifier).value_type.value,
            )
            for record in snapshot
            for identifier in sorted(record)
        ]

    def resolve(self, line: str) -> QueryRequest:
        match = _REQUEST_RE.match(line)
        if match is None:
            raise InvalidRequest(line)
        return QueryRequest(
            device_index=int(match.group("device")),
            field_id=from_path(match.group("path")),
            wants_metadata=match.group("meta") is not None,
        )

    def render(self, snapshot: Snapshot, device_index: int, field_id: str, wants_metadata: bool) -> str:
        if not 0 <= device_index < len(snapshot):
            raise UnknownDevice(device_index, len(snapshot))
        record = snapshot[device_index]
        if wants_metadata:
            return record.metadata_line(field_id)
        return str(record.value(field_id))

    # convenience entry points used by the session
    def monitors(self) -> List[MonitorEntry]:
        return self.list_monitors(self.cache.get())

    def query(self, line: str) -> str:
        request = self.resolve(line)
        log.debug("request %s", request)
        return self.render(
            self.cache.get(), request.device_index, request.field_id, request.wants_metadata
        )
