"""Time-windowed cache in front of the collector.

At most one `nvidia-smi` run happens per refresh window, however many
requests arrive. A failed run counts as an attempt: until the window
elapses, callers get the previous snapshot, or the same error again when
there is none.
"""
from __future__ import annotations

import logging
import time
from typing import Callable, NamedTuple, Optional

from .. import config
from ..errors import AdapterError
from ..records import Snapshot

log = logging.getLogger(__name__)


class CacheEntry(NamedTuple):
    snapshot: Snapshot
    captured_at: float


class SnapshotCache:
    def __init__(
        self,
        collector,
        refresh_interval: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.collector = collector
        self.refresh_interval = config.REFRESH_SECONDS if refresh_interval is None else refresh_interval
        self.clock = clock
        self._entry: Optional[CacheEntry] = None
        self._attempted_at: Optional[float] = None
        self._last_error: Optional[AdapterError] = None

    @property
    def entry(self) -> Optional[CacheEntry]:
        return self._entry

    def is_fresh(self, now: float) -> bool:
        return (
            self._attempted_at is not None
            and now - self._attempted_at < self.refresh_interval
        )

    def get(self, now: Optional[float] = None) -> Snapshot:
        now = self.clock() if now is None else now
        if self.is_fresh(now):
            if self._entry is not None:
                return self._entry.snapshot
            raise self._last_error

        try:
            snapshot = self.collector.collect()
        except AdapterError as exc:
            self._attempted_at = now
            self._last_error = exc
            log.warning("telemetry refresh failed: %s", exc)
            raise

        self._attempted_at = now
        self._entry = CacheEntry(snapshot, now)
        self._last_error = None
        log.debug("snapshot refreshed: %d device(s)", len(snapshot))
        return snapshot
