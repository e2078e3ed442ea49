"""CPU time accounting from /proc/stat."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path

from falconagent.metric import MetricValue, counter_value, gauge_value

log = logging.getLogger(__name__)

_PROC_STAT = Path("/proc/stat")

_JIFFY_FIELDS = (
    "user",
    "nice",
    "system",
    "idle",
    "iowait",
    "irq",
    "softirq",
    "steal",
    "guest",
    "guest_nice",
)
_USAGE_FIELDS = ("user", "nice", "system", "iowait", "irq", "softirq", "steal", "guest")


@dataclass(frozen=True)
class CpuSnapshot:
    """Aggregate CPU jiffies and context switches at one moment."""

    user: int = 0
    nice: int = 0
    system: int = 0
    idle: int = 0
    iowait: int = 0
    irq: int = 0
    softirq: int = 0
    steal: int = 0
    guest: int = 0
    guest_nice: int = 0
    ctxt: int = 0

    @property
    def total(self) -> int:
        return sum(getattr(self, name) for name in _JIFFY_FIELDS)


def _parse_proc_stat(text: str) -> CpuSnapshot:
    values: dict[str, int] | None = None
    ctxt = 0
    for line in text.splitlines():
        parts = line.split()
        if not parts:
            continue
        if parts[0] == "cpu":
            values = dict(zip(_JIFFY_FIELDS, (int(v) for v in parts[1:])))
        elif parts[0] == "ctxt" and len(parts) > 1:
            ctxt = int(parts[1])
    if values is None:
        raise ValueError("no aggregate cpu line in proc stat")
    return CpuSnapshot(**values, ctxt=ctxt)


def read_proc_stat() -> CpuSnapshot:
    """Read the current aggregate CPU counters."""
    return _parse_proc_stat(_PROC_STAT.read_text())


class CpuHistory:
    """The two most recent CPU snapshots and the usage between them."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._current: CpuSnapshot | None = None
        self._previous: CpuSnapshot | None = None

    @property
    def prepared(self) -> bool:
        """Whether two snapshots are known, so usage can be computed."""
        with self._lock:
            return self._previous is not None

    def update(self, snapshot: CpuSnapshot) -> None:
        """Push a new snapshot, keeping the one before it."""
        with self._lock:
            self._previous, self._current = self._current, snapshot

    def percent(self, field: str) -> float:
        """Share of CPU time spent in ``field`` between the two snapshots."""
        if field not in _JIFFY_FIELDS:
            raise ValueError(f"unknown cpu field: {field}")
        with self._lock:
            cur, prev = self._current, self._previous
            if cur is None or prev is None:
                return 0.0
            delta_total = cur.total - prev.total
            if delta_total == 0:
                return 0.0
            return (getattr(cur, field) - getattr(prev, field)) * (100.0 / delta_total)

    def switches(self) -> int:
        """Context switches counted in the latest snapshot."""
        with self._lock:
            return self._current.ctxt if self._current is not None else 0

    def usage(self) -> dict[str, float]:
        """Idle, busy and per-state percentages."""
        with self._lock:
            idle = self.percent("idle")
            result = {"idle": idle, "busy": 100.0 - idle}
            result.update((name, self.percent(name)) for name in _USAGE_FIELDS)
            return result


history = CpuHistory()


def update_cpu_stat() -> CpuSnapshot:
    """Read /proc/stat and record it in the history."""
    snapshot = read_proc_stat()
    history.update(snapshot)
    return snapshot


def cpu_prepared() -> bool:
    return history.prepared


def cpu_metrics() -> list[MetricValue]:
    """CPU usage gauges and the context switch counter."""
    if not history.prepared:
        return []
    metrics = [gauge_value(f"cpu.{name}", value) for name, value in history.usage().items()]
    metrics.append(counter_value("cpu.switches", history.switches()))
    return metrics