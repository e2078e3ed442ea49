"""Block device I/O statistics from /proc/diskstats."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path

from falconagent.metric import MetricValue, counter_value, gauge_value

log = logging.getLogger(__name__)

_DISKSTATS = Path("/proc/diskstats")

_COUNTER_FIELDS = (
    "read_requests",
    "read_merged",
    "read_sectors",
    "msec_read",
    "write_requests",
    "write_merged",
    "write_sectors",
    "msec_write",
    "ios_in_progress",
    "msec_total",
    "msec_weighted_total",
)


@dataclass(frozen=True)
class DiskStats:
    """Counters of one block device; ``ts`` is when they were read, in seconds."""

    major: int
    minor: int
    device: str
    read_requests: int
    read_merged: int
    read_sectors: int
    msec_read: int
    write_requests: int
    write_merged: int
    write_sectors: int
    msec_write: int
    ios_in_progress: int
    msec_total: int
    msec_weighted_total: int
    ts: float = 0.0


def parse_disk_stats(text: str, timestamp: float) -> list[DiskStats]:
    """Parse the contents of /proc/diskstats; short lines are skipped."""
    stats: list[DiskStats] = []
    for line in text.splitlines():
        parts = line.split()
        if len(parts) < 14:
            continue
        counters = [int(value) for value in parts[3:14]]
        stats.append(
            DiskStats(int(parts[0]), int(parts[1]), parts[2], *counters, ts=timestamp)
        )
    return stats


def read_disk_stats() -> list[DiskStats]:
    """Read the current counters of every block device."""
    return parse_disk_stats(_DISKSTATS.read_text(), time.time())


class DiskStatsHistory:
    """The latest and previous counters of each device."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._stats: dict[str, tuple[DiskStats, DiskStats | None]] = {}

    def __iter__(self) -> Iterator[str]:
        with self._lock:
            return iter(sorted(self._stats))

    def __contains__(self, device: object) -> bool:
        with self._lock:
            return device in self._stats

    def update(self, stats: Iterable[DiskStats]) -> None:
        """Record new counters; each device's latest becomes its previous."""
        with self._lock:
            for ds in stats:
                pair = self._stats.get(ds.device)
                self._stats[ds.device] = (ds, pair[0] if pair else None)

    def _pair(self, device: str) -> tuple[DiskStats, DiskStats] | None:
        pair = self._stats.get(device)
        if pair is None or pair[1] is None:
            return None
        return pair[0], pair[1]

    def delta(self, device: str, field: str) -> int:
        """Change of ``field`` for ``device``; 0 until two readings exist."""
        if field not in _COUNTER_FIELDS:
            raise ValueError(f"unknown disk stats field: {field}")
        with self._lock:
            pair = self._pair(device)
            if pair is None:
                return 0
            return getattr(pair[0], field) - getattr(pair[1], field)

    def elapsed_ms(self, device: str) -> int:
        """Milliseconds between the two readings of ``device``."""
        with self._lock:
            pair = self._pair(device)
            if pair is None:
                return 0
            return int((pair[0].ts - pair[1].ts) * 1000)


history = DiskStatsHistory()


def update_disk_stats() -> list[DiskStats]:
    """Read /proc/diskstats and record it in the history."""
    stats = read_disk_stats()
    history.update(stats)
    return stats


def should_handle_device(device: str) -> bool:
    """Whether ``device`` is a whole disk worth reporting."""
    normal = len(device) == 3 and device.startswith(("sd", "vd"))
    aws = len(device) >= 4 and device.startswith("xvd")
    flash = len(device) >= 4 and device.startswith("fio")
    return normal or aws or flash


def disk_io_metrics() -> list[MetricValue]:
    """Raw I/O counters of each handled device."""
    try:
        stats = read_disk_stats()
    except (OSError, ValueError) as exc:
        log.warning("read disk stats fail: %s", exc)
        return []
    metrics: list[MetricValue] = []
    for ds in stats:
        if not should_handle_device(ds.device):
            continue
        tags = "device=" + ds.device
        metrics.extend(
            counter_value(f"disk.io.{name}", getattr(ds, name), tags) for name in _COUNTER_FIELDS
        )
    return metrics


def _io_figures(hist: DiskStatsHistory, device: str) -> tuple[dict[str, int], float, float, float]:
    deltas = {name: hist.delta(device, name) for name in _COUNTER_FIELDS}
    n_io = deltas["read_requests"] + deltas["write_requests"]
    avgrq_sz = await_ = svctm = 0.0
    if n_io != 0:
        avgrq_sz = (deltas["read_sectors"] + deltas["write_sectors"]) / n_io
        await_ = (deltas["msec_read"] + deltas["msec_write"]) / n_io
        svctm = deltas["msec_total"] / n_io
    return deltas, avgrq_sz, await_, svctm


def io_stats_metrics() -> list[MetricValue]:
    """Derived iostat-like gauges for each handled device."""
    hist = history
    metrics: list[MetricValue] = []
    with hist._lock:
        for device in hist:
            if not should_handle_device(device):
                continue
            tags = "device=" + device
            deltas, avgrq_sz, await_, svctm = _io_figures(hist, device)
            use = deltas["msec_total"]
            duration = hist.elapsed_ms(device)
            if duration:
                util = min(use * 100.0 / duration, 100.0)
            else:
                util = 100.0 if use else 0.0
            metrics.extend(
                [
                    gauge_value("disk.io.read_bytes", deltas["read_sectors"] * 512.0, tags),
                    gauge_value("disk.io.write_bytes", deltas["write_sectors"] * 512.0, tags),
                    gauge_value("disk.io.avgrq_sz", avgrq_sz, tags),
                    gauge_value(
                        "disk.io.avgqu-sz", deltas["msec_weighted_total"] / 1000.0, tags
                    ),
                    gauge_value("disk.io.await", await_, tags),
                    gauge_value("disk.io.svctm", svctm, tags),
                    gauge_value("disk.io.util", util, tags),
                ]
            )
    return metrics


def io_stats_for_page() -> list[list[str]]:
    """Rows of formatted iostat figures for the web page."""
    hist = history
    rows: list[list[str]] = []
    with hist._lock:
        for device in hist:
            if not should_handle_device(device):
                continue
            deltas, avgrq_sz, await_, svctm = _io_figures(hist, device)
            rows.append(
                [
                    device,
                    str(deltas["read_merged"]),
                    str(deltas["write_merged"]),
                    str(deltas["read_requests"]),
                    str(deltas["write_requests"]),
                    f"{deltas['read_sectors'] / 2.0:.2f}",
                    f"{deltas['write_sectors'] / 2.0:.2f}",
                    f"{avgrq_sz:.2f}",
                    f"{deltas['msec_weighted_total'] / 1000.0:.2f}",
                    f"{await_:.2f}",
                    f"{svctm:.2f}",
                    f"{deltas['msec_total'] / 10.0:.2f}%",
                ]
            )
    return rows