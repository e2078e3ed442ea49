"""Memory and swap usage from /proc/meminfo."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from falconagent.metric import MetricValue, gauge_value

log = logging.getLogger(__name__)

_MEMINFO = Path("/proc/meminfo")

_KEYS = {
    "MemTotal": "mem_total",
    "MemFree": "mem_free",
    "MemAvailable": "mem_available",
    "Buffers": "buffers",
    "Cached": "cached",
    "SwapTotal": "swap_total",
    "SwapFree": "swap_free",
}


@dataclass(frozen=True)
class MemInfo:
    """Memory figures in bytes."""

    mem_total: int = 0
    mem_free: int = 0
    mem_available: int = 0
    buffers: int = 0
    cached: int = 0
    swap_total: int = 0
    swap_free: int = 0

    @property
    def swap_used(self) -> int:
        return self.swap_total - self.swap_free


def parse_mem_info(text: str) -> MemInfo:
    """Parse the contents of /proc/meminfo; values there are in kB."""
    values: dict[str, int] = {}
    for line in text.splitlines():
        key, sep, rest = line.partition(":")
        attr = _KEYS.get(key.strip())
        if not sep or attr is None:
            continue
        parts = rest.split()
        if not parts:
            raise ValueError(f"no value for {key.strip()}")
        values[attr] = int(parts[0]) * 1024
    return MemInfo(**values)


def read_mem_info() -> MemInfo:
    """Current memory figures."""
    return parse_mem_info(_MEMINFO.read_text())


def mem_metrics() -> list[MetricValue]:
    """Memory and swap gauges, or nothing when they cannot be read."""
    try:
        m = read_mem_info()
    except (OSError, ValueError) as exc:
        log.warning("read meminfo fail: %s", exc)
        return []

    mem_free = m.mem_free + m.buffers + m.cached
    if m.mem_available > 0:
        mem_free = m.mem_available
    mem_used = m.mem_total - mem_free

    pmem_free = pmem_used = 0.0
    if m.mem_total != 0:
        pmem_free = mem_free * 100.0 / m.mem_total
        pmem_used = mem_used * 100.0 / m.mem_total

    pswap_free = pswap_used = 0.0
    if m.swap_total != 0:
        pswap_free = m.swap_free * 100.0 / m.swap_total
        pswap_used = m.swap_used * 100.0 / m.swap_total

    return [
        gauge_value("mem.memtotal", m.mem_total),
        gauge_value("mem.memused", mem_used),
        gauge_value("mem.memfree", mem_free),
        gauge_value("mem.swaptotal", m.swap_total),
        gauge_value("mem.swapused", m.swap_used),
        gauge_value("mem.swapfree", m.swap_free),
        gauge_value("mem.memfree.percent", pmem_free),
        gauge_value("mem.memused.percent", pmem_used),
        gauge_value("mem.swapfree.percent", pswap_free),
        gauge_value("mem.swapused.percent", pswap_used),
    ]