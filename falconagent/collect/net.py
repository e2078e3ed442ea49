"""Network interface counters from /proc/net/dev."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, replace
from pathlib import Path

from falconagent import config
from falconagent.metric import MetricValue, counter_value, gauge_value

log = logging.getLogger(__name__)

_PROC_NET_DEV = Path("/proc/net/dev")
_SYS_CLASS_NET = Path("/sys/class/net")
_FIELD_COUNT = 16


@dataclass(frozen=True)
class NetIf:
    """Receive and transmit counters of one interface; ``speed_bits`` is its link speed."""

    iface: str
    in_bytes: int = 0
    in_packets: int = 0
    in_errors: int = 0
    in_dropped: int = 0
    in_fifo_errs: int = 0
    in_frame_errs: int = 0
    in_compressed: int = 0
    in_multicast: int = 0
    out_bytes: int = 0
    out_packets: int = 0
    out_errors: int = 0
    out_dropped: int = 0
    out_fifo_errs: int = 0
    out_collisions: int = 0
    out_carrier_errs: int = 0
    out_compressed: int = 0
    speed_bits: int = 0

    @property
    def total_bytes(self) -> int:
        return self.in_bytes + self.out_bytes

    @property
    def total_packets(self) -> int:
        return self.in_packets + self.out_packets

    @property
    def total_errors(self) -> int:
        return self.in_errors + self.out_errors

    @property
    def total_dropped(self) -> int:
        return self.in_dropped + self.out_dropped

    @property
    def in_percent(self) -> float:
        """Received bits relative to link speed, in percent."""
        if self.speed_bits <= 0:
            return 0.0
        return self.in_bytes * 8 * 100.0 / self.speed_bits

    @property
    def out_percent(self) -> float:
        """Transmitted bits relative to link speed, in percent."""
        if self.speed_bits <= 0:
            return 0.0
        return self.out_bytes * 8 * 100.0 / self.speed_bits


_METRICS = (
    ("net.if.in.bytes", "in_bytes", counter_value),
    ("net.if.in.packets", "in_packets", counter_value),
    ("net.if.in.errors", "in_errors", counter_value),
    ("net.if.in.dropped", "in_dropped", counter_value),
    ("net.if.in.fifo.errs", "in_fifo_errs", counter_value),
    ("net.if.in.frame.errs", "in_frame_errs", counter_value),
    ("net.if.in.compressed", "in_compressed", counter_value),
    ("net.if.in.multicast", "in_multicast", counter_value),
    ("net.if.out.bytes", "out_bytes", counter_value),
    ("net.if.out.packets", "out_packets", counter_value),
    ("net.if.out.errors", "out_errors", counter_value),
    ("net.if.out.dropped", "out_dropped", counter_value),
    ("net.if.out.fifo.errs", "out_fifo_errs", counter_value),
    ("net.if.out.collisions", "out_collisions", counter_value),
    ("net.if.out.carrier.errs", "out_carrier_errs", counter_value),
    ("net.if.out.compressed", "out_compressed", counter_value),
    ("net.if.total.bytes", "total_bytes", counter_value),
    ("net.if.total.packets", "total_packets", counter_value),
    ("net.if.total.errors", "total_errors", counter_value),
    ("net.if.total.dropped", "total_dropped", counter_value),
    ("net.if.speed.bits", "speed_bits", gauge_value),
    ("net.if.in.percent", "in_percent", counter_value),
    ("net.if.out.percent", "out_percent", counter_value),
)


def parse_net_dev(text: str, iface_prefix: Sequence[str] = ()) -> list[NetIf]:
    """Parse /proc/net/dev; with prefixes given, only matching interfaces are kept."""
    prefixes = tuple(iface_prefix or ())
    result: list[NetIf] = []
    for line in text.splitlines():
        name, sep, rest = line.partition(":")
        if not sep:
            continue
        name = name.strip()
        if prefixes and not name.startswith(prefixes):
            continue
        values = rest.split()
        if len(values) < _FIELD_COUNT:
            raise ValueError(f"malformed counters for interface {name!r}")
        result.append(NetIf(name, *(int(v) for v in values[:_FIELD_COUNT])))
    return result


def _speed_bits(iface: str) -> int:
    try:
        mbps = int((_SYS_CLASS_NET / iface / "speed").read_text().strip())
    except (OSError, ValueError):
        return 0
    return mbps * 1_000_000 if mbps > 0 else 0


def read_net_ifs(iface_prefix: Sequence[str] = ()) -> list[NetIf]:
    """Current counters and link speed of the matching interfaces."""
    interfaces = parse_net_dev(_PROC_NET_DEV.read_text(), iface_prefix)
    return [replace(nif, speed_bits=_speed_bits(nif.iface)) for nif in interfaces]


def core_net_metrics(iface_prefix: Sequence[str]) -> list[MetricValue]:
    """Twenty-three metrics per matching interface."""
    try:
        interfaces = read_net_ifs(iface_prefix)
    except (OSError, ValueError) as exc:
        log.warning("read net interfaces fail: %s", exc)
        return []
    return [
        make(name, getattr(nif, attr), "iface=" + nif.iface)
        for nif in interfaces
        for name, attr, make in _METRICS
    ]


def net_metrics() -> list[MetricValue]:
    """Interface metrics for the prefixes in the configuration."""
    return core_net_metrics(config.current().collector.iface_prefix)