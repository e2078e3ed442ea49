"""Protocol counters from /proc/net and socket summaries from ``ss``."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from falconagent.metric import MetricValue, counter_value, gauge_value

log = logging.getLogger(__name__)

_NETSTAT = Path("/proc/net/netstat")
_SNMP = Path("/proc/net/snmp")

USES = frozenset(
    {
        "PruneCalled",
        "LockDroppedIcmps",
        "ArpFilter",
        "TW",
        "DelayedACKLocked",
        "ListenOverflows",
        "ListenDrops",
        "TCPPrequeueDropped",
        "TCPTSReorder",
        "TCPDSACKUndo",
        "TCPLoss",
        "TCPLostRetransmit",
        "TCPLossFailures",
        "TCPFastRetrans",
        "TCPTimeouts",
        "TCPSchedulerFailed",
        "TCPAbortOnMemory",
        "TCPAbortOnTimeout",
        "TCPAbortFailed",
        "TCPMemoryPressures",
        "TCPSpuriousRTOs",
        "TCPBacklogDrop",
        "TCPMinTTLDrop",
    }
)


def parse_proto_table(text: str, title: str) -> dict[str, int]:
    """Counters of the ``title`` section: a line of names followed by a line of values."""
    prefix = title + ":"
    rows = [line.split()[1:] for line in text.splitlines() if line.startswith(prefix)]
    if not rows:
        return {}
    if len(rows) < 2:
        raise ValueError(f"no values for section {title}")
    names, values = rows[0], rows[1]
    if len(names) != len(values):
        raise ValueError(f"section {title} has {len(names)} names but {len(values)} values")
    return {name: int(value) for name, value in zip(names, values)}


def read_netstat(title: str) -> dict[str, int]:
    return parse_proto_table(_NETSTAT.read_text(), title)


def read_snmp(title: str) -> dict[str, int]:
    return parse_proto_table(_SNMP.read_text(), title)


def parse_socket_summary(text: str) -> dict[str, int]:
    """TCP state counts from ``ss -s`` output, keyed like ``tcp.estab``."""
    summary: dict[str, int] = {}
    for line in text.splitlines()[1:]:
        if not line.startswith("TCP"):
            continue
        left, right = line.find("("), line.find(")")
        if left < 0 or right < left:
            continue
        for item in line[left + 1 : right].strip().split(", "):
            parts = item.split(" ")
            if len(parts) != 2:
                continue
            key, raw = parts
            if key == "timewait":
                raw = raw.split("/")[0]
            try:
                summary["tcp." + key] = int(raw)
            except ValueError:
                continue
    return summary


def socket_stat_summary() -> dict[str, int]:
    """Run ``ss -s`` and parse its TCP summary."""
    result = subprocess.run(["ss", "-s"], capture_output=True, text=True, check=True)
    return parse_socket_summary(result.stdout)


def netstat_metrics() -> list[MetricValue]:
    """Selected TcpExt counters."""
    try:
        tcp_exts = read_netstat("TcpExt")
    except (OSError, ValueError) as exc:
        log.warning("read netstat fail: %s", exc)
        return []
    return [counter_value("TcpExt." + key, val) for key, val in tcp_exts.items() if key in USES]


def udp_metrics() -> list[MetricValue]:
    """Every Udp counter from /proc/net/snmp."""
    try:
        udp = read_snmp("Udp")
    except (OSError, ValueError) as exc:
        log.warning("read snmp fail %s", exc)
        return []
    return [counter_value("snmp.Udp." + key, val) for key, val in udp.items()]


def socket_stat_summary_metrics() -> list[MetricValue]:
    """Socket summary gauges, or nothing when ``ss`` cannot run."""
    try:
        summary = socket_stat_summary()
    except (OSError, subprocess.SubprocessError) as exc:
        log.warning("ss -s fail: %s", exc)
        return []
    return [gauge_value("ss." + key, val) for key, val in summary.items()]