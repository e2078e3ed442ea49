"""The collector groups run by the agent, and a self-check of each collector."""

from __future__ import annotations

import subprocess
from collections.abc import Callable
from dataclasses import dataclass, field

import psutil

from falconagent import config
from falconagent.collect.agent import agent_metrics
from falconagent.collect.cpu import cpu_metrics, read_proc_stat
from falconagent.collect.df import device_metrics, device_metrics_check
from falconagent.collect.disk import disk_io_metrics, io_stats_metrics, read_disk_stats
from falconagent.collect.du import du_metrics
from falconagent.collect.kernel import kernel_metrics
from falconagent.collect.loadavg import load_avg_metrics
from falconagent.collect.memory import mem_metrics
from falconagent.collect.net import core_net_metrics, net_metrics
from falconagent.collect.netstat import (
    netstat_metrics,
    socket_stat_summary_metrics,
    udp_metrics,
)
from falconagent.collect.ports import listening_tcp_ports, port_metrics
from falconagent.collect.procs import all_procs, proc_metrics
from falconagent.collect.url import url_metrics
from falconagent.metric import MetricValue

Collector = Callable[[], list[MetricValue]]


@dataclass
class FuncsAndInterval:
    """Collectors run together every ``interval`` seconds."""

    fns: list[Collector] = field(default_factory=list)
    interval: int = 0


mappers: list[FuncsAndInterval] = []


def build_mappers() -> list[FuncsAndInterval]:
    """Group the collectors by the configured transfer interval."""
    global mappers
    interval = config.current().transfer.interval
    mappers = [
        FuncsAndInterval(
            [
                agent_metrics,
                cpu_metrics,
                net_metrics,
                kernel_metrics,
                load_avg_metrics,
                mem_metrics,
                disk_io_metrics,
                io_stats_metrics,
                netstat_metrics,
                proc_metrics,
                udp_metrics,
            ],
            interval,
        ),
        FuncsAndInterval([device_metrics], interval),
        FuncsAndInterval([port_metrics, socket_stat_summary_metrics], interval),
        FuncsAndInterval([du_metrics], interval),
        FuncsAndInterval([url_metrics], interval),
    ]
    return mappers


def _cpustat_ok() -> bool:
    read_proc_stat()
    return True


def _diskio_ok() -> bool:
    read_disk_stats()
    return True


def _du_ok() -> bool:
    subprocess.run(["du", "--help"], capture_output=True, check=True)
    return True


_CHECKS: tuple[tuple[str, Callable[[], bool]], ...] = (
    ("kernel  ", lambda: len(kernel_metrics()) > 0),
    ("df.bytes", device_metrics_check),
    ("net.if  ", lambda: len(core_net_metrics([])) > 0),
    ("loadavg ", lambda: len(load_avg_metrics()) > 0),
    ("cpustat ", _cpustat_ok),
    ("disk.io ", _diskio_ok),
    ("memory  ", lambda: len(mem_metrics()) > 0),
    ("netstat ", lambda: len(netstat_metrics()) > 0),
    ("ss -s   ", lambda: len(socket_stat_summary_metrics()) > 0),
    ("ss -tln ", lambda: len(listening_tcp_ports()) > 0),
    ("ps aux  ", lambda: len(all_procs()) > 0),
    ("du -bs  ", _du_ok),
)


def _succeeds(probe: Callable[[], bool]) -> bool:
    try:
        return bool(probe())
    except (OSError, ValueError, subprocess.SubprocessError, psutil.Error):
        return False


def check_collector() -> dict[str, bool]:
    """Try every collector, print ``name ... ok|fail`` for each and return the results."""
    results = {name: _succeeds(probe) for name, probe in _CHECKS}
    for name, ok in results.items():
        print(name, "...", "ok" if ok else "fail")
    return results