"""Whether the ports requested by the heartbeat server are listening."""

from __future__ import annotations

import logging

import psutil

from falconagent import config, runtime
from falconagent.metric import MetricValue, gauge_value

log = logging.getLogger(__name__)


def listening_tcp_ports() -> list[int]:
    """Local TCP ports in the listening state."""
    return sorted(
        {
            conn.laddr.port
            for conn in psutil.net_connections(kind="tcp")
            if conn.laddr and conn.status == psutil.CONN_LISTEN
        }
    )


def listening_udp_ports() -> list[int]:
    """Local ports of open UDP sockets."""
    return sorted({conn.laddr.port for conn in psutil.net_connections(kind="udp") if conn.laddr})


def port_metrics() -> list[MetricValue]:
    """One gauge per requested port: 1 when it is open, 0 otherwise."""
    ports = list(runtime.state.report_ports)
    log.debug("ports: %s", ports)
    if not ports:
        return []
    try:
        tcp = set(listening_tcp_ports())
        udp = set(listening_udp_ports())
    except (OSError, psutil.Error) as exc:
        log.warning("list listening ports fail: %s", exc)
        return []
    return [
        gauge_value(config.NET_PORT_LISTEN, 1 if port in tcp or port in udp else 0, f"port={port}")
        for port in ports
    ]