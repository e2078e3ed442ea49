"""Shared agent state and the runtime helpers that act on it."""

from __future__ import annotations

import logging
import os
import socket
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from falconagent import config, transfer
from falconagent.consul import get_consul_info
from falconagent.metric import MetricValue
from falconagent.rpc import SingleConnRpcClient

log = logging.getLogger(__name__)

_PROBE_ADDRESS = ("114.114.114.114", 53)


@dataclass
class AgentState:
    """Values learned at start-up or pushed by the heartbeat server."""

    root: str = ""
    local_ip: str = ""
    hbs_client: SingleConnRpcClient | None = None
    report_urls: dict[str, str] = field(default_factory=dict)
    report_ports: list[int] = field(default_factory=list)
    du_paths: list[str] = field(default_factory=list)
    # tags => {1: name, 2: cmdline}
    report_procs: dict[str, dict[int, str]] = field(default_factory=dict)
    trustable_ips: list[str] = field(default_factory=list)
    host_info: dict[str, Any] = field(default_factory=dict)
    _ips_lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def update_trustable_ips(self, ip_str: str) -> list[str]:
        """Replace the trusted addresses with the comma separated ``ip_str``."""
        ips = ip_str.split(",")
        with self._ips_lock:
            self.trustable_ips = ips
        return ips

    def is_trustable(self, remote_addr: str) -> bool:
        """Whether a request from ``remote_addr`` (host:port) may use admin routes."""
        ip_addr = remote_addr
        idx = remote_addr.rfind(":")
        if idx > 0:
            ip_addr = remote_addr[:idx]
        if ip_addr == "127.0.0.1":
            return True
        with self._ips_lock:
            return ip_addr in self.trustable_ips


state = AgentState()


def init_root_dir() -> str:
    """Remember the working directory as the agent's root."""
    state.root = os.getcwd()
    return state.root


def init_local_ip() -> str:
    """Find the address of the interface used for outgoing traffic."""
    if not config.current().heartbeat.enabled:
        log.info("heartbeat is not enabled, can't get localip")
        return state.local_ip
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.settimeout(10)
            sock.connect(_PROBE_ADDRESS)
            state.local_ip = sock.getsockname()[0]
    except OSError as exc:
        log.warning("get local addr failed, due to: %s", exc)
    return state.local_ip


def init_rpc_clients() -> SingleConnRpcClient | None:
    """Create the heartbeat server client when the heartbeat is enabled."""
    heartbeat = config.current().heartbeat
    if heartbeat.enabled:
        state.hbs_client = SingleConnRpcClient(heartbeat.addr, timeout=heartbeat.timeout / 1000)
    return state.hbs_client


def ip() -> str:
    """The agent's address: configured, otherwise the detected local one."""
    configured = config.current().ip
    if configured:
        return configured
    return state.local_ip


def apply_default_tags(
    metrics: list[MetricValue], default_tags: Mapping[str, str]
) -> list[MetricValue]:
    """Append ``default_tags`` to the tags of every metric, in place."""
    if not default_tags:
        return metrics
    extra = ",".join(f"{key}={value}" for key, value in default_tags.items())
    for metric in metrics:
        metric.tags = f"{metric.tags},{extra}" if metric.tags else extra
    return metrics


def send_to_transfer(metrics: list[MetricValue]) -> Any:
    """Tag and deliver metrics; returns the transfer response, if any."""
    if not metrics:
        return None
    cfg = config.current()
    apply_default_tags(metrics, cfg.default_tags)
    if cfg.debug:
        log.debug("=> <Total=%d> %s", len(metrics), metrics[0])
    resp = transfer.send_metrics(metrics)
    if cfg.debug:
        log.debug("<= %s", resp)
    return resp


def init_default_tags() -> dict[str, str]:
    """Add service, chain and status tags learned from the Consul agent."""
    service, route, status = get_consul_info()
    parts = route.split("_")
    chain = parts[1] if len(parts) == 2 else route
    tags = config.current().default_tags
    tags["service"] = service
    tags["chain"] = chain
    tags["status"] = status
    return tags