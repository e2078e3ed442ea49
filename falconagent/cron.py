"""Background jobs: metric collection, heartbeat reports and syncing with the heartbeat server."""

from __future__ import annotations

import logging
import re
import threading
import time
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from falconagent import config, hostinfo, plugins, runtime
from falconagent.collect import registry
from falconagent.collect.cpu import update_cpu_stat
from falconagent.collect.disk import update_disk_stats
from falconagent.metric import MetricValue
from falconagent.rpc import RpcError

log = logging.getLogger(__name__)

COLLECT_INTERVAL = 1.0

_INT = re.compile(r"[+-]?\d+")

_RPC_ERRORS = (RpcError, OSError, ValueError)


@dataclass
class BuiltinMetrics:
    """Checks requested by the heartbeat server."""

    urls: dict[str, str] = field(default_factory=dict)
    ports: list[int] = field(default_factory=list)
    paths: list[str] = field(default_factory=list)
    # tags => {1: name, 2: cmdline}
    procs: dict[str, dict[int, str]] = field(default_factory=dict)


def _add_url(result: BuiltinMetrics, tags: str) -> None:
    parts = tags.split(",")
    if len(parts) != 2:
        return
    url = parts[0].split("=")
    if len(url) != 2:
        return
    stime = parts[1].split("=")
    if len(stime) != 2:
        return
    if _INT.fullmatch(stime[1]):
        result.urls[url[1]] = stime[1]
    else:
        log.warning("metric parse timeout failed: %r", stime[1])


def _add_port(result: BuiltinMetrics, tags: str) -> None:
    parts = tags.split("=")
    if len(parts) != 2:
        return
    if _INT.fullmatch(parts[1]):
        result.ports.append(int(parts[1]))
    else:
        log.warning("metrics parse port failed: %r", parts[1])


def _add_path(result: BuiltinMetrics, tags: str) -> None:
    parts = tags.split("=")
    if len(parts) == 2:
        result.paths.append(parts[1].strip())


def _add_proc(result: BuiltinMetrics, tags: str) -> None:
    matcher: dict[int, str] = {}
    for part in tags.split(","):
        if part.startswith("name="):
            matcher[1] = part[len("name="):].strip()
        elif part.startswith("cmdline="):
            matcher[2] = part[len("cmdline="):].strip()
    result.procs[tags] = matcher


def parse_builtin_metrics(metrics: Iterable[Mapping[str, Any]]) -> BuiltinMetrics:
    """Sort the builtin metric definitions sent by the heartbeat server into checks."""
    handlers: dict[str, Callable[[BuiltinMetrics, str], None]] = {
        config.URL_CHECK_HEALTH: _add_url,
        config.NET_PORT_LISTEN: _add_port,
        config.DU_BS: _add_path,
        config.PROC_NUM: _add_proc,
    }
    result = BuiltinMetrics()
    for item in metrics:
        handler = handlers.get(item.get("metric", ""))
        if handler is not None:
            handler(result, item.get("tags") or "")
    return result


def _apply_builtin(builtin: BuiltinMetrics) -> None:
    state = runtime.state
    state.report_urls = builtin.urls
    state.report_ports = builtin.ports
    state.report_procs = builtin.procs
    state.du_paths = builtin.paths


def gather_metrics(
    fns: Iterable[Callable[[], list[MetricValue] | None]],
    step: int,
    hostname: str,
    ignore: Mapping[str, bool],
    now: int,
) -> list[MetricValue]:
    """Run the collectors, drop ignored metrics and stamp the rest."""
    collected: list[MetricValue] = []
    for fn in fns:
        for mv in fn() or ():
            if ignore.get(mv.metric):
                continue
            collected.append(mv)
    for mv in collected:
        mv.step = step
        mv.endpoint = hostname
        mv.timestamp = now
    return collected


def _start(name: str, target: Callable[[], None]) -> threading.Thread:
    thread = threading.Thread(target=target, name=name, daemon=True)
    thread.start()
    return thread


def _record_history() -> None:
    try:
        update_cpu_stat()
    except (OSError, ValueError) as exc:
        log.debug("update cpu stat fail: %s", exc)
    try:
        update_disk_stats()
    except (OSError, ValueError) as exc:
        log.debug("update disk stats fail: %s", exc)


def init_data_history() -> threading.Thread:
    """Keep recording CPU and disk counters so rates can be computed."""

    def run() -> None:
        while True:
            _record_history()
            time.sleep(COLLECT_INTERVAL)

    return _start("data-history", run)


def _collect_loop(interval: int, fns: list[Callable[[], list[MetricValue]]]) -> None:
    deadline = time.monotonic()
    while True:
        deadline += interval
        time.sleep(max(0.0, deadline - time.monotonic()))
        try:
            host = config.hostname()
        except OSError:
            continue
        cfg = config.current()
        metrics = gather_metrics(fns, interval, host, cfg.ignore_metrics or {}, int(time.time()))
        try:
            runtime.send_to_transfer(metrics)
        except _RPC_ERRORS as exc:
            log.warning("send metrics fail: %s", exc)


def collect() -> list[threading.Thread]:
    """Start one collection thread per collector group, when transfer is configured."""
    transfer = config.current().transfer
    if not transfer.enabled or not transfer.addrs:
        return []
    return [
        _start(f"collect-{idx}", lambda m=mapper: _collect_loop(m.interval, m.fns))
        for idx, mapper in enumerate(registry.mappers)
    ]


def _heartbeat_interval() -> int | None:
    heartbeat = config.current().heartbeat
    if heartbeat.enabled and heartbeat.addr:
        return heartbeat.interval
    return None


def _report_once(client: Any) -> bool:
    try:
        host = config.hostname()
    except OSError as exc:
        host = f"error:{exc}"
    req = {
        "hostname": host,
        "ip": runtime.ip(),
        "agent_version": config.VERSION,
        "plugin_version": hostinfo.get_curr_plugin_version(),
        "host_info": runtime.state.host_info,
    }
    try:
        resp = client.call("Agent.ReportStatus", req)
    except _RPC_ERRORS as exc:
        log.warning("call Agent.ReportStatus fail: %s Request: %s", exc, req)
        return False
    code = (resp or {}).get("code", 0)
    if code != 0:
        log.warning("call Agent.ReportStatus fail: Request: %s Response: %s", req, resp)
        return False
    return True


def report_agent_status() -> threading.Thread | None:
    """Periodically tell the heartbeat server that this agent is alive."""
    interval = _heartbeat_interval()
    if interval is None:
        return None

    def run() -> None:
        while True:
            time.sleep(interval)
            client = runtime.state.hbs_client
            if client is not None:
                _report_once(client)

    return _start("report-agent-status", run)


def _sync_plugins_once(
    client: Any, hostname: str, timestamp: int, manager: plugins.PluginManager | None = None
) -> int:
    manager = plugins.manager if manager is None else manager
    try:
        resp = client.call("Agent.MinePlugins", {"hostname": hostname}) or {}
    except _RPC_ERRORS as exc:
        log.warning("call Agent.MinePlugins fail: %s", exc)
        return timestamp
    new_timestamp = int(resp.get("timestamp") or 0)
    if new_timestamp <= timestamp:
        return timestamp
    plugin_dirs = resp.get("plugins") or []
    if config.current().debug:
        log.debug("mine plugins: %s", resp)
    if not plugin_dirs:
        manager.clear()
    desired: dict[str, plugins.Plugin] = {}
    for directory in plugin_dirs:
        desired.update(plugins.list_plugins(directory.strip("/")))
    manager.remove_unused(desired)
    manager.add_new(desired)
    return new_timestamp


def sync_mine_plugins() -> threading.Thread | None:
    """Keep the running plugins in line with those assigned by the heartbeat server."""
    if not config.current().plugin.enabled:
        return None
    interval = _heartbeat_interval()
    if interval is None:
        return None

    def run() -> None:
        timestamp = -1
        while True:
            time.sleep(interval)
            client = runtime.state.hbs_client
            if client is None:
                continue
            try:
                host = config.hostname()
            except OSError:
                continue
            timestamp = _sync_plugins_once(client, host, timestamp)

    return _start("sync-mine-plugins", run)


def _sync_builtin_once(
    client: Any, hostname: str, checksum: str, timestamp: int
) -> tuple[str, int]:
    req = {"hostname": hostname, "checksum": checksum}
    try:
        resp = client.call("Agent.BuiltinMetrics", req) or {}
    except _RPC_ERRORS as exc:
        log.warning("call Agent.BuiltinMetrics fail: %s", exc)
        return checksum, timestamp
    new_timestamp = int(resp.get("timestamp") or 0)
    new_checksum = resp.get("checksum") or ""
    if new_timestamp <= timestamp or new_checksum == checksum:
        return checksum, timestamp
    _apply_builtin(parse_builtin_metrics(resp.get("metrics") or []))
    return new_checksum, new_timestamp


def sync_builtin_metrics() -> threading.Thread | None:
    """Keep the URL, port, path and process checks in line with the heartbeat server."""
    interval = _heartbeat_interval()
    if interval is None:
        return None

    def run() -> None:
        checksum, timestamp = "nil", -1
        while True:
            time.sleep(interval)
            client = runtime.state.hbs_client
            if client is None:
                continue
            try:
                host = config.hostname()
            except OSError:
                continue
            checksum, timestamp = _sync_builtin_once(client, host, checksum, timestamp)

    return _start("sync-builtin-metrics", run)


def _sync_ips_once(client: Any) -> list[str] | None:
    try:
        ips = client.call("Agent.TrustableIps", {})
    except _RPC_ERRORS as exc:
        log.warning("call Agent.TrustableIps fail: %s", exc)
        return None
    return runtime.state.update_trustable_ips(ips or "")


def sync_trustable_ips() -> threading.Thread | None:
    """Keep the list of addresses allowed to use admin routes up to date."""
    interval = _heartbeat_interval()
    if interval is None:
        return None

    def run() -> None:
        while True:
            time.sleep(interval)
            client = runtime.state.hbs_client
            if client is not None:
                _sync_ips_once(client)

    return _start("sync-trustable-ips", run)