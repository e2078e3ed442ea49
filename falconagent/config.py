"""Agent configuration: constants, loading, access and logging setup."""

from __future__ import annotations

import json
import logging
import os
import socket
import threading
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

OFFICIAL_VERSION = "5.1.2"
VERSION = "1.1.0"
COLLECT_INTERVAL = 1.0
URL_CHECK_HEALTH = "url.check.health"
NET_PORT_LISTEN = "net.port.listen"
DU_BS = "du.bs"
PROC_NUM = "proc.num"

LOGGER_NAME = "falconagent"

log = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when the configuration is missing or invalid."""


def _json_field(key: str, kind: Any, default: Any = None, factory: Any = None) -> Any:
    meta = {"json": key, "kind": kind}
    if factory is not None:
        return field(default_factory=factory, metadata=meta)
    return field(default=default, metadata=meta)


@dataclass
class PluginConfig:
    enabled: bool = _json_field("enabled", "bool", False)
    dir: str = _json_field("dir", "str", "")
    git: str = _json_field("git", "str", "")
    log_dir: str = _json_field("logs", "str", "")


@dataclass
class HeartbeatConfig:
    enabled: bool = _json_field("enabled", "bool", False)
    addr: str = _json_field("addr", "str", "")
    interval: int = _json_field("interval", "int", 0)
    timeout: int = _json_field("timeout", "int", 0)


@dataclass
class TransferConfig:
    enabled: bool = _json_field("enabled", "bool", False)
    addrs: list[str] = _json_field("addrs", "strlist", factory=list)
    interval: int = _json_field("interval", "int", 0)
    timeout: int = _json_field("timeout", "int", 0)


@dataclass
class HttpConfig:
    enabled: bool = _json_field("enabled", "bool", False)
    listen: str = _json_field("listen", "str", "")
    backdoor: bool = _json_field("backdoor", "bool", False)


@dataclass
class CollectorConfig:
    iface_prefix: list[str] = _json_field("ifacePrefix", "strlist", factory=list)
    mount_point: list[str] = _json_field("mountPoint", "strlist", factory=list)


@dataclass
class GlobalConfig:
    debug: bool = _json_field("debug", "bool", False)
    hostname: str = _json_field("hostname", "str", "")
    ip: str = _json_field("ip", "str", "")
    plugin: PluginConfig = _json_field("plugin", PluginConfig, factory=PluginConfig)
    heartbeat: HeartbeatConfig = _json_field("heartbeat", HeartbeatConfig, factory=HeartbeatConfig)
    transfer: TransferConfig = _json_field("transfer", TransferConfig, factory=TransferConfig)
    http: HttpConfig = _json_field("http", HttpConfig, factory=HttpConfig)
    collector: CollectorConfig = _json_field("collector", CollectorConfig, factory=CollectorConfig)
    default_tags: dict[str, str] = _json_field("default_tags", "strmap", factory=dict)
    ignore_metrics: dict[str, bool] = _json_field("ignore", "boolmap", factory=dict)
    source: str = ""


def _check(value: Any, kind: str, label: str) -> Any:
    if kind == "bool":
        ok = isinstance(value, bool)
    elif kind == "int":
        ok = isinstance(value, int) and not isinstance(value, bool)
    elif kind == "str":
        ok = isinstance(value, str)
    elif kind == "strlist":
        ok = isinstance(value, list) and all(isinstance(v, str) for v in value)
        value = list(value) if ok else value
    elif kind == "strmap":
        ok = isinstance(value, dict) and all(isinstance(v, str) for v in value.values())
        value = dict(value) if ok else value
    elif kind == "boolmap":
        ok = isinstance(value, dict) and all(isinstance(v, bool) for v in value.values())
        value = dict(value) if ok else value
    else:
        raise ConfigError(f"{label}: unknown field kind {kind}")
    if not ok:
        raise ConfigError(f"{label}: unexpected value {value!r}")
    return value


def _build(cls: type, data: Any, where: str) -> Any:
    if not isinstance(data, dict):
        raise ConfigError(f"{where or 'config'}: expected an object, got {type(data).__name__}")
    values: dict[str, Any] = {}
    for f in fields(cls):
        key = f.metadata.get("json")
        if key is None or data.get(key) is None:
            continue
        label = f"{where}.{key}" if where else key
        kind = f.metadata["kind"]
        if isinstance(kind, type):
            values[f.name] = _build(kind, data[key], label)
        else:
            values[f.name] = _check(data[key], kind, label)
    return cls(**values)


def config_from_dict(data: Any) -> GlobalConfig:
    """Build a configuration from decoded JSON data."""
    return _build(GlobalConfig, data, "")


_lock = threading.RLock()
_config: GlobalConfig | None = None


def parse_config(path: str | os.PathLike[str]) -> GlobalConfig:
    """Read, validate and install the configuration file at ``path``."""
    global _config
    if not path:
        raise ConfigError("use -c to specify configuration file")
    cfg_path = Path(path)
    if not cfg_path.exists():
        raise ConfigError(
            f"config file: {path} is not existent. maybe you need `mv cfg.example.json cfg.json`"
        )
    try:
        content = cfg_path.read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise ConfigError(f"read config file: {path} fail: {exc}") from exc
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"parse config file: {path} fail: {exc}") from exc

    cfg = config_from_dict(data)
    cfg.source = str(path)
    with _lock:
        _config = cfg
    log.info("read config file: %s successfully", path)
    return cfg


def current() -> GlobalConfig:
    """Return the installed configuration."""
    with _lock:
        if _config is None:
            raise ConfigError("configuration has not been loaded")
        return _config


def hostname() -> str:
    """Return the endpoint name: configured, from FALCON_ENDPOINT, or the host's."""
    name = current().hostname
    if name:
        return name
    env_name = os.environ.get("FALCON_ENDPOINT")
    if env_name:
        return env_name
    return socket.gethostname()


_LEVELS = {"info": logging.INFO, "debug": logging.DEBUG, "warn": logging.WARNING}


def init_log(level: str) -> int:
    """Set the agent's log level; only info, debug and warn are accepted."""
    try:
        value = _LEVELS[level]
    except KeyError:
        raise ConfigError(
            "log conf only allow [info, debug, warn], please check your configure"
        ) from None
    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s %(filename)s:%(lineno)d %(message)s", "%Y/%m/%d %H:%M:%S"
            )
        )
        logger.addHandler(handler)
    logger.setLevel(value)
    return value