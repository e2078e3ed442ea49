"""Description of the host reported to the heartbeat server."""

from __future__ import annotations

import logging
import os
import re
import subprocess
from pathlib import Path
from typing import Any

import psutil

from falconagent import config, runtime

log = logging.getLogger(__name__)

_RELEASE = re.compile(r"release (\d[\d.]*)")


def os_bit() -> str:
    """Hardware platform as printed by ``uname -i``."""
    try:
        result = subprocess.run(["uname", "-i"], capture_output=True, text=True, check=False)
    except OSError as exc:
        log.warning("get os bit failed, due to: %s", exc)
        return ""
    if result.returncode != 0:
        log.warning("get os bit failed, exit status %d", result.returncode)
    return result.stdout


def get_redhatish_version(contents: list[str]) -> str:
    """Version number from the lines of a Red Hat style release file."""
    text = "".join(contents).lower()
    if "rawhide" in text:
        return "rawhide"
    match = _RELEASE.search(text)
    return match.group(1) if match else ""


def get_redhatish_platform(contents: list[str]) -> str:
    """Distribution name from the lines of a Red Hat style release file."""
    text = "".join(contents).lower()
    if "red hat" in text:
        return "redhat"
    return text.split(" ")[0]


def get_lsb(content: list[str]) -> tuple[str, str]:
    """Distribution name and release from the lines of an lsb-release file."""
    name = version = ""
    for line in content:
        parts = line.split("=")
        if len(parts) < 2:
            continue
        if parts[0] == "DISTRIB_ID":
            name = parts[1]
        elif parts[0] == "DISTRIB_RELEASE":
            version = parts[1]
    return name, version


def platform_info(prefix: str = "/etc/") -> tuple[str, str, str]:
    """Return (platform type, distribution name, distribution version)."""
    platform_type = "1"  # Linux
    name = version = ""
    linux_release = Path(prefix, "system-release")
    ubuntu_release = Path(prefix, "lsb-release")
    try:
        if linux_release.exists():
            lines = linux_release.read_text().splitlines()
            version = get_redhatish_version(lines)
            name = get_redhatish_platform(lines)
        elif ubuntu_release.exists():
            name, version = get_lsb(ubuntu_release.read_text().splitlines())
    except OSError as exc:
        log.warning("read release file failed: %s", exc)
    return platform_type, name, version


def cpu_info() -> tuple[int, int, str, str]:
    """Return (cpu count, MHz, model name, host type: "1" virtual, "2" physical)."""
    num = psutil.cpu_count() or 0
    mhz = 0
    module = ""
    virtual = False
    try:
        freq = psutil.cpu_freq()
        if freq is not None:
            mhz = int(freq.current)
    except (OSError, NotImplementedError) as exc:
        log.warning("get cpu frequency failed, due to: %s", exc)
    try:
        text = Path("/proc/cpuinfo").read_text()
    except OSError as exc:
        log.warning("get cpu info failed, due to: %s", exc)
    else:
        for line in text.splitlines():
            key, sep, value = line.partition(":")
            if not sep:
                continue
            key = key.strip()
            if key == "model name" and not module:
                module = value.strip()
            elif key == "flags" and "hypervisor" in value.split():
                virtual = True
    host_type = "1" if virtual else "2"
    return num, mhz, module, host_type


def mem_total() -> int:
    """Total memory in megabytes, or 1 when unknown."""
    try:
        return psutil.virtual_memory().total // 1000 // 1000
    except (OSError, RuntimeError):
        return 1


def disk_total() -> int:
    """Total memory in bytes, or 1 when unknown."""
    try:
        return psutil.virtual_memory().total
    except (OSError, RuntimeError):
        return 1


def init_host_info() -> dict[str, Any]:
    """Gather the host description and store it in the agent state."""
    try:
        host = config.hostname()
    except OSError as exc:
        host = f"error:{exc}"
    platform_type, platform_name, platform_version = platform_info()
    cpu_num, cpu_mhz, cpu_module, host_type = cpu_info()
    info: dict[str, Any] = {
        "bk_host_name": host,
        "bk_host_innerip": runtime.ip(),
        "import_from": "2",  # from agent
        "bk_cpu": cpu_num,
        "bk_cpu_mhz": cpu_mhz,
        "bk_cpu_module": cpu_module,
        "host_type": host_type,
        "bk_os_bit": os_bit(),
        "bk_os_type": platform_type,
        "bk_os_name": platform_name,
        "bk_os_version": platform_version,
        "bk_mem": mem_total(),
        "falcon_agent_version": config.VERSION,
        "online": True,
    }
    runtime.state.host_info = info
    return info


def get_curr_plugin_version() -> str:
    """Commit checked out in the plugin directory, or why it is unknown."""
    plugin = config.current().plugin
    if not plugin.enabled:
        return "plugin not enabled"
    if not os.path.exists(plugin.dir):
        return "plugin dir not existent"
    try:
        result = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            cwd=plugin.dir,
            capture_output=True,
            text=True,
            check=True,
        )
    except (OSError, subprocess.CalledProcessError) as exc:
        return f"Error:{exc}"
    return result.stdout.strip()