"""File system space and inode usage."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path

from falconagent import config
from falconagent.metric import MetricValue, gauge_value

log = logging.getLogger(__name__)

_MOUNTS = Path("/proc/mounts")

_FSSPEC_IGNORE = {"none", "nodev", "proc", "hugetlbfs", "mqueue"}
_FSTYPE_IGNORE = {
    "autofs", "binfmt_misc", "bpf", "cgroup", "cgroup2", "configfs", "debugfs", "devpts",
    "devtmpfs", "fusectl", "hugetlbfs", "mqueue", "nsfs", "overlay", "proc", "pstore",
    "rootfs", "rpc_pipefs", "securityfs", "squashfs", "sysfs", "tmpfs", "tracefs",
}
_FSFILE_IGNORE = ("/sys", "/proc", "/dev", "/net", "/misc", "/lib")
_OCTAL_ESCAPE = re.compile(r"\\([0-7]{3})")


@dataclass(frozen=True)
class DeviceUsage:
    """Space and inode usage of one mounted file system, in bytes and counts."""

    fs_spec: str
    fs_file: str
    fs_vfstype: str
    blocks_all: int
    blocks_used: int
    blocks_free: int
    blocks_used_percent: float
    blocks_free_percent: float
    inodes_all: int
    inodes_used: int
    inodes_free: int
    inodes_used_percent: float
    inodes_free_percent: float


def _unescape(value: str) -> str:
    return _OCTAL_ESCAPE.sub(lambda m: chr(int(m.group(1), 8)), value)


def _ignored_file(fs_file: str) -> bool:
    return any(fs_file == p or fs_file.startswith(p + "/") for p in _FSFILE_IGNORE)


def list_mount_points() -> list[tuple[str, str, str]]:
    """Mounted real file systems as (device, mount point, type).

    Bind mounts of the same device are reported once, at the shortest mount point.
    """
    mounts: list[tuple[str, str, str]] = []
    for line in _MOUNTS.read_text().splitlines():
        parts = line.split()
        if len(parts) < 3:
            continue
        fs_spec, fs_file, fs_vfstype = (_unescape(p) for p in parts[:3])
        if fs_spec in _FSSPEC_IGNORE or fs_vfstype in _FSTYPE_IGNORE:
            continue
        if fs_vfstype.startswith("fuse") or _ignored_file(fs_file):
            continue
        if fs_spec.startswith("/dev"):
            for idx, (spec, file, vfstype) in enumerate(mounts):
                if spec == fs_spec:
                    if len(fs_file) < len(file):
                        mounts[idx] = (spec, fs_file, vfstype)
                    break
            else:
                mounts.append((fs_spec, fs_file, fs_vfstype))
        else:
            mounts.append((fs_spec, fs_file, fs_vfstype))
    return mounts


def build_device_usage(fs_spec: str, fs_file: str, fs_vfstype: str) -> DeviceUsage:
    """Measure the file system mounted at ``fs_file``."""
    st = os.statvfs(fs_file)
    blocks_all = st.f_frsize * st.f_blocks
    blocks_free = st.f_frsize * st.f_bavail
    blocks_used = st.f_frsize * (st.f_blocks - st.f_bfree)
    usable = blocks_used + blocks_free
    blocks_used_percent = blocks_used * 100.0 / usable if usable else 0.0
    blocks_free_percent = 100.0 - blocks_used_percent if usable else 0.0
    inodes_all = st.f_files
    inodes_free = st.f_ffree
    inodes_used = inodes_all - inodes_free
    inodes_used_percent = inodes_used * 100.0 / inodes_all if inodes_all else 0.0
    inodes_free_percent = 100.0 - inodes_used_percent if inodes_all else 0.0
    return DeviceUsage(
        fs_spec=fs_spec,
        fs_file=fs_file,
        fs_vfstype=fs_vfstype,
        blocks_all=blocks_all,
        blocks_used=blocks_used,
        blocks_free=blocks_free,
        blocks_used_percent=blocks_used_percent,
        blocks_free_percent=blocks_free_percent,
        inodes_all=inodes_all,
        inodes_used=inodes_used,
        inodes_free=inodes_free,
        inodes_used_percent=inodes_used_percent,
        inodes_free_percent=inodes_free_percent,
    )


def device_metrics() -> list[MetricValue]:
    """Space and inode gauges per mount point, plus totals over all of them."""
    try:
        mounts = list_mount_points()
    except OSError as exc:
        log.error("collect device metrics fail: %s", exc)
        return []

    wanted = set(config.current().collector.mount_point)
    metrics: list[MetricValue] = []
    disk_total = disk_used = 0
    for fs_spec, fs_file, fs_vfstype in mounts:
        if wanted and fs_file not in wanted:
            log.debug("mount point %s not matched with config, ignored.", fs_file)
            continue
        try:
            du = build_device_usage(fs_spec, fs_file, fs_vfstype)
        except OSError as exc:
            log.error("measure %s fail: %s", fs_file, exc)
            continue
        if du.blocks_all == 0:
            continue

        disk_total += du.blocks_all
        disk_used += du.blocks_used
        tags = f"mount={du.fs_file},fstype={du.fs_vfstype}"
        metrics += [
            gauge_value("df.bytes.total", du.blocks_all, tags),
            gauge_value("df.bytes.used", du.blocks_used, tags),
            gauge_value("df.bytes.free", du.blocks_free, tags),
            gauge_value("df.bytes.used.percent", du.blocks_used_percent, tags),
            gauge_value("df.bytes.free.percent", du.blocks_free_percent, tags),
        ]
        if du.inodes_all == 0:
            continue
        metrics += [
            gauge_value("df.inodes.total", du.inodes_all, tags),
            gauge_value("df.inodes.used", du.inodes_used, tags),
            gauge_value("df.inodes.free", du.inodes_free, tags),
            gauge_value("df.inodes.used.percent", du.inodes_used_percent, tags),
            gauge_value("df.inodes.free.percent", du.inodes_free_percent, tags),
        ]

    if metrics and disk_total > 0:
        metrics += [
            gauge_value("df.statistics.total", float(disk_total)),
            gauge_value("df.statistics.used", float(disk_used)),
            gauge_value("df.statistics.used.percent", disk_used * 100.0 / disk_total),
        ]
    return metrics


def device_metrics_check() -> bool:
    """Whether any mount point can be listed."""
    try:
        mounts = list_mount_points()
    except OSError as exc:
        log.error("collect device metrics fail: %s", exc)
        return False
    return len(mounts) > 0