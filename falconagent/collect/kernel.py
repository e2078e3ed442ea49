"""Kernel limits and file handle usage."""

from __future__ import annotations

import logging
from pathlib import Path

from falconagent.metric import MetricValue, gauge_value

log = logging.getLogger(__name__)

_PROC_SYS = Path("/proc/sys")


def _read_first_int(path: Path) -> int:
    parts = path.read_text().split()
    if not parts:
        raise ValueError(f"{path} is empty")
    return int(parts[0])


def kernel_max_files() -> int:
    """System-wide limit on open files."""
    return _read_first_int(_PROC_SYS / "fs" / "file-max")


def kernel_max_proc() -> int:
    """Highest process id the kernel hands out."""
    return _read_first_int(_PROC_SYS / "kernel" / "pid_max")


def kernel_allocate_files() -> int:
    """Number of file handles currently allocated."""
    return _read_first_int(_PROC_SYS / "fs" / "file-nr")


def kernel_metrics() -> list[MetricValue]:
    """Kernel gauges; stops at the first value that cannot be read."""
    metrics: list[MetricValue] = []
    try:
        max_files = kernel_max_files()
        metrics.append(gauge_value("kernel.maxfiles", max_files))
        metrics.append(gauge_value("kernel.maxproc", kernel_max_proc()))
        allocated = kernel_allocate_files()
    except (OSError, ValueError) as exc:
        log.warning("read kernel values fail: %s", exc)
        return metrics
    metrics.append(gauge_value("kernel.files.allocated", allocated))
    metrics.append(gauge_value("kernel.files.left", max_files - allocated))
    return metrics