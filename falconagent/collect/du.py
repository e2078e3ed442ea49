"""Disk usage of directories requested by the heartbeat server."""

from __future__ import annotations

import logging
import re
import subprocess

from falconagent import config, runtime
from falconagent.metric import MetricValue, gauge_value

log = logging.getLogger(__name__)

_DIGITS = re.compile(r"[0-9]+")


def parse_du_output(out: str) -> int:
    """Size in bytes from a line of ``du -bs`` output."""
    parts = out.split()
    if len(parts) < 2:
        raise ValueError(f"unexpected du output: {out!r}")
    if not _DIGITS.fullmatch(parts[0]):
        raise ValueError(f"cannot parse du size: {parts[0]!r}")
    return int(parts[0])


def du_metrics() -> list[MetricValue]:
    """A ``du.bs`` gauge for every configured path that can be measured."""
    metrics: list[MetricValue] = []
    for path in list(runtime.state.du_paths):
        try:
            result = subprocess.run(
                ["du", "-bs", path], capture_output=True, text=True, check=True
            )
        except (OSError, subprocess.CalledProcessError) as exc:
            log.warning("du -bs %s fail %s", path, exc)
            continue
        try:
            size = parse_du_output(result.stdout.strip())
        except ValueError:
            log.warning("cannot parse du -bs %s output", path)
            continue
        metrics.append(gauge_value(config.DU_BS, size, "path=" + path))
    return metrics