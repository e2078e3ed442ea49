"""System load average metrics."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from falconagent.metric import MetricValue, gauge_value

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadAvg:
    avg_1min: float
    avg_5min: float
    avg_15min: float


def read_load_avg() -> LoadAvg:
    """Read the 1, 5 and 15 minute load averages."""
    one, five, fifteen = os.getloadavg()
    return LoadAvg(one, five, fifteen)


def load_avg_metrics() -> list[MetricValue]:
    """Return load average gauges, or nothing when they cannot be read."""
    try:
        load = read_load_avg()
    except OSError as exc:
        log.warning("read load average fail: %s", exc)
        return []
    return [
        gauge_value("load.1min", load.avg_1min),
        gauge_value("load.5min", load.avg_5min),
        gauge_value("load.15min", load.avg_15min),
    ]