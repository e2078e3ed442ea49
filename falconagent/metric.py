"""Metric values as sent to the transfer service."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class MetricValue:
    """One sample of one metric."""

    metric: str
    value: Any
    counter_type: str = "GAUGE"
    tags: str = ""
    endpoint: str = ""
    step: int = 0
    timestamp: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Return the wire form of this value."""
        return {
            "endpoint": self.endpoint,
            "metric": self.metric,
            "value": self.value,
            "step": self.step,
            "counterType": self.counter_type,
            "tags": self.tags,
            "timestamp": self.timestamp,
        }

    def __str__(self) -> str:
        return (
            f"<Endpoint:{self.endpoint}, Metric:{self.metric}, Type:{self.counter_type}, "
            f"Tags:{self.tags}, Step:{self.step}, Time:{self.timestamp}, Value:{self.value}>"
        )


def _field(data: dict, key: str, expected: type, default: Any) -> Any:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
        raise ValueError(f"metric field {key!r} has unexpected value {value!r}")
    return value


def metric_from_dict(data: Any) -> MetricValue:
    """Build a metric value from its wire form."""
    if not isinstance(data, dict):
        raise ValueError("metric value must be a JSON object")
    return MetricValue(
        metric=_field(data, "metric", str, ""),
        value=data.get("value"),
        counter_type=_field(data, "counterType", str, ""),
        tags=_field(data, "tags", str, ""),
        endpoint=_field(data, "endpoint", str, ""),
        step=_field(data, "step", int, 0),
        timestamp=_field(data, "timestamp", int, 0),
    )


def new_metric_value(metric: str, value: Any, data_type: str, *args: str) -> MetricValue:
    """Create a metric value; tags are joined with commas."""
    return MetricValue(metric=metric, value=value, counter_type=data_type, tags=",".join(args))


def gauge_value(metric: str, value: Any, *args: str) -> MetricValue:
    return new_metric_value(metric, value, "GAUGE", *args)


def counter_value(metric: str, value: Any, *args: str) -> MetricValue:
    return new_metric_value(metric, value, "COUNTER", *args)