"""Liveness metric of the agent itself."""

from __future__ import annotations

from falconagent.metric import MetricValue, gauge_value


def agent_metrics() -> list[MetricValue]:
    """Report that the agent is alive."""
    return [gauge_value("agent.alive", 1)]