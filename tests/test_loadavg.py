import os

from falconagent.collect import loadavg


def test_read_load_avg_is_non_negative():
    load = loadavg.read_load_avg()
    assert min(load.avg_1min, load.avg_5min, load.avg_15min) >= 0


def test_metrics_follow_load_values(monkeypatch):
    monkeypatch.setattr(os, "getloadavg", lambda: (0.5, 1.0, 1.5))
    metrics = loadavg.load_avg_metrics()
    assert [m.metric for m in metrics] == ["load.1min", "load.5min", "load.15min"]
    assert [m.value for m in metrics] == [0.5, 1.0, 1.5]
    assert {m.counter_type for m in metrics} == {"GAUGE"}


def test_metrics_empty_when_unavailable(monkeypatch):
    def fail():
        raise OSError("load average unobtainable")

    monkeypatch.setattr(os, "getloadavg", fail)
    assert loadavg.load_avg_metrics() == []