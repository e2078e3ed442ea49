import pytest

from falconagent.metric import (
    MetricValue,
    counter_value,
    gauge_value,
    metric_from_dict,
    new_metric_value,
)


def test_gauge_without_tags():
    mv = gauge_value("agent.alive", 1)
    assert (mv.metric, mv.value, mv.counter_type, mv.tags) == ("agent.alive", 1, "GAUGE", "")


def test_counter_with_tags_joined():
    mv = counter_value("net.if.in.bytes", 10, "iface=eth0", "dc=east")
    assert mv.counter_type == "COUNTER"
    assert mv.tags == "iface=eth0,dc=east"


def test_new_metric_value_uses_given_type():
    mv = new_metric_value("x", 2.5, "DERIVE", "a=b")
    assert mv.counter_type == "DERIVE"
    assert mv.tags == "a=b"


def test_to_dict_wire_keys():
    mv = gauge_value("cpu.idle", 90.5, "a=b")
    wire = mv.to_dict()
    assert set(wire) == {"endpoint", "metric", "value", "step", "counterType", "tags", "timestamp"}
    assert wire["counterType"] == "GAUGE"
    assert wire["value"] == 90.5


def test_round_trip():
    mv = MetricValue("disk.io.util", 3.5, "GAUGE", "device=sda", "host-a", 60, 1500000000)
    assert metric_from_dict(mv.to_dict()) == mv


def test_from_dict_defaults():
    mv = metric_from_dict({"metric": "m", "value": 1})
    assert mv.endpoint == ""
    assert mv.counter_type == ""
    assert mv.step == 0


@pytest.mark.parametrize(
    "data",
    [
        {"metric": 5},
        {"metric": "m", "step": "60"},
        {"metric": "m", "timestamp": True},
        ["m"],
    ],
)
def test_from_dict_rejects_bad_values(data):
    with pytest.raises(ValueError):
        metric_from_dict(data)


def test_str_mentions_fields():
    text = str(gauge_value("load.1min", 0.5))
    assert text.startswith("<Endpoint:")
    assert "Metric:load.1min" in text