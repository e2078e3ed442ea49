import pytest

from falconagent.collect.memory import MemInfo, mem_metrics, parse_mem_info

SAMPLE = """MemTotal:        1000 kB
MemFree:          200 kB
MemAvailable:     500 kB
Buffers:           50 kB
Cached:           100 kB
SwapCached:         0 kB
SwapTotal:        400 kB
SwapFree:         100 kB
"""


def test_parse_converts_kilobytes():
    info = parse_mem_info(SAMPLE)
    assert info.mem_total == 1000 * 1024
    assert info.mem_free == 200 * 1024
    assert info.swap_free == 100 * 1024


def test_swap_used_invariant():
    info = parse_mem_info(SAMPLE)
    assert info.swap_used == info.swap_total - info.swap_free


def test_missing_fields_default_to_zero():
    info = parse_mem_info("MemTotal: 8 kB\n")
    assert info.mem_available == 0
    assert info.swap_total == 0
    assert info == MemInfo(mem_total=8 * 1024)


def test_empty_value_raises():
    with pytest.raises(ValueError):
        parse_mem_info("MemTotal:\n")


def test_mem_metrics_names_and_balance():
    metrics = mem_metrics()
    names = [m.metric for m in metrics]
    assert names == [
        "mem.memtotal",
        "mem.memused",
        "mem.memfree",
        "mem.swaptotal",
        "mem.swapused",
        "mem.swapfree",
        "mem.memfree.percent",
        "mem.memused.percent",
        "mem.swapfree.percent",
        "mem.swapused.percent",
    ]
    values = {m.metric: m.value for m in metrics}
    assert values["mem.memtotal"] == values["mem.memused"] + values["mem.memfree"]
    assert values["mem.memfree.percent"] + values["mem.memused.percent"] == pytest.approx(100.0)