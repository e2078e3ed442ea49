import pytest

from falconagent.collect import disk
from falconagent.collect.disk import DiskStatsHistory, parse_disk_stats, should_handle_device

BEFORE = """\
   8       0 sda 100 10 2000 300 50 5 1000 200 0 400 500
   8       1 sda1 90 9 1800 280 45 4 900 180 0 380 480
   7       0 loop0 5 0 40 1 0 0 0 0 0 1 1
"""

AFTER = """\
   8       0 sda 150 12 2600 360 80 7 1800 260 1 900 1100 0 0 0 0 20 30
   8       1 sda1 95 9 1900 290 50 4 950 190 0 390 490 0 0 0 0 1 1
   7       0 loop0 6 0 48 1 0 0 0 0 0 1 1
"""


def _history(before_ts=10.0, after_ts=12.0):
    hist = DiskStatsHistory()
    hist.update(parse_disk_stats(BEFORE, before_ts))
    hist.update(parse_disk_stats(AFTER, after_ts))
    return hist


def test_parse_fields():
    stats = parse_disk_stats(BEFORE, 12.5)
    assert [s.device for s in stats] == ["sda", "sda1", "loop0"]
    sda = stats[0]
    assert (sda.major, sda.minor, sda.read_requests, sda.msec_weighted_total) == (8, 0, 100, 500)
    assert sda.ts == 12.5


def test_parse_newer_kernel_line():
    sda = parse_disk_stats(AFTER, 0.0)[0]
    assert sda.ios_in_progress == 1
    assert sda.msec_weighted_total == 1100


def test_parse_skips_short_lines():
    assert parse_disk_stats("8 0 sda 1 2\n\n", 0.0) == []


@pytest.mark.parametrize(
    "device,expected",
    [
        ("sda", True),
        ("vdb", True),
        ("sda1", False),
        ("xvda", True),
        ("xvd", False),
        ("fioa", True),
        ("nvme0n1", False),
        ("loop0", False),
    ],
)
def test_should_handle_device(device, expected):
    assert should_handle_device(device) is expected


def test_history_delta():
    hist = _history()
    before = parse_disk_stats(BEFORE, 0.0)[0]
    after = parse_disk_stats(AFTER, 0.0)[0]
    assert hist.delta("sda", "read_requests") == after.read_requests - before.read_requests
    assert hist.elapsed_ms("sda") == 2000
    assert list(hist) == ["loop0", "sda", "sda1"]


def test_delta_without_previous():
    hist = DiskStatsHistory()
    hist.update(parse_disk_stats(BEFORE, 0.0))
    assert hist.delta("sda", "read_requests") == 0
    assert hist.delta("nope", "read_requests") == 0
    assert hist.elapsed_ms("sda") == 0


def test_delta_unknown_field():
    with pytest.raises(ValueError):
        _history().delta("sda", "bogus")


def test_io_stats_metrics(monkeypatch):
    hist = _history()
    monkeypatch.setattr(disk, "history", hist)
    metrics = disk.io_stats_metrics()
    assert [m.metric for m in metrics] == [
        "disk.io.read_bytes", "disk.io.write_bytes", "disk.io.avgrq_sz", "disk.io.avgqu-sz",
        "disk.io.await", "disk.io.svctm", "disk.io.util",
    ]
    assert {m.tags for m in metrics} == {"device=sda"}
    assert metrics[0].value == hist.delta("sda", "read_sectors") * 512.0
    assert 0.0 <= metrics[-1].value <= 100.0


def test_util_is_capped(monkeypatch):
    hist = DiskStatsHistory()
    hist.update(parse_disk_stats("8 0 sda 1 0 0 0 0 0 0 0 0 0 0\n", 10.0))
    hist.update(parse_disk_stats("8 0 sda 2 0 0 0 0 0 0 0 0 1000 0\n", 10.5))
    monkeypatch.setattr(disk, "history", hist)
    util = disk.io_stats_metrics()[-1]
    assert util.metric == "disk.io.util"
    assert util.value == 100.0


def test_io_stats_for_page(monkeypatch):
    hist = _history()
    monkeypatch.setattr(disk, "history", hist)
    rows = disk.io_stats_for_page()
    assert len(rows) == 1
    row = rows[0]
    assert len(row) == 12
    assert row[0] == "sda"
    assert row[3] == str(hist.delta("sda", "read_requests"))
    assert row[-1].endswith("%")


def test_disk_io_metrics(monkeypatch, tmp_path):
    path = tmp_path / "diskstats"
    path.write_text(AFTER)
    monkeypatch.setattr(disk, "_DISKSTATS", path)
    metrics = disk.disk_io_metrics()
    assert len(metrics) == 11
    assert {m.tags for m in metrics} == {"device=sda"}
    assert all(m.counter_type == "COUNTER" for m in metrics)
    assert metrics[0].metric == "disk.io.read_requests"
    assert metrics[0].value == 150


def test_disk_io_metrics_missing_file(monkeypatch, tmp_path):
    monkeypatch.setattr(disk, "_DISKSTATS", tmp_path / "missing")
    assert disk.disk_io_metrics() == []


def test_update_disk_stats(monkeypatch, tmp_path):
    path = tmp_path / "diskstats"
    path.write_text(BEFORE)
    monkeypatch.setattr(disk, "_DISKSTATS", path)
    monkeypatch.setattr(disk, "history", DiskStatsHistory())
    disk.update_disk_stats()
    disk.update_disk_stats()
    assert "sda" in disk.history
    assert disk.history.delta("sda", "read_sectors") == 0