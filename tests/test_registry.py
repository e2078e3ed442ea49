import json

from falconagent import config
from falconagent.collect import registry
from falconagent.collect.agent import agent_metrics
from falconagent.collect.df import device_metrics
from falconagent.collect.du import du_metrics
from falconagent.collect.netstat import socket_stat_summary_metrics, udp_metrics
from falconagent.collect.ports import port_metrics
from falconagent.collect.url import url_metrics


def install_config(tmp_path, interval):
    cfg = tmp_path / "cfg.json"
    cfg.write_text(json.dumps({"transfer": {"enabled": True, "interval": interval}}))
    config.parse_config(cfg)


def test_build_mappers_groups(tmp_path):
    install_config(tmp_path, 60)
    mappers = registry.build_mappers()
    assert registry.mappers is mappers
    assert [m.interval for m in mappers] == [60, 60, 60, 60, 60]
    assert len(mappers[0].fns) == 11
    assert mappers[0].fns[0] is agent_metrics
    assert mappers[0].fns[-1] is udp_metrics
    assert mappers[1].fns == [device_metrics]
    assert mappers[2].fns == [port_metrics, socket_stat_summary_metrics]
    assert mappers[3].fns == [du_metrics]
    assert mappers[4].fns == [url_metrics]


def test_build_mappers_follows_config(tmp_path):
    install_config(tmp_path, 30)
    assert {m.interval for m in registry.build_mappers()} == {30}


def test_check_collector_reports_every_check(capsys):
    results = registry.check_collector()
    assert set(results) == {
        "kernel  ",
        "df.bytes",
        "net.if  ",
        "loadavg ",
        "cpustat ",
        "disk.io ",
        "memory  ",
        "netstat ",
        "ss -s   ",
        "ss -tln ",
        "ps aux  ",
        "du -bs  ",
    }
    lines = capsys.readouterr().out.splitlines()
    assert lines == [f"{k} ... {'ok' if v else 'fail'}" for k, v in results.items()]
    assert results["ps aux  "] is True
    assert results["memory  "] is True