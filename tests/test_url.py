import json
import subprocess
from unittest import mock

from falconagent import config, runtime
from falconagent.collect.url import probe_url, url_metrics


def completed(stdout):
    return subprocess.CompletedProcess(["curl"], 0, stdout=stdout, stderr="")


def test_probe_ok_and_command():
    with mock.patch("subprocess.run", return_value=completed("200")) as run:
        assert probe_url("http://example.com/", "5") is True
    args = run.call_args.args[0]
    assert args[0] == "curl"
    assert args[-1] == "http://example.com/"
    assert args[args.index("-m") + 1] == "5"


def test_probe_non_200():
    with mock.patch("subprocess.run", return_value=completed("404")):
        assert probe_url("http://example.com/", "5") is False


def test_probe_empty_output():
    with mock.patch("subprocess.run", return_value=completed("")):
        assert probe_url("http://example.com/", "5") is False


def test_probe_command_fails():
    error = subprocess.CalledProcessError(28, ["curl"])
    with mock.patch("subprocess.run", side_effect=error):
        assert probe_url("http://example.com/", "5") is False


def test_url_metrics(tmp_path, monkeypatch):
    cfg = tmp_path / "cfg.json"
    cfg.write_text(json.dumps({"hostname": "host-a"}))
    config.parse_config(cfg)
    monkeypatch.setattr(
        runtime.state,
        "report_urls",
        {"http://example.com/up": "3", "http://example.com/down": "4"},
    )

    def fake_run(cmd, **kwargs):
        return completed("200" if cmd[-1].endswith("/up") else "500")

    with mock.patch("subprocess.run", side_effect=fake_run):
        metrics = url_metrics()
    assert [(m.metric, m.tags, m.value) for m in metrics] == [
        ("url.check.health", "url=http://example.com/up,timeout=3,src=host-a", 1),
        ("url.check.health", "url=http://example.com/down,timeout=4,src=host-a", 0),
    ]


def test_url_metrics_nothing_requested(monkeypatch):
    monkeypatch.setattr(runtime.state, "report_urls", {})
    assert url_metrics() == []