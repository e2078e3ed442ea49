import json

import pytest

from falconagent import config
from falconagent.web import plugin
from falconagent.web.server import Request, Router


def _config(tmp_path, plugin_cfg=None, http_cfg=None):
    data = {
        "debug": False,
        "hostname": "test-host",
        "ip": "",
        "plugin": plugin_cfg
        or {"enabled": False, "dir": str(tmp_path / "plugin"), "git": "", "logs": str(tmp_path)},
        "heartbeat": {"enabled": False, "addr": "", "interval": 60, "timeout": 1000},
        "transfer": {"enabled": False, "addrs": [], "interval": 60, "timeout": 1000},
        "http": http_cfg or {"enabled": False, "listen": ":1988", "backdoor": False},
        "collector": {"ifacePrefix": [], "mountPoint": []},
        "default_tags": {},
        "ignore": {},
    }
    path = tmp_path / "cfg.json"
    path.write_text(json.dumps(data))
    config.parse_config(str(path))


@pytest.fixture
def router():
    r = Router()
    plugin.register(r)
    return r


def _backdoor(tmp_path):
    _config(tmp_path, http_cfg={"enabled": False, "listen": ":1988", "backdoor": True})


def test_push_blank_body(router, tmp_path):
    _config(tmp_path)
    resp = router.dispatch(Request(path="/v1/push", method="POST"))
    assert resp.status == 400
    assert resp.body == b"body is blank\n"


def test_push_undecodable_body(router, tmp_path):
    _config(tmp_path)
    resp = router.dispatch(Request(path="/v1/push", method="POST", body=b"{not json"))
    assert resp.status == 400
    assert resp.body == b"connot decode body\n"


def test_push_object_is_rejected(router, tmp_path):
    _config(tmp_path)
    resp = router.dispatch(Request(path="/v1/push", method="POST", body=b'{"metric": "x"}'))
    assert resp.status == 400


def test_push_accepts_metrics(router, tmp_path):
    _config(tmp_path)
    body = json.dumps([{"metric": "app.qps", "value": 3, "counterType": "GAUGE", "step": 60}])
    resp = router.dispatch(Request(path="/v1/push", method="POST", body=body.encode()))
    assert resp.status == 200
    assert resp.body == b"success"


def test_run_disabled(router, tmp_path):
    _config(tmp_path)
    resp = router.dispatch(Request(path="/run", remote_addr="127.0.0.1:5000", body=b"echo hi"))
    assert resp.body == b"/run disabled"


def test_run_untrusted(router, tmp_path):
    _backdoor(tmp_path)
    resp = router.dispatch(Request(path="/run", remote_addr="10.9.8.7:5000", body=b"echo hi"))
    assert resp.body == b"no privilege"


def test_run_blank_body(router, tmp_path):
    _backdoor(tmp_path)
    resp = router.dispatch(Request(path="/run", remote_addr="127.0.0.1:5000"))
    assert resp.status == 400
    assert resp.body == b"body is blank\n"


def test_run_executes_command(router, tmp_path):
    _backdoor(tmp_path)
    resp = router.dispatch(Request(path="/run", remote_addr="127.0.0.1:5000", body=b"echo hello"))
    assert resp.body == b"hello\n"


def test_run_reports_exit_status(router, tmp_path):
    _backdoor(tmp_path)
    resp = router.dispatch(Request(path="/run", remote_addr="127.0.0.1:5000", body=b"exit 3"))
    assert resp.body == b"exec fail: exit status 3"


def test_plugin_update_disabled(router, tmp_path):
    _config(tmp_path)
    assert router.dispatch(Request(path="/plugin/update")).body == b"plugin not enabled"
    assert router.dispatch(Request(path="/plugin/reset")).body == b"plugin not enabled"


def test_plugin_reset_without_directory(router, tmp_path):
    _config(
        tmp_path,
        plugin_cfg={"enabled": True, "dir": str(tmp_path / "missing"), "git": "", "logs": str(tmp_path)},
    )
    assert router.dispatch(Request(path="/plugin/reset")).body == b"success"


def test_plugin_update_pull_failure(router, tmp_path):
    plugin_dir = tmp_path / "plugin"
    plugin_dir.mkdir()
    _config(
        tmp_path,
        plugin_cfg={"enabled": True, "dir": str(plugin_dir), "git": "", "logs": str(tmp_path)},
    )
    body = router.dispatch(Request(path="/plugin/update")).body.decode()
    assert body.startswith(f"git pull in dir:{plugin_dir} fail. error: ")