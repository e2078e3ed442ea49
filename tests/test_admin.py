import json
import os
from unittest import mock

import pytest

from falconagent import config, runtime
from falconagent.web import admin
from falconagent.web.server import Request, Router


@pytest.fixture
def router(monkeypatch):
    monkeypatch.setattr(runtime, "state", runtime.AgentState())
    r = Router()
    admin.register(r)
    return r


def _payload(response):
    return json.loads(response.body.decode())


def _write_config(tmp_path, debug):
    data = {
        "debug": debug,
        "hostname": "agent-host",
        "ip": "",
        "plugin": {"enabled": False, "dir": str(tmp_path), "git": "", "logs": str(tmp_path)},
        "heartbeat": {"enabled": False, "addr": "", "interval": 60, "timeout": 1000},
        "transfer": {"enabled": False, "addrs": [], "interval": 60, "timeout": 1000},
        "http": {"enabled": False, "listen": "", "backdoor": False},
        "collector": {"ifacePrefix": [], "mountPoint": []},
        "default_tags": {},
        "ignore": {},
    }
    path = tmp_path / "cfg.json"
    path.write_text(json.dumps(data))
    return str(path)


def test_ips_lists_trusted_addresses(router):
    runtime.state.update_trustable_ips("10.0.0.1,10.0.0.2")
    payload = _payload(router.dispatch(Request(path="/ips")))
    assert payload == {"msg": "success", "data": ["10.0.0.1", "10.0.0.2"]}


def test_exit_refused_for_untrusted(router):
    response = router.dispatch(Request(path="/exit", remote_addr="10.9.9.9:4000"))
    assert response.body == b"no privilege"


def test_exit_schedules_shutdown_for_localhost(router):
    with mock.patch("threading.Timer") as timer:
        response = router.dispatch(Request(path="/exit", remote_addr="127.0.0.1:4000"))
    assert response.body == b"exiting..."
    assert timer.call_count == 1
    call = timer.call_args
    assert call.args[0] == 1.0
    assert call.args[1].__name__ == "_exit"
    assert call.kwargs == {"args": (0,)}
    timer.return_value.start.assert_called_once_with()


def test_reload_refused_for_untrusted(router):
    response = router.dispatch(Request(path="/config/reload", remote_addr="10.9.9.9:1"))
    assert response.body == b"no privilege"


def test_reload_reads_config_file(router, tmp_path, monkeypatch):
    config.parse_config(_write_config(tmp_path, False))
    assert config.current().debug is False
    other = tmp_path / "second"
    other.mkdir()
    monkeypatch.setattr(admin, "config_file", _write_config(other, True))
    runtime.state.update_trustable_ips("10.0.0.5")
    response = router.dispatch(Request(path="/config/reload", remote_addr="10.0.0.5:9000"))
    assert _payload(response)["msg"] == "success"
    assert config.current().debug is True


def test_workdir_is_absolute_directory(router):
    payload = _payload(router.dispatch(Request(path="/workdir")))
    assert payload["msg"] == "success"
    assert os.path.isabs(payload["data"])