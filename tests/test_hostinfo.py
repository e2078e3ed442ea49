import json

from falconagent import config, hostinfo, runtime


def _install(tmp_path, data):
    path = tmp_path / "cfg.json"
    path.write_text(json.dumps(data))
    return config.parse_config(path)


def test_redhatish_version():
    assert hostinfo.get_redhatish_version(["CentOS Linux release 7.9.2009 (Core)"]) == "7.9.2009"


def test_redhatish_version_rawhide():
    assert hostinfo.get_redhatish_version(["Fedora release 40 (Rawhide)"]) == "rawhide"


def test_redhatish_version_missing():
    assert hostinfo.get_redhatish_version(["Something else"]) == ""


def test_redhatish_platform():
    assert hostinfo.get_redhatish_platform(["Red Hat Enterprise Linux release 8.1"]) == "redhat"
    assert hostinfo.get_redhatish_platform(["CentOS Linux release 7"]) == "centos"


def test_get_lsb():
    lines = ["DISTRIB_ID=Ubuntu", "DISTRIB_RELEASE=22.04", "garbage", "DISTRIB_CODENAME=jammy"]
    assert hostinfo.get_lsb(lines) == ("Ubuntu", "22.04")


def test_get_lsb_empty():
    assert hostinfo.get_lsb([]) == ("", "")


def test_platform_info_system_release(tmp_path):
    (tmp_path / "system-release").write_text("CentOS Linux release 7.9.2009 (Core)\n")
    (tmp_path / "lsb-release").write_text("DISTRIB_ID=Ubuntu\n")
    assert hostinfo.platform_info(str(tmp_path) + "/") == ("1", "centos", "7.9.2009")


def test_platform_info_lsb(tmp_path):
    (tmp_path / "lsb-release").write_text("DISTRIB_ID=Ubuntu\nDISTRIB_RELEASE=22.04\n")
    assert hostinfo.platform_info(str(tmp_path)) == ("1", "Ubuntu", "22.04")


def test_platform_info_nothing(tmp_path):
    assert hostinfo.platform_info(str(tmp_path)) == ("1", "", "")


def test_cpu_info_shape():
    num, mhz, module, host_type = hostinfo.cpu_info()
    assert num >= 1
    assert mhz >= 0
    assert host_type in ("1", "2")


def test_mem_total_positive():
    assert hostinfo.mem_total() >= 1
    assert hostinfo.disk_total() >= hostinfo.mem_total()


def test_init_host_info(tmp_path):
    _install(tmp_path, {"hostname": "node-a", "ip": "192.0.2.7"})
    info = hostinfo.init_host_info()
    assert info["bk_host_name"] == "node-a"
    assert info["bk_host_innerip"] == "192.0.2.7"
    assert info["falcon_agent_version"] == config.VERSION
    assert info["import_from"] == "2"
    assert info["online"] is True
    assert runtime.state.host_info is info


def test_plugin_version_disabled(tmp_path):
    _install(tmp_path, {"plugin": {"enabled": False}})
    assert hostinfo.get_curr_plugin_version() == "plugin not enabled"


def test_plugin_version_missing_dir(tmp_path):
    _install(tmp_path, {"plugin": {"enabled": True, "dir": str(tmp_path / "nope")}})
    assert hostinfo.get_curr_plugin_version() == "plugin dir not existent"