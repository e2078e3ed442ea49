"""CPU routes."""

from __future__ import annotations

import os
from pathlib import Path

from falconagent.collect import cpu
from falconagent.web.server import (
    Request,
    Response,
    Router,
    auto_render,
    render_data_json,
    render_msg_json,
)

_CPUINFO = Path("/proc/cpuinfo")

_PAGE_ORDER = (
    "idle",
    "busy",
    "user",
    "nice",
    "system",
    "iowait",
    "irq",
    "softirq",
    "steal",
    "guest",
)


def _parse_cpu_mhz(text: str) -> list[str]:
    mhz: list[str] = []
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        if sep and key.strip() == "cpu MHz":
            mhz.append(value.strip())
    return mhz


def _cpu_mhz() -> list[str]:
    return _parse_cpu_mhz(_CPUINFO.read_text())


def register(router: Router) -> None:
    @router.route("/proc/cpu/num")
    def cpu_num(request: Request) -> Response:
        return render_data_json(os.cpu_count())

    @router.route("/proc/cpu/mhz")
    def cpu_mhz(request: Request) -> Response:
        return auto_render(_cpu_mhz)

    @router.route("/page/cpu/usage")
    def page_usage(request: Request) -> Response:
        if not cpu.cpu_prepared():
            return render_msg_json("not prepared")
        usage = cpu.history.usage()
        return render_data_json([[f"{usage[name]:.1f}%" for name in _PAGE_ORDER]])

    @router.route("/proc/cpu/usage")
    def proc_usage(request: Request) -> Response:
        if not cpu.cpu_prepared():
            return render_msg_json("not prepared")
        return render_data_json(cpu.history.usage())