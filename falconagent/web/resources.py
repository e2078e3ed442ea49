"""Routes that report disks, kernel limits, memory and system load."""

from __future__ import annotations

import os
import time
from pathlib import Path

from falconagent import config
from falconagent.collect import df, disk, kernel, loadavg, memory
from falconagent.web.server import (
    Request,
    Response,
    Router,
    auto_render,
    render_data_json,
    render_msg_json,
)

_UPTIME = Path("/proc/uptime")
_UNITS = ("B", "K", "M", "G", "T")
_MIB = 1024 * 1024


def readable_size(value: float) -> str:
    """Format a byte count with one decimal and a binary unit letter."""
    divisor = 1.0
    for unit in _UNITS:
        if value < divisor * 1024:
            return f"{value / divisor:.1f}{unit}"
        divisor *= 1024
    return "TooLarge"


def _system_uptime() -> tuple[int, int, int]:
    fields = _UPTIME.read_text().split()
    if not fields:
        raise ValueError(f"empty {_UPTIME}")
    seconds = int(float(fields[0]))
    days, rest = divmod(seconds, 86400)
    hours, rest = divmod(rest, 3600)
    return days, hours, rest // 60


def _memory_figures() -> tuple[int, int, int]:
    mem = memory.read_mem_info()
    free = mem.mem_free + mem.buffers + mem.cached
    return mem.mem_total, mem.mem_total - free, free


def _df_rows() -> list[list[object]]:
    rows: list[list[object]] = []
    for fs_spec, fs_file, fs_vfstype in df.list_mount_points():
        try:
            du = df.build_device_usage(fs_spec, fs_file, fs_vfstype)
        except OSError:
            continue
        rows.append(
            [
                du.fs_spec,
                readable_size(du.blocks_all),
                readable_size(du.blocks_used),
                readable_size(du.blocks_free),
                f"{du.blocks_used_percent:.1f}%",
                du.fs_file,
                readable_size(du.inodes_all),
                readable_size(du.inodes_used),
                readable_size(du.inodes_free),
                f"{du.inodes_used_percent:.1f}%",
                du.fs_vfstype,
            ]
        )
    return rows


def register(router: Router) -> None:
    @router.route("/page/df")
    def page_df(request: Request) -> Response:
        try:
            rows = _df_rows()
        except OSError as exc:
            return render_msg_json(str(exc))
        return render_data_json(rows)

    @router.route("/page/diskio")
    def page_diskio(request: Request) -> Response:
        return render_data_json(disk.io_stats_for_page())

    @router.route("/proc/kernel/hostname")
    def kernel_hostname(request: Request) -> Response:
        return auto_render(config.hostname)

    @router.route("/proc/kernel/maxproc")
    def kernel_maxproc(request: Request) -> Response:
        return auto_render(kernel.kernel_max_proc)

    @router.route("/proc/kernel/maxfiles")
    def kernel_maxfiles(request: Request) -> Response:
        return auto_render(kernel.kernel_max_files)

    @router.route("/proc/kernel/version")
    def kernel_version(request: Request) -> Response:
        return auto_render(lambda: os.uname().release)

    @router.route("/page/memory")
    def page_memory(request: Request) -> Response:
        try:
            total, used, free = _memory_figures()
        except (OSError, ValueError) as exc:
            return render_msg_json(str(exc))
        return render_data_json([total // _MIB, used // _MIB, free // _MIB])

    @router.route("/proc/memory")
    def proc_memory(request: Request) -> Response:
        try:
            total, used, free = _memory_figures()
        except (OSError, ValueError) as exc:
            return render_msg_json(str(exc))
        return render_data_json({"total": total, "free": free, "used": used})

    @router.route("/system/date")
    def system_date(request: Request) -> Response:
        return render_data_json(time.strftime("%Y-%m-%d %H:%M:%S"))

    @router.route("/page/system/uptime")
    def page_uptime(request: Request) -> Response:
        return auto_render(lambda: "%d days %d hours %d minutes" % _system_uptime())

    @router.route("/proc/system/uptime")
    def proc_uptime(request: Request) -> Response:
        try:
            days, hours, mins = _system_uptime()
        except (OSError, ValueError) as exc:
            return render_msg_json(str(exc))
        return render_data_json({"days": days, "hours": hours, "mins": mins})

    @router.route("/page/system/loadavg")
    def page_loadavg(request: Request) -> Response:
        try:
            loads = os.getloadavg()
        except OSError as exc:
            return render_msg_json(str(exc))
        cpu_num = os.cpu_count() or 1
        return render_data_json([[load, int(load * 100.0 / cpu_num)] for load in loads])

    @router.route("/proc/system/loadavg")
    def proc_loadavg(request: Request) -> Response:
        return auto_render(loadavg.read_load_avg)