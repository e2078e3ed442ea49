"""Counting of running processes that match requested names or command lines."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from falconagent import config, runtime
from falconagent.metric import MetricValue, gauge_value

log = logging.getLogger(__name__)

_PROC = Path("/proc")

MATCH_NAME = 1
MATCH_CMDLINE = 2


@dataclass(frozen=True)
class Proc:
    pid: int
    name: str
    cmdline: str


def _read_proc(pid_dir: Path) -> Proc:
    name = ""
    for line in (pid_dir / "status").read_text(errors="replace").splitlines():
        if line.startswith("Name:"):
            name = line[len("Name:"):].strip()
            break
    raw = (pid_dir / "cmdline").read_bytes()
    cmdline = raw.replace(b"\0", b" ").decode("utf-8", errors="replace").strip()
    return Proc(pid=int(pid_dir.name), name=name, cmdline=cmdline)


def all_procs() -> list[Proc]:
    """Every running process, ordered by pid; those that vanish meanwhile are skipped."""
    procs: list[Proc] = []
    for entry in _PROC.iterdir():
        if not entry.name.isdigit():
            continue
        try:
            procs.append(_read_proc(entry))
        except OSError:
            continue
    procs.sort(key=lambda p: p.pid)
    return procs


def is_a(proc: Proc, matcher: Mapping[int, str]) -> bool:
    """Whether ``proc`` has the exact name and contains the command line given."""
    for key, val in matcher.items():
        if key == MATCH_NAME and val != proc.name:
            return False
        if key == MATCH_CMDLINE and val not in proc.cmdline:
            return False
    return True


def proc_metrics() -> list[MetricValue]:
    """Number of matching processes for each requested process tag set."""
    reports = dict(runtime.state.report_procs)
    if not reports:
        return []
    try:
        procs = all_procs()
    except OSError as exc:
        log.warning("list processes fail: %s", exc)
        return []
    return [
        gauge_value(config.PROC_NUM, sum(1 for p in procs if is_a(p, matcher)), tags)
        for tags, matcher in reports.items()
    ]