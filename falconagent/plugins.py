"""Discovery, scheduling and execution of plugin scripts."""

from __future__ import annotations

import json
import logging
import os
import re
import signal
import subprocess
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path

from falconagent import config, runtime
from falconagent.metric import MetricValue, metric_from_dict

log = logging.getLogger(__name__)

_CYCLE = re.compile(r"[+-]?\d+")


@dataclass
class Plugin:
    """A script to run every ``cycle`` seconds; ``file_path`` is relative to the plugin dir."""

    file_path: str
    mtime: int
    cycle: int


def list_plugins(relative_path: str) -> dict[str, Plugin]:
    """Plugins directly under ``relative_path``, keyed like ``sys/ntp/60_ntp.py``.

    A plugin file is named ``<cycle>_<anything>``.
    """
    found: dict[str, Plugin] = {}
    if not relative_path:
        return found
    directory = Path(config.current().plugin.dir, relative_path)
    if not directory.is_dir():
        return found
    try:
        entries = list(os.scandir(directory))
    except OSError:
        log.warning("can not list files under %s", directory)
        return found
    for entry in entries:
        try:
            if entry.is_dir():
                continue
            mtime = int(entry.stat().st_mtime)
        except OSError:
            continue
        parts = entry.name.split("_")
        if len(parts) < 2 or not _CYCLE.fullmatch(parts[0]):
            continue
        fpath = os.path.normpath(os.path.join(relative_path, entry.name))
        found[fpath] = Plugin(file_path=fpath, mtime=mtime, cycle=int(parts[0]))
    return found


class PluginScheduler:
    """Runs one plugin periodically on a background thread."""

    def __init__(
        self,
        plugin: Plugin,
        runner: Callable[[Plugin], object] | None = None,
        interval: float | None = None,
    ) -> None:
        self.plugin = plugin
        self.interval = plugin.cycle if interval is None else interval
        self._runner = runner or plugin_run
        self._quit = threading.Event()
        self._thread: threading.Thread | None = None

    def _loop(self) -> None:
        while not self._quit.wait(self.interval):
            try:
                self._runner(self.plugin)
            except Exception:  # a failing run must not end the schedule
                log.exception("plugin %s run failed", self.plugin.file_path)

    def schedule(self) -> None:
        """Start running the plugin every interval."""
        self._thread = threading.Thread(
            target=self._loop, name=f"plugin:{self.plugin.file_path}", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        """Stop the schedule; a run in progress is allowed to finish."""
        self._quit.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=1.0)


class PluginManager:
    """The set of active plugins and their schedulers."""

    def __init__(
        self, scheduler_factory: Callable[[Plugin], PluginScheduler] = PluginScheduler
    ) -> None:
        self.plugins: dict[str, Plugin] = {}
        self.schedulers: dict[str, PluginScheduler] = {}
        self._factory = scheduler_factory
        self._lock = threading.RLock()

    def _delete(self, key: str) -> None:
        scheduler = self.schedulers.pop(key, None)
        if scheduler is not None:
            scheduler.stop()
        self.plugins.pop(key, None)

    def remove_unused(self, new_plugins: Mapping[str, Plugin]) -> None:
        """Drop plugins that are gone from ``new_plugins`` or whose file changed."""
        with self._lock:
            for key, plugin in list(self.plugins.items()):
                new = new_plugins.get(key)
                if new is None or plugin.mtime != new.mtime:
                    log.info("delete plugin: %s", key)
                    self._delete(key)

    def add_new(self, new_plugins: Mapping[str, Plugin]) -> None:
        """Start plugins that are new or whose file changed."""
        with self._lock:
            for fpath, plugin in new_plugins.items():
                current = self.plugins.get(fpath)
                if current is not None and current.mtime == plugin.mtime:
                    continue
                old = self.schedulers.pop(fpath, None)
                if old is not None:
                    old.stop()
                log.info("add plugin: %s %s", fpath, plugin)
                self.plugins[fpath] = plugin
                scheduler = self._factory(plugin)
                self.schedulers[fpath] = scheduler
                scheduler.schedule()

    def clear(self) -> None:
        """Stop and forget every plugin."""
        with self._lock:
            for key in list(self.plugins):
                self._delete(key)


manager = PluginManager()


def _kill_group(proc: subprocess.Popen) -> None:
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        proc.kill()


def plugin_run(plugin: Plugin) -> list[MetricValue] | None:
    """Run a plugin once and forward the metrics it prints as JSON.

    Returns the metrics sent, or None when the run produced none.
    """
    cfg = config.current()
    timeout = max(plugin.cycle * 1000 - 500, 0) / 1000
    fpath = os.path.join(cfg.plugin.dir, plugin.file_path)
    if not os.path.exists(fpath):
        log.warning("no such plugin: %s", fpath)
        return None

    debug = cfg.debug
    if debug:
        log.debug("%s running...", fpath)
    try:
        proc = subprocess.Popen(
            [fpath],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            start_new_session=True,
        )
    except OSError as exc:
        log.error("exec plugin %s fail. error: %s", fpath, exc)
        return None
    if debug:
        log.debug("plugin started: %s", fpath)

    timed_out = False
    try:
        stdout, stderr = proc.communicate(timeout=timeout)
    except subprocess.TimeoutExpired:
        timed_out = True
        _kill_group(proc)
        stdout, stderr = proc.communicate()

    err_text = stderr.decode("utf-8", errors="replace")
    if err_text:
        log_file = Path(cfg.plugin.log_dir, plugin.file_path + ".stderr.log")
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            log_file.write_text(err_text)
        except OSError as exc:
            log.error("write log to %s fail, error: %s", log_file, exc)

    if timed_out:
        if debug:
            log.info("timeout and kill process %s successfully", fpath)
        return None

    if proc.returncode != 0:
        log.error("exec plugin %s fail. exit status %d", fpath, proc.returncode)
        return None

    if not stdout:
        if debug:
            log.debug("stdout of %s is blank", fpath)
        return None

    try:
        data = json.loads(stdout)
        if data is None:
            metrics: list[MetricValue] = []
        elif isinstance(data, list):
            metrics = [metric_from_dict(item) for item in data]
        else:
            raise ValueError("expected a JSON array")
    except ValueError as exc:
        log.error(
            "json decode of stdout of %s fail. error:%s stdout: \n%s",
            fpath,
            exc,
            stdout.decode("utf-8", errors="replace"),
        )
        return None

    runtime.send_to_transfer(metrics)
    return metrics