"""Routes that manage plugins, accept pushed metrics and run shell commands."""

from __future__ import annotations

import json
import logging
import os
import subprocess

from falconagent import config, plugins, runtime
from falconagent.metric import MetricValue, metric_from_dict
from falconagent.rpc import RpcError
from falconagent.web.server import Request, Response, Router, render_data_json

log = logging.getLogger(__name__)


def _bad_request(message: str) -> Response:
    return Response(status=400, body=(message + "\n").encode())


def _git(args: list[str], cwd: str) -> str | None:
    """Run git in ``cwd``; return an error description, or None on success."""
    try:
        subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True)
    except subprocess.CalledProcessError as exc:
        return f"exit status {exc.returncode}"
    except OSError as exc:
        return str(exc)
    return None


def _decode_metrics(body: bytes) -> list[MetricValue]:
    raw = json.loads(body)
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValueError("metrics must be a JSON array")
    return [metric_from_dict(item) for item in raw]


def register(router: Router) -> None:
    @router.route("/plugin/update")
    def plugin_update(request: Request) -> Response:
        cfg = config.current().plugin
        if not cfg.enabled:
            return Response(body=b"plugin not enabled")
        directory = cfg.dir.rstrip("/") or cfg.dir
        parent = os.path.dirname(directory) or "."
        try:
            os.makedirs(parent, exist_ok=True)
        except OSError as exc:
            log.warning("create %s fail: %s", parent, exc)
        if os.path.exists(directory):
            err = _git(["pull"], directory)
            if err is not None:
                return Response(body=f"git pull in dir:{directory} fail. error: {err}".encode())
        else:
            err = _git(["clone", cfg.git, os.path.basename(directory)], parent)
            if err is not None:
                return Response(body=f"git clone in dir:{parent} fail. error: {err}".encode())
        return Response(body=b"success")

    @router.route("/plugin/reset")
    def plugin_reset(request: Request) -> Response:
        cfg = config.current().plugin
        if not cfg.enabled:
            return Response(body=b"plugin not enabled")
        directory = cfg.dir
        if os.path.exists(directory):
            err = _git(["reset", "--hard"], directory)
            if err is not None:
                return Response(
                    body=f"git reset --hard in dir:{directory} fail. error: {err}".encode()
                )
        return Response(body=b"success")

    @router.route("/plugins")
    def list_running(request: Request) -> Response:
        return render_data_json(dict(plugins.manager.plugins))

    @router.route("/v1/push")
    def push(request: Request) -> Response:
        if not request.body:
            return _bad_request("body is blank")
        try:
            metrics = _decode_metrics(request.body)
        except (ValueError, TypeError):
            return _bad_request("connot decode body")
        try:
            runtime.send_to_transfer(metrics)
        except (RpcError, OSError, ValueError) as exc:
            log.warning("send pushed metrics fail: %s", exc)
        return Response(body=b"success")

    @router.route("/run")
    def run(request: Request) -> Response:
        if not config.current().http.backdoor:
            return Response(body=b"/run disabled")
        if not runtime.state.is_trustable(request.remote_addr):
            return Response(body=b"no privilege")
        if not request.body:
            return _bad_request("body is blank")
        command = request.body.decode("utf-8", errors="replace")
        try:
            result = subprocess.run(["sh", "-c", command], stdout=subprocess.PIPE)
        except OSError as exc:
            return Response(body=f"exec fail: {exc}".encode())
        if result.returncode != 0:
            return Response(body=f"exec fail: exit status {result.returncode}".encode())
        return Response(body=result.stdout)