"""Command-line entry point: load the configuration, start the jobs and serve HTTP."""

from __future__ import annotations

import argparse
import logging
import os
import sys
import threading
from collections.abc import Sequence
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import urlsplit

from falconagent import config, cron, hostinfo, runtime
from falconagent.collect import registry
from falconagent.web import admin, cpu, health, page, plugin, resources
from falconagent.web.server import Request, Router

log = logging.getLogger(__name__)


def build_router() -> Router:
    """A router with every HTTP route of the agent."""
    router = Router()
    for module in (admin, cpu, health, resources, plugin, page):
        module.register(router)
    return router


def _handler_for(router: Router) -> type[BaseHTTPRequestHandler]:
    class Handler(BaseHTTPRequestHandler):
        def _respond(self, with_body: bool) -> None:
            length = int(self.headers.get("Content-Length") or 0)
            body = self.rfile.read(length) if length > 0 else b""
            request = Request(
                path=urlsplit(self.path).path or "/",
                method=self.command,
                remote_addr=f"{self.client_address[0]}:{self.client_address[1]}",
                body=body,
                headers=dict(self.headers.items()),
            )
            response = router.dispatch(request)
            self.send_response(response.status)
            self.send_header("Content-Type", response.content_type)
            self.send_header("Content-Length", str(len(response.body)))
            self.end_headers()
            if with_body:
                self.wfile.write(response.body)

        def do_GET(self) -> None:
            self._respond(True)

        do_POST = do_PUT = do_DELETE = do_PATCH = do_GET

        def do_HEAD(self) -> None:
            self._respond(False)

        def log_message(self, format: str, *args: object) -> None:
            log.debug("%s - %s", self.address_string(), format % args)

    return Handler


def _make_server(addr: str, router: Router) -> ThreadingHTTPServer:
    host, _, port = addr.rpartition(":")
    if not port.isdigit():
        raise ValueError(f"invalid listen address: {addr!r}")
    server = ThreadingHTTPServer((host, int(port)), _handler_for(router))
    server.daemon_threads = True
    return server


def serve() -> bool:
    """Serve HTTP on the configured address; False when HTTP is not enabled."""
    http_cfg = config.current().http
    if not http_cfg.enabled or not http_cfg.listen:
        return False
    with _make_server(http_cfg.listen, build_router()) as server:
        log.info("listening %s", http_cfg.listen)
        server.serve_forever()
    return True


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="falcon-agent")
    parser.add_argument("-c", dest="cfg", default="cfg.json", help="configuration file")
    parser.add_argument("-v", dest="version", action="store_true", help="show version")
    parser.add_argument("-check", dest="check", action="store_true", help="check collector")
    return parser


def _start_agent(cfg_path: str) -> None:
    config.init_log("debug" if config.current().debug else "info")
    runtime.init_root_dir()
    page.root_dir = os.getcwd()
    admin.config_file = cfg_path
    runtime.init_local_ip()
    runtime.init_rpc_clients()
    info = hostinfo.init_host_info()
    if info is not None:
        runtime.state.host_info = info
    registry.build_mappers()

    cron.init_data_history()
    cron.report_agent_status()
    cron.sync_mine_plugins()
    cron.sync_builtin_metrics()
    cron.sync_trustable_ips()
    cron.collect()


def main(argv: Sequence[str] | None = None) -> int:
    args = _parser().parse_args(argv)

    if args.version:
        print(config.VERSION)
        return 0

    if args.check:
        registry.check_collector()
        return 0

    try:
        config.parse_config(args.cfg)
    except (config.ConfigError, OSError, ValueError) as exc:
        print(f"read config file: {args.cfg} fail: {exc}", file=sys.stderr)
        return 1

    _start_agent(args.cfg)

    try:
        served = serve()
    except (OSError, ValueError) as exc:
        log.error("http server fail: %s", exc)
        return 1
    if not served:
        threading.Event().wait()
    return 0


if __name__ == "__main__":
    sys.exit(main())