"""Administrative routes: exit, configuration reload, working directory, trusted addresses."""

from __future__ import annotations

import os
import sys
import threading

from falconagent import config, runtime
from falconagent.web.server import (
    Request,
    Response,
    Router,
    render_data_json,
    render_msg_json,
)

# Path reloaded by /config/reload; set at start-up to the file given on the command line.
config_file = "cfg.json"

_NO_PRIVILEGE = b"no privilege"


def register(router: Router) -> None:
    @router.route("/exit")
    def exit_agent(request: Request) -> Response:
        if not runtime.state.is_trustable(request.remote_addr):
            return Response(body=_NO_PRIVILEGE)
        timer = threading.Timer(1.0, os._exit, args=(0,))
        timer.daemon = True
        timer.start()
        return Response(body=b"exiting...")

    @router.route("/config/reload")
    def reload_config(request: Request) -> Response:
        if not runtime.state.is_trustable(request.remote_addr):
            return Response(body=_NO_PRIVILEGE)
        try:
            config.parse_config(config_file)
        except (config.ConfigError, OSError, ValueError) as exc:
            return render_msg_json(str(exc))
        return render_data_json(config.current())

    @router.route("/workdir")
    def workdir(request: Request) -> Response:
        return render_data_json(os.path.dirname(os.path.abspath(sys.argv[0])))

    @router.route("/ips")
    def ips(request: Request) -> Response:
        return render_data_json(list(runtime.state.trustable_ips))