import json
import socket
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from falconagent.consul import get_consul_info


class _Handler(BaseHTTPRequestHandler):
    def do_GET(self):
        entry = self.server.routes.get(self.path)
        if entry is None:
            self.send_response(404)
            self.end_headers()
            return
        status, payload = entry
        body = json.dumps(payload).encode()
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, *args):
        pass


@pytest.fixture
def consul_server():
    started = []

    def start(routes):
        server = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
        server.routes = routes
        threading.Thread(target=server.serve_forever, daemon=True).start()
        started.append(server)
        return server.server_address[1]

    yield start
    for server in started:
        server.shutdown()
        server.server_close()


CHECKS = {"service:web": {"Status": "passing", "ServiceID": "web"}}


def test_route_found(consul_server):
    port = consul_server(
        {
            "/v1/agent/checks": (200, CHECKS),
            "/v1/agent/services": (200, {"web": {"Tags": ["v1", "route_blue"]}}),
        }
    )
    assert get_consul_info(f"http://127.0.0.1:{port}") == ("web", "route_blue", "passing")


def test_address_without_scheme(consul_server):
    port = consul_server(
        {
            "/v1/agent/checks": (200, CHECKS),
            "/v1/agent/services": (200, {"web": {"Tags": ["route_green"]}}),
        }
    )
    assert get_consul_info(f"127.0.0.1:{port}") == ("web", "route_green", "passing")


def test_no_route_tag(consul_server):
    port = consul_server(
        {
            "/v1/agent/checks": (200, CHECKS),
            "/v1/agent/services": (200, {"web": {"Tags": ["v1"]}}),
        }
    )
    assert get_consul_info(f"http://127.0.0.1:{port}") == ("", "", "")


def test_no_checks(consul_server):
    port = consul_server(
        {
            "/v1/agent/checks": (200, {}),
            "/v1/agent/services": (200, {"web": {"Tags": ["route_blue"]}}),
        }
    )
    assert get_consul_info(f"http://127.0.0.1:{port}") == ("", "", "")


def test_server_error(consul_server):
    port = consul_server({"/v1/agent/checks": (500, {"error": "down"})})
    assert get_consul_info(f"http://127.0.0.1:{port}") == ("", "", "")


def test_unreachable_agent():
    probe = socket.socket()
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    assert get_consul_info(f"http://127.0.0.1:{port}") == ("", "", "")