"""Liveness and version routes."""

from __future__ import annotations

from falconagent import config
from falconagent.web.server import Request, Response, Router


def register(router: Router) -> None:
    @router.route("/health")
    def health(request: Request) -> Response:
        return Response(body=b"ok")

    @router.route("/version")
    def version(request: Request) -> Response:
        return Response(body=config.VERSION.encode())