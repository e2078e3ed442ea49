"""A small request router and the JSON rendering used by the HTTP routes."""

from __future__ import annotations

import dataclasses
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

log = logging.getLogger(__name__)

TEXT_PLAIN = "text/plain; charset=utf-8"
APPLICATION_JSON = "application/json; charset=UTF-8"


@dataclass
class Request:
    """An incoming HTTP request; ``remote_addr`` is ``host:port``."""

    path: str = "/"
    method: str = "GET"
    remote_addr: str = ""
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class Response:
    """An HTTP response ready to be written."""

    status: int = 200
    body: bytes = b""
    content_type: str = TEXT_PLAIN


Handler = Callable[[Request], Response]


def _error(message: str, status: int) -> Response:
    return Response(status=status, body=(message + "\n").encode())


class Router:
    """Maps paths to handlers; a pattern ending in ``/`` also serves everything below it."""

    def __init__(self) -> None:
        self._routes: dict[str, Handler] = {}

    def route(self, path: str) -> Callable[[Handler], Handler]:
        """Register the decorated handler for ``path``."""
        if not path.startswith("/"):
            raise ValueError(f"invalid route pattern: {path!r}")

        def decorator(handler: Handler) -> Handler:
            if path in self._routes:
                raise ValueError(f"multiple registrations for {path}")
            self._routes[path] = handler
            return handler

        return decorator

    def _match(self, path: str) -> Handler | None:
        handler = self._routes.get(path)
        if handler is not None:
            return handler
        best = ""
        for pattern in self._routes:
            if pattern.endswith("/") and path.startswith(pattern) and len(pattern) > len(best):
                best = pattern
        return self._routes.get(best) if best else None

    def dispatch(self, request: Request) -> Response:
        """Run the handler matching the request path, or answer 404."""
        handler = self._match(request.path)
        if handler is None:
            return _error("404 page not found", 404)
        return handler(request)


def _to_json(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    raise TypeError(f"{type(value).__name__} is not JSON serializable")


def render_json(value: Any) -> Response:
    """Serialize ``value`` as compact JSON; a failure answers 500."""
    try:
        body = json.dumps(value, default=_to_json, separators=(",", ":"))
    except (TypeError, ValueError) as exc:
        return _error(str(exc), 500)
    return Response(body=body.encode(), content_type=APPLICATION_JSON)


def render_data_json(data: Any) -> Response:
    """Wrap ``data`` in a success envelope."""
    return render_json({"msg": "success", "data": data})


def render_msg_json(msg: str) -> Response:
    return render_json({"msg": msg})


def auto_render(producer: Callable[[], Any]) -> Response:
    """Render what ``producer`` returns, or its error as a message."""
    try:
        data = producer()
    except Exception as exc:  # any failure becomes the reported message
        return render_msg_json(str(exc))
    return render_data_json(data)