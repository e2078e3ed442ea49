"""JSON-RPC client over a single, lazily re-established TCP connection."""

from __future__ import annotations

import codecs
import itertools
import json
import logging
import socket
import threading
import time
from typing import Any

log = logging.getLogger(__name__)


class RpcError(Exception):
    """Raised when a remote call cannot be completed."""


class SingleConnRpcClient:
    """A JSON-RPC client that keeps one connection and reconnects on failure."""

    def __init__(
        self,
        rpc_server: str,
        timeout: float = 1.0,
        *,
        call_timeout: float = 10.0,
        max_retries: int = 3,
        backoff_base: float = 2.0,
    ) -> None:
        self.rpc_server = rpc_server
        self.timeout = timeout
        self.call_timeout = call_timeout
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self._lock = threading.RLock()
        self._sock: socket.socket | None = None
        self._buffer = ""
        self._text = codecs.getincrementaldecoder("utf-8")()
        self._json = json.JSONDecoder()
        self._ids = itertools.count()

    def __repr__(self) -> str:
        return f"SingleConnRpcClient({self.rpc_server!r})"

    def close(self) -> None:
        """Drop the current connection, if any."""
        with self._lock:
            if self._sock is not None:
                try:
                    self._sock.close()
                except OSError:
                    pass
                self._sock = None
            self._buffer = ""
            self._text.reset()

    def _address(self) -> tuple[str, int]:
        host, sep, port = self.rpc_server.rpartition(":")
        if not sep or not port.isdigit():
            raise RpcError(f"invalid rpc server address: {self.rpc_server}")
        return host.strip("[]") or "localhost", int(port)

    def _connect(self) -> socket.socket:
        if self._sock is not None:
            return self._sock
        address = self._address()
        retry = 1
        while True:
            try:
                sock = socket.create_connection(address, timeout=self.timeout or None)
            except OSError as exc:
                log.warning("dial %s fail: %s", self.rpc_server, exc)
                if retry > self.max_retries:
                    raise RpcError(f"dial {self.rpc_server} fail: {exc}") from exc
                time.sleep(self.backoff_base**retry)
                retry += 1
                continue
            self._sock = sock
            self._buffer = ""
            self._text.reset()
            return sock

    def _read_reply(self, sock: socket.socket, request_id: int, deadline: float) -> dict:
        while True:
            pending = self._buffer.lstrip()
            if pending:
                try:
                    reply, end = self._json.raw_decode(pending)
                except json.JSONDecodeError:
                    self._buffer = pending
                else:
                    self._buffer = pending[end:]
                    if not isinstance(reply, dict):
                        raise ValueError("malformed rpc response")
                    if reply.get("id") == request_id:
                        return reply
                    continue
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise TimeoutError("rpc call timeout")
            sock.settimeout(remaining)
            chunk = sock.recv(65536)
            if not chunk:
                raise ConnectionError("connection closed by server")
            self._buffer += self._text.decode(chunk)

    def call(self, method: str, params: Any) -> Any:
        """Invoke ``method`` with ``params`` and return the server's result."""
        with self._lock:
            sock = self._connect()
            request_id = next(self._ids)
            payload = json.dumps({"method": method, "params": [params], "id": request_id})
            deadline = time.monotonic() + self.call_timeout
            try:
                sock.settimeout(self.call_timeout)
                sock.sendall(payload.encode("utf-8") + b"\n")
                reply = self._read_reply(sock, request_id, deadline)
            except TimeoutError:
                log.warning("rpc call timeout %r => %s", self, self.rpc_server)
                self.close()
                raise RpcError(f"{self.rpc_server} rpc call timeout") from None
            except (OSError, ValueError) as exc:
                self.close()
                raise RpcError(f"rpc call {method} to {self.rpc_server} fail: {exc}") from exc

            error = reply.get("error")
            if error is not None:
                self.close()
                raise RpcError(str(error))
            return reply.get("result")