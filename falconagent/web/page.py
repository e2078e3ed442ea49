"""Static files served from the ``public`` directory under the working directory."""

from __future__ import annotations

import mimetypes
import os
import posixpath
from pathlib import Path

from falconagent.web.server import Request, Response, Router

# Working directory captured at start-up; the current directory when unset.
root_dir: str | None = None

_NOT_FOUND = Response(status=404, body=b"404 page not found\n")


def _public_dir() -> Path:
    return (Path(root_dir or os.getcwd()) / "public").resolve()


def _content_type(path: Path) -> str:
    guessed, _ = mimetypes.guess_type(path.name)
    if guessed is None:
        return "application/octet-stream"
    if guessed.startswith("text/"):
        return guessed + "; charset=utf-8"
    return guessed


def _resolve(public: Path, url_path: str) -> Path | None:
    relative = posixpath.normpath("/" + url_path).lstrip("/")
    target = (public / relative).resolve() if relative else public
    if target != public and public not in target.parents:
        return None
    return target


def register(router: Router) -> None:
    @router.route("/")
    def static(request: Request) -> Response:
        public = _public_dir()
        target = _resolve(public, request.path)
        if target is None:
            return _NOT_FOUND
        if request.path.endswith("/") and not (target / "index.html").exists():
            return _NOT_FOUND
        if target.is_dir():
            target = target / "index.html"
        if not target.is_file():
            return _NOT_FOUND
        try:
            body = target.read_bytes()
        except OSError:
            return _NOT_FOUND
        return Response(body=body, content_type=_content_type(target))